"""Serialization of the consolidated knowledge base and the run statistics."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from kb_consolidator.config.models import ConsolidatedRecord, RunStatistics
from kb_consolidator.core.errors import OutputError

logger = logging.getLogger(__name__)


class OutputWriter:
    """Writes consolidated records to CSV, sorted by term."""

    def __init__(self, term_column: str = 'term', encoding: str = 'utf-8'):
        self.term_column = term_column
        self.encoding = encoding

    def sort_records(self, records: Sequence[ConsolidatedRecord]) -> List[ConsolidatedRecord]:
        """Case-insensitive ascending order by term; ties keep their order."""
        return sorted(records, key=lambda record: record.get(self.term_column).lower())

    def to_dataframe(self, records: Sequence[ConsolidatedRecord]) -> pd.DataFrame:
        """
        Build the output table.

        The columns are the keys of the first record, in order. Values a
        record lacks are left empty; keys outside the header are omitted.

        Args:
            records: Records in output order

        Returns:
            pd.DataFrame: Output table of strings
        """
        rows = [record.as_row() for record in records]
        columns = list(rows[0].keys())
        return pd.DataFrame(rows, columns=columns, dtype=object).fillna('')

    def write(
        self,
        records: Sequence[ConsolidatedRecord],
        output_file: Union[str, Path],
        stats: Optional[RunStatistics] = None
    ) -> Path:
        """
        Sort and write the consolidated records.

        Args:
            records: Consolidated records in any order
            output_file: Destination CSV path
            stats: Optional run statistics to update with the final count

        Returns:
            Path: The written file

        Raises:
            OutputError: If there is nothing to write or the file cannot be written
        """
        output_path = Path(output_file)
        if not records:
            raise OutputError(f"No records to write to {output_path}")

        ordered = self.sort_records(records)
        df = self.to_dataframe(ordered)

        try:
            df.to_csv(output_path, index=False, encoding=self.encoding, lineterminator='\n')
        except OSError as e:
            raise OutputError(f"Cannot write to output file {output_path}: {e}")

        if stats is not None:
            stats.final_unique = len(ordered)

        logger.info(f"Consolidated knowledge base saved to: {output_path}")
        return output_path

    def write_statistics(self, stats: RunStatistics, stats_file: Union[str, Path]) -> Path:
        """
        Write the run statistics as a JSON report.

        Raises:
            OutputError: If the report cannot be written
        """
        stats_path = Path(stats_file)
        try:
            with open(stats_path, 'w', encoding=self.encoding) as handle:
                json.dump(stats.to_dict(), handle, indent=2)
        except OSError as e:
            raise OutputError(f"Cannot write statistics report {stats_path}: {e}")

        logger.info(f"Run statistics saved to: {stats_path}")
        return stats_path
