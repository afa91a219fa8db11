"""Loading of term/definition/url records from a directory of CSV files."""

import csv
import logging
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Union

from kb_consolidator.config.models import Record, RunStatistics
from kb_consolidator.core.errors import InputError, NoInputError
from kb_consolidator.core.preprocessor import registry

logger = logging.getLogger(__name__)


def raise_field_size_limit() -> int:
    """
    Lift the csv module's per-field size limit as far as the platform allows.

    Returns:
        int: The limit now in effect
    """
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return limit
        except OverflowError:
            # C long is narrower than sys.maxsize on some platforms
            limit //= 2


class RecordIngestor:
    """
    Reads every CSV file of a directory into an ordered list of records.

    Files are read in name order; rows keep their order within a file. A row
    is accepted only when its field count matches the header and its term
    column is not blank.
    """

    FILE_PATTERN = '*.csv'

    def __init__(self, term_column: str = 'term', encoding: str = 'utf-8-sig'):
        """
        Initialize the ingestor.

        Args:
            term_column: Column that must be non-blank for a row to be kept
            encoding: Encoding of the input files (BOM tolerant by default)
        """
        self.term_column = term_column
        self.encoding = encoding
        self.header_preprocessor = registry.create('header')
        raise_field_size_limit()

    def list_files(self, directory: Union[str, Path]) -> List[Path]:
        """
        List eligible CSV files, creating the directory if it is missing.

        Raises:
            NoInputError: If the directory holds no CSV files
        """
        directory = Path(directory)
        if not directory.is_dir():
            directory.mkdir(parents=True, exist_ok=True)
            logger.warning(
                f"Created input directory {directory}. Please place your CSV files there."
            )

        files = sorted(
            path for path in directory.glob(self.FILE_PATTERN) if path.is_file()
        )
        if not files:
            raise NoInputError(f"No CSV files found in {directory}")
        return files

    def load_directory(
        self,
        directory: Union[str, Path],
        stats: Optional[RunStatistics] = None
    ) -> List[Record]:
        """
        Load all records from the CSV files of a directory.

        Args:
            directory: Directory holding the CSV extracts
            stats: Optional run statistics to update

        Returns:
            List[Record]: Accepted records in read order

        Raises:
            NoInputError: If the directory holds no CSV files
            InputError: If a CSV file cannot be read, decoded or parsed
        """
        logger.info(f"Loading CSV files from: {directory}")
        files = self.list_files(directory)

        records: List[Record] = []
        for path in files:
            logger.debug(f"Reading: {path.name}")
            records.extend(self.parse_file(path))

        if stats is not None:
            stats.records_read = len(records)
            stats.files_read = len(files)

        logger.info(f"Loaded {len(records)} records from {len(files)} files")
        return records

    def parse_file(self, path: Union[str, Path]) -> List[Record]:
        """
        Parse one CSV file.

        Args:
            path: CSV file to read

        Returns:
            List[Record]: Accepted rows tagged with the file name

        Raises:
            InputError: If the file cannot be read, decoded or parsed
        """
        path = Path(path)

        try:
            with open(path, newline='', encoding=self.encoding) as handle:
                return self._parse_rows(csv.reader(handle), path.name)
        except UnicodeDecodeError as e:
            raise InputError(f"{path.name} is not valid {self.encoding}: {e}")
        except csv.Error as e:
            raise InputError(f"Cannot parse {path.name}: {e}")
        except OSError as e:
            raise InputError(f"Cannot read {path.name}: {e}")

    def _parse_rows(self, reader: Iterator[List[str]], file_name: str) -> List[Record]:
        records: List[Record] = []
        skipped = 0

        header = next(reader, None)
        if not header:
            logger.warning(f"Skipping {file_name}: no header row")
            return records

        columns = [self.header_preprocessor.process(name) for name in header]

        for row in reader:
            if len(row) != len(columns):
                skipped += 1
                continue

            fields = dict(zip(columns, row))
            if not fields.get(self.term_column, '').strip():
                skipped += 1
                continue

            records.append(Record(fields=fields, source_file=file_name))

        if skipped:
            logger.debug(f"{file_name}: skipped {skipped} malformed or empty rows")
        return records
