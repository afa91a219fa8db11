"""Merge strategies reducing a duplicate group to one record."""

import json
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from kb_consolidator.config.models import (
    BASIC_MERGE_METHOD,
    ColumnConfig,
    ConsolidatedRecord,
    MergeConfidence,
    Record
)
from kb_consolidator.config.rules import MergeRules, default_merge_rules
from kb_consolidator.core.backends import MergeBackend
from kb_consolidator.core.errors import MergeResponseError


class MergeStrategy(ABC):
    """Base class for merge strategies."""

    @abstractmethod
    def merge(self, records: Sequence[Record]) -> ConsolidatedRecord:
        """
        Merge the members of a duplicate group.

        Args:
            records: Group members in ascending record order

        Returns:
            ConsolidatedRecord: The merged record
        """
        pass


class RuleBasedMerge(MergeStrategy):
    """Deterministic merge driven by per-column rules."""

    def __init__(self, columns: ColumnConfig, rules: Optional[MergeRules] = None):
        self.columns = columns
        self.rules = rules or default_merge_rules(columns)

    def merge(self, records: Sequence[Record]) -> ConsolidatedRecord:
        if len(records) == 1:
            return ConsolidatedRecord.passthrough(records[0])

        fields = {
            column: rule.merge_values([record.get(column) for record in records])
            for column, rule in self.rules.column_rules
        }
        return ConsolidatedRecord(
            fields=fields,
            sources_merged=len(records),
            merge_method=BASIC_MERGE_METHOD,
            source_files=tuple(record.source_file for record in records)
        )


class ServiceAssistedMerge(MergeStrategy):
    """Merge delegated to a text-generation backend that answers in JSON."""

    def __init__(
        self,
        backend: MergeBackend,
        columns: ColumnConfig,
        on_exchange: Optional[Callable[[str, str], None]] = None
    ):
        """
        Initialize the strategy.

        Args:
            backend: Backend answering the merge prompt
            columns: Configured column names
            on_exchange: Called with (prompt, response text) after every answer
        """
        self.backend = backend
        self.columns = columns
        self.on_exchange = on_exchange

    def build_prompt(self, records: Sequence[Record]) -> str:
        """Describe every group member and the expected JSON answer."""
        term_col = self.columns.term
        def_col = self.columns.definition
        url_col = self.columns.url

        lines = [
            "You are an expert at consolidating knowledge base entries. "
            f"Below are {len(records)} similar entries that need to be merged "
            "into one optimal record.",
            "",
            "RECORDS TO MERGE:",
        ]
        for number, record in enumerate(records, start=1):
            lines.append(f"Entry {number}:")
            lines.append(f"Term: {record.get(term_col) or 'N/A'}")
            lines.append(f"Definition: {record.get(def_col) or 'N/A'}")
            if record.get(url_col):
                lines.append(f"URL: {record.get(url_col)}")
            lines.append(f"Source: {record.source_file or 'Unknown'}")
            lines.append("")

        lines.extend([
            "INSTRUCTIONS:",
            "1. Create the best possible merged entry",
            "2. Choose the most accurate and clear term name",
            "3. Combine definitions to create one comprehensive, clear definition",
            "4. Include all relevant URLs, separated by semicolons",
            "5. Respond ONLY with valid JSON in this exact format:",
            "",
            "{",
            f'  "{term_col}": "merged term here",',
            f'  "{def_col}": "merged definition here",',
            f'  "{url_col}": "url1; url2; url3",',
            f'  "sources_merged": {len(records)},',
            '  "merge_confidence": "high|medium|low"',
            "}",
        ])
        return "\n".join(lines)

    def parse_response(self, text: str, records: Sequence[Record]) -> ConsolidatedRecord:
        """
        Decode the JSON object embedded in the backend's answer.

        Surrounding prose is tolerated: the slice from the first '{' to the
        last '}' is decoded.

        Raises:
            MergeResponseError: If no usable JSON object is found
        """
        start = text.find('{')
        end = text.rfind('}')
        if start == -1 or end == -1 or end < start:
            raise MergeResponseError("No valid JSON found in AI response")

        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise MergeResponseError(f"Invalid JSON in AI response: {e}")

        if not isinstance(parsed, dict):
            raise MergeResponseError("AI response JSON is not an object")

        confidence = str(parsed.get('merge_confidence', '')).strip().lower()
        try:
            merge_confidence = MergeConfidence(confidence)
        except ValueError:
            raise MergeResponseError(f"Invalid merge_confidence in AI response: {confidence!r}")

        fields = {}
        for column in (self.columns.term, self.columns.definition, self.columns.url):
            value = parsed.get(column)
            fields[column] = '' if value is None else str(value)

        return ConsolidatedRecord(
            fields=fields,
            sources_merged=len(records),
            merge_confidence=merge_confidence,
            source_files=tuple(record.source_file for record in records)
        )

    def merge(self, records: Sequence[Record]) -> ConsolidatedRecord:
        prompt = self.build_prompt(records)
        text = self.backend.complete(prompt)
        if self.on_exchange is not None:
            self.on_exchange(prompt, text)
        return self.parse_response(text, records)
