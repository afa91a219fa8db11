"""Column merge rules for rule-based consolidation."""

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple
from dataclasses import dataclass

from kb_consolidator.config.models import ColumnConfig


class ColumnRule(ABC):
    """Base class for rules reducing a column's values to one value."""

    @abstractmethod
    def merge_values(self, values: Sequence[str]) -> str:
        """
        Reduce the values of one column across a duplicate group.

        Args:
            values: Column values of the group members, in group order

        Returns:
            str: The merged value
        """
        pass


class LongestValueRule(ColumnRule):
    """Keep the longest non-empty value; the first one wins ties."""

    def merge_values(self, values: Sequence[str]) -> str:
        best = ''
        for value in values:
            if value and len(value) > len(best):
                best = value
        return best


class JoinDistinctRule(ColumnRule):
    """Join the distinct non-empty values in first-seen order."""

    def __init__(self, separator: str):
        self.separator = separator

    def merge_values(self, values: Sequence[str]) -> str:
        # dict keeps insertion order, giving exact de-duplication
        distinct = dict.fromkeys(value for value in values if value)
        return self.separator.join(distinct)


@dataclass
class MergeRules:
    """Which rule merges which output column."""

    column_rules: List[Tuple[str, ColumnRule]]


def default_merge_rules(columns: ColumnConfig) -> MergeRules:
    """
    Build the standard rules: longest term, definitions joined with " | ",
    urls joined with "; ".

    Args:
        columns: Configured column names

    Returns:
        MergeRules: Rules in output column order
    """
    return MergeRules(column_rules=[
        (columns.term, LongestValueRule()),
        (columns.definition, JoinDistinctRule(' | ')),
        (columns.url, JoinDistinctRule('; ')),
    ])
