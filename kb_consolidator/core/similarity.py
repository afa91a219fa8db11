"""String similarity and record similarity."""

from functools import lru_cache

import Levenshtein

from kb_consolidator.config.models import ColumnConfig, Record
from kb_consolidator.core.preprocessor import registry

_normalizer = registry.create('text', lowercase=True)


@lru_cache(maxsize=100000)
def _normalized_similarity(s1: str, s2: str) -> float:
    if not s1 or not s2:
        return 0.0

    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    return (max_len - Levenshtein.distance(s1, s2)) / max_len


def similarity(s1: str, s2: str) -> float:
    """
    Calculate the edit-distance similarity of two strings.

    Both values are trimmed and lower-cased first. A blank value is never
    similar to anything, not even to another blank value.

    Args:
        s1: First string
        s2: Second string

    Returns:
        float: Similarity score between 0 and 1
    """
    a = _normalizer.process(s1)
    b = _normalizer.process(s2)
    # Order the pair so both argument orders share one cache entry
    if b < a:
        a, b = b, a
    return _normalized_similarity(a, b)


class SimilarityMatcher:
    """Decides whether two records are near-duplicates."""

    def __init__(self, columns: ColumnConfig, threshold: float = 0.85):
        """
        Initialize the matcher.

        Args:
            columns: Configured column names
            threshold: Minimum similarity of term or definition
        """
        self.columns = columns
        self.threshold = threshold

    def score(self, record1: Record, record2: Record) -> float:
        """Best of the term similarity and the definition similarity."""
        term_similarity = similarity(
            record1.get(self.columns.term), record2.get(self.columns.term)
        )
        definition_similarity = similarity(
            record1.get(self.columns.definition), record2.get(self.columns.definition)
        )
        return max(term_similarity, definition_similarity)

    def are_similar(self, record1: Record, record2: Record) -> bool:
        """Either field reaching the threshold makes the records similar."""
        return self.score(record1, record2) >= self.threshold
