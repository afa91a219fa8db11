"""Tests for string and record similarity."""

import itertools

import pytest

from kb_consolidator.config.models import ColumnConfig
from kb_consolidator.core.similarity import SimilarityMatcher, similarity

SAMPLES = [
    'HTTP',
    'http ',
    'kitten',
    'sitting',
    'Hypertext Transfer Protocol',
    'Hypertext transfer protocol - a network protocol',
    'Ünïcödé',
    'unicode',
    '',
    '   ',
]

BASE = 'abcdefghijklmnopqrst'
THREE_OFF = 'abcdefghijklmnopqxyz'  # 3 substitutions over 20 chars -> 0.85


class TestSimilarity:
    """Edit-distance similarity of two strings."""

    def test_case_and_whitespace_are_ignored(self):
        assert similarity('HTTP', '  http ') == 1.0

    def test_identity(self):
        for value in SAMPLES:
            if value.strip():
                assert similarity(value, value) == 1.0

    def test_blank_is_never_similar(self):
        assert similarity('', 'x') == 0
        assert similarity('x', '') == 0
        assert similarity('', '') == 0
        assert similarity('   ', '\t') == 0

    def test_symmetry(self):
        for a, b in itertools.product(SAMPLES, repeat=2):
            assert similarity(a, b) == similarity(b, a)

    def test_edit_distance_ratio(self):
        # kitten -> sitting needs 3 edits, longest string has 7 characters
        assert similarity('kitten', 'sitting') == pytest.approx(4 / 7)

    def test_completely_different(self):
        assert similarity('abc', 'xyz') == 0.0

    def test_score_is_bounded(self):
        for a, b in itertools.product(SAMPLES, repeat=2):
            assert 0.0 <= similarity(a, b) <= 1.0

    def test_counts_characters_not_bytes(self):
        # one substitution over four characters, whatever the UTF-8 width
        assert similarity('café', 'cafe') == pytest.approx(0.75)


class TestSimilarityMatcher:
    """Record-level decisions."""

    def test_term_alone_can_match(self, make_record):
        matcher = SimilarityMatcher(ColumnConfig(), threshold=0.85)
        a = make_record('HTTP', 'Hypertext Transfer Protocol')
        b = make_record('http', 'Something else entirely')
        assert matcher.are_similar(a, b)

    def test_definition_alone_can_match(self, make_record):
        matcher = SimilarityMatcher(ColumnConfig(), threshold=0.85)
        a = make_record('Alpha', 'The first letter of the Greek alphabet')
        b = make_record('Omega', 'The first letter of the greek alphabet.')
        assert matcher.are_similar(a, b)

    def test_unrelated_records(self, make_record):
        matcher = SimilarityMatcher(ColumnConfig(), threshold=0.85)
        a = make_record('TCP', 'Transmission Control Protocol')
        b = make_record('UDP', 'User Datagram Protocol')
        assert not matcher.are_similar(a, b)

    def test_threshold_is_inclusive(self, make_record):
        matcher = SimilarityMatcher(ColumnConfig(), threshold=0.85)
        assert matcher.score(make_record(BASE), make_record(THREE_OFF)) == 0.85
        assert matcher.are_similar(make_record(BASE), make_record(THREE_OFF))

    def test_just_below_threshold(self, make_record):
        matcher = SimilarityMatcher(ColumnConfig(), threshold=0.85 + 1e-9)
        assert not matcher.are_similar(make_record(BASE), make_record(THREE_OFF))

    def test_custom_columns(self, make_record):
        columns = ColumnConfig(term='name', definition='description', url='link')
        matcher = SimilarityMatcher(columns, threshold=0.9)
        a = make_record(name='Kubernetes', description='Container orchestration')
        b = make_record(name='kubernetes', description='An orchestrator')
        assert matcher.are_similar(a, b)
