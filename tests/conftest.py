"""Pytest configuration and fixtures for consolidator tests."""

import csv
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Sequence

import httpx
import pytest

from kb_consolidator.config import log
from kb_consolidator.config.models import (
    ColumnConfig,
    ConsolidatorConfig,
    ProviderConfig,
    Record
)

ENV_KEYS = [
    'AI_PROVIDER', 'SIMILARITY_THRESHOLD', 'MAX_AI_CALLS_PER_RUN', 'ENABLE_AI_CONSOLIDATION',
    'FALLBACK_ON_BUDGET_EXHAUSTED', 'INPUT_DIRECTORY', 'OUTPUT_FILE', 'STATS_FILE',
    'TERM_COLUMN', 'DEFINITION_COLUMN', 'URL_COLUMN', 'LOG_LEVEL', 'LOG_FILE',
    'AI_REQUEST_TIMEOUT', 'AI_REQUEST_DELAY',
    'OPENAI_API_KEY', 'OPENAI_MODEL', 'OPENAI_BASE_URL',
    'ANTHROPIC_API_KEY', 'ANTHROPIC_MODEL', 'ANTHROPIC_BASE_URL',
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's own settings out of the tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo setup_logging so caplog sees package records in later tests."""
    package_logger = logging.getLogger('kb_consolidator')
    level = package_logger.level
    yield
    for handler in list(log._installed_handlers):
        package_logger.removeHandler(handler)
        handler.close()
    log._installed_handlers.clear()
    package_logger.setLevel(level)
    package_logger.propagate = True


def write_csv(path: Path, header: Sequence[str], rows: Sequence[Sequence[str]]) -> Path:
    """Write a CSV file with the given header and rows."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='', encoding='utf-8') as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    directory = tmp_path / 'csv_files'
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(tmp_path: Path, input_dir: Path) -> Callable[..., ConsolidatorConfig]:
    """Factory for run configurations rooted in the test's tmp_path."""

    def _make(**overrides) -> ConsolidatorConfig:
        values = {
            'input_directory': input_dir,
            'output_file': tmp_path / 'out' / 'consolidated.csv',
            'enable_ai': False,
            'log_file': None,
            'request_delay': 0.0,
            'providers': {
                'openai': ProviderConfig(
                    api_key='sk-test',
                    model='gpt-4',
                    base_url='https://api.openai.test/v1'
                ),
                'anthropic': ProviderConfig(
                    api_key='ak-test',
                    model='claude-3-sonnet-20240229',
                    base_url='https://api.anthropic.test'
                ),
            },
        }
        values.update(overrides)
        (tmp_path / 'out').mkdir(exist_ok=True)
        return ConsolidatorConfig(**values)

    return _make


@pytest.fixture
def columns() -> ColumnConfig:
    return ColumnConfig()


@pytest.fixture
def make_record() -> Callable[..., Record]:
    def _make(term: str = '', definition: str = '', url: str = '',
              source_file: str = 'test.csv', **extra: str) -> Record:
        fields = {'term': term, 'definition': definition, 'url': url}
        fields.update(extra)
        return Record(fields=fields, source_file=source_file)

    return _make


def openai_reply(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={'choices': [{'message': {'role': 'assistant', 'content': content}}]}
    )


def anthropic_reply(text: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={'content': [{'type': 'text', 'text': text}]})


def merged_json(term: str, definition: str, url: str = '',
                confidence: str = 'high', sources: int = 2) -> str:
    return json.dumps({
        'term': term,
        'definition': definition,
        'url': url,
        'sources_merged': sources,
        'merge_confidence': confidence,
    })


class RecordingTransport(httpx.MockTransport):
    """Mock transport that keeps every request it receives."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_recording)

    def payloads(self) -> List[Dict]:
        return [json.loads(request.content) for request in self.requests]
