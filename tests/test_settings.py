"""Tests for configuration loading."""

from pathlib import Path

import pytest

from kb_consolidator.config.models import ColumnConfig, ConsolidatorConfig
from kb_consolidator.config.settings import (
    SAMPLE_ENV,
    build_config,
    load_config,
    write_sample_env
)
from kb_consolidator.core.errors import ConfigurationError


class TestBuildConfig:
    """Conversion of environment variables into a run configuration."""

    def test_defaults(self):
        config = build_config({})
        assert config.ai_provider == 'openai'
        assert config.similarity_threshold == 0.85
        assert config.max_ai_calls == 100
        assert config.enable_ai is True
        assert config.fallback_on_budget_exhausted is False
        assert config.input_directory == Path('./csv_files')
        assert config.output_file == Path('consolidated_knowledge_base.csv')
        assert config.stats_file == Path('consolidated_knowledge_base.stats.json')
        assert config.columns == ColumnConfig('term', 'definition', 'url')
        assert config.request_timeout == 30.0
        assert config.request_delay == 0.1
        assert config.log_file == Path('consolidation.log')
        assert config.providers['openai'].model == 'gpt-4'
        assert config.providers['openai'].base_url == 'https://api.openai.com/v1'
        assert config.providers['anthropic'].model == 'claude-3-sonnet-20240229'
        assert config.providers['anthropic'].base_url == 'https://api.anthropic.com'

    def test_values_from_environment(self):
        config = build_config({
            'AI_PROVIDER': 'Anthropic',
            'SIMILARITY_THRESHOLD': '0.9',
            'MAX_AI_CALLS_PER_RUN': '5',
            'ENABLE_AI_CONSOLIDATION': 'false',
            'TERM_COLUMN': 'name',
            'ANTHROPIC_API_KEY': 'ak-123',
            'ANTHROPIC_BASE_URL': 'https://proxy.example/',
            'LOG_FILE': '',
        })
        assert config.ai_provider == 'anthropic'
        assert config.similarity_threshold == 0.9
        assert config.max_ai_calls == 5
        assert config.enable_ai is False
        assert config.columns.term == 'name'
        assert config.provider_config().api_key == 'ak-123'
        assert config.provider_config().base_url == 'https://proxy.example'
        assert config.log_file is None

    def test_overrides_win(self):
        config = build_config(
            {'SIMILARITY_THRESHOLD': '0.9'},
            overrides={'similarity_threshold': 0.5, 'output_file': 'kb.csv', 'max_ai_calls': None}
        )
        assert config.similarity_threshold == 0.5
        assert config.output_file == Path('kb.csv')
        assert config.stats_file == Path('kb.stats.json')
        assert config.max_ai_calls == 100

    @pytest.mark.parametrize('env', [
        {'SIMILARITY_THRESHOLD': 'high'},
        {'SIMILARITY_THRESHOLD': '1.5'},
        {'MAX_AI_CALLS_PER_RUN': 'ten'},
        {'MAX_AI_CALLS_PER_RUN': '-1'},
        {'ENABLE_AI_CONSOLIDATION': 'maybe'},
        {'AI_REQUEST_TIMEOUT': '0'},
        {'LOG_LEVEL': 'verbose'},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError):
            build_config(env)

    def test_log_level_is_case_insensitive(self):
        assert build_config({'LOG_LEVEL': 'DEBUG'}).log_level == 'DEBUG'

    def test_unknown_provider_is_kept_for_later_validation(self):
        config = build_config({'AI_PROVIDER': 'cohere'})
        assert config.ai_provider == 'cohere'
        assert not config.provider_config().has_credentials


class TestLoadConfig:
    """Reading .env files."""

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / '.env'
        env_file.write_text('SIMILARITY_THRESHOLD=0.7\nOPENAI_API_KEY=sk-file\n', encoding='utf-8')
        config = load_config(env_file)
        assert config.similarity_threshold == 0.7
        assert config.provider_config().api_key == 'sk-file'

    def test_environment_wins_over_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / '.env'
        env_file.write_text('SIMILARITY_THRESHOLD=0.7\n', encoding='utf-8')
        monkeypatch.setenv('SIMILARITY_THRESHOLD', '0.6')
        assert load_config(env_file).similarity_threshold == 0.6

    def test_missing_file_writes_sample(self, tmp_path):
        env_file = tmp_path / '.env'
        with pytest.raises(ConfigurationError, match='Created a sample'):
            load_config(env_file)
        assert env_file.read_text(encoding='utf-8') == SAMPLE_ENV

    def test_missing_file_without_sample(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / '.env', create_sample=False)
        assert not (tmp_path / '.env').exists()

    def test_environment_only(self, monkeypatch):
        monkeypatch.setenv('MAX_AI_CALLS_PER_RUN', '3')
        assert load_config(None).max_ai_calls == 3

    def test_sample_file_is_loadable_but_has_no_credentials(self, tmp_path):
        env_file = write_sample_env(tmp_path / '.env')
        config = load_config(env_file)
        assert isinstance(config, ConsolidatorConfig)
        assert not config.provider_config().has_credentials
