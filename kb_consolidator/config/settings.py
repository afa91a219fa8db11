"""
Settings loader.

Reads consolidation settings from environment variables, optionally seeded
from a .env file. Explicit overrides (e.g. from the command line) win over
the environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from kb_consolidator.config.log import LOG_LEVELS
from kb_consolidator.config.models import (
    AIProvider,
    ColumnConfig,
    ConsolidatorConfig,
    ProviderConfig
)
from kb_consolidator.core.errors import ConfigurationError

SAMPLE_ENV = """\
# AI API Configuration
# Configure the provider you want to use

# OpenAI Configuration
OPENAI_API_KEY=your_openai_api_key_here
OPENAI_MODEL=gpt-4
OPENAI_BASE_URL=https://api.openai.com/v1

# Anthropic Configuration
ANTHROPIC_API_KEY=your_anthropic_api_key_here
ANTHROPIC_MODEL=claude-3-sonnet-20240229
ANTHROPIC_BASE_URL=https://api.anthropic.com

# Consolidation Settings
AI_PROVIDER=openai
SIMILARITY_THRESHOLD=0.85
MAX_AI_CALLS_PER_RUN=100
ENABLE_AI_CONSOLIDATION=true
FALLBACK_ON_BUDGET_EXHAUSTED=false
AI_REQUEST_TIMEOUT=30
AI_REQUEST_DELAY=0.1
LOG_LEVEL=info
LOG_FILE=consolidation.log

# CSV Configuration
INPUT_DIRECTORY=./csv_files
OUTPUT_FILE=consolidated_knowledge_base.csv
TERM_COLUMN=term
DEFINITION_COLUMN=definition
URL_COLUMN=url
"""

PROVIDER_DEFAULTS = {
    AIProvider.OPENAI.value: {
        'model': 'gpt-4',
        'base_url': 'https://api.openai.com/v1',
    },
    AIProvider.ANTHROPIC.value: {
        'model': 'claude-3-sonnet-20240229',
        'base_url': 'https://api.anthropic.com',
    },
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


def write_sample_env(path: Union[str, Path]) -> Path:
    """
    Write a sample .env file listing every recognized setting.

    Args:
        path: Destination of the sample file

    Returns:
        Path: The written file
    """
    env_path = Path(path)
    env_path.write_text(SAMPLE_ENV, encoding='utf-8')
    return env_path


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _provider_settings(env: Mapping[str, str], provider: str) -> ProviderConfig:
    prefix = provider.upper()
    defaults = PROVIDER_DEFAULTS[provider]
    return ProviderConfig(
        api_key=env.get(f'{prefix}_API_KEY', ''),
        model=env.get(f'{prefix}_MODEL') or defaults['model'],
        base_url=(env.get(f'{prefix}_BASE_URL') or defaults['base_url']).rstrip('/')
    )


def build_config(
    env: Mapping[str, str],
    overrides: Optional[Mapping[str, Any]] = None
) -> ConsolidatorConfig:
    """
    Build a validated configuration from environment-style variables.

    Args:
        env: Variable names to values (e.g. os.environ merged with .env)
        overrides: ConsolidatorConfig field values that take precedence

    Returns:
        ConsolidatorConfig: The run configuration

    Raises:
        ConfigurationError: If a value has the wrong type or range
    """
    values: Dict[str, Any] = {
        'ai_provider': env.get('AI_PROVIDER', AIProvider.OPENAI.value),
        'similarity_threshold': _parse_float(
            'SIMILARITY_THRESHOLD', env.get('SIMILARITY_THRESHOLD', '0.85')
        ),
        'max_ai_calls': _parse_int(
            'MAX_AI_CALLS_PER_RUN', env.get('MAX_AI_CALLS_PER_RUN', '100')
        ),
        'enable_ai': _parse_bool(
            'ENABLE_AI_CONSOLIDATION', env.get('ENABLE_AI_CONSOLIDATION', 'true')
        ),
        'fallback_on_budget_exhausted': _parse_bool(
            'FALLBACK_ON_BUDGET_EXHAUSTED', env.get('FALLBACK_ON_BUDGET_EXHAUSTED', 'false')
        ),
        'input_directory': env.get('INPUT_DIRECTORY', './csv_files'),
        'output_file': env.get('OUTPUT_FILE', 'consolidated_knowledge_base.csv'),
        'stats_file': env.get('STATS_FILE') or None,
        'columns': ColumnConfig(
            term=env.get('TERM_COLUMN', 'term'),
            definition=env.get('DEFINITION_COLUMN', 'definition'),
            url=env.get('URL_COLUMN', 'url')
        ),
        'log_level': env.get('LOG_LEVEL', 'info'),
        'log_file': env.get('LOG_FILE', 'consolidation.log') or None,
        'request_timeout': _parse_float(
            'AI_REQUEST_TIMEOUT', env.get('AI_REQUEST_TIMEOUT', '30')
        ),
        'request_delay': _parse_float(
            'AI_REQUEST_DELAY', env.get('AI_REQUEST_DELAY', '0.1')
        ),
        'providers': {
            provider: _provider_settings(env, provider)
            for provider in PROVIDER_DEFAULTS
        },
    }
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    config = ConsolidatorConfig(**values)
    validate_config(config)
    return config


def validate_config(config: ConsolidatorConfig) -> None:
    """Check value ranges that the type conversion cannot catch."""
    if not 0.0 <= config.similarity_threshold <= 1.0:
        raise ConfigurationError(
            f"Similarity threshold must be between 0 and 1, got {config.similarity_threshold}"
        )
    if config.max_ai_calls < 0:
        raise ConfigurationError(
            f"Maximum AI calls must not be negative, got {config.max_ai_calls}"
        )
    if config.request_timeout <= 0:
        raise ConfigurationError(
            f"Request timeout must be positive, got {config.request_timeout}"
        )
    if config.request_delay < 0:
        raise ConfigurationError(
            f"Request delay must not be negative, got {config.request_delay}"
        )
    if str(config.log_level).strip().lower() not in LOG_LEVELS:
        raise ConfigurationError(
            f"Log level must be one of {', '.join(LOG_LEVELS)}, got {config.log_level!r}"
        )


def load_config(
    env_file: Optional[Union[str, Path]] = '.env',
    create_sample: bool = True,
    overrides: Optional[Mapping[str, Any]] = None
) -> ConsolidatorConfig:
    """
    Load the run configuration from a .env file and the process environment.

    Process environment variables take precedence over the .env file.

    Args:
        env_file: Path of the .env file, or None to use the environment only
        create_sample: Write a sample file when env_file does not exist
        overrides: ConsolidatorConfig field values that take precedence

    Returns:
        ConsolidatorConfig: The run configuration

    Raises:
        ConfigurationError: If the .env file is missing or a value is invalid
    """
    env: Dict[str, str] = {}
    if env_file is not None:
        env_path = Path(env_file)
        if not env_path.exists():
            if create_sample:
                write_sample_env(env_path)
                raise ConfigurationError(
                    f"No {env_path} file found. Created a sample; "
                    f"configure your API keys and run again."
                )
            raise ConfigurationError(f"Env file not found: {env_path}")
        env.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
    env.update(os.environ)
    return build_config(env, overrides)
