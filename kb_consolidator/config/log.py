"""Logging configuration for consolidation runs."""

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}

# Handlers installed by setup_logging, replaced on every call
_installed_handlers = []


def resolve_level(level: Union[str, int]) -> int:
    """Map a level name such as 'info' to its logging constant."""
    if isinstance(level, int):
        return level
    return LOG_LEVELS.get(str(level).strip().lower(), logging.INFO)


def setup_logging(
    level: Union[str, int] = 'info',
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Configure console and (append-mode) file logging for the package.

    Args:
        level: Log level name (debug, info, warning, error)
        log_file: Optional path of the run log

    Returns:
        logging.Logger: The package logger
    """
    logger = logging.getLogger('kb_consolidator')
    for handler in _installed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _installed_handlers.append(console)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        _installed_handlers.append(file_handler)

    for handler in _installed_handlers:
        logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    logger.propagate = False

    return logger
