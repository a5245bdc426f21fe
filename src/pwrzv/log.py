"""Logging setup for pwrzv."""

import logging
import logging.config
import os

LEVEL_ENV = "PWRZV_LOG_LEVEL"
DEFAULT_LEVEL = "WARNING"
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level_from_env(name: str, default: str = DEFAULT_LEVEL) -> str:
    val = os.getenv(name, default).upper().strip()
    return val if val in _LEVELS else default


def level_for(verbosity: int) -> str:
    """
    Log level for a ``-v`` count.

    0 keeps the ``PWRZV_LOG_LEVEL`` setting (WARNING by default), 1 is
    INFO and 2 or more is DEBUG.
    """
    if verbosity >= 2:
        return "DEBUG"
    if verbosity == 1:
        return "INFO"
    return _level_from_env(LEVEL_ENV)


def setup_logging(verbosity: int = 0) -> str:
    """Send ``pwrzv`` log records to stderr. Returns the level used."""
    level = level_for(verbosity)
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "pwrzv": {
                "handlers": ["stderr"],
                "level": level,
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(config)
    return level
