"""Centralized logging configuration for vadscribe.

Host applications embedding the engine call :func:`configure_logging` once at
startup; library modules only ever use ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import os
import sys
import warnings
from typing import Literal

from vadscribe.utils.constant import LOG_LEVEL, TORCH_CPP_LOG_LEVEL

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# librosa pulls in numba, whose compiler logs flood DEBUG output.
_NOISY_LOGGERS: tuple[str, ...] = (
    "numba",
    "numba.core",
    "audioread",
    "pydub.converter",
)


def _configure_third_party_log_levels() -> None:
    """Pin noisy third-party loggers to WARNING."""
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _apply_torch_verbosity(level: str) -> None:
    """Export the torch C++ log level for extensions loaded afterwards.

    Args:
        level: Torch C++ log level name (``INFO``, ``WARNING``, ``ERROR``).
    """
    os.environ["TORCH_CPP_LOG_LEVEL"] = level


def configure_logging(
    *,
    level: LogLevel | None = None,
    verbose: bool = False,
    quiet: bool = False,
    format_string: str | None = None,
) -> None:
    """Configure centralized logging for the application.

    Args:
        level: Explicit log level (overrides verbose/quiet).
        verbose: Enable DEBUG logging and torch INFO logs.
        quiet: Suppress all non-critical logs and Python warnings.
        format_string: Custom log format (uses default if None).

    Examples:
        >>> configure_logging(verbose=True)
        >>> configure_logging(level="WARNING")
    """
    if level is not None:
        log_level = getattr(logging, level.upper())
    elif verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.CRITICAL
    else:
        log_level = getattr(logging, LOG_LEVEL, logging.INFO)

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configure_third_party_log_levels()

    if verbose:
        _apply_torch_verbosity("INFO")
    elif quiet:
        warnings.filterwarnings("ignore")
        _apply_torch_verbosity("ERROR")
    else:
        _apply_torch_verbosity(os.getenv("TORCH_CPP_LOG_LEVEL", TORCH_CPP_LOG_LEVEL).upper())

    if not quiet:
        logging.getLogger(__name__).debug(
            "Logging configured: level=%s", logging.getLevelName(log_level)
        )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (typically ``__name__`` of the calling module).

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
