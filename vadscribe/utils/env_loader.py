"""Utility for loading project-level environment variables.

A ``.env`` file at the repository root (or the file named by
``VADSCRIBE_ENV_FILE``) is loaded with `python-dotenv` before the constants
module reads its overrides, so that thresholds such as ``VAD_THRESHOLD`` or
``DEFAULT_THREADS`` can be tuned without touching code.

Usage:

    from vadscribe.utils.env_loader import load_project_env
    load_project_env()

Re-invocation is a no-op unless ``force=True`` is passed.
"""

from __future__ import annotations

import functools
import logging
import os
import pathlib
from collections.abc import Callable
from typing import Any, Final

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_REPO_ROOT: Final[pathlib.Path] = pathlib.Path(__file__).resolve().parents[2]
_ENV_FILE: Final[pathlib.Path] = _REPO_ROOT / ".env"
LOAD_DOTENV: Final[Callable[..., Any]] = load_dotenv


def resolve_env_file() -> pathlib.Path:
    """Return the dotenv file to load.

    Returns:
        pathlib.Path: ``$VADSCRIBE_ENV_FILE`` when set, else ``<repo>/.env``.
    """
    override = os.getenv("VADSCRIBE_ENV_FILE", "").strip()
    if override:
        return pathlib.Path(override).expanduser()
    return _ENV_FILE


def load_project_env(force: bool = False) -> bool:
    """Load the project-level ``.env`` file into the process environment.

    Variables already present in the environment win over the file.

    Args:
        force: Reload the file even if it was loaded before.

    Returns:
        bool: ``True`` when a file was found and loaded.
    """
    if force:
        _load_once.cache_clear()
    return _load_once()


@functools.lru_cache(maxsize=1)
def _load_once() -> bool:
    env_file = resolve_env_file()
    if not env_file.is_file():
        return False

    LOAD_DOTENV(dotenv_path=env_file, override=False)
    logger.debug("Loaded environment overrides from %s", env_file)
    return True


__all__ = [
    "load_project_env",
    "resolve_env_file",
]
