"""vadscribe – speech-to-text engine with VAD, Python package init."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from vadscribe.config import EngineConfig, TranscriptionOptions
from vadscribe.engine import Engine
from vadscribe.errors import StatusCode, VadscribeError
from vadscribe.utils.logging_config import configure_logging

try:
    __version__ = version("vadscribe")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"

__all__ = [
    "Engine",
    "EngineConfig",
    "StatusCode",
    "TranscriptionOptions",
    "VadscribeError",
    "configure_logging",
    "__version__",
]
