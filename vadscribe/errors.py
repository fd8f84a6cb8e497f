"""Domain error types and the status codes they map to.

Every engine failure is a :class:`VadscribeError` subclass carrying the
:class:`StatusCode` reported by the status-code shim in :mod:`vadscribe.capi`.
"""

from __future__ import annotations

import enum

__all__ = [
    "StatusCode",
    "VadscribeError",
    "ModelLoadError",
    "ModelNotLoadedError",
    "InvalidLanguageError",
    "DecodeError",
    "IndexOutOfRangeError",
    "StaleResultError",
    "TranscriptionCancelledError",
    "AudioDecodeError",
]


class StatusCode(enum.IntEnum):
    """Integer results of the call surface. ``OK`` is zero, failures negative."""

    OK = 0
    MODEL_NOT_FOUND = -1
    MODEL_FORMAT_INVALID = -2
    MODEL_NOT_LOADED = -3
    INVALID_LANGUAGE = -4
    DECODE_FAILED = -5
    INDEX_OUT_OF_RANGE = -6
    CANCELLED = -7
    STALE_RESULT = -8
    AUDIO_DECODE_FAILED = -9


class VadscribeError(Exception):
    """Base class for all engine errors."""

    status: StatusCode = StatusCode.DECODE_FAILED


class ModelLoadError(VadscribeError):
    """Raised when a model file cannot be read, recognized or decoded."""

    def __init__(self, message: str, status: StatusCode = StatusCode.MODEL_FORMAT_INVALID) -> None:
        super().__init__(message)
        self.status = status


class ModelNotLoadedError(VadscribeError):
    """Raised when an operation needs a resident model that is absent."""

    status = StatusCode.MODEL_NOT_LOADED


class InvalidLanguageError(VadscribeError):
    """Raised for an unrecognized language code (auto-detect excluded)."""

    status = StatusCode.INVALID_LANGUAGE


class DecodeError(VadscribeError):
    """Raised on a non-recoverable numeric failure during inference."""

    status = StatusCode.DECODE_FAILED


class IndexOutOfRangeError(VadscribeError, IndexError):
    """Raised when a result accessor is called with an invalid index."""

    status = StatusCode.INDEX_OUT_OF_RANGE


class StaleResultError(VadscribeError):
    """Raised when a reader expects a result generation that was replaced."""

    status = StatusCode.STALE_RESULT


class TranscriptionCancelledError(VadscribeError):
    """Raised when a transcription run is cancelled cooperatively."""

    status = StatusCode.CANCELLED


class AudioDecodeError(VadscribeError):
    """Raised when an audio file cannot be decoded to PCM."""

    status = StatusCode.AUDIO_DECODE_FAILED
