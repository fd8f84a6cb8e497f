"""Status-code call surface over one process-wide :class:`Engine`.

Function names follow the exported symbols of the native binding this
library replaces, so hosts written against that binding can switch with
minimal changes. Every mutating call returns a :class:`StatusCode` value
(``0`` on success) instead of raising; reads return sentinels on failure:
``""`` for text, ``-1`` for numbers and ``False`` for flags. Failures are
logged.
"""

from __future__ import annotations

import logging
import threading

import numpy as np

from vadscribe.config import TranscriptionOptions
from vadscribe.engine import Engine
from vadscribe.errors import StatusCode, VadscribeError
from vadscribe.results.models import flatten_spans

__all__ = [
    "get_engine",
    "reset_engine",
    "load_model",
    "load_model_vad",
    "vad",
    "transcribe",
    "get_segment_text",
    "get_segment_t0",
    "get_segment_t1",
    "n_tokens",
    "get_token_id",
    "get_segment_speaker_turn_next",
]

logger = logging.getLogger(__name__)

# Input validation failures surface as ValueError before reaching the engine.
_CALL_ERRORS = (VadscribeError, ValueError)

_engine: Engine | None = None
_engine_lock = threading.Lock()


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = Engine()
        return _engine


def reset_engine() -> None:
    """Close and drop the process-wide engine."""
    global _engine
    with _engine_lock:
        engine, _engine = _engine, None
    if engine is not None:
        engine.close()


def _status(exc: Exception, call: str) -> int:
    if isinstance(exc, VadscribeError):
        status = exc.status
    else:
        status = StatusCode.DECODE_FAILED
    logger.error("%s failed (%s): %s", call, status.name, exc)
    return int(status)


def load_model(model_path: str) -> int:
    try:
        get_engine().load_model(model_path)
    except _CALL_ERRORS as exc:
        return _status(exc, "load_model")
    return int(StatusCode.OK)


def load_model_vad(model_path: str) -> int:
    try:
        get_engine().load_model_vad(model_path)
    except _CALL_ERRORS as exc:
        return _status(exc, "load_model_vad")
    return int(StatusCode.OK)


def vad(pcm: np.ndarray) -> tuple[int, list[float]]:
    """Run VAD over ``pcm``.

    Returns:
        tuple[int, list[float]]: Status and the interleaved ``(start, end)``
        sample offsets of the speech spans.
    """
    try:
        spans = get_engine().vad(pcm)
    except _CALL_ERRORS as exc:
        return _status(exc, "vad"), []
    return int(StatusCode.OK), flatten_spans(spans)


def transcribe(
    threads: int,
    lang: str,
    translate: bool,
    tdrz: bool,
    pcm: np.ndarray,
    prompt: str = "",
) -> tuple[int, int]:
    """Transcribe ``pcm`` into the result buffer.

    Parameters:
        threads: Requested inference threads.
        lang: Language code, English name, ``"auto"`` or ``""``.
        translate: Translate into English.
        tdrz: Detect speaker turns.
        pcm: Mono float32 PCM at 16 kHz.
        prompt: Optional initial prompt.

    Returns:
        tuple[int, int]: Status and the number of segments (``0`` on failure).
    """
    options = TranscriptionOptions(
        threads=threads,
        language=lang,
        translate=translate,
        speaker_turn_detect=tdrz,
        prompt=prompt or "",
    )
    try:
        result = get_engine().transcribe(pcm, options)
    except _CALL_ERRORS as exc:
        return _status(exc, "transcribe"), 0
    return int(StatusCode.OK), result.segment_count()


def get_segment_text(i: int) -> str:
    try:
        return get_engine().text(i)
    except _CALL_ERRORS as exc:
        _status(exc, "get_segment_text")
        return ""


def get_segment_t0(i: int) -> int:
    try:
        return get_engine().t0(i)
    except _CALL_ERRORS as exc:
        _status(exc, "get_segment_t0")
        return -1


def get_segment_t1(i: int) -> int:
    try:
        return get_engine().t1(i)
    except _CALL_ERRORS as exc:
        _status(exc, "get_segment_t1")
        return -1


def n_tokens(i: int) -> int:
    try:
        return get_engine().token_count(i)
    except _CALL_ERRORS as exc:
        _status(exc, "n_tokens")
        return -1


def get_token_id(i: int, j: int) -> int:
    try:
        return get_engine().token_id(i, j)
    except _CALL_ERRORS as exc:
        _status(exc, "get_token_id")
        return -1


def get_segment_speaker_turn_next(i: int) -> bool:
    try:
        return get_engine().speaker_turn_next(i)
    except _CALL_ERRORS as exc:
        _status(exc, "get_segment_speaker_turn_next")
        return False
