"""Cooperative cancellation for long-running transcription runs.

The engine checks a :class:`threading.Event` at every decoding-window
boundary.
"""

from __future__ import annotations

import logging
import threading

from vadscribe.errors import TranscriptionCancelledError

logger = logging.getLogger(__name__)


def reset_cancel_event(cancel_event: threading.Event) -> None:
    """Clear a cancel event so the next run can proceed.

    Args:
        cancel_event: Event to clear.
    """
    cancel_event.clear()
    logger.debug("Cancel event reset")


def raise_if_cancelled(cancel_event: threading.Event | None, where: str) -> None:
    """Raise :class:`TranscriptionCancelledError` when ``cancel_event`` is set.

    A ``None`` event never cancels.

    Args:
        cancel_event: Event to check.
        where: Short description of the checkpoint, used in the error message.

    Raises:
        TranscriptionCancelledError: If cancellation has been requested.
    """
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Transcription cancelled at %s", where)
        raise TranscriptionCancelledError(f"Transcription cancelled at {where}")
