"""Single-slot store for the most recent transcription result.

Each write publishes a brand-new immutable :class:`TranscriptionResult` with
the next generation number; readers work on the reference they obtained, so a
concurrent publish never exposes a half-written result. Readers that pass the
generation they expect get :class:`StaleResultError` once the buffer has moved
on.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Sequence

from vadscribe.errors import StaleResultError
from vadscribe.results.models import Segment, TranscriptionResult

__all__ = ["ResultBuffer"]

logger = logging.getLogger(__name__)


class ResultBuffer:
    """Index-addressed view over the latest published result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations = itertools.count(1)
        self._current = TranscriptionResult.empty(generation=0)

    @property
    def generation(self) -> int:
        return self._current.generation

    def snapshot(self, generation: int | None = None) -> TranscriptionResult:
        """Return the current result.

        Parameters:
            generation: Expected generation; ``None`` accepts any.

        Raises:
            StaleResultError: If ``generation`` is given and no longer current.
        """
        current = self._current
        if generation is not None and generation != current.generation:
            raise StaleResultError(
                f"result generation {generation} was replaced by {current.generation}"
            )
        return current

    def publish(
        self,
        segments: Sequence[Segment],
        *,
        language: str | None = None,
        task: str = "transcribe",
    ) -> TranscriptionResult:
        """Replace the buffer with a new generation holding ``segments``."""
        with self._lock:
            result = TranscriptionResult(
                generation=next(self._generations),
                segments=list(segments),
                language=language,
                task=task,
            )
            self._current = result
        logger.debug(
            "Published result generation %d (%d segments)",
            result.generation,
            len(result.segments),
        )
        return result

    def clear(self) -> TranscriptionResult:
        """Replace the buffer with an explicit empty generation."""
        with self._lock:
            result = TranscriptionResult.empty(generation=next(self._generations))
            self._current = result
        return result

    def segment_count(self, generation: int | None = None) -> int:
        return self.snapshot(generation).segment_count()

    def text(self, i: int, generation: int | None = None) -> str:
        return self.snapshot(generation).text(i)

    def t0(self, i: int, generation: int | None = None) -> int:
        return self.snapshot(generation).t0(i)

    def t1(self, i: int, generation: int | None = None) -> int:
        return self.snapshot(generation).t1(i)

    def token_count(self, i: int, generation: int | None = None) -> int:
        return self.snapshot(generation).token_count(i)

    def token_id(self, i: int, j: int, generation: int | None = None) -> int:
        return self.snapshot(generation).token_id(i, j)

    def speaker_turn_next(self, i: int, generation: int | None = None) -> bool:
        return self.snapshot(generation).speaker_turn_next(i)
