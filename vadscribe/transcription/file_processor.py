"""Per-file transcription: decode an audio file, transcribe it, collect a transcript."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from vadscribe.config import TranscriptionOptions
from vadscribe.results.models import TranscriptionResult
from vadscribe.utils.audio_io import load_audio
from vadscribe.utils.constant import SPEAKER_TURN_MARKER, TIME_UNITS_PER_SECOND

if TYPE_CHECKING:
    from vadscribe.engine import Engine

__all__ = ["Transcript", "TranscriptSegment", "build_transcript", "transcribe_file"]

logger = logging.getLogger(__name__)


class TranscriptSegment(BaseModel):
    """One numbered segment of a file transcript."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    text: str
    t0: int = Field(..., ge=0, description="Start time (centiseconds).")
    t1: int = Field(..., ge=0, description="End time (centiseconds).")
    tokens: list[int] = Field(default_factory=list)
    speaker_turn_next: bool = False

    @property
    def start(self) -> float:
        return self.t0 / TIME_UNITS_PER_SECOND

    @property
    def end(self) -> float:
        return self.t1 / TIME_UNITS_PER_SECOND


class Transcript(BaseModel):
    """Segments of a transcribed file plus the joined text."""

    model_config = ConfigDict(frozen=True)

    segments: list[TranscriptSegment] = Field(default_factory=list)
    text: str = ""
    language: str | None = None
    duration: float = Field(0.0, ge=0.0, description="Audio duration in seconds.")


def build_transcript(
    result: TranscriptionResult,
    *,
    mark_speaker_turns: bool = False,
    duration: float = 0.0,
) -> Transcript:
    """Assemble a :class:`Transcript` from a published result.

    Parameters:
        result: The transcription generation to convert.
        mark_speaker_turns: Append ``SPEAKER_TURN_MARKER`` to the text of
            segments followed by a speaker change.
        duration: Duration of the source audio in seconds.

    Returns:
        Transcript: Numbered segments and their texts joined by spaces.
    """
    segments: list[TranscriptSegment] = []
    parts: list[str] = []
    for idx, segment in enumerate(result.segments):
        text = segment.text
        if mark_speaker_turns and segment.speaker_turn_next:
            text = f"{text} {SPEAKER_TURN_MARKER}"
        segments.append(
            TranscriptSegment(
                id=idx,
                text=text,
                t0=segment.t0,
                t1=segment.t1,
                tokens=[token.id for token in segment.tokens],
                speaker_turn_next=segment.speaker_turn_next,
            )
        )
        if text.strip():
            parts.append(text.strip())
    return Transcript(
        segments=segments,
        text=" ".join(parts),
        language=result.language,
        duration=duration,
    )


def transcribe_file(
    engine: Engine,
    audio_path: Path | str,
    options: TranscriptionOptions | None = None,
    *,
    cancel_event: threading.Event | None = None,
) -> Transcript:
    """Transcribe one audio file with ``engine``.

    The file is decoded to mono PCM at the engine's sample rate and passed
    through :meth:`Engine.transcribe`; speaker-turn markers are added to the
    text when turn detection was requested.

    Raises:
        ValueError: If ``audio_path`` is not a local path.
        AudioDecodeError: If the file cannot be decoded.
    """
    opts = options or TranscriptionOptions()
    path = Path(audio_path)
    pcm, sr = load_audio(path)
    duration = pcm.size / sr
    logger.info("Transcribing %s (%.2fs)", path.name, duration)
    result = engine.transcribe(pcm, options=opts, cancel_event=cancel_event)
    return build_transcript(
        result,
        mark_speaker_turns=opts.speaker_turn_detect,
        duration=duration,
    )
