"""Data models for transcription and VAD results.

Timestamps of segments and tokens are integers in the engine's native time
unit (centiseconds); VAD spans are sample offsets into the source buffer.
All models are immutable so a published result can be shared between readers
without copying.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vadscribe.errors import IndexOutOfRangeError
from vadscribe.utils.constant import SAMPLE_RATE, TIME_UNITS_PER_SECOND

__all__ = [
    "Token",
    "Segment",
    "TranscriptionResult",
    "VadSpan",
    "flatten_spans",
]


class Token(BaseModel):
    """A decoded sub-word unit."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, description="Vocabulary id.")
    text: str = Field("", description="Piece text of the id.")
    t0: int = Field(0, ge=0, description="Estimated start time (centiseconds).")
    t1: int = Field(0, ge=0, description="Estimated end time (centiseconds).")
    probability: float | None = Field(None, description="Probability when sampled.")


class Segment(BaseModel):
    """A transcribed span of audio."""

    model_config = ConfigDict(frozen=True)

    t0: int = Field(..., ge=0, description="Start time (centiseconds).")
    t1: int = Field(..., ge=0, description="End time (centiseconds).")
    text: str = Field(..., description="Detokenized text.")
    tokens: list[Token] = Field(default_factory=list, description="Ordered tokens.")
    speaker_turn_next: bool = Field(False, description="A speaker change follows.")

    @model_validator(mode="after")
    def _check_times(self) -> Segment:
        if self.t1 < self.t0:
            raise ValueError("segment t1 must be >= t0")
        return self

    @property
    def start_sec(self) -> float:
        return self.t0 / TIME_UNITS_PER_SECOND

    @property
    def end_sec(self) -> float:
        return self.t1 / TIME_UNITS_PER_SECOND


class TranscriptionResult(BaseModel):
    """One generation of transcription output with index-addressed readers."""

    model_config = ConfigDict(frozen=True)

    generation: int = Field(..., ge=0, description="Result generation number.")
    segments: list[Segment] = Field(default_factory=list)
    language: str | None = Field(None, description="Source language used for decoding.")
    task: str = Field("transcribe", description="``transcribe`` or ``translate``.")

    @classmethod
    def empty(cls, generation: int = 0) -> TranscriptionResult:
        return cls(generation=generation, segments=[])

    def segment_count(self) -> int:
        return len(self.segments)

    def segment(self, i: int) -> Segment:
        """Return segment ``i``.

        Raises:
            IndexOutOfRangeError: Unless ``0 <= i < segment_count()``.
        """
        if isinstance(i, bool) or not 0 <= i < len(self.segments):
            raise IndexOutOfRangeError(
                f"segment index {i} out of range [0, {len(self.segments)})"
            )
        return self.segments[i]

    def text(self, i: int) -> str:
        return self.segment(i).text

    def t0(self, i: int) -> int:
        return self.segment(i).t0

    def t1(self, i: int) -> int:
        return self.segment(i).t1

    def token_count(self, i: int) -> int:
        return len(self.segment(i).tokens)

    def token_id(self, i: int, j: int) -> int:
        tokens = self.segment(i).tokens
        if isinstance(j, bool) or not 0 <= j < len(tokens):
            raise IndexOutOfRangeError(
                f"token index {j} out of range [0, {len(tokens)}) for segment {i}"
            )
        return tokens[j].id

    def speaker_turn_next(self, i: int) -> bool:
        return self.segment(i).speaker_turn_next


class VadSpan(BaseModel):
    """A detected speech region in sample offsets."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0, description="First sample of the region.")
    end: int = Field(..., ge=0, description="Sample after the region.")
    sample_rate: int = Field(SAMPLE_RATE, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> VadSpan:
        if self.end < self.start:
            raise ValueError("span end must be >= start")
        return self

    @property
    def start_sec(self) -> float:
        return self.start / self.sample_rate

    @property
    def end_sec(self) -> float:
        return self.end / self.sample_rate


def flatten_spans(spans: Sequence[VadSpan]) -> list[float]:
    """Return spans as interleaved ``(start, end)`` sample offsets."""
    flat: list[float] = []
    for span in spans:
        flat.extend((float(span.start), float(span.end)))
    return flat
