"""Capability interfaces for the acoustic and VAD models.

The engine never looks inside a network: an acoustic model only has to
``encode`` a window of PCM and ``infer`` the next-token distribution given a
token prefix, and a VAD model only has to score a window. Alternative
inference backends plug in by implementing these protocols.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from vadscribe.utils.constant import TIMESTAMP_RESOLUTION_SEC

__all__ = [
    "SpecialTokens",
    "Vocabulary",
    "AcousticModel",
    "VadModel",
    "WORD_BOUNDARY",
]

# SentencePiece marks the first piece of a word with this character.
WORD_BOUNDARY = "▁"


class SpecialTokens(BaseModel):
    """Ids of the control tokens used to drive decoding."""

    model_config = ConfigDict(frozen=True)

    eot: int = Field(..., ge=0, description="End of transcript; ids below are text.")
    sot: int = Field(..., ge=0, description="Start of transcript.")
    sot_prev: int = Field(..., ge=0, description="Introduces previous-text context.")
    translate: int = Field(..., ge=0, description="Task token: translate.")
    transcribe: int = Field(..., ge=0, description="Task token: transcribe.")
    no_timestamps: int = Field(..., ge=0, description="Disables timestamp prediction.")
    timestamp_begin: int = Field(..., ge=0, description="Id of the 0.00 s timestamp.")
    speaker_turn: int | None = Field(None, ge=0, description="Optional speaker-turn token.")


class Vocabulary(BaseModel):
    """Token pieces, special ids and language tokens of an acoustic model."""

    model_config = ConfigDict(frozen=True)

    tokens: list[str] = Field(..., description="Piece text of every id below timestamp_begin.")
    special: SpecialTokens
    languages: dict[str, int] = Field(default_factory=dict, description="Code -> token id.")
    n_timestamps: int = Field(1501, ge=1, description="Number of timestamp tokens.")

    _index_cache: dict[str, int] | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_layout(self) -> Vocabulary:
        special = self.special
        if special.eot > len(self.tokens):
            raise ValueError("eot must not exceed the number of pieces")
        if special.timestamp_begin < special.eot:
            raise ValueError("timestamp_begin must follow eot")
        for code, token_id in self.languages.items():
            if not 0 <= token_id < special.timestamp_begin:
                raise ValueError(f"language token for {code!r} out of range")
        return self

    @property
    def size(self) -> int:
        """Total number of ids, timestamps included."""
        return self.special.timestamp_begin + self.n_timestamps

    def is_text(self, token_id: int) -> bool:
        return 0 <= token_id < self.special.eot

    def is_timestamp(self, token_id: int) -> bool:
        return token_id >= self.special.timestamp_begin

    def timestamp_seconds(self, token_id: int) -> float:
        """Return the time offset encoded by a timestamp token."""
        return (token_id - self.special.timestamp_begin) * TIMESTAMP_RESOLUTION_SEC

    def piece(self, token_id: int) -> str:
        if 0 <= token_id < len(self.tokens):
            return self.tokens[token_id]
        return ""

    def decode(self, token_ids: Sequence[int]) -> str:
        """Detokenize text ids; control and timestamp ids are skipped."""
        text = "".join(self.piece(t) for t in token_ids if self.is_text(t))
        return text.replace(WORD_BOUNDARY, " ").strip()

    def encode(self, text: str) -> list[int]:
        """Tokenize ``text`` by greedy longest match over the text pieces.

        Characters no piece covers are dropped.
        """
        index = self._piece_index()
        longest = max((len(p) for p in index), default=0)
        ids: list[int] = []
        for word in text.split():
            chunk = WORD_BOUNDARY + word
            pos = 0
            while pos < len(chunk):
                for size in range(min(longest, len(chunk) - pos), 0, -1):
                    token_id = index.get(chunk[pos : pos + size])
                    if token_id is not None:
                        ids.append(token_id)
                        pos += size
                        break
                else:
                    pos += 1
        return ids

    def _piece_index(self) -> dict[str, int]:
        if self._index_cache is None:
            index: dict[str, int] = {}
            for token_id, piece in enumerate(self.tokens[: self.special.eot]):
                if piece:
                    index.setdefault(piece, token_id)
            self._index_cache = index
        return self._index_cache


class AcousticModel(Protocol):
    """Opaque speech-to-token model."""

    vocabulary: Vocabulary
    sample_rate: int
    window_samples: int
    max_text_context: int

    def encode(self, window: np.ndarray) -> Any:
        """Turn one PCM window (padded/trimmed to ``window_samples``) into features."""
        ...

    def infer(self, features: Any, tokens: Sequence[int]) -> np.ndarray:
        """Return next-token logits (1-D, ``vocabulary.size`` long)."""
        ...

    def close(self) -> None:
        """Release weights and runtime context."""
        ...


class VadModel(Protocol):
    """Opaque speech-probability scorer."""

    sample_rate: int

    def reset(self) -> None:
        """Clear recurrent state before scoring a new buffer."""
        ...

    def speech_probability(self, window: np.ndarray) -> float:
        """Return the probability that ``window`` contains speech."""
        ...

    def close(self) -> None:
        """Release weights and runtime context."""
        ...
