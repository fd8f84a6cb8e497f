"""Greedy autoregressive decoding of one audio window.

The acoustic model is asked for the next-token distribution until it emits
end-of-transcript or the token budget runs out. Before every argmax the
logits are constrained so the sampled sequence has a well-formed timestamp
structure:

* control tokens (start/task/language markers) are never sampled, and the
  speaker-turn token only when turn detection is on;
* the first token is a timestamp no later than ``max_initial_timestamp_sec``;
* timestamps come in pairs (segment end followed by next segment start) and
  never decrease;
* when the total probability of timestamps exceeds the best single
  non-timestamp token, a timestamp is forced.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from vadscribe.config import DecodingConfig
from vadscribe.errors import DecodeError
from vadscribe.models.base import AcousticModel
from vadscribe.utils.constant import TIMESTAMP_RESOLUTION_SEC

__all__ = ["DecodedWindow", "WindowDecoder"]

logger = logging.getLogger(__name__)


@dataclass
class DecodedWindow:
    """Tokens sampled for one window (end-of-transcript excluded)."""

    tokens: list[int] = field(default_factory=list)
    probabilities: list[float] = field(default_factory=list)
    reached_eot: bool = False


def _log_softmax(logits: np.ndarray) -> np.ndarray:
    peak = np.max(logits)
    shifted = logits - peak
    return shifted - np.log(np.sum(np.exp(shifted)))


class WindowDecoder:
    """Decodes windows with one acoustic model under fixed decoding settings."""

    def __init__(
        self,
        model: AcousticModel,
        config: DecodingConfig,
        *,
        speaker_turn_detect: bool = False,
    ) -> None:
        self.model = model
        self.config = config
        self.vocabulary = model.vocabulary
        special = self.vocabulary.special
        suppressed = set(range(special.eot + 1, special.timestamp_begin))
        suppressed.update(self.vocabulary.languages.values())
        suppressed.update(
            (special.sot, special.sot_prev, special.translate,
             special.transcribe, special.no_timestamps)
        )
        if speaker_turn_detect and special.speaker_turn is not None:
            suppressed.discard(special.speaker_turn)
        suppressed.discard(special.eot)
        self._suppressed = np.array(sorted(suppressed), dtype=np.int64)
        self._max_initial_step = int(
            round(config.max_initial_timestamp_sec / TIMESTAMP_RESOLUTION_SEC)
        )

    def _logits(self, features: Any, tokens: Sequence[int]) -> np.ndarray:
        logits = np.array(self.model.infer(features, tokens), dtype=np.float64).reshape(-1)
        if logits.size != self.vocabulary.size:
            raise DecodeError(
                f"Model returned {logits.size} logits, vocabulary has {self.vocabulary.size} ids"
            )
        if not np.all(np.isfinite(logits)):
            raise DecodeError("Model produced non-finite logits")
        return logits

    def detect_language(self, features: Any) -> str | None:
        """Return the most likely language code, or ``None`` if the model has none."""
        languages = self.vocabulary.languages
        if not languages:
            return None
        logits = self._logits(features, [self.vocabulary.special.sot])
        codes = list(languages)
        scores = logits[[languages[c] for c in codes]]
        return codes[int(np.argmax(scores))]

    def build_prefix(
        self,
        language_id: int | None,
        task_id: int,
        context: Sequence[int] = (),
    ) -> list[int]:
        """Return the conditioning prefix for one window.

        At most half the model's text context (minus the marker) is kept from
        ``context``, newest tokens first.
        """
        special = self.vocabulary.special
        prefix: list[int] = []
        keep = max(self.model.max_text_context // 2 - 1, 0)
        if context and keep:
            prefix = [special.sot_prev, *list(context)[-keep:]]
        prefix.append(special.sot)
        if language_id is not None:
            prefix.append(language_id)
        prefix.append(task_id)
        return prefix

    def apply_rules(self, logits: np.ndarray, sampled: Sequence[int]) -> None:
        """Constrain ``logits`` in place given the tokens sampled so far."""
        special = self.vocabulary.special
        ts_begin = special.timestamp_begin
        logits[self._suppressed] = -np.inf

        if not sampled:
            logits[:ts_begin] = -np.inf
            logits[ts_begin + self._max_initial_step + 1 :] = -np.inf
            return

        last_was_ts = sampled[-1] >= ts_begin
        penultimate_was_ts = len(sampled) < 2 or sampled[-2] >= ts_begin
        if last_was_ts:
            if penultimate_was_ts:
                logits[ts_begin:] = -np.inf
            else:
                logits[: special.eot] = -np.inf

        timestamps = [t for t in sampled if t >= ts_begin]
        if timestamps:
            floor = timestamps[-1] if last_was_ts and not penultimate_was_ts else timestamps[-1] + 1
            logits[ts_begin:floor] = -np.inf

        if not np.isfinite(np.max(logits)):
            return
        logprobs = _log_softmax(logits)
        timestamp_logprob = np.logaddexp.reduce(logprobs[ts_begin:])
        if timestamp_logprob > np.max(logprobs[:ts_begin]):
            logits[:ts_begin] = -np.inf

    def decode(self, features: Any, prefix: Sequence[int]) -> DecodedWindow:
        """Sample tokens after ``prefix`` until end-of-transcript or the budget.

        Raises:
            DecodeError: On non-finite logits or when no token is admissible.
        """
        eot = self.vocabulary.special.eot
        tokens = list(prefix)
        window = DecodedWindow()
        for _ in range(self.config.max_tokens):
            logits = self._logits(features, tokens)
            self.apply_rules(logits, window.tokens)
            if not np.isfinite(np.max(logits)):
                raise DecodeError("No admissible token left after applying decoding rules")
            next_id = int(np.argmax(logits))
            probability = float(np.exp(_log_softmax(logits)[next_id]))
            if next_id == eot:
                window.reached_eot = True
                break
            window.tokens.append(next_id)
            window.probabilities.append(probability)
            tokens.append(next_id)
        else:
            logger.debug("Token budget of %d exhausted before end of window", self.config.max_tokens)
        return window
