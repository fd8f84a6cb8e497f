"""Turn the token stream of one decoded window into timed segment drafts."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from vadscribe.models.base import WORD_BOUNDARY, Vocabulary
from vadscribe.results.models import Token
from vadscribe.transcription.decoding import DecodedWindow

__all__ = ["SegmentDraft", "split_window", "spread_token_times"]


@dataclass
class SegmentDraft:
    """A segment before absolute timing and speaker flags are settled.

    ``start`` and ``end`` are sample offsets; ``tokens`` holds every
    non-timestamp id sampled for the segment, with ``probabilities`` parallel
    to it.
    """

    start: int
    end: int
    tokens: list[int] = field(default_factory=list)
    probabilities: list[float] = field(default_factory=list)

    def shifted(self, offset: int) -> SegmentDraft:
        return SegmentDraft(
            start=self.start + offset,
            end=self.end + offset,
            tokens=list(self.tokens),
            probabilities=list(self.probabilities),
        )


def _draft(
    tokens: Sequence[int],
    probabilities: Sequence[float],
    vocabulary: Vocabulary,
    start_sec: float,
    end_sec: float,
    sample_rate: int,
    content_samples: int,
) -> SegmentDraft:
    start = min(int(round(start_sec * sample_rate)), content_samples)
    end = min(int(round(end_sec * sample_rate)), content_samples)
    kept = [
        (t, p) for t, p in zip(tokens, probabilities) if not vocabulary.is_timestamp(t)
    ]
    return SegmentDraft(
        start=start,
        end=max(end, start),
        tokens=[t for t, _ in kept],
        probabilities=[p for _, p in kept],
    )


def split_window(
    window: DecodedWindow,
    vocabulary: Vocabulary,
    content_samples: int,
    sample_rate: int,
) -> tuple[list[SegmentDraft], int]:
    """Split sampled tokens into segment drafts and compute the seek advance.

    Segments end at every pair of consecutive timestamps. When the window ends
    with a single timestamp the whole window is consumed; otherwise the seek
    stops at the last complete timestamp so the unfinished tail is decoded
    again in the next window. Output without a timestamp pair becomes a
    single draft spanning the window.

    Parameters:
        window: Tokens sampled for the window.
        vocabulary: Vocabulary of the acoustic model.
        content_samples: Number of real (unpadded) samples in the window.
        sample_rate: Sample rate of the PCM buffer.

    Returns:
        tuple[list[SegmentDraft], int]: Window-relative drafts and the number
        of samples consumed (always at least one when the window is not empty).
    """
    tokens = window.tokens
    probs = window.probabilities
    is_ts = [vocabulary.is_timestamp(t) for t in tokens]
    consecutive = [i for i in range(1, len(tokens)) if is_ts[i] and is_ts[i - 1]]
    single_ending = len(tokens) >= 2 and is_ts[-1] and not is_ts[-2]
    window_sec = content_samples / sample_rate

    def _seconds(token_id: int, default: float) -> float:
        return vocabulary.timestamp_seconds(token_id) if vocabulary.is_timestamp(token_id) else default

    drafts: list[SegmentDraft] = []
    if consecutive:
        cuts = consecutive + ([len(tokens)] if single_ending else [])
        last = 0
        previous_end = 0.0
        for cut in cuts:
            piece = tokens[last:cut]
            start_sec = _seconds(piece[0], previous_end)
            end_sec = _seconds(piece[-1], window_sec)
            drafts.append(
                _draft(piece, probs[last:cut], vocabulary, start_sec, end_sec,
                       sample_rate, content_samples)
            )
            previous_end = end_sec
            last = cut
        if single_ending:
            advance = content_samples
        else:
            advance = int(round(vocabulary.timestamp_seconds(tokens[last - 1]) * sample_rate))
    else:
        timestamps = [t for t, flag in zip(tokens, is_ts) if flag]
        start_sec = _seconds(tokens[0], 0.0) if tokens else 0.0
        end_sec = window_sec
        if timestamps and timestamps[-1] != timestamps[0]:
            end_sec = vocabulary.timestamp_seconds(timestamps[-1])
        drafts.append(
            _draft(tokens, probs, vocabulary, start_sec, end_sec, sample_rate, content_samples)
        )
        advance = content_samples

    if advance <= 0:
        advance = content_samples
    return drafts, min(advance, content_samples)


def spread_token_times(
    token_ids: Sequence[int],
    probabilities: Sequence[float],
    vocabulary: Vocabulary,
    t0: int,
    t1: int,
) -> list[Token]:
    """Estimate token times by splitting ``[t0, t1]`` proportionally to piece length."""
    weights = [max(len(vocabulary.piece(t).replace(WORD_BOUNDARY, "")), 1) for t in token_ids]
    total = sum(weights)
    span = t1 - t0
    tokens: list[Token] = []
    acc = 0
    for token_id, weight, probability in zip(token_ids, weights, probabilities):
        start = t0 + span * acc // total
        acc += weight
        end = t0 + span * acc // total
        tokens.append(
            Token(
                id=token_id,
                text=vocabulary.piece(token_id),
                t0=start,
                t1=end,
                probability=probability,
            )
        )
    return tokens
