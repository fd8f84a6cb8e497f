"""Acoustic speaker-turn detection between consecutive segments.

Used when the acoustic model has no speaker-turn token of its own. Each
segment's audio is summarized by its mean MFCC vector (without the energy
coefficient), and a turn is flagged after segment ``i`` when the cosine
distance to segment ``i + 1`` exceeds the configured threshold.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import librosa  # type: ignore
import numpy as np

from vadscribe.config import SpeakerTurnConfig

__all__ = ["cosine_distance", "detect_speaker_turns", "mfcc_embedding"]

logger = logging.getLogger(__name__)

EmbedFn = Callable[[np.ndarray, int, int], "np.ndarray | None"]

_N_FFT = 512
_HOP_LENGTH = 160
_MIN_CLIP_SEC = 0.1


def mfcc_embedding(clip: np.ndarray, sample_rate: int, n_mfcc: int) -> np.ndarray | None:
    """Return the mean MFCC vector of ``clip`` or ``None`` if it carries no signal."""
    if clip.size < int(_MIN_CLIP_SEC * sample_rate):
        return None
    mfcc = librosa.feature.mfcc(
        y=np.asarray(clip, dtype=np.float32),
        sr=sample_rate,
        n_mfcc=n_mfcc,
        n_fft=_N_FFT,
        hop_length=_HOP_LENGTH,
    )
    embedding = mfcc[1:].mean(axis=1)
    if not np.all(np.isfinite(embedding)) or np.linalg.norm(embedding) < 1e-8:
        return None
    return embedding


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return 1.0 - float(np.dot(a, b)) / denom


def detect_speaker_turns(
    pcm: np.ndarray,
    bounds: Sequence[tuple[int, int]],
    sample_rate: int,
    config: SpeakerTurnConfig | None = None,
    *,
    embed_fn: EmbedFn = mfcc_embedding,
) -> list[bool]:
    """Flag a speaker change after each segment.

    Parameters:
        pcm: The full PCM buffer.
        bounds: ``(start, end)`` sample offsets of every segment, in order.
        sample_rate: Sample rate of ``pcm``.
        config: Threshold and MFCC size; defaults from the environment.
        embed_fn: Embedding function, replaceable in tests.

    Returns:
        list[bool]: One flag per segment; the last is always ``False`` and
        segments too short to embed are never flagged.
    """
    cfg = config or SpeakerTurnConfig()
    embeddings = [embed_fn(pcm[start:end], sample_rate, cfg.n_mfcc) for start, end in bounds]
    flags = [False] * len(bounds)
    for idx in range(len(bounds) - 1):
        current, following = embeddings[idx], embeddings[idx + 1]
        if current is None or following is None:
            continue
        distance = cosine_distance(current, following)
        flags[idx] = distance > cfg.threshold
        if flags[idx]:
            logger.debug("Speaker turn after segment %d (distance %.3f)", idx, distance)
    return flags
