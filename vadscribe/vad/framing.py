"""Sliding-window framing of mono PCM.

Splits a waveform into fixed-size, possibly overlapping analysis windows.
Kept free of torch imports so it can be tested without model dependencies.
"""

from __future__ import annotations

import numpy as np

__all__ = [
    "frame_signal",
    "pad_or_trim",
]


def frame_signal(
    wav: np.ndarray,
    window_samples: int,
    hop_samples: int,
    *,
    pad_tail: bool = True,
) -> list[tuple[np.ndarray, int]]:
    """Split a mono waveform into sliding analysis windows.

    Parameters:
        wav (np.ndarray): 1-D float32 mono waveform.
        window_samples (int): Window length in samples (> 0).
        hop_samples (int): Distance between window starts in samples;
            ``hop_samples < window_samples`` yields overlapping windows.
        pad_tail (bool): Zero-pad the last window to ``window_samples``.

    Returns:
        list[tuple[np.ndarray, int]]: ``(window, start_sample)`` pairs in
            temporal order. Empty input yields an empty list.

    Raises:
        ValueError: If ``window_samples`` or ``hop_samples`` is not positive.
    """
    if window_samples <= 0:
        raise ValueError("window_samples must be > 0")
    if hop_samples <= 0:
        raise ValueError("hop_samples must be > 0")
    if wav.size == 0:
        return []

    frames: list[tuple[np.ndarray, int]] = []
    for start in range(0, len(wav), hop_samples):
        frame = wav[start : start + window_samples]
        if frame.size < window_samples:
            if pad_tail:
                frame = pad_or_trim(frame, window_samples)
            frames.append((frame, start))
            break
        frames.append((frame, start))
        if start + window_samples >= len(wav):
            # window already reaches the end; further hops only repeat the tail
            break
    return frames


def pad_or_trim(wav: np.ndarray, length: int) -> np.ndarray:
    """Zero-pad or truncate ``wav`` to exactly ``length`` samples."""
    if wav.size > length:
        return wav[:length]
    if wav.size < length:
        return np.pad(wav, (0, length - wav.size))
    return wav
