"""Unit tests for sliding-window framing.

These tests validate overlapping windows, tail padding, input validation and
the ``pad_or_trim`` helper used for decoding windows.
"""

import numpy as np
import pytest

from vadscribe.vad.framing import frame_signal, pad_or_trim


def test_frame_signal_overlapping() -> None:
    """Overlapping windows start every hop and stop once the end is covered."""
    wav = np.arange(10, dtype=np.float32)
    frames = frame_signal(wav, window_samples=4, hop_samples=3)
    assert [start for _, start in frames] == [0, 3, 6]
    assert all(frame.size == 4 for frame, _ in frames)
    np.testing.assert_array_equal(frames[1][0], [3, 4, 5, 6])


def test_frame_signal_pads_tail() -> None:
    """The last window is zero-padded to full length."""
    wav = np.arange(1, 11, dtype=np.float32)
    frames = frame_signal(wav, window_samples=4, hop_samples=4)
    assert [start for _, start in frames] == [0, 4, 8]
    np.testing.assert_array_equal(frames[-1][0], [9, 10, 0, 0])


def test_frame_signal_without_tail_padding() -> None:
    """With ``pad_tail=False`` the short tail is returned as is."""
    wav = np.arange(6, dtype=np.float32)
    frames = frame_signal(wav, window_samples=4, hop_samples=4, pad_tail=False)
    assert frames[-1][0].size == 2


def test_frame_signal_empty() -> None:
    """Empty input yields no windows."""
    assert frame_signal(np.array([], dtype=np.float32), 512, 448) == []


def test_frame_signal_invalid_sizes() -> None:
    """Non-positive window or hop sizes raise ``ValueError``."""
    wav = np.zeros(8, dtype=np.float32)
    with pytest.raises(ValueError):
        frame_signal(wav, window_samples=0, hop_samples=1)
    with pytest.raises(ValueError):
        frame_signal(wav, window_samples=4, hop_samples=0)


def test_pad_or_trim() -> None:
    """Buffers are padded with zeros or truncated to the requested length."""
    wav = np.ones(5, dtype=np.float32)
    assert pad_or_trim(wav, 8).tolist() == [1, 1, 1, 1, 1, 0, 0, 0]
    assert pad_or_trim(wav, 3).size == 3
    assert pad_or_trim(wav, 5) is wav
