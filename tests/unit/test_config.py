"""Unit tests for configuration dataclasses and their defaults."""

from __future__ import annotations

import math

from vadscribe.config import (
    DecodingConfig,
    EngineConfig,
    SpeakerTurnConfig,
    TranscriptionOptions,
    VadConfig,
)
from vadscribe.utils import constant


def test_vad_config_defaults() -> None:
    """VAD defaults match the Silero-compatible settings."""
    cfg = VadConfig()
    assert cfg.threshold == constant.VAD_THRESHOLD
    assert cfg.window_samples == 512
    assert cfg.hop_samples == 448
    assert cfg.ms_to_samples(250) == 4000
    assert math.isinf(cfg.max_speech_sec)


def test_hop_never_below_one() -> None:
    """An overlap as large as the window still advances by one sample."""
    assert VadConfig(window_samples=4, window_overlap_samples=4).hop_samples == 1


def test_transcription_options_vad_fallback() -> None:
    """``vad_filter=None`` falls back to the ``DEFAULT_VAD`` setting."""
    assert TranscriptionOptions().use_vad() is constant.DEFAULT_VAD
    assert TranscriptionOptions(vad_filter=True).use_vad() is True
    assert TranscriptionOptions(vad_filter=False).use_vad() is False


def test_engine_config_groups_are_independent() -> None:
    """Each engine config gets its own group instances."""
    first, second = EngineConfig(), EngineConfig()
    assert first.vad is not second.vad
    assert isinstance(first.decoding, DecodingConfig)
    assert isinstance(first.speaker_turn, SpeakerTurnConfig)
    assert first.decoding.max_tokens == constant.MAX_DECODE_TOKENS
