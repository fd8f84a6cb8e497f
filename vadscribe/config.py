"""Configuration dataclasses for the engine.

Defaults come from :mod:`vadscribe.utils.constant` and can therefore be
overridden through environment variables or the project ``.env`` file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from vadscribe.utils.constant import (
    CONDITION_ON_PREVIOUS_TEXT,
    DECODE_WINDOW_SEC,
    DEFAULT_LANGUAGE,
    DEFAULT_THREADS,
    DEFAULT_VAD,
    MAX_DECODE_TOKENS,
    MAX_INITIAL_TIMESTAMP_SEC,
    SAMPLE_RATE,
    SPEAKER_TURN_N_MFCC,
    SPEAKER_TURN_THRESHOLD,
    VAD_MAX_SPEECH_SEC,
    VAD_MIN_SILENCE_MS,
    VAD_MIN_SPEECH_MS,
    VAD_NEG_THRESHOLD_OFFSET,
    VAD_SPEECH_PAD_MS,
    VAD_THRESHOLD,
    VAD_WINDOW_OVERLAP_SAMPLES,
    VAD_WINDOW_SAMPLES,
)


@dataclass
class VadConfig:
    """Groups voice-activity-detection settings.

    Attributes:
        threshold: Speech probability at or above which a window is speech.
        neg_threshold_offset: A span only closes once probability drops below
            ``threshold - neg_threshold_offset``.
        min_speech_ms: Spans shorter than this are discarded.
        min_silence_ms: Silence must last this long before a span closes.
        speech_pad_ms: Padding added at both edges of every span.
        max_speech_sec: Spans longer than this are split.
        window_samples: Analysis window length in samples.
        window_overlap_samples: Overlap between successive analysis windows.
        sample_rate: Sample rate of the PCM buffer.

    """

    threshold: float = VAD_THRESHOLD
    neg_threshold_offset: float = VAD_NEG_THRESHOLD_OFFSET
    min_speech_ms: int = VAD_MIN_SPEECH_MS
    min_silence_ms: int = VAD_MIN_SILENCE_MS
    speech_pad_ms: int = VAD_SPEECH_PAD_MS
    max_speech_sec: float = VAD_MAX_SPEECH_SEC
    window_samples: int = VAD_WINDOW_SAMPLES
    window_overlap_samples: int = VAD_WINDOW_OVERLAP_SAMPLES
    sample_rate: int = SAMPLE_RATE

    @property
    def hop_samples(self) -> int:
        """Distance in samples between the starts of successive windows."""
        return max(self.window_samples - self.window_overlap_samples, 1)

    def ms_to_samples(self, ms: float) -> int:
        """Convert milliseconds to a sample count at ``sample_rate``."""
        return int(self.sample_rate * ms / 1000)


@dataclass
class DecodingConfig:
    """Groups autoregressive decoding settings.

    Attributes:
        window_sec: Length of one decoding window in seconds.
        max_tokens: Maximum tokens sampled per window.
        max_initial_timestamp_sec: Latest allowed first timestamp of a window.
        condition_on_previous_text: Feed decoded text of earlier windows back
            as context.

    """

    window_sec: int = DECODE_WINDOW_SEC
    max_tokens: int = MAX_DECODE_TOKENS
    max_initial_timestamp_sec: float = MAX_INITIAL_TIMESTAMP_SEC
    condition_on_previous_text: bool = CONDITION_ON_PREVIOUS_TEXT


@dataclass
class SpeakerTurnConfig:
    """Groups acoustic speaker-turn detection settings.

    Attributes:
        threshold: Cosine distance between consecutive segment embeddings
            above which a speaker turn is flagged.
        n_mfcc: Number of MFCC coefficients per embedding.

    """

    threshold: float = SPEAKER_TURN_THRESHOLD
    n_mfcc: int = SPEAKER_TURN_N_MFCC


@dataclass
class TranscriptionOptions:
    """Per-call transcription parameters.

    Attributes:
        threads: Requested inference threads (clamped to the CPU count).
        language: Language code, English language name, or ``"auto"``.
        translate: Translate into the pivot language.
        speaker_turn_detect: Predict speaker turns between segments.
        prompt: Optional text biasing the first decoding window.
        vad_filter: Decode only VAD-detected speech; ``None`` uses the
            ``DEFAULT_VAD`` setting.

    """

    threads: int = DEFAULT_THREADS
    language: str = DEFAULT_LANGUAGE
    translate: bool = False
    speaker_turn_detect: bool = False
    prompt: str = ""
    vad_filter: bool | None = None

    def use_vad(self) -> bool:
        """Return whether the VAD pre-filter is requested."""
        return DEFAULT_VAD if self.vad_filter is None else self.vad_filter


@dataclass
class EngineConfig:
    """Bundles the engine-wide configuration groups."""

    vad: VadConfig = field(default_factory=VadConfig)
    decoding: DecodingConfig = field(default_factory=DecodingConfig)
    speaker_turn: SpeakerTurnConfig = field(default_factory=SpeakerTurnConfig)
