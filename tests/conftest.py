"""Shared test fixtures for the vadscribe test suite.

The fakes below implement the acoustic and VAD model protocols without any
weights, so the pipeline can be exercised deterministically:

* :class:`FakeAcousticModel` replays a token script, returning one-hot logits
  for the next scripted id after the task token of the prefix;
* :class:`FakeVadModel` scores windows by RMS energy;
* :class:`ScriptedVadModel` returns a fixed probability sequence.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import pytest

from vadscribe.models.base import SpecialTokens, Vocabulary
from vadscribe.models.store import ModelStore
from vadscribe.results.buffer import ResultBuffer
from vadscribe.utils.constant import SAMPLE_RATE

PIECES = ["▁hello", "▁world", ".", "▁good", "bye", "▁hal", "lo", "▁the", "▁a", "!"]
CONTROL = [
    "<|endoftext|>",
    "<|startoftranscript|>",
    "<|startofprev|>",
    "<|translate|>",
    "<|transcribe|>",
    "<|notimestamps|>",
    "<|speakerturn|>",
    "<|en|>",
    "<|de|>",
    "<|fr|>",
]

HELLO, WORLD, DOT, GOOD, BYE = 0, 1, 2, 3, 4
EOT, SOT, SOT_PREV, TRANSLATE, TRANSCRIBE, NO_TIMESTAMPS, TURN = 10, 11, 12, 13, 14, 15, 16
LANG_EN, LANG_DE, LANG_FR = 17, 18, 19
TS_BEGIN = 20

WINDOW_SAMPLES = 30 * SAMPLE_RATE


def ts(step: int) -> int:
    """Return the id of the timestamp ``step * 0.02`` seconds."""
    return TS_BEGIN + step


# Two segments: "hello world." over 0-1 s and "goodbye" over 1-2 s.
TWO_SEGMENTS = [ts(0), HELLO, WORLD, DOT, ts(50), ts(50), GOOD, BYE, ts(100), EOT]


def make_vocabulary(*, speaker_turn: bool = False, languages: bool = True) -> Vocabulary:
    special = SpecialTokens(
        eot=EOT,
        sot=SOT,
        sot_prev=SOT_PREV,
        translate=TRANSLATE,
        transcribe=TRANSCRIBE,
        no_timestamps=NO_TIMESTAMPS,
        timestamp_begin=TS_BEGIN,
        speaker_turn=TURN if speaker_turn else None,
    )
    return Vocabulary(
        tokens=PIECES + CONTROL,
        special=special,
        languages={"en": LANG_EN, "de": LANG_DE, "fr": LANG_FR} if languages else {},
    )


Script = Sequence[int] | Callable[[int], Sequence[int]]


class FakeAcousticModel:
    """Acoustic model that replays ``script`` in every window.

    ``script`` may also be a callable receiving the window index.
    """

    def __init__(
        self,
        script: Script = TWO_SEGMENTS,
        *,
        vocabulary: Vocabulary | None = None,
        language: str = "en",
        window_samples: int = WINDOW_SAMPLES,
        max_text_context: int = 448,
        nan_after: int | None = None,
        on_encode: Callable[[int], None] | None = None,
    ) -> None:
        self.script = script
        self.vocabulary = vocabulary or make_vocabulary()
        self.language = language
        self.sample_rate = SAMPLE_RATE
        self.window_samples = window_samples
        self.max_text_context = max_text_context
        self.nan_after = nan_after
        self.on_encode = on_encode
        self.encoded: list[np.ndarray] = []
        self.calls: list[list[int]] = []
        self.closed = False

    def encode(self, window: np.ndarray) -> Any:
        index = len(self.encoded)
        self.encoded.append(np.array(window, copy=True))
        if self.on_encode is not None:
            self.on_encode(index)
        return index

    def _script_for(self, window_index: int) -> Sequence[int]:
        if callable(self.script):
            return self.script(window_index)
        return self.script

    def infer(self, features: Any, tokens: Sequence[int]) -> np.ndarray:
        self.calls.append(list(tokens))
        logits = np.full(self.vocabulary.size, -10.0, dtype=np.float32)
        if self.nan_after is not None and len(self.calls) > self.nan_after:
            logits[0] = np.nan
            return logits
        special = self.vocabulary.special
        if list(tokens) == [special.sot]:
            logits[self.vocabulary.languages[self.language]] = 10.0
            return logits
        task_pos = max(
            i for i, t in enumerate(tokens) if t in (special.transcribe, special.translate)
        )
        sampled = len(tokens) - task_pos - 1
        script = self._script_for(int(features))
        next_id = script[sampled] if sampled < len(script) else special.eot
        logits[next_id] = 10.0
        return logits

    def close(self) -> None:
        self.closed = True


class FakeVadModel:
    """Energy-based VAD: probability 1 for windows above an RMS level."""

    def __init__(self, level: float = 0.01) -> None:
        self.sample_rate = SAMPLE_RATE
        self.level = level
        self.resets = 0
        self.closed = False

    def reset(self) -> None:
        self.resets += 1

    def speech_probability(self, window: np.ndarray) -> float:
        rms = float(np.sqrt(np.mean(np.square(window, dtype=np.float64))))
        return 1.0 if rms > self.level else 0.0

    def close(self) -> None:
        self.closed = True


class ScriptedVadModel:
    """VAD model returning ``probs`` in call order (0.0 once exhausted)."""

    def __init__(self, probs: Sequence[float]) -> None:
        self.sample_rate = SAMPLE_RATE
        self.probs = list(probs)
        self.calls = 0

    def reset(self) -> None:
        self.calls = 0

    def speech_probability(self, window: np.ndarray) -> float:
        idx = self.calls
        self.calls += 1
        return self.probs[idx] if idx < len(self.probs) else 0.0

    def close(self) -> None:
        pass


def speech_buffer(
    silence_before: float = 1.0,
    speech: float = 2.0,
    silence_after: float = 1.0,
    *,
    seed: int = 0,
) -> np.ndarray:
    """Return silence / noise burst / silence PCM at 16 kHz."""
    rng = np.random.default_rng(seed)
    return np.concatenate(
        [
            np.zeros(int(silence_before * SAMPLE_RATE), dtype=np.float32),
            rng.uniform(-0.5, 0.5, int(speech * SAMPLE_RATE)).astype(np.float32),
            np.zeros(int(silence_after * SAMPLE_RATE), dtype=np.float32),
        ]
    )


def fake_store(
    acoustic: dict[str, Any] | None = None,
    vad: dict[str, Any] | None = None,
) -> ModelStore:
    """Return a store whose loaders look models up by path."""
    acoustic = acoustic or {}
    vad = vad or {}
    return ModelStore(
        acoustic_loader=lambda path: acoustic[str(path)],
        vad_loader=lambda path: vad[str(path)],
    )


@pytest.fixture
def vocabulary() -> Vocabulary:
    return make_vocabulary()


@pytest.fixture
def acoustic_model() -> FakeAcousticModel:
    return FakeAcousticModel()


@pytest.fixture
def vad_model() -> FakeVadModel:
    return FakeVadModel()


@pytest.fixture
def store(acoustic_model: FakeAcousticModel, vad_model: FakeVadModel) -> ModelStore:
    """Store with the fake acoustic model loaded and the fake VAD model available."""
    model_store = fake_store({"acoustic.pt": acoustic_model}, {"vad.pt": vad_model})
    model_store.load_model("acoustic.pt")
    return model_store


@pytest.fixture
def results() -> ResultBuffer:
    return ResultBuffer()


@pytest.fixture
def wav_path(tmp_path: Path) -> Path:
    """A two-second 8 kHz sine written with soundfile."""
    import soundfile as sf

    sr = 8000
    t = np.arange(2 * sr) / sr
    path = tmp_path / "tone.wav"
    sf.write(path, (0.3 * np.sin(2 * np.pi * 440 * t)).astype(np.float32), sr)
    return path
