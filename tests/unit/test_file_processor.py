"""Unit tests for per-file transcription and transcript assembly."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from conftest import FakeAcousticModel, fake_store
from vadscribe.config import TranscriptionOptions
from vadscribe.engine import Engine
from vadscribe.results.models import Segment, Token, TranscriptionResult
from vadscribe.transcription import file_processor
from vadscribe.transcription.file_processor import build_transcript
from vadscribe.utils.constant import SAMPLE_RATE, SPEAKER_TURN_MARKER


def _result() -> TranscriptionResult:
    return TranscriptionResult(
        generation=3,
        language="en",
        segments=[
            Segment(t0=0, t1=150, text="hi there", tokens=[Token(id=1), Token(id=2)],
                    speaker_turn_next=True),
            Segment(t0=150, t1=320, text="hello", tokens=[Token(id=3)]),
        ],
    )


def test_build_transcript() -> None:
    """Segments are numbered and their texts joined."""
    transcript = build_transcript(_result(), duration=3.2)
    assert [s.id for s in transcript.segments] == [0, 1]
    assert transcript.segments[0].tokens == [1, 2]
    assert transcript.segments[1].start == 1.5
    assert transcript.segments[1].end == 3.2
    assert transcript.text == "hi there hello"
    assert transcript.language == "en"


def test_build_transcript_marks_speaker_turns() -> None:
    """Turn markers are appended when requested."""
    transcript = build_transcript(_result(), mark_speaker_turns=True)
    assert transcript.segments[0].text == f"hi there {SPEAKER_TURN_MARKER}"
    assert transcript.text == f"hi there {SPEAKER_TURN_MARKER} hello"


def test_transcribe_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """The file is decoded, transcribed and turned into a transcript."""
    loaded: list[Path] = []

    def fake_load_audio(path: Path) -> tuple[np.ndarray, int]:
        loaded.append(path)
        return np.full(5 * SAMPLE_RATE, 0.1, dtype=np.float32), SAMPLE_RATE

    monkeypatch.setattr(file_processor, "load_audio", fake_load_audio)
    store = fake_store({"m": FakeAcousticModel()})
    with Engine(store=store) as engine:
        engine.load_model("m")
        transcript = engine.transcribe_file(
            tmp_path / "speech.wav", TranscriptionOptions(language="en", threads=1)
        )
    assert loaded == [tmp_path / "speech.wav"]
    assert transcript.text == "hello world. goodbye"
    assert transcript.duration == 5.0
    assert [(s.t0, s.t1) for s in transcript.segments] == [(0, 100), (100, 200)]
