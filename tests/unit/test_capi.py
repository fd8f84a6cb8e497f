"""Unit tests for the status-code call surface."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest

from conftest import FakeAcousticModel, FakeVadModel, fake_store, speech_buffer
from vadscribe import capi
from vadscribe.engine import Engine
from vadscribe.errors import StatusCode
from vadscribe.models.store import ModelStore
from vadscribe.utils.constant import SAMPLE_RATE


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    """Install an engine with fake loaders as the process-wide engine."""
    engine = Engine(
        store=fake_store({"acoustic.pt": FakeAcousticModel()}, {"vad.pt": FakeVadModel()})
    )
    monkeypatch.setattr(capi, "_engine", engine)
    yield engine
    capi.reset_engine()


def _pcm(seconds: float) -> np.ndarray:
    return np.full(int(seconds * SAMPLE_RATE), 0.1, dtype=np.float32)


def test_reads_before_any_run(engine: Engine) -> None:
    """Reads on an empty buffer return sentinels."""
    assert capi.get_segment_text(0) == ""
    assert capi.get_segment_t0(0) == -1
    assert capi.get_segment_t1(0) == -1
    assert capi.n_tokens(0) == -1
    assert capi.get_token_id(0, 0) == -1
    assert capi.get_segment_speaker_turn_next(0) is False


def test_transcribe_without_model(engine: Engine) -> None:
    """Transcribing before loading a model reports ``MODEL_NOT_LOADED``."""
    assert capi.transcribe(1, "en", False, False, _pcm(1)) == (StatusCode.MODEL_NOT_LOADED, 0)


def test_load_transcribe_and_read(engine: Engine) -> None:
    """The full call sequence succeeds and reads return segment data."""
    assert capi.load_model("acoustic.pt") == StatusCode.OK
    status, count = capi.transcribe(2, "en", False, False, _pcm(5), "")
    assert (status, count) == (StatusCode.OK, 2)
    assert capi.get_segment_text(0) == "hello world."
    assert (capi.get_segment_t0(1), capi.get_segment_t1(1)) == (100, 200)
    assert capi.n_tokens(0) == 3
    assert capi.get_token_id(0, 0) == 0
    assert capi.get_token_id(0, 3) == -1
    assert capi.get_segment_text(2) == ""


def test_invalid_language_status(engine: Engine) -> None:
    """Unknown languages map to ``INVALID_LANGUAGE`` and clear the buffer."""
    capi.load_model("acoustic.pt")
    capi.transcribe(1, "en", False, False, _pcm(5))
    assert capi.transcribe(1, "klingon", False, False, _pcm(5)) == (
        StatusCode.INVALID_LANGUAGE,
        0,
    )
    assert capi.get_segment_text(0) == ""


def test_vad_status_and_flat_spans(engine: Engine) -> None:
    """VAD returns interleaved sample offsets once a VAD model is loaded."""
    assert capi.vad(speech_buffer()) == (StatusCode.MODEL_NOT_LOADED, [])
    assert capi.load_model_vad("vad.pt") == StatusCode.OK
    assert capi.vad(speech_buffer()) == (StatusCode.OK, [15200.0, 48864.0])


def test_vad_rejects_non_mono_buffer(engine: Engine) -> None:
    """Malformed PCM is reported as a failure rather than raised."""
    capi.load_model_vad("vad.pt")
    status, spans = capi.vad(np.zeros((2, 512), dtype=np.float32))
    assert status == StatusCode.DECODE_FAILED
    assert spans == []


def test_load_model_status_codes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Real loaders report missing files and unrecognized formats."""
    monkeypatch.setattr(capi, "_engine", None)
    try:
        assert capi.load_model(str(tmp_path / "missing.pt")) == StatusCode.MODEL_NOT_FOUND
        junk = tmp_path / "junk.bin"
        junk.write_bytes(b"not a model")
        assert capi.load_model_vad(str(junk)) == StatusCode.MODEL_FORMAT_INVALID
    finally:
        capi.reset_engine()


def test_load_errors_become_status_codes(monkeypatch: pytest.MonkeyPatch) -> None:
    """Loader failures never escape the status-returning calls."""

    def broken_loader(path: object) -> object:
        raise ValueError(f"cannot parse {path}")

    engine = Engine(store=ModelStore(acoustic_loader=broken_loader, vad_loader=broken_loader))
    monkeypatch.setattr(capi, "_engine", engine)
    try:
        assert capi.load_model("acoustic.pt") == StatusCode.DECODE_FAILED
        assert capi.load_model_vad("vad.pt") == StatusCode.DECODE_FAILED
        assert not engine.store.acoustic.is_loaded
    finally:
        capi.reset_engine()
