"""Unit tests for the model store lifecycle and slot locking."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from conftest import FakeAcousticModel, FakeVadModel, fake_store
from vadscribe.errors import ModelLoadError, ModelNotLoadedError, StatusCode
from vadscribe.models.store import ModelStore


def test_load_and_acquire() -> None:
    """A loaded model is yielded by ``acquire``."""
    model = FakeAcousticModel()
    store = fake_store({"a.pt": model})
    assert not store.acoustic.is_loaded
    store.load_model("a.pt")
    assert store.acoustic.is_loaded
    assert store.acoustic.path == Path("a.pt")
    with store.acoustic.acquire() as resident:
        assert resident is model


def test_acquire_empty_slot() -> None:
    """Acquiring an empty slot raises ``ModelNotLoadedError``."""
    store = ModelStore()
    with pytest.raises(ModelNotLoadedError):
        with store.vad.acquire():
            pass
    with store.vad.acquire_optional() as resident:
        assert resident is None


def test_replace_closes_previous() -> None:
    """Loading a new model frees the previous one."""
    first, second = FakeAcousticModel(), FakeAcousticModel()
    store = fake_store({"1": first, "2": second})
    store.load_model("1")
    store.load_model("2")
    assert first.closed
    assert not second.closed
    with store.acoustic.acquire() as resident:
        assert resident is second


def test_failed_load_keeps_previous_model() -> None:
    """A failing load leaves the resident model active."""
    model = FakeVadModel()

    def loader(path: str | Path) -> FakeVadModel:
        if str(path) == "good":
            return model
        raise ModelLoadError("bad archive")

    store = ModelStore(vad_loader=loader)
    store.load_model_vad("good")
    with pytest.raises(ModelLoadError) as excinfo:
        store.load_model_vad("broken")
    assert excinfo.value.status == StatusCode.MODEL_FORMAT_INVALID
    assert not model.closed
    with store.vad.acquire() as resident:
        assert resident is model


def test_close_unloads_both_slots() -> None:
    """``close`` releases both resident models."""
    acoustic, vad = FakeAcousticModel(), FakeVadModel()
    store = fake_store({"a": acoustic}, {"v": vad})
    store.load_model("a")
    store.load_model_vad("v")
    store.close()
    assert acoustic.closed and vad.closed
    assert not store.acoustic.is_loaded
    assert not store.vad.is_loaded


def test_load_waits_for_in_flight_run() -> None:
    """A replacement blocks until the current holder of the slot is done."""
    first, second = FakeAcousticModel(), FakeAcousticModel()
    store = fake_store({"1": first, "2": second})
    store.load_model("1")
    loaded = threading.Event()

    def reload() -> None:
        store.load_model("2")
        loaded.set()

    with store.acoustic.acquire() as resident:
        worker = threading.Thread(target=reload)
        worker.start()
        assert not loaded.wait(0.2)
        assert resident is first
        assert not first.closed
    worker.join(timeout=5)
    assert loaded.is_set()
    assert first.closed
