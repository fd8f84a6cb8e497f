"""Lifecycle of the resident acoustic and VAD models.

The store holds at most one model per slot. Each slot is guarded by its own
re-entrant lock that is held for the whole of a load and for the whole of any
run using the slot, so a model is never replaced underneath an in-flight run.
Loads validate before they replace: a failed load leaves the previous model
active.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Generic, TypeVar

from vadscribe.errors import ModelNotLoadedError
from vadscribe.models.base import AcousticModel, VadModel
from vadscribe.models.torchscript import load_acoustic_model, load_vad_model

__all__ = ["ModelSlot", "ModelStore"]

logger = logging.getLogger(__name__)

M = TypeVar("M", AcousticModel, VadModel)


class ModelSlot(Generic[M]):
    """A single exclusive model slot."""

    def __init__(self, kind: str, loader: Callable[[str | Path], M]) -> None:
        self.kind = kind
        self._loader = loader
        self._lock = threading.RLock()
        self._model: M | None = None
        self._path: Path | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self, path: str | Path) -> None:
        """Load ``path`` and swap it in, closing the previous model.

        Raises:
            ModelLoadError: Propagated from the loader; the slot is unchanged.
        """
        with self._lock:
            candidate = self._loader(path)
            previous, self._model, self._path = self._model, candidate, Path(path)
            if previous is not None:
                previous.close()
                logger.info("Replaced %s model with %s", self.kind, self._path)
            else:
                logger.info("Loaded %s model %s", self.kind, self._path)

    def unload(self) -> None:
        with self._lock:
            if self._model is not None:
                self._model.close()
                logger.info("Unloaded %s model %s", self.kind, self._path)
            self._model = None
            self._path = None

    @contextlib.contextmanager
    def acquire(self) -> Iterator[M]:
        """Hold the slot lock and yield the resident model.

        Raises:
            ModelNotLoadedError: If the slot is empty.
        """
        with self._lock:
            if self._model is None:
                raise ModelNotLoadedError(f"No {self.kind} model loaded")
            yield self._model

    @contextlib.contextmanager
    def acquire_optional(self) -> Iterator[M | None]:
        """Hold the slot lock and yield the resident model or ``None``."""
        with self._lock:
            yield self._model


class ModelStore:
    """Owns the acoustic and the VAD model slots.

    Lock order is always acoustic before VAD.
    """

    def __init__(
        self,
        *,
        acoustic_loader: Callable[[str | Path], AcousticModel] = load_acoustic_model,
        vad_loader: Callable[[str | Path], VadModel] = load_vad_model,
    ) -> None:
        self.acoustic: ModelSlot[AcousticModel] = ModelSlot("acoustic", acoustic_loader)
        self.vad: ModelSlot[VadModel] = ModelSlot("VAD", vad_loader)

    def load_model(self, path: str | Path) -> None:
        self.acoustic.load(path)

    def load_model_vad(self, path: str | Path) -> None:
        self.vad.load(path)

    def close(self) -> None:
        """Unload both slots."""
        self.acoustic.unload()
        self.vad.unload()
