"""The engine facade: model lifecycle, VAD, transcription and result reads.

:class:`Engine` composes a :class:`ModelStore`, a :class:`VadSegmenter`, a
:class:`TranscriptionPipeline` and a :class:`ResultBuffer`. Calls are
synchronous; :meth:`Engine.submit_transcribe` queues a run on a single worker
thread and :meth:`Engine.cancel` stops it cooperatively at the next window
boundary.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import numpy as np

from vadscribe.config import EngineConfig, TranscriptionOptions
from vadscribe.models.store import ModelStore
from vadscribe.results.buffer import ResultBuffer
from vadscribe.results.models import TranscriptionResult, VadSpan
from vadscribe.transcription.file_processor import Transcript, transcribe_file
from vadscribe.transcription.pipeline import TranscriptionPipeline
from vadscribe.utils.audio_io import ensure_pcm
from vadscribe.utils.cancel import reset_cancel_event
from vadscribe.vad.segmenter import VadSegmenter

__all__ = ["Engine"]

logger = logging.getLogger(__name__)


class Engine:
    """Speech-to-text engine with one acoustic and one VAD model slot.

    Example:
        >>> engine = Engine()
        >>> engine.load_model("model.pt")
        >>> result = engine.transcribe(pcm, TranscriptionOptions(language="en"))
        >>> engine.segment_count(), engine.text(0)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        store: ModelStore | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store or ModelStore()
        self.results = ResultBuffer()
        self.segmenter = VadSegmenter(self.config.vad)
        self.pipeline = TranscriptionPipeline(
            self.store, self.results, config=self.config, segmenter=self.segmenter
        )
        self._cancel_event = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    # Model lifecycle

    def load_model(self, path: str | Path) -> None:
        """Load the acoustic model at ``path``, replacing the resident one.

        Raises:
            ModelLoadError: The previous model stays active.
        """
        self.store.load_model(path)

    def load_model_vad(self, path: str | Path) -> None:
        """Load the VAD model at ``path``, replacing the resident one.

        Raises:
            ModelLoadError: The previous model stays active.
        """
        self.store.load_model_vad(path)

    # Inference

    def vad(self, pcm: np.ndarray) -> list[VadSpan]:
        """Return speech spans of ``pcm`` in sample offsets.

        Raises:
            ModelNotLoadedError: If no VAD model is resident.
        """
        pcm = ensure_pcm(pcm)
        with self.store.vad.acquire() as model:
            return self.segmenter.run(pcm, model)

    def transcribe(
        self,
        pcm: np.ndarray,
        options: TranscriptionOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> TranscriptionResult:
        """Transcribe ``pcm`` synchronously and publish the result.

        Only ``cancel_event`` is honoured here; :meth:`cancel` applies to runs
        queued with :meth:`submit_transcribe`.
        """
        return self.pipeline.run(pcm, options, cancel_event=cancel_event)

    def submit_transcribe(
        self,
        pcm: np.ndarray,
        options: TranscriptionOptions | None = None,
    ) -> Future[TranscriptionResult]:
        """Queue a transcription on the worker thread.

        Returns:
            Future[TranscriptionResult]: Resolves to the published result or
            raises the run's error.
        """
        reset_cancel_event(self._cancel_event)
        data = ensure_pcm(pcm).copy()
        return self._get_executor().submit(
            self.pipeline.run, data, options, cancel_event=self._cancel_event
        )

    def transcribe_file(
        self,
        audio_path: str | Path,
        options: TranscriptionOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Transcript:
        """Decode and transcribe an audio file. See :func:`transcribe_file`."""
        return transcribe_file(self, audio_path, options, cancel_event=cancel_event)

    def cancel(self) -> None:
        """Request cancellation of the queued or running background job."""
        self._cancel_event.set()
        logger.info("Cancellation requested")

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="vadscribe"
                )
            return self._executor

    # Result reads

    def snapshot(self, generation: int | None = None) -> TranscriptionResult:
        return self.results.snapshot(generation)

    def segment_count(self, generation: int | None = None) -> int:
        return self.results.segment_count(generation)

    def text(self, i: int, generation: int | None = None) -> str:
        return self.results.text(i, generation)

    def t0(self, i: int, generation: int | None = None) -> int:
        return self.results.t0(i, generation)

    def t1(self, i: int, generation: int | None = None) -> int:
        return self.results.t1(i, generation)

    def token_count(self, i: int, generation: int | None = None) -> int:
        return self.results.token_count(i, generation)

    def token_id(self, i: int, j: int, generation: int | None = None) -> int:
        return self.results.token_id(i, j, generation)

    def speaker_turn_next(self, i: int, generation: int | None = None) -> bool:
        return self.results.speaker_turn_next(i, generation)

    # Teardown

    def close(self) -> None:
        """Stop the worker, cancel queued runs and unload both models."""
        self._cancel_event.set()
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)
        self.store.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
