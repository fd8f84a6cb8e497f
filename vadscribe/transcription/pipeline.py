"""Transcription pipeline: PCM buffer in, published segments out.

A run validates its options, partitions the buffer into decoding regions
(the whole buffer, or the VAD speech spans when the pre-filter is engaged),
walks every region with a seek loop over fixed-length windows, and turns the
sampled tokens into timed segments. The finished sequence replaces the
contents of the :class:`~vadscribe.results.buffer.ResultBuffer` in one step;
on any failure the buffer is reset to an empty generation instead.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass

import numpy as np

from vadscribe.config import EngineConfig, TranscriptionOptions
from vadscribe.errors import InvalidLanguageError
from vadscribe.models.base import AcousticModel
from vadscribe.models.store import ModelStore
from vadscribe.models.torchscript import intra_op_threads
from vadscribe.results.buffer import ResultBuffer
from vadscribe.results.models import Segment, TranscriptionResult
from vadscribe.transcription.decoding import WindowDecoder
from vadscribe.transcription.languages import normalize_language
from vadscribe.transcription.segments import SegmentDraft, split_window, spread_token_times
from vadscribe.transcription.speaker import detect_speaker_turns
from vadscribe.utils.audio_io import ensure_pcm
from vadscribe.utils.cancel import raise_if_cancelled
from vadscribe.utils.constant import PIVOT_LANGUAGE, TIME_UNITS_PER_SECOND
from vadscribe.vad.framing import pad_or_trim
from vadscribe.vad.segmenter import VadSegmenter

__all__ = ["TranscriptionPipeline", "clamp_threads"]

logger = logging.getLogger(__name__)


def clamp_threads(threads: int) -> int:
    """Clamp a requested thread count to ``[1, cpu_count]``."""
    return max(1, min(int(threads), os.cpu_count() or 1))


@dataclass
class _DecodePass:
    drafts: list[SegmentDraft]
    language: str | None
    windows: int


class TranscriptionPipeline:
    """Drives the resident acoustic model over a PCM buffer."""

    def __init__(
        self,
        store: ModelStore,
        results: ResultBuffer,
        *,
        config: EngineConfig | None = None,
        segmenter: VadSegmenter | None = None,
    ) -> None:
        self.store = store
        self.results = results
        self.config = config or EngineConfig()
        self.segmenter = segmenter or VadSegmenter(self.config.vad)

    def run(
        self,
        pcm: np.ndarray,
        options: TranscriptionOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> TranscriptionResult:
        """Transcribe ``pcm`` and publish the result.

        Parameters:
            pcm: Mono float32 PCM at the model's sample rate.
            options: Per-call parameters; defaults from the environment.
            cancel_event: Checked at every window boundary.

        Returns:
            TranscriptionResult: The newly published generation.

        Raises:
            ModelNotLoadedError: If no acoustic model is resident.
            InvalidLanguageError: For an unrecognized language hint.
            DecodeError: On a non-recoverable inference failure.
            TranscriptionCancelledError: If ``cancel_event`` is set mid-run.
        """
        opts = options or TranscriptionOptions()
        try:
            return self._run(pcm, opts, cancel_event)
        except Exception:
            self.results.clear()
            raise

    def _run(
        self,
        pcm: np.ndarray,
        opts: TranscriptionOptions,
        cancel_event: threading.Event | None,
    ) -> TranscriptionResult:
        pcm = ensure_pcm(pcm)
        language = normalize_language(opts.language)
        threads = clamp_threads(opts.threads)
        task = "translate" if opts.translate else "transcribe"

        with self.store.acoustic.acquire() as model:
            vocabulary = model.vocabulary
            if language is not None and vocabulary.languages and language not in vocabulary.languages:
                raise InvalidLanguageError(f"Model has no language token for {language!r}")
            if pcm.size == 0:
                logger.info("Empty PCM buffer; publishing an empty result")
                return self.results.publish([], language=language, task=task)

            start_time = time.perf_counter()
            with intra_op_threads(threads):
                regions = self._plan_regions(pcm, opts)
                decoded = self._decode_regions(model, pcm, regions, opts, language, cancel_event)
            segments = self._build_segments(model, pcm, decoded.drafts, opts)
            # Published under the slot lock so results land in run order.
            result = self.results.publish(
                segments,
                language=PIVOT_LANGUAGE if opts.translate else decoded.language,
                task=task,
            )

        logger.info(
            "Transcribed %.2fs of audio into %d segments (%d windows, %d threads) in %.2fs",
            pcm.size / model.sample_rate,
            len(segments),
            decoded.windows,
            threads,
            time.perf_counter() - start_time,
        )
        return result

    def _plan_regions(self, pcm: np.ndarray, opts: TranscriptionOptions) -> list[tuple[int, int]]:
        if not opts.use_vad():
            return [(0, pcm.size)]
        with self.store.vad.acquire_optional() as vad_model:
            if vad_model is None:
                logger.warning("VAD pre-filter requested but no VAD model loaded; decoding full buffer")
                return [(0, pcm.size)]
            spans = self.segmenter.run(pcm, vad_model)
        logger.debug("VAD pre-filter kept %d speech regions", len(spans))
        return [(span.start, span.end) for span in spans]

    def _decode_regions(
        self,
        model: AcousticModel,
        pcm: np.ndarray,
        regions: list[tuple[int, int]],
        opts: TranscriptionOptions,
        language: str | None,
        cancel_event: threading.Event | None,
    ) -> _DecodePass:
        vocabulary = model.vocabulary
        special = vocabulary.special
        decoding = self.config.decoding
        decoder = WindowDecoder(model, decoding, speaker_turn_detect=opts.speaker_turn_detect)
        task_id = special.translate if opts.translate else special.transcribe
        seek_window = min(model.window_samples, int(decoding.window_sec * model.sample_rate))
        context: list[int] = vocabulary.encode(opts.prompt) if opts.prompt else []

        drafts: list[SegmentDraft] = []
        windows = 0
        for region_start, region_end in regions:
            seek = region_start
            while seek < region_end:
                raise_if_cancelled(cancel_event, f"{seek / model.sample_rate:.2f}s")
                chunk = pcm[seek : min(seek + seek_window, region_end)]
                features = model.encode(pad_or_trim(chunk, model.window_samples))
                if language is None and vocabulary.languages:
                    language = decoder.detect_language(features)
                    logger.info("Detected language: %s", language)
                language_id = vocabulary.languages.get(language) if language else None

                prefix = decoder.build_prefix(language_id, task_id, context)
                window = decoder.decode(features, prefix)
                window_drafts, advance = split_window(
                    window, vocabulary, chunk.size, model.sample_rate
                )
                drafts.extend(d.shifted(seek) for d in window_drafts)

                if decoding.condition_on_previous_text:
                    for draft in window_drafts:
                        context.extend(t for t in draft.tokens if vocabulary.is_text(t))
                else:
                    context = []
                seek += advance
                windows += 1
        return _DecodePass(drafts=drafts, language=language, windows=windows)

    def _build_segments(
        self,
        model: AcousticModel,
        pcm: np.ndarray,
        drafts: list[SegmentDraft],
        opts: TranscriptionOptions,
    ) -> list[Segment]:
        vocabulary = model.vocabulary
        turn_token = vocabulary.special.speaker_turn
        rate = model.sample_rate

        rows: list[tuple[int, int, list[int], list[float], bool, tuple[int, int]]] = []
        previous_end = 0
        for draft in drafts:
            pairs = [(t, p) for t, p in zip(draft.tokens, draft.probabilities) if vocabulary.is_text(t)]
            ids = [t for t, _ in pairs]
            text = vocabulary.decode(ids)
            if not text:
                continue
            t0 = max(draft.start * TIME_UNITS_PER_SECOND // rate, previous_end)
            t1 = max(draft.end * TIME_UNITS_PER_SECOND // rate, t0)
            turn = (
                opts.speaker_turn_detect
                and turn_token is not None
                and turn_token in draft.tokens
            )
            rows.append((t0, t1, ids, [p for _, p in pairs], turn, (draft.start, draft.end)))
            previous_end = t1

        if opts.speaker_turn_detect and turn_token is None and len(rows) > 1:
            flags = detect_speaker_turns(
                pcm, [row[5] for row in rows], rate, self.config.speaker_turn
            )
        else:
            flags = [row[4] for row in rows]

        segments: list[Segment] = []
        for idx, (t0, t1, ids, probs, _turn, _bounds) in enumerate(rows):
            segments.append(
                Segment(
                    t0=t0,
                    t1=t1,
                    text=vocabulary.decode(ids),
                    tokens=spread_token_times(ids, probs, vocabulary, t0, t1),
                    speaker_turn_next=bool(flags[idx]) and idx < len(rows) - 1,
                )
            )
        return segments
