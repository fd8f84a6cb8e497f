"""Voice-activity segmentation over a PCM buffer.

The buffer is scored window by window with the resident VAD model; windows at
or above the speech threshold open a span, and a span only closes after the
probability has stayed below ``threshold - neg_threshold_offset`` for
``min_silence_ms``. Spans shorter than ``min_speech_ms`` are discarded, spans
longer than ``max_speech_sec`` are split, and every span is padded by
``speech_pad_ms`` (neighbours closer than twice the pad share the gap).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from vadscribe.config import VadConfig
from vadscribe.models.base import VadModel
from vadscribe.results.models import VadSpan
from vadscribe.utils.audio_io import ensure_pcm
from vadscribe.vad.framing import frame_signal

__all__ = ["VadSegmenter"]

logger = logging.getLogger(__name__)


class VadSegmenter:
    """Turns a PCM buffer into ordered speech spans."""

    def __init__(self, config: VadConfig | None = None) -> None:
        self.config = config or VadConfig()

    def speech_probabilities(self, pcm: np.ndarray, model: VadModel) -> list[float]:
        """Score every analysis window of ``pcm``.

        The model state is reset first so results do not depend on earlier
        buffers. Window ``k`` starts at sample ``k * hop_samples``.
        """
        cfg = self.config
        model.reset()
        return [
            model.speech_probability(window)
            for window, _start in frame_signal(pcm, cfg.window_samples, cfg.hop_samples)
        ]

    def run(self, pcm: np.ndarray, model: VadModel) -> list[VadSpan]:
        """Detect speech spans in ``pcm``.

        Parameters:
            pcm: Mono float32 PCM at ``config.sample_rate``.
            model: The resident VAD model.

        Returns:
            list[VadSpan]: Spans in temporal order; empty when no speech.
        """
        pcm = ensure_pcm(pcm)
        if pcm.size == 0:
            return []
        probs = self.speech_probabilities(pcm, model)
        regions = self._speech_regions(probs, pcm.size)
        spans = self._pad_regions(regions, pcm.size)
        logger.debug(
            "VAD: %d windows, %d spans over %.2fs",
            len(probs),
            len(spans),
            pcm.size / self.config.sample_rate,
        )
        return spans

    def _speech_regions(self, probs: Sequence[float], n_samples: int) -> list[list[int]]:
        cfg = self.config
        hop = cfg.hop_samples
        threshold = cfg.threshold
        neg_threshold = max(threshold - cfg.neg_threshold_offset, 0.01)
        min_speech = cfg.ms_to_samples(cfg.min_speech_ms)
        min_silence = cfg.ms_to_samples(cfg.min_silence_ms)
        max_speech = (
            int(cfg.max_speech_sec * cfg.sample_rate)
            if math.isfinite(cfg.max_speech_sec)
            else math.inf
        )

        regions: list[list[int]] = []
        triggered = False
        start = 0
        temp_end = 0
        for idx, prob in enumerate(probs):
            cur = min(idx * hop, n_samples)
            if prob >= threshold and temp_end:
                temp_end = 0
            if prob >= threshold and not triggered:
                triggered = True
                start = cur
                continue
            if triggered and cur - start > max_speech:
                regions.append([start, cur])
                start = cur
                temp_end = 0
                continue
            if triggered and prob < neg_threshold:
                if not temp_end:
                    temp_end = cur
                if cur - temp_end < min_silence:
                    continue
                if temp_end - start >= min_speech:
                    regions.append([start, temp_end])
                triggered = False
                temp_end = 0

        if triggered and n_samples - start >= min_speech:
            regions.append([start, n_samples])
        return regions

    def _pad_regions(self, regions: list[list[int]], n_samples: int) -> list[VadSpan]:
        pad = self.config.ms_to_samples(self.config.speech_pad_ms)
        last = len(regions) - 1
        for idx, region in enumerate(regions):
            if idx == 0:
                region[0] = max(0, region[0] - pad)
            if idx != last:
                nxt = regions[idx + 1]
                silence = nxt[0] - region[1]
                if silence < 2 * pad:
                    region[1] += silence // 2
                    nxt[0] = max(0, nxt[0] - silence // 2)
                else:
                    region[1] = min(n_samples, region[1] + pad)
                    nxt[0] = max(0, nxt[0] - pad)
            else:
                region[1] = min(n_samples, region[1] + pad)
        return [
            VadSpan(start=s, end=e, sample_rate=self.config.sample_rate)
            for s, e in regions
            if e > s
        ]
