"""Audio I/O helpers.

``ensure_pcm`` normalizes caller-provided buffers for the engine;
``load_audio`` decodes a file to 16 kHz mono float32 PCM using FFmpeg,
*soundfile*, *pydub* and *librosa*.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path

import librosa  # type: ignore
import numpy as np
import soundfile as sf  # type: ignore
from pydub import AudioSegment  # type: ignore  # fallback only

from vadscribe.errors import AudioDecodeError
from vadscribe.utils.constant import FORCE_FFMPEG, SAMPLE_RATE

__all__ = ["ensure_pcm", "load_audio"]

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def ensure_pcm(pcm: np.ndarray | list[float]) -> np.ndarray:
    """Return ``pcm`` as a contiguous 1-D float32 array.

    Raises:
        ValueError: If the buffer is not one-dimensional.
    """
    data = np.asarray(pcm, dtype=np.float32)
    if data.ndim != 1:
        raise ValueError(f"PCM buffer must be 1-D mono, got shape {data.shape}")
    return np.ascontiguousarray(data)


def _validate_audio_path(path: Path | str) -> Path:
    """Reject inputs that are not plain local files before handing them to FFmpeg.

    Raises:
        ValueError: For URL-like paths or paths starting with ``-``.
    """
    text = str(path)
    if _URL_RE.match(text):
        raise ValueError("Audio path must point to the local filesystem")
    if text.startswith("-"):
        raise ValueError("Audio path must not start with '-'")
    return Path(text)


def _load_with_ffmpeg(path: Path, target_sr: int) -> tuple[np.ndarray, int]:
    """Decode an audio file to mono float32 at ``target_sr`` via FFmpeg.

    Raises:
        RuntimeError: If FFmpeg is missing or fails to decode the file.
    """
    if shutil.which("ffmpeg") is None:
        raise RuntimeError("FFmpeg is not installed or not in PATH.")

    cmd = [
        "ffmpeg",
        "-nostdin",
        "-i",
        str(path),
        "-threads",
        "0",
        "-f",
        "s16le",
        "-ac",
        "1",
        "-acodec",
        "pcm_s16le",
        "-ar",
        str(target_sr),
        "-",
    ]
    try:
        pcm = subprocess.run(cmd, capture_output=True, check=True).stdout
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"FFmpeg decoding failed: {exc.stderr.decode(errors='ignore')}") from exc

    data = np.frombuffer(pcm, np.int16).astype(np.float32) / (1 << 15)
    return data, target_sr


def _load_with_pydub(path: Path) -> tuple[np.ndarray, int]:
    """Fallback loader via pydub for formats libsndfile cannot read."""
    seg: AudioSegment = AudioSegment.from_file(path)
    samples = np.array(seg.get_array_of_samples())
    if seg.channels > 1:
        samples = samples.reshape((-1, seg.channels)).mean(axis=1)
    data = (samples.astype(np.float32) / (1 << 15)).clip(-1.0, 1.0)
    return data, seg.frame_rate


def load_audio(path: Path | str, target_sr: int = SAMPLE_RATE) -> tuple[np.ndarray, int]:
    """Load an audio file as mono float32 PCM at ``target_sr``.

    Loading order: FFmpeg (when ``FORCE_FFMPEG``), soundfile, FFmpeg (if not
    yet tried), then pydub.

    Args:
        path: The path to the audio file.
        target_sr: Sample rate of the returned waveform.

    Returns:
        A tuple ``(audio, sr)`` with a 1-D float32 waveform in [-1, 1] and
        ``sr == target_sr``.

    Raises:
        ValueError: If the path is not a local filesystem path.
        AudioDecodeError: If no decoder can read the file.
    """
    audio_path = _validate_audio_path(path)
    if not audio_path.is_file():
        raise AudioDecodeError(f"Audio file not found: {audio_path}")

    data: np.ndarray | None = None
    sr: int | None = None

    ffmpeg_tried = False
    if FORCE_FFMPEG:
        ffmpeg_tried = True
        try:
            data, sr = _load_with_ffmpeg(audio_path, target_sr)
        except RuntimeError as exc:
            logger.debug("FFmpeg decode failed for %s: %s", audio_path.name, exc)

    if data is None:
        try:
            data, sr = sf.read(str(audio_path), always_2d=False)
        except (RuntimeError, sf.LibsndfileError) as exc:
            logger.debug("soundfile decode failed for %s: %s", audio_path.name, exc)

    if data is None and not ffmpeg_tried:
        try:
            data, sr = _load_with_ffmpeg(audio_path, target_sr)
        except RuntimeError as exc:
            logger.debug("FFmpeg decode failed for %s: %s", audio_path.name, exc)

    if data is None:
        try:
            data, sr = _load_with_pydub(audio_path)
        except Exception as exc:
            raise AudioDecodeError(f"Could not decode {audio_path.name}: {exc}") from exc

    if data.ndim > 1:
        data = np.mean(data, axis=-1)

    if sr != target_sr:
        data = librosa.resample(
            np.asarray(data, dtype=np.float32), orig_sr=sr, target_sr=target_sr
        )
        sr = target_sr

    return ensure_pcm(data), target_sr
