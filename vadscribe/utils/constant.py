"""Project-wide constants for convenient reuse."""

# pylint: disable=line-too-long

from __future__ import annotations

import math
import os
import sys
from typing import Final

from vadscribe.utils.env_loader import load_project_env

# Ensure .env is loaded exactly once at import time for the whole project
if "pytest" not in sys.modules:
    load_project_env()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# Sample rate every model in this project is trained on.
SAMPLE_RATE: Final[int] = 16000

# Native time unit of segment/token timestamps: 1/100 s (centiseconds).
TIME_UNITS_PER_SECOND: Final[int] = 100

# Decoding window length (seconds). Longer regions are decoded with a seek loop.
DECODE_WINDOW_SEC: Final[int] = int(os.getenv("DECODE_WINDOW_SEC", "30"))

# Resolution of timestamp tokens (seconds per timestamp step).
TIMESTAMP_RESOLUTION_SEC: Final[float] = 0.02

# Maximum tokens sampled per decoding window.
MAX_DECODE_TOKENS: Final[int] = int(os.getenv("MAX_DECODE_TOKENS", "224"))

# Maximum timestamp allowed as the first sampled token of a window.
MAX_INITIAL_TIMESTAMP_SEC: Final[float] = float(os.getenv("MAX_INITIAL_TIMESTAMP_SEC", "1.0"))

# Carry previously decoded text into the next window's prompt.
CONDITION_ON_PREVIOUS_TEXT: Final[bool] = _env_bool("CONDITION_ON_PREVIOUS_TEXT", "True")

# Default number of inference threads (clamped to the CPU count at run time).
DEFAULT_THREADS: Final[int] = int(os.getenv("DEFAULT_THREADS", "4"))

# Language hint; "auto" (or empty) selects detection.
AUTO_LANGUAGE: Final[str] = "auto"
DEFAULT_LANGUAGE: Final[str] = os.getenv("DEFAULT_LANGUAGE", AUTO_LANGUAGE)

# Target language whenever translation is requested.
PIVOT_LANGUAGE: Final[str] = "en"

# Use the resident VAD model as a pre-filter during transcription.
DEFAULT_VAD: Final[bool] = _env_bool("DEFAULT_VAD", "False")

# Voice activity detection (Silero-compatible defaults)
VAD_THRESHOLD: Final[float] = float(os.getenv("VAD_THRESHOLD", "0.5"))
VAD_NEG_THRESHOLD_OFFSET: Final[float] = float(os.getenv("VAD_NEG_THRESHOLD_OFFSET", "0.15"))
VAD_MIN_SPEECH_MS: Final[int] = int(os.getenv("VAD_MIN_SPEECH_MS", "250"))
VAD_MIN_SILENCE_MS: Final[int] = int(os.getenv("VAD_MIN_SILENCE_MS", "100"))
VAD_SPEECH_PAD_MS: Final[int] = int(os.getenv("VAD_SPEECH_PAD_MS", "30"))
VAD_MAX_SPEECH_SEC: Final[float] = float(os.getenv("VAD_MAX_SPEECH_SEC", str(math.inf)))
VAD_WINDOW_SAMPLES: Final[int] = int(os.getenv("VAD_WINDOW_SAMPLES", "512"))
VAD_WINDOW_OVERLAP_SAMPLES: Final[int] = int(os.getenv("VAD_WINDOW_OVERLAP_SAMPLES", "64"))

# Speaker-turn detection via MFCC embedding change (cosine distance)
SPEAKER_TURN_THRESHOLD: Final[float] = float(os.getenv("SPEAKER_TURN_THRESHOLD", "0.35"))
SPEAKER_TURN_N_MFCC: Final[int] = int(os.getenv("SPEAKER_TURN_N_MFCC", "20"))

# Marker appended to segment text by the file front-end when a turn follows.
SPEAKER_TURN_MARKER: Final[str] = os.getenv("SPEAKER_TURN_MARKER", "[SPEAKER_TURN]")

# Prefer FFmpeg for audio decoding (1 = yes, 0 = try soundfile first)
FORCE_FFMPEG: Final[bool] = os.getenv("FORCE_FFMPEG", "1") == "1"

# Logging configuration
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()
TORCH_CPP_LOG_LEVEL: Final[str] = os.getenv("TORCH_CPP_LOG_LEVEL", "ERROR")
