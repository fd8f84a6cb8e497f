"""Voice-activity detection: window framing and speech-span segmentation."""

from .framing import frame_signal, pad_or_trim
from .segmenter import VadSegmenter

__all__ = [
    "VadSegmenter",
    "frame_signal",
    "pad_or_trim",
]
