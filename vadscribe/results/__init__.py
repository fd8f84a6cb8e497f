"""Result records and the process-wide result buffer."""

from .buffer import ResultBuffer
from .models import Segment, Token, TranscriptionResult, VadSpan, flatten_spans

__all__ = [
    "ResultBuffer",
    "Segment",
    "Token",
    "TranscriptionResult",
    "VadSpan",
    "flatten_spans",
]
