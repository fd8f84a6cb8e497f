"""TorchScript backends for the acoustic and VAD model slots.

Both model kinds ship as TorchScript archives (zip containers written by
``torch.jit.save``):

* acoustic archives export ``encode(pcm)`` and ``decode(features, tokens)``
  methods and carry a ``vocab.json`` (and optionally ``config.json``) as extra
  files;
* VAD archives are Silero-compatible: ``forward(chunk, sample_rate)`` returns
  the speech probability of one chunk, ``reset_states()`` clears recurrent
  state.

Models are placed on the best available device at load time and moved back to
CPU (with the CUDA cache emptied) when closed.
"""

from __future__ import annotations

import contextlib
import json
import logging
import math
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import torch
from pydantic import ValidationError

from vadscribe.errors import DecodeError, ModelLoadError, StatusCode
from vadscribe.models.base import Vocabulary
from vadscribe.utils.constant import DECODE_WINDOW_SEC, SAMPLE_RATE

__all__ = [
    "TorchScriptAcousticModel",
    "TorchScriptVadModel",
    "intra_op_threads",
    "load_acoustic_model",
    "load_vad_model",
    "sniff_model_format",
]

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
VOCAB_FILE = "vocab.json"
CONFIG_FILE = "config.json"
DEFAULT_TEXT_CONTEXT = 448


def _best_device() -> str:
    """Return the preferred device string.

    Returns:
        str: ``"cuda"`` when CUDA/ROCm is available, else ``"cpu"``.

    """
    return "cuda" if torch.cuda.is_available() else "cpu"


def _release_device_cache() -> None:
    """Empty the CUDA allocator cache after a model has been dropped."""
    if torch.cuda.is_available():
        try:
            torch.cuda.empty_cache()
        except RuntimeError as exc:  # pragma: no cover - driver specific
            logger.debug("Could not empty CUDA cache: %s", exc)


@contextlib.contextmanager
def intra_op_threads(threads: int) -> Iterator[None]:
    """Run the enclosed block with ``threads`` torch intra-op threads.

    The previous thread count is restored on exit.
    """
    previous = torch.get_num_threads()
    torch.set_num_threads(threads)
    try:
        yield
    finally:
        torch.set_num_threads(previous)


def sniff_model_format(path: str | Path) -> Path:
    """Check that ``path`` is a readable TorchScript archive.

    Parameters:
        path: Filesystem path of the model file.

    Returns:
        Path: The validated path.

    Raises:
        ModelLoadError: ``MODEL_NOT_FOUND`` when the file is missing or
            unreadable, ``MODEL_FORMAT_INVALID`` when it is not a zip archive.
    """
    model_path = Path(path)
    if not model_path.is_file():
        raise ModelLoadError(f"Model file not found: {model_path}", StatusCode.MODEL_NOT_FOUND)
    try:
        with model_path.open("rb") as fh:
            magic = fh.read(len(ZIP_MAGIC))
    except OSError as exc:
        raise ModelLoadError(
            f"Model file is not readable: {model_path}", StatusCode.MODEL_NOT_FOUND
        ) from exc
    if magic != ZIP_MAGIC:
        raise ModelLoadError(f"{model_path.name} is not a TorchScript model archive")
    return model_path


def _load_module(path: Path, extra_files: dict[str, Any] | None = None) -> torch.jit.ScriptModule:
    device = _best_device()
    try:
        module = torch.jit.load(str(path), map_location=device, _extra_files=extra_files)
    except (RuntimeError, ValueError) as exc:
        raise ModelLoadError(f"Failed to decode model weights from {path.name}: {exc}") from exc
    module.eval()
    return module


def _extra_text(extra_files: dict[str, Any], name: str, model_path: Path) -> str:
    raw = extra_files.get(name) or ""
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ModelLoadError(f"{name} in {model_path.name} is not UTF-8 text") from exc
    return str(raw)


def _read_model_config(config_json: str, model_path: Path) -> tuple[int, int, int]:
    """Parse ``config.json`` into ``(sample_rate, window_samples, max_text_context)``."""
    try:
        config = json.loads(config_json) if config_json else {}
    except json.JSONDecodeError as exc:
        raise ModelLoadError(f"Invalid {CONFIG_FILE} in {model_path.name}") from exc
    if not isinstance(config, dict):
        raise ModelLoadError(f"{CONFIG_FILE} in {model_path.name} must be a JSON object")
    try:
        sample_rate = int(config.get("sample_rate", SAMPLE_RATE))
        window_samples = int(float(config.get("window_sec", DECODE_WINDOW_SEC)) * sample_rate)
        max_text_context = int(config.get("n_text_ctx", DEFAULT_TEXT_CONTEXT))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ModelLoadError(f"Invalid value in {CONFIG_FILE} of {model_path.name}: {exc}") from exc
    if sample_rate <= 0 or window_samples <= 0 or max_text_context <= 0:
        raise ModelLoadError(
            f"{CONFIG_FILE} in {model_path.name} needs positive sample_rate, window_sec and n_text_ctx"
        )
    return sample_rate, window_samples, max_text_context


def _module_device(module: torch.jit.ScriptModule) -> str:
    try:
        return next(module.parameters()).device.type
    except StopIteration:
        return "cpu"


class TorchScriptAcousticModel:
    """Acoustic model backed by a TorchScript module with encode/decode methods."""

    def __init__(
        self,
        module: torch.jit.ScriptModule,
        vocabulary: Vocabulary,
        *,
        sample_rate: int = SAMPLE_RATE,
        window_samples: int = DECODE_WINDOW_SEC * SAMPLE_RATE,
        max_text_context: int = DEFAULT_TEXT_CONTEXT,
        device: str | None = None,
    ) -> None:
        self._module: torch.jit.ScriptModule | None = module
        self.vocabulary = vocabulary
        self.sample_rate = sample_rate
        self.window_samples = window_samples
        self.max_text_context = max_text_context
        self.device = device or _module_device(module)

    def _require_module(self) -> torch.jit.ScriptModule:
        if self._module is None:
            raise DecodeError("Acoustic model has been closed")
        return self._module

    def encode(self, window: np.ndarray) -> Any:
        module = self._require_module()
        pcm = torch.from_numpy(np.ascontiguousarray(window, dtype=np.float32)).to(self.device)
        with torch.inference_mode():
            try:
                return module.encode(pcm)
            except RuntimeError as exc:
                raise DecodeError(f"Encoder failed: {exc}") from exc

    def infer(self, features: Any, tokens: Sequence[int]) -> np.ndarray:
        module = self._require_module()
        prefix = torch.tensor([list(tokens)], dtype=torch.long, device=self.device)
        with torch.inference_mode():
            try:
                logits = module.decode(features, prefix)
            except RuntimeError as exc:
                raise DecodeError(f"Decoder failed: {exc}") from exc
        flat = logits.reshape(-1).float().cpu().numpy()
        if flat.size != self.vocabulary.size:
            raise DecodeError(
                f"Decoder returned {flat.size} logits, vocabulary has {self.vocabulary.size} ids"
            )
        return flat

    def close(self) -> None:
        if self._module is not None:
            self._module.to("cpu")
            self._module = None
            _release_device_cache()


class TorchScriptVadModel:
    """Silero-compatible TorchScript VAD model."""

    def __init__(
        self,
        module: torch.jit.ScriptModule,
        *,
        sample_rate: int = SAMPLE_RATE,
        device: str | None = None,
    ) -> None:
        self._module: torch.jit.ScriptModule | None = module
        self.sample_rate = sample_rate
        self.device = device or _module_device(module)

    def _require_module(self) -> torch.jit.ScriptModule:
        if self._module is None:
            raise DecodeError("VAD model has been closed")
        return self._module

    def reset(self) -> None:
        module = self._require_module()
        if hasattr(module, "reset_states"):
            module.reset_states()

    def speech_probability(self, window: np.ndarray) -> float:
        module = self._require_module()
        chunk = torch.from_numpy(np.ascontiguousarray(window, dtype=np.float32)).to(self.device)
        with torch.inference_mode():
            try:
                out = module(chunk, self.sample_rate)
            except RuntimeError as exc:
                raise DecodeError(f"VAD inference failed: {exc}") from exc
        prob = float(torch.as_tensor(out).reshape(-1)[0].item())
        if not math.isfinite(prob):
            raise DecodeError("VAD model produced a non-finite speech probability")
        return prob

    def close(self) -> None:
        if self._module is not None:
            self._module.to("cpu")
            self._module = None
            _release_device_cache()


def load_acoustic_model(path: str | Path) -> TorchScriptAcousticModel:
    """Load an acoustic model archive.

    Parameters:
        path: Path of the TorchScript archive.

    Returns:
        TorchScriptAcousticModel: The ready-to-use model.

    Raises:
        ModelLoadError: If the file is missing, not an archive, lacks the
            encode/decode methods, or carries an invalid vocabulary.
    """
    model_path = sniff_model_format(path)
    extra_files: dict[str, Any] = {VOCAB_FILE: "", CONFIG_FILE: ""}
    module = _load_module(model_path, extra_files)

    for method in ("encode", "decode"):
        if not hasattr(module, method):
            raise ModelLoadError(f"{model_path.name} does not export `{method}`")

    vocab_json = _extra_text(extra_files, VOCAB_FILE, model_path)
    if not vocab_json:
        raise ModelLoadError(f"{model_path.name} carries no {VOCAB_FILE}")
    try:
        vocabulary = Vocabulary.model_validate_json(vocab_json)
    except ValidationError as exc:
        raise ModelLoadError(f"Invalid vocabulary in {model_path.name}: {exc}") from exc

    sample_rate, window_samples, max_text_context = _read_model_config(
        _extra_text(extra_files, CONFIG_FILE, model_path), model_path
    )
    model = TorchScriptAcousticModel(
        module,
        vocabulary,
        sample_rate=sample_rate,
        window_samples=window_samples,
        max_text_context=max_text_context,
        device=_best_device(),
    )
    logger.info(
        "Loaded acoustic model %s (vocab=%d, device=%s)",
        model_path.name,
        vocabulary.size,
        model.device,
    )
    return model


def load_vad_model(path: str | Path) -> TorchScriptVadModel:
    """Load a Silero-compatible VAD archive.

    Parameters:
        path: Path of the TorchScript archive.

    Returns:
        TorchScriptVadModel: The ready-to-use model.

    Raises:
        ModelLoadError: If the file is missing or not a loadable archive.
    """
    model_path = sniff_model_format(path)
    module = _load_module(model_path)
    model = TorchScriptVadModel(module, device=_best_device())
    logger.info("Loaded VAD model %s (device=%s)", model_path.name, model.device)
    return model
