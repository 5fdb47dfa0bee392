"""Access to the generation model used by the answer pipeline."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from guidebot.errors import GenerationFailure
from guidebot.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class LLMStatus:
    """Structured status information about the configured LLM backend."""

    model_loaded: bool
    model_name: str
    device: str
    error: Optional[str] = None


class LLMError(GenerationFailure):
    """Base exception raised for LLM provider issues."""


class LLMNotReadyError(LLMError):
    """Raised when the model cannot be loaded or is unavailable."""


class LLMGenerationError(LLMError):
    """Raised when text generation fails unexpectedly."""


class LLM:
    """Common interface exposed by language model implementations."""

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Generate a response for the provided prompt."""

        raise NotImplementedError

    @property
    def model_loaded(self) -> bool:
        return False

    @property
    def model_name(self) -> str:
        return "stub"

    @property
    def device(self) -> str:
        return "cpu"

    @property
    def last_error(self) -> Optional[str]:
        return None

    def preload(self) -> None:
        """Eagerly load the model weights when supported."""

        return None

    def status(self) -> LLMStatus:
        return LLMStatus(
            model_loaded=self.model_loaded,
            model_name=self.model_name,
            device=self.device,
            error=self.last_error,
        )


class LLMStub(LLM):
    """Backend used when no model is configured; every generation fails."""

    def __init__(self, *, reason: str | None = None) -> None:
        self._reason = reason or "LLM stub is active (model not configured)."

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        raise LLMNotReadyError(self._reason)

    @property
    def last_error(self) -> Optional[str]:
        return self._reason


class TransformersLLM(LLM):
    """Lazy-loading wrapper around ``AutoModelForCausalLM``."""

    def __init__(self, model_path: str) -> None:
        self._model_path = model_path
        self._model: Any = None
        self._tokenizer: Any = None
        self._torch: Any = None
        self._lock = threading.RLock()
        self._load_error: Optional[Exception] = None
        self._device_label = "cpu"

    @property
    def model_loaded(self) -> bool:
        return self._model is not None

    @property
    def model_name(self) -> str:
        return self._model_path

    @property
    def device(self) -> str:
        return self._device_label

    @property
    def last_error(self) -> Optional[str]:
        if self._load_error is None:
            return None
        return str(self._load_error)

    def _ensure_loaded(self) -> None:
        if self._model is not None:
            return
        with self._lock:
            if self._model is not None:
                return
            try:
                import torch
                from transformers import AutoModelForCausalLM, AutoTokenizer
            except Exception as error:  # pragma: no cover - optional heavy deps
                self._load_error = error
                raise LLMNotReadyError(
                    "PyTorch/Transformers are not available in the current environment",
                    cause=error,
                ) from error

            use_cuda = bool(torch.cuda.is_available())
            self._device_label = "cuda" if use_cuda else "cpu"
            LOGGER.info("Loading LLM from %s on %s", self._model_path, self._device_label)
            try:
                tokenizer = AutoTokenizer.from_pretrained(self._model_path)
                model = AutoModelForCausalLM.from_pretrained(
                    self._model_path,
                    device_map="auto" if use_cuda else "cpu",
                    torch_dtype="auto" if use_cuda else torch.float32,
                )
            except Exception as error:  # pragma: no cover - depends on model files
                self._load_error = error
                emit_exception(module=__name__, error=error)
                raise LLMNotReadyError(f"Failed to load model {self._model_path}", cause=error) from error

            if tokenizer.pad_token_id is None:
                tokenizer.pad_token = tokenizer.eos_token
            self._torch = torch
            self._tokenizer = tokenizer
            self._model = model
            self._load_error = None

    def generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self._ensure_loaded()

        effective_max_tokens = max_tokens if max_tokens and max_tokens > 0 else 256
        do_sample = temperature > 0.0
        try:
            inputs = self._tokenizer(
                prompt,
                return_tensors="pt",
                truncation=True,
                max_length=getattr(self._tokenizer, "model_max_length", 4096),
            ).to(self._model.device)
            generate_kwargs: dict[str, Any] = {
                "max_new_tokens": effective_max_tokens,
                "do_sample": do_sample,
                "pad_token_id": self._tokenizer.pad_token_id,
                "eos_token_id": self._tokenizer.eos_token_id,
            }
            if do_sample:
                generate_kwargs["temperature"] = float(temperature)
            with self._torch.no_grad():
                output_ids = self._model.generate(**inputs, **generate_kwargs)
        except Exception as error:  # pragma: no cover - depends on runtime behaviour
            LOGGER.exception("LLM generation failed")
            raise LLMGenerationError("LLM generation failed", cause=error) from error

        input_length = inputs["input_ids"].shape[1]
        try:
            text = self._tokenizer.decode(output_ids[0, input_length:], skip_special_tokens=True)
        except Exception as error:  # pragma: no cover
            raise LLMGenerationError("Failed to decode model output", cause=error) from error
        return text.strip()

    def preload(self) -> None:
        self._ensure_loaded()


def build_llm(model_path: str | None) -> LLM:
    """Return a transformers-backed LLM for *model_path*, or the stub when unset."""

    if not model_path:
        LOGGER.warning("LLM_MODEL_PATH is not configured; generation requests will fail.")
        return LLMStub(reason="LLM_MODEL_PATH is not configured.")
    return TransformersLLM(model_path)


__all__ = [
    "LLM",
    "LLMError",
    "LLMGenerationError",
    "LLMNotReadyError",
    "LLMStatus",
    "LLMStub",
    "TransformersLLM",
    "build_llm",
]
