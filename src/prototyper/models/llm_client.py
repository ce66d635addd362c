"""Text-completion client base class shared by model integrations."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

__all__ = [
    "AttemptLogger",
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]

METADATA_VALUE_LIMIT = 512

# (payload, completion or None, error or None, attempt number)
AttemptLogger = Callable[[Dict[str, Any], Optional[str], Optional[Exception], int], None]


class LLMClientError(RuntimeError):
    """Base error for generation failures (network, quota, auth, empty output)."""


class LLMTransportError(LLMClientError):
    """The transport could not deliver a response."""


class LLMResponseFormatError(LLMClientError):
    """The reply arrived but carried no completion text."""


class LLMRetryError(LLMClientError):
    """Every attempt failed; ``__cause__`` holds the last error."""


def _clip_metadata(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, separators=(",", ":"), sort_keys=True)
    if len(text) <= METADATA_VALUE_LIMIT:
        return text
    return text[: METADATA_VALUE_LIMIT - 3] + "..."


@dataclass(slots=True)
class LLMRequest:
    """One prompt sent to a model, plus optional per-request overrides."""

    prompt: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    temperature: float = 0.0
    max_attempts: Optional[int] = None

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Flatten the request into the provider-neutral dict handed to ``_raw_invoke``."""
        payload: Dict[str, Any] = {"model": self.model or default_model, "prompt": self.prompt}
        if self.system_prompt:
            payload["system_prompt"] = self.system_prompt
        if self.temperature:
            payload["temperature"] = self.temperature
        if self.metadata:
            payload["metadata"] = {key: _clip_metadata(value) for key, value in self.metadata.items()}
        return payload


class LLMClient:
    """Prompt-in, text-out client with bounded retries.

    Subclasses implement :meth:`_raw_invoke`; anything it raises outside the
    :class:`LLMClientError` hierarchy is treated as a transport error. Transport
    and empty-reply errors are retried up to ``max_attempts`` times before
    :class:`LLMRetryError`.
    """

    def __init__(self, model: str, *, max_attempts: int = 3, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        return self._model

    def complete(self, request: LLMRequest | str, *, logger: AttemptLogger | None = None) -> str:
        """Return the model's raw completion for ``request``."""
        if isinstance(request, str):
            request = LLMRequest(prompt=request)
        payload = request.to_payload(self._model)
        attempts = request.max_attempts or self._max_attempts
        last_error: LLMClientError | None = None

        for attempt in range(1, attempts + 1):
            completion: Optional[str] = None
            try:
                completion = self._invoke(payload)
                if not completion or not completion.strip():
                    raise LLMResponseFormatError("Model returned an empty completion.")
            except (LLMTransportError, LLMResponseFormatError) as error:
                last_error = error
                if logger:
                    logger(payload, completion, error, attempt)
                if attempt < attempts:
                    time.sleep(self._retry_delay)
                continue
            if logger:
                logger(payload, completion, None, attempt)
            return completion

        raise LLMRetryError(
            f"No completion from {payload['model']} after {attempts} attempt(s): {last_error}"
        ) from last_error

    def _invoke(self, payload: Dict[str, Any]) -> str:
        try:
            return self._raw_invoke(payload)
        except (LLMClientError, NotImplementedError):
            raise
        except Exception as error:
            raise LLMTransportError(f"{type(error).__name__}: {error}") from error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")
