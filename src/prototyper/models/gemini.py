"""Gemini client that speaks the ``generateContent`` REST API."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Optional

from .llm_client import LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["DEFAULT_GEMINI_MODEL", "GeminiClient"]

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"

Transport = Callable[[str, Dict[str, Any]], str]


class GeminiClient(LLMClient):
    """Thin adapter around the Gemini ``models/{model}:generateContent`` endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model: str = DEFAULT_GEMINI_MODEL,
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.getenv("GEMINI_API_KEY")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    def endpoint(self, model: str) -> str:
        return f"{self._base_url}/models/{model}:generateContent"

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        model = payload.get("model") or self.model
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": payload["prompt"]}]}],
        }
        system_prompt = payload.get("system_prompt")
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if "temperature" in payload:
            body["generationConfig"] = {"temperature": payload["temperature"]}

        try:
            raw_response = self._transport(self.endpoint(model), body)
        except LLMTransportError:
            raise
        except Exception as error:
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        text = self._extract_text(raw_response)
        if text is None:
            raise LLMResponseFormatError("Gemini response did not contain any candidate text.")
        return text

    def _http_transport(self, url: str, body: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the Gemini REST API."""
        import urllib.error
        import urllib.request

        data = json.dumps(body).encode("utf-8")
        request = urllib.request.Request(
            url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": str(self._api_key),
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Gemini response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach Gemini endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_text(raw_response: str) -> Optional[str]:
        """Concatenate the text parts of the first candidate."""
        if not raw_response:
            return None
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list):
            return None
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            content = candidate.get("content")
            parts = content.get("parts") if isinstance(content, dict) else None
            if not isinstance(parts, list):
                continue
            texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
            joined = "".join(texts)
            if joined.strip():
                return joined
        return None
