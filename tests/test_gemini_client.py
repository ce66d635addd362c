from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from prototyper.models.gemini import GeminiClient
from prototyper.models.llm_client import LLMClient, LLMRequest, LLMRetryError, LLMTransportError


def _make_response_payload(*texts: str) -> str:
    response = {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"text": text} for text in texts],
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {"promptTokenCount": 10},
    }
    return json.dumps(response)


def test_gemini_client_concatenates_candidate_parts() -> None:
    calls: List[tuple[str, Dict[str, Any]]] = []

    def transport(url: str, body: Dict[str, Any]) -> str:
        calls.append((url, body))
        return _make_response_payload("### filename: a.ts ###\n", "```ts\nexport class A {}\n```")

    client = GeminiClient(transport=transport, base_url="https://example.test/v1beta/")

    text = client.complete("Build a card")

    assert text == "### filename: a.ts ###\n```ts\nexport class A {}\n```"
    url, body = calls[0]
    assert url == "https://example.test/v1beta/models/gemini-1.5-flash:generateContent"
    assert body["contents"] == [{"role": "user", "parts": [{"text": "Build a card"}]}]
    assert "generationConfig" not in body


def test_gemini_client_forwards_system_prompt_and_temperature() -> None:
    captured: Dict[str, Any] = {}

    def transport(url: str, body: Dict[str, Any]) -> str:
        captured.update(body)
        return _make_response_payload("ok")

    client = GeminiClient(transport=transport, model="gemini-pro")
    request = LLMRequest(prompt="hi", system_prompt="Be terse.", temperature=0.4)

    assert client.complete(request) == "ok"
    assert captured["systemInstruction"] == {"parts": [{"text": "Be terse."}]}
    assert captured["generationConfig"] == {"temperature": 0.4}


def test_gemini_client_retries_empty_candidates_then_fails() -> None:
    attempts: List[int] = []

    def transport(url: str, body: Dict[str, Any]) -> str:
        attempts.append(1)
        return json.dumps({"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}})

    client = GeminiClient(transport=transport, max_attempts=2, retry_delay=0.0)

    with pytest.raises(LLMRetryError):
        client.complete("prompt")
    assert len(attempts) == 2


def test_gemini_client_recovers_after_transport_error() -> None:
    responses: List[str | Exception] = [LLMTransportError("HTTP 503: overloaded"), _make_response_payload("done")]

    def transport(url: str, body: Dict[str, Any]) -> str:
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    client = GeminiClient(transport=transport, max_attempts=3, retry_delay=0.0)

    assert client.complete("prompt") == "done"
    assert responses == []


def test_gemini_client_wraps_unexpected_transport_errors() -> None:
    def transport(url: str, body: Dict[str, Any]) -> str:
        raise ConnectionResetError("peer reset")

    client = GeminiClient(transport=transport, max_attempts=1)

    with pytest.raises(LLMRetryError) as excinfo:
        client.complete("prompt")
    assert isinstance(excinfo.value.__cause__, LLMTransportError)


def test_gemini_client_requires_api_key_for_default_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ValueError):
        GeminiClient()


def test_gemini_client_reads_key_from_environment_per_instance(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    from_env = GeminiClient()
    explicit = GeminiClient(api_key="explicit-key")

    assert from_env._api_key == "env-key"
    assert explicit._api_key == "explicit-key"


class _FlakyClient(LLMClient):
    def __init__(self, outcomes: List[Any]) -> None:
        super().__init__("flaky", max_attempts=2, retry_delay=0.0)
        self._outcomes = list(outcomes)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_client_treats_foreign_exceptions_as_transport_errors() -> None:
    seen: List[Any] = []
    client = _FlakyClient([ConnectionError("reset by peer"), "export class X {}"])

    completion = client.complete("prompt", logger=lambda payload, text, error, attempt: seen.append(error))

    assert completion == "export class X {}"
    assert isinstance(seen[0], LLMTransportError)
    assert isinstance(seen[0].__cause__, ConnectionError)
    assert seen[1] is None


def test_client_wraps_repeated_foreign_exceptions_in_retry_error() -> None:
    client = _FlakyClient([OSError("down"), OSError("still down")])

    with pytest.raises(LLMRetryError) as excinfo:
        client.complete("prompt")

    assert isinstance(excinfo.value.__cause__, LLMTransportError)
    assert "OSError: still down" in str(excinfo.value)
