"""Convenience exports for prototyper LLM client implementations."""

from .gemini import DEFAULT_GEMINI_MODEL, GeminiClient
from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)

__all__ = [
    "DEFAULT_GEMINI_MODEL",
    "GeminiClient",
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]
