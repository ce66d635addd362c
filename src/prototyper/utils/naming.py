"""Utilities for deriving identifiers and symbol names from artifact paths."""

from __future__ import annotations

import re
from typing import Pattern

_CAMEL_BOUNDARY: Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY: Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_ALNUM: Pattern[str] = re.compile(r"[^A-Za-z0-9]+")
_EXPORTED_CLASS: Pattern[str] = re.compile(r"\bexport\s+(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)")

DEFAULT_SYMBOL_SUFFIX = "Component"
DEFAULT_SELECTOR_PREFIX = "app"


def base_name(path: str) -> str:
    """Return the final segment of ``path`` up to its first dot."""
    segment = path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    return segment.split(".", 1)[0]


def dasherize(value: str) -> str:
    """Convert ``value`` into a lower-kebab identifier."""
    return "-".join(segment.lower() for segment in _segments(value))


def classify(value: str) -> str:
    """Convert ``value`` into a PascalCase symbol name."""
    return "".join(segment[:1].upper() + segment[1:].lower() for segment in _segments(value))


def artifact_id(path: str) -> str:
    """Return the canonical identifier for the artifact stored at ``path``."""
    return dasherize(base_name(path))


def symbol_name(path: str, *, suffix: str = DEFAULT_SYMBOL_SUFFIX) -> str:
    """Return the class name conventionally exported by the artifact at ``path``."""
    return f"{classify(base_name(path))}{suffix}"


def usage_tag(path: str, *, prefix: str = DEFAULT_SELECTOR_PREFIX) -> str:
    """Return the element tag used to place the artifact in a template."""
    identifier = artifact_id(path)
    cleaned_prefix = dasherize(prefix)
    if not cleaned_prefix:
        return identifier
    return f"{cleaned_prefix}-{identifier}"


def declared_class_name(script: str | None) -> str | None:
    """Return the first exported class declared in ``script``, if any."""
    if not script:
        return None
    match = _EXPORTED_CLASS.search(script)
    if match is None:
        return None
    return match.group(1)


def _segments(value: str) -> list[str]:
    spaced = _ACRONYM_BOUNDARY.sub(r"\1-\2", value or "")
    spaced = _CAMEL_BOUNDARY.sub(r"\1-\2", spaced)
    return [segment for segment in _NON_ALNUM.split(spaced) if segment]


__all__ = [
    "DEFAULT_SELECTOR_PREFIX",
    "DEFAULT_SYMBOL_SUFFIX",
    "artifact_id",
    "base_name",
    "classify",
    "dasherize",
    "declared_class_name",
    "symbol_name",
    "usage_tag",
]
