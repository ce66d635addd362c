"""Scanner that splits freeform model output into typed source artifacts.

The wire format is a sequence of blocks, each introduced by a marker line and
carrying one or more fenced segments::

    ### filename: widget/widget.component ###
    ```typescript
    export class WidgetComponent {}
    ```

Model output is unreliable, so the scanner walks the text once, line by line,
with two states (outside a fence, inside a fence) instead of matching the whole
response against one pattern.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterator, Pattern

from ..structured import ArtifactKind, ParsedArtifact, path_extension

LOGGER = logging.getLogger(__name__)

FENCE = "```"

_MARKER_RE: Pattern[str] = re.compile(r"^\s*###\s*filename\s*:\s*(?P<rest>.*)$", re.IGNORECASE)
_TAG_RE: Pattern[str] = re.compile(r"[A-Za-z0-9_+#.-]*")
_PATH_TRIM = "#`*\"' \t"

LANGUAGE_TAGS: dict[str, ArtifactKind] = {
    "typescript": ArtifactKind.SCRIPT,
    "ts": ArtifactKind.SCRIPT,
    "html": ArtifactKind.MARKUP,
    "scss": ArtifactKind.STYLE,
    "css": ArtifactKind.STYLE,
}
# Longest first so "typescript" wins over "ts" when a tag is glued to content.
_TAGS_BY_LENGTH = sorted(LANGUAGE_TAGS, key=len, reverse=True)


class ParseEmptyError(RuntimeError):
    """Raised when a response contains no usable artifact."""


@dataclass(slots=True)
class _Segment:
    kind: ArtifactKind | None
    lines: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _Block:
    path: str
    segments: dict[ArtifactKind, str] = field(default_factory=dict)


def marker_path(line: str) -> str | None:
    """Return the artifact path announced by ``line`` or ``None`` for other lines."""
    match = _MARKER_RE.match(line)
    if match is None:
        return None
    return match.group("rest").strip().strip(_PATH_TRIM).strip()


def normalise_artifact_path(raw: str) -> str | None:
    """Normalise a model-supplied path into a clean, root-relative posix path."""
    candidate = raw.strip().replace("\\", "/").lstrip("/")
    if not candidate:
        return None
    normalised = posixpath.normpath(candidate)
    if normalised in {".", ""} or normalised == ".." or normalised.startswith("../"):
        return None
    return normalised


def resolve_language_tag(text: str) -> tuple[ArtifactKind | None, str, str]:
    """Split the text after an opening fence into ``(kind, tag, remainder)``.

    The tag may be glued to content (``html<div>``), in which case the longest
    recognised prefix wins.
    """
    match = _TAG_RE.match(text)
    tag = match.group(0) if match else ""
    kind = LANGUAGE_TAGS.get(tag.lower())
    if kind is not None:
        return kind, tag, text[len(tag):]

    lowered = text.lower()
    for known in _TAGS_BY_LENGTH:
        if lowered.startswith(known) and not text[len(known) : len(known) + 1].isalnum():
            return LANGUAGE_TAGS[known], text[: len(known)], text[len(known):]
    return None, tag, text[len(tag):]


def _clean_segment(lines: list[str]) -> str:
    while lines and not lines[0].strip():
        lines.pop(0)
    return "\n".join(lines).rstrip()


def _scan_blocks(text: str) -> Iterator[_Block]:
    """Yield marker-delimited blocks with their recognised fenced segments."""
    block: _Block | None = None
    segment: _Segment | None = None

    def close_segment() -> None:
        nonlocal segment
        if segment is not None and block is not None and segment.kind is not None:
            block.segments[segment.kind] = _clean_segment(segment.lines)
        segment = None

    for line in text.splitlines():
        path = marker_path(line)
        if path is not None:
            if segment is not None:
                LOGGER.debug("Closing unterminated fence before marker for %s", path)
            close_segment()
            if block is not None:
                yield block
            block = _Block(path=path)
            continue

        if block is None:
            continue

        if segment is None:
            stripped = line.lstrip()
            if not stripped.startswith(FENCE):
                continue
            opener = stripped[len(FENCE):]
            kind, tag, remainder = resolve_language_tag(opener)
            if kind is None and not tag:
                kind = ArtifactKind.from_extension(path_extension(block.path))
            segment = _Segment(kind=kind)
            line = remainder[1:] if remainder[:1] == " " else remainder
            if not line.strip():
                continue

        close_at = line.find(FENCE)
        if close_at == -1:
            segment.lines.append(line)
            continue
        segment.lines.append(line[:close_at])
        close_segment()

    if segment is not None:
        LOGGER.debug("Keeping unterminated fence at end of response for %s", block.path if block else "?")
    close_segment()
    if block is not None:
        yield block


def iter_artifacts(text: str) -> Iterator[ParsedArtifact]:
    """Yield artifacts in response order; blocks without recognised fences are dropped."""
    merged: dict[str, dict[ArtifactKind, str]] = {}
    order: list[str] = []
    for block in _scan_blocks(text or ""):
        path = normalise_artifact_path(block.path)
        if path is None:
            LOGGER.warning("Ignoring block with unusable path %r", block.path)
            continue
        if not block.segments:
            LOGGER.info("Dropping block %s: no recognised fenced segment", path)
            continue
        if path in merged:
            LOGGER.info("Merging repeated block for %s", path)
            merged[path].update(block.segments)
            continue
        merged[path] = dict(block.segments)
        order.append(path)

    for path in order:
        yield ParsedArtifact(source_path=path, contents=merged[path])


def parse_response(text: str) -> list[ParsedArtifact]:
    """Parse ``text`` into artifacts, raising :class:`ParseEmptyError` when none survive."""
    artifacts = list(iter_artifacts(text))
    if not artifacts:
        raise ParseEmptyError("Model response did not contain any recognised fenced code block.")
    return artifacts


__all__ = [
    "FENCE",
    "LANGUAGE_TAGS",
    "ParseEmptyError",
    "iter_artifacts",
    "marker_path",
    "normalise_artifact_path",
    "parse_response",
    "resolve_language_tag",
]
