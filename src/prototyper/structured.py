"""Typed payloads describing artifacts extracted from model output."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .utils.naming import artifact_id


class ArtifactKind(str, Enum):
    """Semantic kind of a fenced segment."""

    SCRIPT = "script"
    MARKUP = "markup"
    STYLE = "style"

    @property
    def extension(self) -> str:
        """Default file extension written for this kind."""
        return _DEFAULT_EXTENSIONS[self]

    @property
    def accepted_extensions(self) -> tuple[str, ...]:
        """File extensions that already identify this kind."""
        return _ACCEPTED_EXTENSIONS[self]

    @classmethod
    def from_extension(cls, extension: str) -> "ArtifactKind | None":
        cleaned = extension.lower().lstrip(".")
        for kind, accepted in _ACCEPTED_EXTENSIONS.items():
            if cleaned in accepted:
                return kind
        return None


_DEFAULT_EXTENSIONS: dict[ArtifactKind, str] = {
    ArtifactKind.SCRIPT: "ts",
    ArtifactKind.MARKUP: "html",
    ArtifactKind.STYLE: "scss",
}

_ACCEPTED_EXTENSIONS: dict[ArtifactKind, tuple[str, ...]] = {
    ArtifactKind.SCRIPT: ("ts",),
    ArtifactKind.MARKUP: ("html",),
    ArtifactKind.STYLE: ("scss", "css"),
}

# Stable write order: script first so the primary class exists before its template.
KIND_ORDER: tuple[ArtifactKind, ...] = (ArtifactKind.SCRIPT, ArtifactKind.MARKUP, ArtifactKind.STYLE)


def path_extension(path: str) -> str:
    """Return the lower-cased extension of the last path segment, without the dot."""
    _, extension = posixpath.splitext(path)
    return extension.lstrip(".").lower()


@dataclass(frozen=True, slots=True)
class ParsedArtifact:
    """One generated source artifact and its contents keyed by kind."""

    source_path: str
    contents: Mapping[ArtifactKind, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ordered = {kind: self.contents[kind] for kind in KIND_ORDER if kind in self.contents}
        object.__setattr__(self, "contents", MappingProxyType(ordered))

    @property
    def id(self) -> str:
        return artifact_id(self.source_path)

    @property
    def kinds(self) -> tuple[ArtifactKind, ...]:
        return tuple(self.contents)

    @property
    def script(self) -> str | None:
        return self.contents.get(ArtifactKind.SCRIPT)

    def file_path(self, kind: ArtifactKind) -> str:
        """Return the relative file path that holds the ``kind`` contents."""
        extension = path_extension(self.source_path)
        if extension in kind.accepted_extensions:
            return self.source_path
        stem = self.source_path
        if ArtifactKind.from_extension(extension) is not None:
            stem = self.source_path[: -(len(extension) + 1)]
        return f"{stem}.{kind.extension}"

    def files(self) -> list[tuple[str, ArtifactKind, str]]:
        """Return ``(path, kind, content)`` triples in write order."""
        return [(self.file_path(kind), kind, content) for kind, content in self.contents.items()]


__all__ = ["KIND_ORDER", "ArtifactKind", "ParsedArtifact", "path_extension"]
