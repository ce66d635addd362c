"""Write generated artifacts into a project tree (create or overwrite)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable

from ..structured import ArtifactKind, ParsedArtifact

LOGGER = logging.getLogger(__name__)


class StagingError(RuntimeError):
    """Raised when a single file cannot be read from or written into the project tree."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass(slots=True)
class StagedFile:
    """File written (or attempted) for one artifact kind."""

    path: str
    kind: ArtifactKind
    created: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class StagedArtifact:
    """Outcome of staging every file of one artifact."""

    artifact: ParsedArtifact
    files: list[StagedFile] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.files) and all(item.ok for item in self.files)

    def path_for(self, kind: ArtifactKind) -> str | None:
        for item in self.files:
            if item.kind is kind:
                return item.path
        return None


class ProjectTree:
    """Project file tree rooted at ``root``; all paths are root-relative posix strings."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def resolve(self, relative: str) -> Path:
        """Map ``relative`` onto the filesystem, refusing paths that leave the root."""
        candidate = PurePosixPath(relative.replace("\\", "/"))
        if candidate.is_absolute() or not candidate.parts:
            raise StagingError(f"Refusing non-relative path {relative!r}", path=relative)
        target = (self.root / Path(*candidate.parts)).resolve()
        if target != self.root and self.root not in target.parents:
            raise StagingError(f"Path {relative!r} escapes the project root", path=relative)
        return target

    def exists(self, relative: str) -> bool:
        try:
            return self.resolve(relative).is_file()
        except StagingError:
            return False

    def read(self, relative: str) -> str:
        """Return the UTF-8 text of ``relative`` verbatim; unreadable files raise ``StagingError``."""
        target = self.resolve(relative)
        try:
            with target.open("r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as error:
            raise StagingError(f"Failed to read {relative}: {error}", path=relative) from error

    def write(self, relative: str, content: str) -> bool:
        """Write ``content`` verbatim, returning ``True`` when the file was created."""
        target = self.resolve(relative)
        created = not target.exists()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("w", encoding="utf-8", newline="") as handle:
                handle.write(content)
        except OSError as error:
            raise StagingError(f"Failed to write {relative}: {error}", path=relative) from error
        return created


def staging_path(file_path: str, *, source_root: str) -> str:
    """Return the root-relative destination for an artifact file under ``<source_root>/app``."""
    root_prefix = source_root.strip("/")
    if root_prefix and (file_path == root_prefix or file_path.startswith(f"{root_prefix}/")):
        return file_path
    parts = [part for part in (root_prefix, "app", file_path) if part]
    return "/".join(parts)


def stage_artifact(tree: ProjectTree, artifact: ParsedArtifact, *, source_root: str) -> StagedArtifact:
    """Write every file of ``artifact``; failures are recorded, never raised."""
    staged = StagedArtifact(artifact=artifact)
    for file_path, kind, content in artifact.files():
        destination = staging_path(file_path, source_root=source_root)
        try:
            created = tree.write(destination, content)
        except StagingError as error:
            LOGGER.warning("Could not stage %s: %s", destination, error)
            staged.files.append(StagedFile(path=destination, kind=kind, error=str(error)))
            continue
        LOGGER.info("%s %s", "Created" if created else "Overwrote", destination)
        staged.files.append(StagedFile(path=destination, kind=kind, created=created))
    return staged


def stage_artifacts(
    tree: ProjectTree,
    artifacts: Iterable[ParsedArtifact],
    *,
    source_root: str,
) -> list[StagedArtifact]:
    """Stage artifacts in order; a failed file never blocks the files after it."""
    return [stage_artifact(tree, artifact, source_root=source_root) for artifact in artifacts]


__all__ = [
    "ProjectTree",
    "StagedArtifact",
    "StagedFile",
    "StagingError",
    "stage_artifact",
    "stage_artifacts",
    "staging_path",
]
