"""Locate the host file that should reference newly generated artifacts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .staging import ProjectTree, StagingError

LOGGER = logging.getLogger(__name__)

MANIFEST_PATH = "angular.json"
DEFAULT_SOURCE_ROOT = "src"
HOST_MODULE_FILE = "app.module.ts"
ROOT_COMPONENT_FILE = "app.component.ts"
ROOT_TEMPLATE_FILE = "app.component.html"


class ManifestError(RuntimeError):
    """Base class for fatal workspace manifest problems."""


class ManifestNotFoundError(ManifestError):
    """Raised when the workspace manifest does not exist."""


class ManifestUnreadableError(ManifestError):
    """Raised when the workspace manifest cannot be read or decoded."""


class ProjectNotFoundError(ManifestError):
    """Raised when the requested project is absent from the manifest."""


class ProjectEntry(BaseModel):
    """Single project declared by the workspace manifest."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_root: Optional[str] = Field(default=None, alias="sourceRoot")


class WorkspaceManifest(BaseModel):
    """Subset of the workspace manifest consulted when locating host files."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    default_project: Optional[str] = Field(default=None, alias="defaultProject")
    projects: Dict[str, ProjectEntry] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LocatorOptions:
    """Caller-supplied hints for host resolution."""

    module: str | None = None
    skip_import: bool = False
    project: str | None = None
    source_root: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectLayout:
    """Resolved layout of the target project for one operation."""

    root: Path
    source_root: str
    host_module_path: str | None = None
    host_root_component_path: str | None = None
    integration_target: str | None = None

    @property
    def app_dir(self) -> str:
        return "/".join(part for part in (self.source_root, "app") if part)

    @property
    def root_template_path(self) -> str:
        return f"{self.app_dir}/{ROOT_TEMPLATE_FILE}"


def load_manifest(tree: ProjectTree) -> WorkspaceManifest:
    """Read and validate the workspace manifest at the project root."""
    if not tree.exists(MANIFEST_PATH):
        raise ManifestNotFoundError(
            f'Could not find "{MANIFEST_PATH}". Run inside a workspace that contains one.'
        )
    try:
        raw = tree.read(MANIFEST_PATH)
    except StagingError as error:
        raise ManifestUnreadableError(f"Could not read {MANIFEST_PATH}: {error}") from error
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ManifestUnreadableError(f"{MANIFEST_PATH} is not valid JSON: {error}") from error
    if not isinstance(data, dict):
        raise ManifestUnreadableError(f"{MANIFEST_PATH} must contain a JSON object.")
    try:
        return WorkspaceManifest.model_validate(data)
    except ValidationError as error:
        raise ManifestUnreadableError(f"{MANIFEST_PATH} has an unexpected shape: {error}") from error


def _normalise_source_root(value: str | None) -> str:
    candidate = (value or "").strip().replace("\\", "/").strip("/")
    return candidate or DEFAULT_SOURCE_ROOT


def source_root_of(host_path: str) -> str | None:
    """Return the source root a host file lives under (the prefix before its ``app`` directory)."""
    normalised = host_path.replace("\\", "/").strip("/")
    marker = normalised.find("/app/")
    if marker <= 0:
        return None
    return normalised[:marker]


def resolve_layout(root: Path | str, options: LocatorOptions | None = None) -> ProjectLayout:
    """Resolve the project layout and the single integration target, if any."""
    opts = options or LocatorOptions()
    tree = ProjectTree(root)

    if opts.module:
        target = opts.module.replace("\\", "/").lstrip("/")
        LOGGER.debug("Using caller-supplied integration target %s", target)
        return ProjectLayout(
            root=tree.root,
            source_root=_normalise_source_root(opts.source_root or source_root_of(target)),
            integration_target=target,
        )
    if opts.skip_import:
        LOGGER.debug("Integration disabled by caller")
        return ProjectLayout(root=tree.root, source_root=_normalise_source_root(opts.source_root))

    manifest = load_manifest(tree)
    project_name = opts.project or manifest.default_project
    entry = manifest.projects.get(project_name) if project_name else None
    if entry is None:
        raise ProjectNotFoundError(f'Could not find project "{project_name}" in {MANIFEST_PATH}.')

    source_root = _normalise_source_root(entry.source_root)
    app_dir = f"{source_root}/app"
    module_path = f"{app_dir}/{HOST_MODULE_FILE}"
    component_path = f"{app_dir}/{ROOT_COMPONENT_FILE}"
    host_module = module_path if tree.exists(module_path) else None
    root_component = component_path if tree.exists(component_path) else None

    return ProjectLayout(
        root=tree.root,
        source_root=source_root,
        host_module_path=host_module,
        host_root_component_path=root_component,
        integration_target=host_module or root_component,
    )


def find_module(root: Path | str, options: LocatorOptions | None = None) -> str | None:
    """Return the host file path that should reference new artifacts, or ``None``."""
    return resolve_layout(root, options).integration_target


__all__ = [
    "DEFAULT_SOURCE_ROOT",
    "HOST_MODULE_FILE",
    "MANIFEST_PATH",
    "ROOT_COMPONENT_FILE",
    "ROOT_TEMPLATE_FILE",
    "LocatorOptions",
    "ManifestError",
    "ManifestNotFoundError",
    "ManifestUnreadableError",
    "ProjectEntry",
    "ProjectLayout",
    "ProjectNotFoundError",
    "WorkspaceManifest",
    "find_module",
    "load_manifest",
    "resolve_layout",
    "source_root_of",
]
