"""Parsing, staging, locating and patching tools used by the integration pipeline."""

from .module_locator import (
    LocatorOptions,
    ManifestError,
    ManifestNotFoundError,
    ManifestUnreadableError,
    ProjectLayout,
    ProjectNotFoundError,
    find_module,
    resolve_layout,
)
from .patch import (
    InsertionEdit,
    InsertionKind,
    PatchError,
    PatchGrammarMismatch,
    PatchRequest,
    PatchResult,
    patch_host_file,
    patch_source,
)
from .response_parser import ParseEmptyError, iter_artifacts, parse_response
from .staging import ProjectTree, StagedArtifact, StagedFile, StagingError, stage_artifacts

__all__ = [
    "InsertionEdit",
    "InsertionKind",
    "LocatorOptions",
    "ManifestError",
    "ManifestNotFoundError",
    "ManifestUnreadableError",
    "ParseEmptyError",
    "PatchError",
    "PatchGrammarMismatch",
    "PatchRequest",
    "PatchResult",
    "ProjectLayout",
    "ProjectNotFoundError",
    "ProjectTree",
    "StagedArtifact",
    "StagedFile",
    "StagingError",
    "find_module",
    "iter_artifacts",
    "parse_response",
    "patch_host_file",
    "patch_source",
    "resolve_layout",
    "stage_artifacts",
]
