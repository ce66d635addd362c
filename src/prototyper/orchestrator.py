"""Linear pipeline that turns one model response into staged, wired artifacts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .models.llm_client import LLMClient, LLMClientError, LLMRequest
from .prompts import DEFAULT_CSS_FRAMEWORK, render_prompt
from .structured import ArtifactKind, ParsedArtifact
from .tools.module_locator import LocatorOptions, ManifestError, ProjectLayout, resolve_layout
from .tools.patch import (
    PatchError,
    PatchGrammarMismatch,
    PatchRequest,
    PatchResult,
    insertion_kind_for,
    patch_host_file,
    relative_import_path,
)
from .tools.response_parser import ParseEmptyError, parse_response
from .tools.staging import ProjectTree, StagedArtifact, StagedFile, StagingError, stage_artifacts
from .utils.naming import DEFAULT_SELECTOR_PREFIX, declared_class_name, symbol_name, usage_tag

LOGGER = logging.getLogger(__name__)


class IntegrationState(str, Enum):
    START = "start"
    GENERATED = "generated"
    PARSED = "parsed"
    STAGED = "staged"
    LOCATED = "located"
    PATCHED = "patched"
    DONE = "done"
    FAILED = "failed"


class IssueCode(str, Enum):
    """Non-fatal conditions reported alongside a partially successful run."""

    ARTIFACT_WRITE_FAILED = "artifact_write_failed"
    INTEGRATION_TARGET_MISSING = "integration_target_missing"
    PATCH_GRAMMAR_MISMATCH = "patch_grammar_mismatch"
    PRIMARY_UNAVAILABLE = "primary_unavailable"


@dataclass(slots=True)
class IntegrationIssue:
    code: IssueCode
    message: str
    path: str | None = None


@dataclass(slots=True)
class IntegrationOptions:
    """Caller inputs for one generate-and-integrate operation."""

    name: str = ""
    prompt: str = ""
    module: str | None = None
    skip_import: bool = False
    project: str | None = None
    source_root: str | None = None
    usage_marker: bool = False
    selector_prefix: str = DEFAULT_SELECTOR_PREFIX
    css_framework: str = DEFAULT_CSS_FRAMEWORK

    def locator_options(self) -> LocatorOptions:
        return LocatorOptions(
            module=self.module,
            skip_import=self.skip_import,
            project=self.project,
            source_root=self.source_root,
        )


@dataclass(slots=True)
class IntegrationResult:
    """Per-operation summary: what was written, and whether wiring happened."""

    state: IntegrationState = IntegrationState.START
    visited: list[IntegrationState] = field(default_factory=lambda: [IntegrationState.START])
    artifacts: list[ParsedArtifact] = field(default_factory=list)
    staged: list[StagedArtifact] = field(default_factory=list)
    layout: ProjectLayout | None = None
    primary: StagedArtifact | None = None
    host_path: str | None = None
    patch: PatchResult | None = None
    usage_marker_path: str | None = None
    warnings: list[IntegrationIssue] = field(default_factory=list)
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is not IntegrationState.FAILED

    @property
    def staged_files(self) -> list[StagedFile]:
        return [item for artifact in self.staged for item in artifact.files]

    @property
    def written_files(self) -> list[StagedFile]:
        return [item for item in self.staged_files if item.ok]

    @property
    def unwired(self) -> list[StagedArtifact]:
        """Staged artifacts of other components, left for manual wiring."""
        primary_id = self.primary.artifact.id if self.primary is not None else None
        return [item for item in self.staged if item.ok and item.artifact.id != primary_id]

    @property
    def integrated(self) -> bool:
        return self.state is IntegrationState.DONE and IntegrationState.PATCHED in self.visited


class IntegrationOrchestrator:
    """Drive generation, parsing, staging and host patching for one project root.

    The client is owned by the instance; nothing is shared at module level.
    ``client`` may be omitted when only :meth:`run_response` is used.
    """

    def __init__(self, *, root: Path | str, client: LLMClient | None = None) -> None:
        self._client = client
        self._tree = ProjectTree(root)

    @property
    def root(self) -> Path:
        return self._tree.root

    def run(self, options: IntegrationOptions) -> IntegrationResult:
        """Render the prompt, call the model and integrate its response."""
        result = IntegrationResult()
        if self._client is None:
            return self._fail(result, "No generation client configured.")

        prompt = render_prompt(options.name, options.prompt, css_framework=options.css_framework)
        request = LLMRequest(prompt=prompt, metadata={"component": options.name})
        LOGGER.info("Sending prompt for %s to %s", options.name, self._client.model)
        try:
            raw = self._client.complete(request)
        except LLMClientError as error:
            return self._fail(result, f"Generation failed: {error}")
        LOGGER.info("Response received for %s", options.name)
        self._advance(result, IntegrationState.GENERATED)
        return self._integrate(raw, options, result)

    def run_response(self, raw: str, options: IntegrationOptions | None = None) -> IntegrationResult:
        """Integrate an already generated response without calling the model."""
        result = IntegrationResult()
        self._advance(result, IntegrationState.GENERATED)
        return self._integrate(raw, options or IntegrationOptions(), result)

    def _integrate(self, raw: str, options: IntegrationOptions, result: IntegrationResult) -> IntegrationResult:
        try:
            result.artifacts = parse_response(raw)
        except ParseEmptyError as error:
            return self._fail(result, str(error))
        self._advance(result, IntegrationState.PARSED)

        # Manifest problems must surface before anything is written.
        try:
            layout = resolve_layout(self._tree.root, options.locator_options())
        except ManifestError as error:
            return self._fail(result, str(error))
        result.layout = layout

        result.staged = stage_artifacts(self._tree, result.artifacts, source_root=layout.source_root)
        for item in result.staged_files:
            if not item.ok:
                self._warn(result, IssueCode.ARTIFACT_WRITE_FAILED, item.error or "write failed", item.path)
        self._advance(result, IntegrationState.STAGED)

        result.primary = next((item for item in result.staged if item.ok), None)
        result.host_path = layout.integration_target
        self._advance(result, IntegrationState.LOCATED)

        if result.host_path is None:
            self._warn(
                result,
                IssueCode.INTEGRATION_TARGET_MISSING,
                "No host module or root component found; import the new artifacts manually.",
            )
            return self._advance(result, IntegrationState.DONE)

        primary = result.primary
        script_source = self._script_of(result.staged, primary) if primary is not None else None
        if primary is None or script_source is None:
            self._warn(
                result,
                IssueCode.PRIMARY_UNAVAILABLE,
                "No fully staged artifact with a script file; skipping integration.",
                result.host_path,
            )
            return self._advance(result, IntegrationState.DONE)

        if not self._tree.exists(result.host_path):
            self._warn(
                result,
                IssueCode.INTEGRATION_TARGET_MISSING,
                f"Host file {result.host_path} does not exist or is not a file.",
                result.host_path,
            )
            return self._advance(result, IntegrationState.DONE)

        script_path, script = script_source
        request = PatchRequest(
            target_file=result.host_path,
            symbol_name=declared_class_name(script) or symbol_name(primary.artifact.source_path),
            import_path=relative_import_path(result.host_path, script_path),
            insertion_kind=insertion_kind_for(script),
        )
        try:
            result.patch = patch_host_file(self._tree, request)
        except PatchGrammarMismatch as error:
            self._warn(result, IssueCode.PATCH_GRAMMAR_MISMATCH, str(error), result.host_path)
            return self._advance(result, IntegrationState.DONE)
        except PatchError as error:
            self._warn(result, IssueCode.INTEGRATION_TARGET_MISSING, str(error), result.host_path)
            return self._advance(result, IntegrationState.DONE)
        except StagingError as error:
            self._warn(result, IssueCode.ARTIFACT_WRITE_FAILED, str(error), result.host_path)
            return self._advance(result, IntegrationState.DONE)
        LOGGER.info(
            "Registered %s in %s (%s)",
            request.symbol_name,
            request.target_file,
            request.insertion_kind.array_property,
        )
        self._advance(result, IntegrationState.PATCHED)

        if options.usage_marker:
            self._append_usage_marker(result, layout, primary, options.selector_prefix)
        return self._advance(result, IntegrationState.DONE)

    @staticmethod
    def _script_of(staged: list[StagedArtifact], primary: StagedArtifact) -> tuple[str, str] | None:
        """Return the staged script of the primary component.

        A response may split one component over several markers (one per file),
        so sibling artifacts sharing the primary's id are consulted after it.
        """
        candidates = [primary] + [
            item for item in staged if item is not primary and item.ok and item.artifact.id == primary.artifact.id
        ]
        for item in candidates:
            path = item.path_for(ArtifactKind.SCRIPT)
            if path is not None:
                return path, item.artifact.script or ""
        return None

    def _append_usage_marker(
        self,
        result: IntegrationResult,
        layout: ProjectLayout,
        primary: StagedArtifact,
        prefix: str,
    ) -> None:
        template_path = layout.root_template_path
        if not self._tree.exists(template_path):
            LOGGER.debug("No root template at %s; skipping usage marker", template_path)
            return
        tag = usage_tag(primary.artifact.source_path, prefix=prefix)
        try:
            content = self._tree.read(template_path)
        except StagingError as error:
            self._warn(result, IssueCode.INTEGRATION_TARGET_MISSING, str(error), template_path)
            return
        if re.search(rf"<{re.escape(tag)}[\s>/]", content):
            LOGGER.debug("%s already places <%s>", template_path, tag)
            return
        separator = "" if not content or content.endswith("\n") else "\n"
        try:
            self._tree.write(template_path, f"{content}{separator}<{tag}></{tag}>\n")
        except StagingError as error:
            self._warn(result, IssueCode.ARTIFACT_WRITE_FAILED, str(error), template_path)
            return
        result.usage_marker_path = template_path

    @staticmethod
    def _advance(result: IntegrationResult, state: IntegrationState) -> IntegrationResult:
        result.state = state
        result.visited.append(state)
        return result

    def _fail(self, result: IntegrationResult, reason: str) -> IntegrationResult:
        LOGGER.error("Integration failed after %s: %s", result.state.value, reason)
        result.failure_reason = reason
        return self._advance(result, IntegrationState.FAILED)

    @staticmethod
    def _warn(result: IntegrationResult, code: IssueCode, message: str, path: str | None = None) -> None:
        LOGGER.warning("%s: %s", code.value, message)
        result.warnings.append(IntegrationIssue(code=code, message=message, path=path))


__all__ = [
    "IntegrationIssue",
    "IntegrationOptions",
    "IntegrationOrchestrator",
    "IntegrationResult",
    "IntegrationState",
    "IssueCode",
]
