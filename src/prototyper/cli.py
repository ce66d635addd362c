"""CLI commands for generating components and wiring them into a workspace."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, ConfigError, PrototyperConfig, load_config
from .models import GeminiClient, LLMClient
from .orchestrator import (
    IntegrationOptions,
    IntegrationOrchestrator,
    IntegrationResult,
    IntegrationState,
)
from .tools.response_parser import ParseEmptyError, parse_response
from .utils.naming import classify, dasherize

APP_HELP = "Generate components with a language model and wire them into an Angular workspace."

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


def _load_config(config_path: Path) -> PrototyperConfig:
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _read_response(response_file: Path) -> str:
    try:
        return response_file.read_text(encoding="utf-8")
    except OSError as error:
        typer.echo(f"Failed to read response file {response_file}: {error}")
        raise typer.Exit(code=1) from error


def _build_client(config: PrototyperConfig, *, use_remote: bool) -> LLMClient:
    """Select either the Gemini client or the offline stub."""
    models_cfg = config.models
    model_name = models_cfg.default
    offline_model = model_name.lower() == "offline" or model_name.lower().endswith("-offline")

    if use_remote and not offline_model:
        typer.echo(f"Using Gemini client ({model_name}).")
        client_kwargs: Dict[str, Any] = {
            "timeout": models_cfg.timeout,
            "max_attempts": models_cfg.max_attempts,
            "retry_delay": models_cfg.retry_delay,
        }
        if models_cfg.base_url and models_cfg.base_url.strip():
            client_kwargs["base_url"] = models_cfg.base_url.strip()
        if models_cfg.api_key and models_cfg.api_key.strip():
            client_kwargs["api_key"] = models_cfg.api_key.strip()
        try:
            return GeminiClient(model=model_name, **client_kwargs)
        except ValueError as error:
            message = str(error)
            if "api key" in message.lower():
                typer.echo(
                    "No API key given. Set GEMINI_API_KEY or models.api_key, "
                    "or re-run with --no-use-remote to use the offline stub."
                )
            else:
                typer.echo(f"Failed to initialise Gemini client: {error}")
            raise typer.Exit(code=1)

    if use_remote and offline_model:
        typer.echo(f"Model '{model_name}' is offline-only; using offline stub client.")
    else:
        typer.echo("Using offline stub client.")
    return _OfflineLLMClient()


def _build_options(
    config: PrototyperConfig,
    *,
    name: str = "",
    prompt: str = "",
    project: Optional[str],
    module: Optional[str],
    skip_import: bool,
    source_root: Optional[str] = None,
    usage_marker: Optional[bool],
) -> IntegrationOptions:
    return IntegrationOptions(
        name=name,
        prompt=prompt,
        module=module,
        skip_import=skip_import,
        project=project,
        source_root=source_root,
        usage_marker=config.integration.usage_marker if usage_marker is None else usage_marker,
        selector_prefix=config.integration.selector_prefix,
        css_framework=config.generation.css_framework,
    )


def _render_integration_result(result: IntegrationResult) -> None:
    """Display the per-operation summary: files written and integration outcome."""
    typer.echo("Integration summary:")
    typer.echo(f"- Artifacts parsed: {len(result.artifacts)}")
    for item in result.staged_files:
        if item.ok:
            typer.echo(f"- {'Created' if item.created else 'Overwrote'}: {item.path}")
        else:
            typer.echo(f"- Failed: {item.path} :: {item.error}")

    if result.patch is not None:
        if result.patch.changed:
            typer.echo(
                f"- Integration: registered in {result.patch.path} "
                f"({result.patch.insertion_kind.array_property})"
            )
        else:
            typer.echo(f"- Integration: {result.patch.path} already references the component")
    elif result.state is not IntegrationState.FAILED:
        reason = result.warnings[-1].message if result.warnings else "not attempted"
        typer.echo(f"- Integration: skipped ({reason})")

    for item in result.unwired:
        typer.echo(f"- Left for manual wiring: {item.artifact.id}")
    if result.usage_marker_path:
        typer.echo(f"- Usage marker: {result.usage_marker_path}")

    if result.warnings:
        typer.echo("Warnings:")
        for issue in result.warnings:
            location = f" [{issue.path}]" if issue.path else ""
            typer.echo(f"  - {issue.code.value}: {issue.message}{location}")

    if not result.succeeded:
        typer.echo(f"Outcome: failed ({result.failure_reason})")
    elif result.warnings:
        typer.echo("Outcome: partial")
    else:
        typer.echo("Outcome: success")


class _OfflineLLMClient(LLMClient):
    """Local stub that synthesizes a deterministic component response for demos/tests."""

    def __init__(self) -> None:
        super().__init__("offline", max_attempts=1)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        metadata = payload.get("metadata") or {}
        name = dasherize(str(metadata.get("component") or "prototype")) or "prototype"
        class_name = f"{classify(name)}Component"
        return "\n".join(
            [
                f"### filename: {name}/{name}.component.ts ###",
                "```typescript",
                "import { Component, Input } from '@angular/core';",
                "",
                "@Component({",
                f"  selector: 'app-{name}',",
                "  standalone: true,",
                f"  templateUrl: './{name}.component.html',",
                f"  styleUrls: ['./{name}.component.scss'],",
                "})",
                f"export class {class_name} {{",
                f"  @Input() title = '{classify(name)}';",
                "}",
                "```",
                "",
                f"### filename: {name}/{name}.component.html ###",
                "```html",
                '<div class="p-4 rounded shadow">{{ title }}</div>',
                "```",
                "",
                f"### filename: {name}/{name}.component.scss ###",
                "```scss",
                "```",
                "",
            ]
        )


@app.command()
def generate(
    name: str = typer.Argument(..., help="Component name, e.g. product-card."),
    prompt: str = typer.Option(..., "--prompt", "-p", help="What the component should do."),
    project: Optional[str] = typer.Option(None, "--project", help="Workspace project to target."),
    module: Optional[str] = typer.Option(
        None,
        "--module",
        "-m",
        help="Host file to register the component in (relative to the root).",
    ),
    skip_import: bool = typer.Option(False, "--skip-import", help="Stage files without wiring them."),
    source_root: Optional[str] = typer.Option(
        None,
        "--source-root",
        help="Source root to stage under when --module or --skip-import bypasses the manifest.",
    ),
    usage_marker: Optional[bool] = typer.Option(
        None,
        "--usage-marker/--no-usage-marker",
        help="Append the component tag to the root template.",
    ),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Workspace root directory."),
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_NAME),
        "--config",
        "-c",
        help="Path to the prototyper configuration file.",
    ),
    use_remote: bool = typer.Option(
        True,
        "--use-remote/--no-use-remote",
        help="Call the Gemini API instead of the offline stub (requires API key).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress."),
) -> None:
    """Generate a component from a prompt and integrate it into the workspace."""
    _configure_logging(verbose)
    config_data = _load_config(config)
    client = _build_client(config_data, use_remote=use_remote)
    options = _build_options(
        config_data,
        name=name,
        prompt=prompt,
        project=project,
        module=module,
        skip_import=skip_import,
        source_root=source_root,
        usage_marker=usage_marker,
    )
    orchestrator = IntegrationOrchestrator(root=root, client=client)
    result = orchestrator.run(options)
    _render_integration_result(result)
    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command()
def integrate(
    response_file: Path = typer.Argument(..., help="Saved model response to integrate."),
    project: Optional[str] = typer.Option(None, "--project", help="Workspace project to target."),
    module: Optional[str] = typer.Option(
        None,
        "--module",
        "-m",
        help="Host file to register the component in (relative to the root).",
    ),
    skip_import: bool = typer.Option(False, "--skip-import", help="Stage files without wiring them."),
    source_root: Optional[str] = typer.Option(
        None,
        "--source-root",
        help="Source root to stage under when --module or --skip-import bypasses the manifest.",
    ),
    usage_marker: Optional[bool] = typer.Option(
        None,
        "--usage-marker/--no-usage-marker",
        help="Append the component tag to the root template.",
    ),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Workspace root directory."),
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_NAME),
        "--config",
        "-c",
        help="Path to the prototyper configuration file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress."),
) -> None:
    """Integrate a previously saved model response without calling the model."""
    _configure_logging(verbose)
    config_data = _load_config(config)
    raw = _read_response(response_file)
    options = _build_options(
        config_data,
        project=project,
        module=module,
        skip_import=skip_import,
        source_root=source_root,
        usage_marker=usage_marker,
    )
    result = IntegrationOrchestrator(root=root).run_response(raw, options)
    _render_integration_result(result)
    if not result.succeeded:
        raise typer.Exit(code=1)


@app.command()
def parse(
    response_file: Path = typer.Argument(..., help="Saved model response to inspect."),
) -> None:
    """List the artifacts contained in a saved model response."""
    raw = _read_response(response_file)
    try:
        artifacts = parse_response(raw)
    except ParseEmptyError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    typer.echo(f"Found {len(artifacts)} artifact(s):")
    for artifact in artifacts:
        typer.echo(f"- {artifact.id} ({artifact.source_path})")
        for file_path, kind, content in artifact.files():
            typer.echo(f"    {kind.value}: {file_path} ({len(content)} chars)")


if __name__ == "__main__":
    app()
