"""YAML configuration for the prototyper CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models.gemini import DEFAULT_GEMINI_MODEL
from .prompts import DEFAULT_CSS_FRAMEWORK
from .utils.naming import DEFAULT_SELECTOR_PREFIX

DEFAULT_CONFIG_NAME = "prototyper.yaml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or validated."""


class ModelSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default: str = DEFAULT_GEMINI_MODEL
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=0.5, ge=0)


class GenerationSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    css_framework: str = DEFAULT_CSS_FRAMEWORK


class IntegrationSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    usage_marker: bool = False
    selector_prefix: str = DEFAULT_SELECTOR_PREFIX


class PrototyperConfig(BaseModel):
    """Validated view of ``prototyper.yaml``; every section is optional."""

    model_config = ConfigDict(extra="ignore")

    models: ModelSettings = Field(default_factory=ModelSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    integration: IntegrationSettings = Field(default_factory=IntegrationSettings)


def parse_config(data: Any) -> PrototyperConfig:
    if data is None:
        return PrototyperConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    try:
        return PrototyperConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def load_config(config_path: Path | str | None) -> PrototyperConfig:
    """Load YAML configuration from disk; a missing file yields the defaults."""
    if config_path is None:
        return PrototyperConfig()
    path = Path(config_path)
    if not path.exists():
        return PrototyperConfig()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data: Dict[str, Any] | None = yaml.safe_load(handle)
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error
    return parse_config(data)


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "ConfigError",
    "GenerationSettings",
    "IntegrationSettings",
    "ModelSettings",
    "PrototyperConfig",
    "load_config",
    "parse_config",
]
