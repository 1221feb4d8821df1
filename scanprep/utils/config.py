"""Configuration management for the preprocessing service.

Loads and validates YAML configuration with sensible defaults
for filters, output encoding, and processing history.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scanprep.preprocessing.errors import ConfigError

logger = logging.getLogger(__name__)


class FilterConfig(BaseModel):
    """Filter options for a single pipeline run.

    Field order carries no meaning: filters always run in the pipeline's
    fixed order. camelCase aliases (``autoRotate``) are accepted so that
    payloads from the upload form can be passed through directly.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    brightness: int = Field(default=0, ge=-50, le=50)
    contrast: int = Field(default=0, ge=-50, le=50)
    grayscale: bool = False
    sharpen: bool = False
    auto_rotate: bool = Field(default=False, alias="autoRotate")
    deskew: bool = False
    strict_orientation: bool = Field(default=False, alias="strictOrientation")


class OutputConfig(BaseModel):
    """Configuration for re-encoding processed images."""

    quality: int = Field(default=90, ge=1, le=100)


class HistoryConfig(BaseModel):
    """Configuration for the processing history store."""

    enabled: bool = False
    path: str = "data/history.json"
    max_items: int = Field(default=50, ge=1)
    payload_items: int = Field(default=10, ge=0)
    quota_bytes: int = Field(default=5 * 1024 * 1024, ge=1)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: FilterConfig = Field(default_factory=FilterConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    log_level: str = "INFO"


def build_filter_config(
    options: Mapping[str, Any] | None = None,
    base: FilterConfig | None = None,
) -> FilterConfig:
    """Validate filter options, layering them over an optional base config.

    Options whose value is ``None`` are treated as absent.

    Args:
        options: Raw option mapping (snake_case or camelCase keys).
        base: Config supplying values for absent options.

    Returns:
        Validated filter configuration.

    Raises:
        ConfigError: If any option is outside its valid domain.
    """
    aliases = {
        field.alias: name
        for name, field in FilterConfig.model_fields.items()
        if field.alias
    }
    merged: dict[str, Any] = base.model_dump() if base is not None else {}
    for key, value in (options or {}).items():
        if value is not None:
            merged[aliases.get(key, key)] = value
    try:
        return FilterConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid filter configuration: {exc}") from exc


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")
        try:
            return AppConfig(**raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
