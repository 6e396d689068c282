"""
Configuration loader — reads .codeaudit.yml into an AuditConfig.

Reads YAML, validates it against the pydantic schema and returns a
typed, frozen config. CLI options are applied on top with
``AuditConfig.with_overrides``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from codeaudit.adapters.parsers import PARSERS
from codeaudit.core.errors import ConfigError
from codeaudit.core.models.finding import ALL_CATEGORIES, Severity
from codeaudit.core.models.tool import ToolDescriptor

logger = logging.getLogger(__name__)

CONFIG_FILES = (".codeaudit.yml", ".codeaudit.yaml")


class ScopeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str | None = None
    diff: str | None = None


class AuditConfig(BaseModel):
    """Everything that shapes one audit run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    categories: list[str] = Field(default_factory=lambda: list(ALL_CATEGORIES))
    scope: ScopeConfig = Field(default_factory=ScopeConfig)
    workers: int | None = Field(default=None, ge=1)
    tool_timeout: float = Field(default=120.0, gt=0)
    deadline: float | None = Field(default=None, gt=0)
    blocking: bool = True
    fail_on: Severity = Severity.HIGH
    tool_priority: dict[str, list[str]] = Field(default_factory=dict)
    disabled_tools: list[str] = Field(default_factory=list)
    tools: list[ToolDescriptor] = Field(default_factory=list)
    output_format: Literal["markdown", "json"] = "markdown"

    @field_validator("categories", mode="before")
    @classmethod
    def _split_categories(cls, value: object) -> object:
        if isinstance(value, str):
            return [c.strip() for c in value.split(",") if c.strip()]
        return value

    @field_validator("categories")
    @classmethod
    def _non_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one category is required")
        return list(dict.fromkeys(value))

    @field_validator("fail_on", mode="before")
    @classmethod
    def _check_severity(cls, value: object) -> object:
        if isinstance(value, str) and value.lower() not in {s.value for s in Severity}:
            raise ValueError(f"unknown severity '{value}'")
        return value.lower() if isinstance(value, str) else value

    @field_validator("tools")
    @classmethod
    def _known_parsers(cls, value: list[ToolDescriptor]) -> list[ToolDescriptor]:
        for tool in value:
            if tool.parser not in PARSERS:
                raise ValueError(
                    f"tool '{tool.name}' uses unknown parser '{tool.parser}' "
                    f"(known: {', '.join(sorted(PARSERS))})"
                )
        return value

    def with_overrides(self, **overrides: Any) -> AuditConfig:
        """Copy with CLI values applied; None means "not given"."""
        data = self.model_dump()
        scope = dict(data["scope"])
        for key in ("path", "diff"):
            if overrides.get(key) is not None:
                scope[key] = overrides.pop(key)
            overrides.pop(key, None)
        data["scope"] = scope
        data.update({k: v for k, v in overrides.items() if v is not None})
        return _validate(data, "command-line options")


def _validate(data: dict[str, Any], source: str) -> AuditConfig:
    try:
        return AuditConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration in {source}: {problems}") from e


def find_config_file(root: Path) -> Path | None:
    """The audit config at ``root``, if one exists."""
    for name in CONFIG_FILES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None, root: Path | None = None) -> AuditConfig:
    """Load and validate the audit configuration.

    Args:
        path: Explicit config file. Must exist.
        root: Audited root, searched when ``path`` is None.

    Returns:
        AuditConfig; defaults when no file is found.

    Raises:
        ConfigError: If the file is missing (explicit path) or invalid.
    """
    if path is None and root is not None:
        path = find_config_file(root)
        if path is None:
            logger.debug("No config file at %s, using defaults", root)
            return AuditConfig()
    if path is None:
        return AuditConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading audit config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    config = _validate(data, str(path))
    logger.info("Loaded config %s (%d categories)", path, len(config.categories))
    return config
