"""
Audit use case — run a full audit of a project root.

The vertical slice from user intent to report: load config, check the
root, profile the project, resolve the scope, build the registry, run
every category and aggregate.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from codeaudit.adapters.registry import ToolRegistry
from codeaudit.adapters.vcs import git
from codeaudit.core.config.loader import AuditConfig, load_config
from codeaudit.core.engine.executor import generate_run_id, run_audit
from codeaudit.core.errors import ConfigError
from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.models.report import Report
from codeaudit.core.models.scope import Scope
from codeaudit.core.services.aggregation import build_report
from codeaudit.core.services.detection import ProjectProfiler, check_root
from codeaudit.core.services.rendering import exit_code
from codeaudit.core.services.tool_catalog import build_registry

logger = logging.getLogger(__name__)


@dataclass
class AuditResult:
    """Result of one audit run."""

    run_id: str
    report: Report
    config: AuditConfig
    profile: ProjectProfile

    @property
    def exit_code(self) -> int:
        return exit_code(self.report, self.config.fail_on, self.config.blocking)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "exit_code": self.exit_code,
            "report": self.report.to_dict(),
        }


def resolve_scope(root: Path, config: AuditConfig) -> Scope:
    """Turn the configured scope into a Scope with resolved files.

    Raises:
        ConfigError: The subdirectory is outside the root or missing, or
            the diff range cannot be resolved.
    """
    path = config.scope.path
    if path:
        base = root.resolve()
        target = (base / path).resolve()
        if not target.is_relative_to(base):
            raise ConfigError(f"Scope path '{path}' is outside {root}")
        if not target.is_dir():
            raise ConfigError(f"Scope path '{path}' is not a directory under {root}")
        path = target.relative_to(base).as_posix()
        if path == ".":
            path = None

    files = None
    if config.scope.diff:
        files = git.changed_files(root, config.scope.diff)

    return Scope(root=root, path=path, diff=config.scope.diff, files=files)


def run_audit_use_case(
    root: Path,
    config: AuditConfig | None = None,
    config_path: Path | None = None,
    registry: ToolRegistry | None = None,
) -> AuditResult:
    """Audit ``root`` and return the aggregated report.

    Args:
        root: Project root to audit.
        config: Ready config (CLI overrides applied); loaded when None.
        config_path: Explicit config file, used when ``config`` is None.
        registry: Prebuilt registry (tests); built from config when None.

    Raises:
        RootUnreadable: The root cannot be read.
        ConfigError: Configuration or scope is invalid.
    """
    started = time.monotonic()
    run_id = generate_run_id()

    check_root(root)
    root = root.resolve()
    if config is None:
        config = load_config(config_path, root=root)

    profile = ProjectProfiler().detect(root)
    scope = resolve_scope(root, config)
    if registry is None:
        registry = build_registry(config.tools)
    unknown = [c for c in config.categories if c not in registry.categories()]
    if unknown:
        raise ConfigError(
            f"Unknown categor{'y' if len(unknown) == 1 else 'ies'}: {', '.join(unknown)} "
            f"(known: {', '.join(registry.categories())})"
        )

    logger.info(
        "Audit %s: root=%s scope=%s languages=%s",
        run_id, root, scope.describe(), ", ".join(sorted(profile.languages)) or "none",
    )

    results = run_audit(
        config.categories,
        registry,
        profile,
        scope,
        workers=config.workers,
        tool_timeout=config.tool_timeout,
        deadline_seconds=config.deadline,
        overrides=config.tool_priority,
        disabled=frozenset(config.disabled_tools),
    )
    report = build_report(results, profile, scope, started=started)

    logger.info(
        "Audit %s finished: %d finding(s), %d degraded, %d skipped",
        run_id, report.total,
        len(report.metadata.degraded_categories), len(report.metadata.skipped_categories),
    )
    return AuditResult(run_id=run_id, report=report, config=config, profile=profile)
