"""
Built-in tool catalog — which analyzers exist for which category.

Priority encodes "prefer the richest structured output": tools emitting
JSON get lower (earlier) numbers than text-scraped ones. Equal
priorities fall back to the order below.
"""

from __future__ import annotations

import logging
from typing import Any

from codeaudit.adapters.registry import ToolRegistry
from codeaudit.core.models.tool import ToolDescriptor
from codeaudit.core.services.heuristics import BUILTIN_HEURISTICS

logger = logging.getLogger(__name__)


_TOOLS: list[dict[str, Any]] = [
    # ── Dependency audit ────────────────────────────────────────
    {
        "name": "pip-audit",
        "category": "dependency-audit",
        "languages": ["python"],
        "command": ["pip-audit", "--format", "json", "--progress-spinner", "off",
                    "-r", "requirements.txt"],
        "parser": "pip-audit",
        "priority": 10,
        "ok_exit_codes": [0, 1],
        "requires_any": ["requirements.txt"],
        "description": "PyPI advisory database (OSV)",
    },
    {
        "name": "npm-audit",
        "category": "dependency-audit",
        "languages": ["javascript", "typescript"],
        "command": ["npm", "audit", "--json"],
        "parser": "npm-audit",
        "priority": 10,
        "ok_exit_codes": [0, 1],
        "requires_any": ["package-lock.json", "npm-shrinkwrap.json"],
        "description": "npm registry advisories",
    },
    {
        "name": "cargo-audit",
        "category": "dependency-audit",
        "languages": ["rust"],
        "command": ["cargo", "audit", "--json"],
        "parser": "cargo-audit",
        "priority": 10,
        "version_args": ["audit", "--version"],
        "ok_exit_codes": [0, 1],
        "requires_any": ["Cargo.lock"],
        "description": "RustSec advisory database",
    },
    {
        "name": "osv-scanner",
        "category": "dependency-audit",
        "command": ["osv-scanner", "--format", "json", "-r", "{target}"],
        "parser": "osv-scanner",
        "priority": 20,
        "ok_exit_codes": [0, 1],
        "description": "OSV database, any ecosystem with a lock file",
    },
    # ── Complexity ──────────────────────────────────────────────
    {
        "name": "radon",
        "category": "complexity",
        "languages": ["python"],
        "command": ["radon", "cc", "--json", "--min", "C", "."],
        "parser": "radon-cc",
        "priority": 10,
        "description": "Cyclomatic complexity per block",
    },
    {
        "name": "ruff-complexity",
        "category": "complexity",
        "languages": ["python"],
        "command": ["ruff", "check", "--output-format", "json", "--select", "C901",
                    "--exit-zero", "--no-cache", "."],
        "parser": "ruff",
        "priority": 20,
        "binary": "ruff",
        "description": "McCabe complexity (C901)",
    },
    # ── Duplication ─────────────────────────────────────────────
    {
        "name": "jscpd",
        "category": "duplication",
        "command": ["jscpd", "--silent", "--reporters", "json", "--output", "{output_dir}",
                    "--ignore", "**/node_modules/**,**/.git/**", "."],
        "parser": "jscpd",
        "priority": 10,
        "description": "Copy/paste detector for 150+ languages",
    },
    # ── Dead code ───────────────────────────────────────────────
    {
        "name": "vulture",
        "category": "dead-code",
        "languages": ["python"],
        "command": ["vulture", "--min-confidence", "60", "."],
        "parser": "vulture",
        "priority": 20,
        "ok_exit_codes": [0, 1, 3],
        "description": "Unused Python code (text output)",
    },
    # ── Documentation ───────────────────────────────────────────
    {
        "name": "ruff-docstrings",
        "category": "documentation",
        "languages": ["python"],
        "command": ["ruff", "check", "--output-format", "json", "--select", "D1",
                    "--exit-zero", "--no-cache", "."],
        "parser": "ruff",
        "priority": 10,
        "binary": "ruff",
        "description": "Missing docstrings (pydocstyle D1xx)",
    },
    # ── Security ────────────────────────────────────────────────
    {
        "name": "semgrep",
        "category": "security",
        "command": ["semgrep", "scan", "--config", "auto", "--json", "--quiet",
                    "--metrics", "off", "."],
        "parser": "semgrep",
        "priority": 10,
        "ok_exit_codes": [0, 1],
        "description": "Multi-language SAST rules",
    },
    {
        "name": "bandit",
        "category": "security",
        "languages": ["python"],
        "command": ["bandit", "-r", ".", "-f", "json", "-q", "-x",
                    "./.venv,./venv,./node_modules,./.git"],
        "parser": "bandit",
        "priority": 20,
        "ok_exit_codes": [0, 1],
        "description": "Python AST security linter",
    },
    {
        "name": "gosec",
        "category": "security",
        "languages": ["go"],
        "command": ["gosec", "-fmt", "json", "-quiet", "./..."],
        "parser": "gosec",
        "priority": 20,
        "ok_exit_codes": [0, 1],
        "description": "Go security checker",
    },
    {
        "name": "gitleaks",
        "category": "security",
        "command": ["gitleaks", "detect", "--no-git", "--redact", "--no-banner",
                    "--source", ".", "--report-format", "json",
                    "--report-path", "{output}", "--exit-code", "0"],
        "parser": "gitleaks",
        "priority": 30,
        "description": "Hardcoded secrets only",
    },
    # ── Test coverage ───────────────────────────────────────────
    {
        "name": "coverage",
        "category": "test-coverage",
        "languages": ["python"],
        "command": ["coverage", "json", "-q", "-o", "{output}"],
        "parser": "coverage-json",
        "priority": 10,
        "requires_any": [".coverage"],
        "description": "Exports existing coverage.py data; never runs tests",
    },
]


def builtin_tools() -> list[ToolDescriptor]:
    return [ToolDescriptor.model_validate(spec) for spec in _TOOLS]


def build_registry(
    extra_tools: list[ToolDescriptor] | None = None,
    *,
    include_builtin: bool = True,
    freeze: bool = True,
) -> ToolRegistry:
    """Create the process-wide registry: built-in tools, extras, heuristics.

    Args:
        extra_tools: Additional descriptors (e.g. from .codeaudit.yml).
        include_builtin: Register the built-in catalog.
        freeze: Freeze the registry once populated.
    """
    registry = ToolRegistry()
    if include_builtin:
        for descriptor in builtin_tools():
            registry.register(descriptor)
    for descriptor in extra_tools or []:
        registry.register(descriptor)
    for heuristic_cls in BUILTIN_HEURISTICS:
        registry.register_heuristic(heuristic_cls.category, heuristic_cls())
    if freeze:
        registry.freeze()
    logger.debug(
        "Registry ready: %d tools, %d categories",
        len(registry.list_tools()), len(registry.categories()),
    )
    return registry
