"""
Error taxonomy for an audit run.

Only ``RootUnreadable`` (and ``ConfigError`` before a run starts) ever
reaches the caller. Every other error is caught by the engine and turned
into ``degraded`` / ``skipped`` metadata on the report.
"""

from __future__ import annotations


class AuditError(Exception):
    """Base class for all codeaudit errors."""


class RootUnreadable(AuditError):
    """The audited root does not exist or cannot be listed."""

    def __init__(self, root: str, reason: str = ""):
        self.root = root
        self.reason = reason
        msg = f"Cannot read project root: {root}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class ConfigError(AuditError):
    """Raised when audit configuration or scope is invalid."""


class RegistryFrozen(AuditError):
    """Raised when registering into a registry after initialization."""


# ── Non-fatal analyzer failures (advance the fallback chain) ────────


class AnalyzerError(AuditError):
    """A candidate analyzer could not produce findings."""

    status = "failed"

    def __init__(self, tool: str, detail: str = ""):
        self.tool = tool
        self.detail = detail
        super().__init__(f"{tool}: {detail}" if detail else tool)


class ToolUnavailable(AnalyzerError):
    status = "unavailable"


class ToolTimeout(AnalyzerError):
    status = "timeout"

    def __init__(self, tool: str, timeout: float):
        self.timeout = timeout
        super().__init__(tool, f"timed out after {timeout:.1f}s")


class ToolOutputParseError(AnalyzerError):
    status = "parse-error"


class ToolExecutionError(AnalyzerError):
    """The tool ran but exited with an unexpected code, or failed to launch."""

    status = "failed"


class HeuristicFailure(AuditError):
    """A single file could not be scanned by a heuristic."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class AggregationSchemaViolation(AuditError):
    """A finding record does not match the Finding schema."""
