"""
Finding model — the normalized unit of a detected issue.

Analyzers create findings (or raw dict records the aggregator validates
into findings). Findings are frozen: the only "mutation" is the
aggregator's merge step, which builds a new instance from collisions.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(StrEnum):
    """Finding severity, ordered critical > high > medium > low > info."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: object) -> Severity:
        """Map a tool's severity vocabulary onto the five levels.

        Unknown values become INFO so no finding is ever unranked.
        """
        if isinstance(value, Severity):
            return value
        key = str(value or "").strip().lower()
        return _SEVERITY_ALIASES.get(key, cls.INFO)


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}

_SEVERITY_ALIASES = {
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
    "high": Severity.HIGH,
    "error": Severity.HIGH,
    "major": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "warning": Severity.MEDIUM,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "note": Severity.LOW,
    "info": Severity.INFO,
    "informational": Severity.INFO,
    "none": Severity.INFO,
}


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 2, "medium": 1, "low": 0}[self.value]


class CheckCategory(StrEnum):
    """Built-in analysis dimensions.

    The registry keys on plain strings, so additional categories are
    added by registering tools and a heuristic for them.
    """

    DEPENDENCY_AUDIT = "dependency-audit"
    COMPLEXITY = "complexity"
    DUPLICATION = "duplication"
    DEAD_CODE = "dead-code"
    DOCUMENTATION = "documentation"
    SECURITY = "security"
    TEST_COVERAGE = "test-coverage"


ALL_CATEGORIES: tuple[str, ...] = tuple(c.value for c in CheckCategory)

HEURISTIC = "heuristic"

_WS_RE = re.compile(r"\s+")


def normalize_path(path: str | None) -> str:
    """Normalize a finding path for comparison: posix, no leading './'."""
    if not path:
        return ""
    p = path.replace("\\", "/").strip()
    while p.startswith("./"):
        p = p[2:]
    return p.rstrip("/")


def normalize_title(title: str) -> str:
    """Case- and whitespace-insensitive form of a title."""
    return _WS_RE.sub(" ", title).strip().rstrip(".:;").lower()


class Finding(BaseModel):
    """A single detected issue."""

    model_config = ConfigDict(frozen=True)

    category: str
    severity: Severity
    title: str = Field(min_length=1)
    description: str = ""
    file: str | None = None
    line: int | None = Field(default=None, ge=0)
    end_line: int | None = Field(default=None, ge=0)
    evidence: tuple[str, ...] = ()
    remediation: str = ""
    provenance: tuple[str, ...] = (HEURISTIC,)
    confidence: Confidence = Confidence.MEDIUM
    tags: tuple[str, ...] = ()
    risk_area: str = "other"

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: object) -> object:
        # Strings from tools are mapped; anything else is left for pydantic
        # to reject.
        if isinstance(value, str):
            return Severity.parse(value)
        return value

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_file(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_path(value) or None
        return value

    @field_validator("evidence", "provenance", "tags", mode="before")
    @classmethod
    def _coerce_str_tuple(cls, value: object) -> object:
        if isinstance(value, str):
            return (value,) if value else ()
        return value

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.category, normalize_path(self.file), normalize_title(self.title))

    @property
    def location(self) -> str:
        if not self.file:
            return ""
        if self.line:
            return f"{self.file}:{self.line}"
        return self.file
