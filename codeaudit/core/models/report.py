"""
Category results and the final report.

A CategoryResult is what one worker hands to the aggregation point.
The Report is assembled once by the aggregator and is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from codeaudit.core.models.finding import Finding, Severity


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


AttemptStatus = Literal[
    "ok", "unavailable", "not-applicable", "timeout", "parse-error", "failed",
]


class ToolAttempt(BaseModel):
    """Outcome of trying one candidate in a category's fallback chain."""

    model_config = ConfigDict(frozen=True)

    tool: str
    status: AttemptStatus
    detail: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class CategoryResult:
    """Result of one category's fallback chain.

    ``findings`` holds raw records (dicts) from tool parsers and Finding
    instances from heuristics; the aggregator validates both.
    """

    category: str
    status: Literal["ok", "degraded", "skipped"] = "ok"
    source: str = ""
    findings: list[Any] = field(default_factory=list)
    attempts: list[ToolAttempt] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def skip(cls, category: str, reason: str) -> CategoryResult:
        return cls(category=category, status="skipped", notes=[reason])

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "degraded": self.degraded,
            "source": self.source,
            "attempts": [a.model_dump(mode="json") for a in self.attempts],
            "notes": list(self.notes),
            "duration_ms": self.duration_ms,
        }


class ReportMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    root: str = ""
    scope: str = "full"
    profile: dict[str, Any] = Field(default_factory=dict)
    requested_categories: list[str] = Field(default_factory=list)
    tools_used: list[str] = Field(default_factory=list)
    degraded_categories: list[str] = Field(default_factory=list)
    skipped_categories: list[str] = Field(default_factory=list)
    categories: dict[str, dict[str, Any]] = Field(default_factory=dict)
    dropped_findings: int = 0
    generated_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0


class Report(BaseModel):
    """Aggregated audit output.

    Schema: {summary, findings, metadata}.
    """

    model_config = ConfigDict(frozen=True)

    summary: dict[str, dict[str, int]] = Field(default_factory=dict)
    findings: tuple[Finding, ...] = ()
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)

    @property
    def total(self) -> int:
        return len(self.findings)

    @property
    def worst_severity(self) -> Severity | None:
        if not self.findings:
            return None
        return max((f.severity for f in self.findings), key=lambda s: s.rank)

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
