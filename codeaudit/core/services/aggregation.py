"""
Aggregation service — merge category results into one report.

Raw records are validated into Findings, collisions on the dedup key
are merged, every finding gets a risk area, and the list is ordered by
severity. The coordinator calls this once, after the pool is done, so
nothing here is shared between threads.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from codeaudit.core.errors import AggregationSchemaViolation
from codeaudit.core.models.finding import (
    ALL_CATEGORIES,
    HEURISTIC,
    Finding,
    Severity,
)
from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.models.report import CategoryResult, Report, ReportMetadata
from codeaudit.core.models.scope import Scope

logger = logging.getLogger(__name__)


# ── Risk areas ──────────────────────────────────────────────────
#
# First matching rule wins; keywords are compared against lowercased
# tokens from the file path, tags and title.

RISK_RULES: list[tuple[str, frozenset[str]]] = [
    ("authentication", frozenset({
        "auth", "authentication", "login", "logout", "password", "passwd",
        "credential", "credentials", "secret", "secrets", "token", "tokens",
        "session", "jwt", "oauth", "api-key", "apikey", "permission",
        "cwe-798", "cwe-259", "cwe-287", "cwe-327", "cwe-328",
    })),
    ("input-validation", frozenset({
        "input", "validation", "validate", "validator", "sanitize", "injection",
        "xss", "eval", "exec", "shell", "deserialization", "pickle", "form",
        "forms", "parser", "cwe-20", "cwe-78", "cwe-79", "cwe-94", "cwe-502",
    })),
    ("data-access", frozenset({
        "sql", "db", "database", "query", "queries", "orm", "repository",
        "models", "migration", "migrations", "storage", "cache", "dao",
        "cwe-89",
    })),
    ("error-handling", frozenset({
        "error", "errors", "exception", "exceptions", "except", "handler",
        "handlers", "retry", "fallback", "cwe-703", "cwe-755",
    })),
    ("external-services", frozenset({
        "http", "https", "client", "clients", "api", "webhook", "webhooks",
        "network", "requests", "urllib", "tls", "ssl", "dependency",
        "dependencies", "vulnerability", "supply-chain", "cwe-295",
    })),
]

DEFAULT_RISK_AREA = "other"

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


def _tokens(finding: Finding) -> set[str]:
    tokens: set[str] = set()
    if finding.file:
        for part in finding.file.lower().replace("\\", "/").split("/"):
            tokens.add(part)
            tokens.update(re.split(r"[._\-]", part))
    for tag in finding.tags:
        tag = tag.lower()
        tokens.add(tag)
        tokens.update(_TOKEN_RE.findall(tag))
    tokens.update(w.strip("-") for w in _TOKEN_RE.findall(finding.title.lower()))
    tokens.discard("")
    return tokens


def classify_risk(finding: Finding) -> str:
    """Risk area of a finding by first-matching keyword rule."""
    tokens = _tokens(finding)
    for area, keywords in RISK_RULES:
        if tokens & keywords:
            return area
    return DEFAULT_RISK_AREA


# ── Coercion and merging ────────────────────────────────────────


def coerce(record: Any, category: str) -> Finding:
    """Validate one analyzer record into a Finding.

    Raises:
        AggregationSchemaViolation: The record cannot be a Finding.
    """
    if isinstance(record, Finding):
        return record
    if not isinstance(record, dict):
        raise AggregationSchemaViolation(
            f"{category}: expected a finding record, got {type(record).__name__}"
        )
    data = {"category": category, **record}
    try:
        return Finding.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
            for err in e.errors()
        )
        raise AggregationSchemaViolation(f"{category}: {errors}") from e


def _union(*groups: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(item for group in groups for item in group if item))


def _min_line(a: int | None, b: int | None) -> int | None:
    known = [n for n in (a, b) if n]
    return min(known) if known else (a if a is not None else b)


def merge_pair(first: Finding, second: Finding) -> Finding:
    """Combine two findings sharing a dedup key."""
    severity = first.severity if first.severity.rank >= second.severity.rank else second.severity
    confidence = (
        first.confidence if first.confidence.rank >= second.confidence.rank
        else second.confidence
    )
    line = _min_line(first.line, second.line)
    end_line = first.end_line if line == first.line else second.end_line
    # Tool provenance ranks ahead of the heuristic
    provenance = _union(first.provenance, second.provenance)
    if HEURISTIC in provenance and len(provenance) > 1:
        provenance = (*[p for p in provenance if p != HEURISTIC], HEURISTIC)
    return first.model_copy(update={
        "severity": severity,
        "confidence": confidence,
        "line": line,
        "end_line": end_line,
        "evidence": _union(first.evidence, second.evidence),
        "provenance": provenance,
        "tags": _union(first.tags, second.tags),
        "description": first.description or second.description,
        "remediation": first.remediation or second.remediation,
    })


def sort_key(finding: Finding) -> tuple:
    return (
        -finding.severity.rank,
        finding.category,
        finding.file or "",
        finding.line if finding.line is not None else -1,
        finding.title,
    )


class FindingAggregator:
    """Normalize, deduplicate, classify and order findings."""

    def merge(self, results: Iterable[CategoryResult]) -> tuple[list[Finding], int]:
        """Merge every non-skipped result.

        Returns:
            (ordered findings, number of dropped malformed records)
        """
        merged: dict[tuple[str, str, str], Finding] = {}
        dropped = 0

        for result in results:
            if result.skipped:
                continue
            for record in result.findings:
                try:
                    finding = coerce(record, result.category)
                except AggregationSchemaViolation as e:
                    dropped += 1
                    logger.warning("Dropped malformed finding from %s: %s", result.source or "?", e)
                    continue
                key = finding.dedup_key
                if key in merged:
                    merged[key] = merge_pair(merged[key], finding)
                else:
                    merged[key] = finding

        findings = [f.model_copy(update={"risk_area": classify_risk(f)}) for f in merged.values()]
        findings.sort(key=sort_key)
        logger.debug("Aggregated %d finding(s), dropped %d", len(findings), dropped)
        return findings, dropped


def summarize(findings: Iterable[Finding], categories: Iterable[str]) -> dict[str, dict[str, int]]:
    """Per-category severity counts, zero-filled for every listed category."""
    summary = {c: {s.value: 0 for s in Severity} for c in categories}
    for f in findings:
        bucket = summary.setdefault(f.category, {s.value: 0 for s in Severity})
        bucket[f.severity.value] += 1
    return summary


def build_report(
    results: dict[str, CategoryResult],
    profile: ProjectProfile,
    scope: Scope,
    *,
    started: float | None = None,
    aggregator: FindingAggregator | None = None,
) -> Report:
    """Assemble the frozen report from the collected category results.

    Args:
        results: Category results keyed by category, in request order.
        profile: The run's project profile.
        scope: The run's scope.
        started: ``time.monotonic()`` when the run began.
    """
    aggregator = aggregator or FindingAggregator()
    findings, dropped = aggregator.merge(results.values())

    completed = [c for c, r in results.items() if not r.skipped]
    order = {c: i for i, c in enumerate(ALL_CATEGORIES)}
    tools_used = _union(*[
        [a.tool for a in r.attempts if a.ok] for r in results.values()
    ])

    metadata = ReportMetadata(
        root=str(scope.root),
        scope=scope.describe(),
        profile=profile.to_dict(),
        requested_categories=list(results),
        tools_used=list(tools_used),
        degraded_categories=[c for c, r in results.items() if r.degraded],
        skipped_categories=[c for c, r in results.items() if r.skipped],
        categories={c: r.to_dict() for c, r in results.items()},
        dropped_findings=dropped,
        duration_ms=int((time.monotonic() - started) * 1000) if started is not None else 0,
    )
    summary = summarize(findings, sorted(completed, key=lambda c: order.get(c, len(order))))
    return Report(summary=summary, findings=tuple(findings), metadata=metadata)
