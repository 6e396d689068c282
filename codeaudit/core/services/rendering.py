"""
Report renderer — Markdown or JSON document plus the exit signal.

Rendering is a pure function of the Report: same report, same text.
"""

from __future__ import annotations

import json
from itertools import groupby

from codeaudit.core.models.finding import Finding, Severity
from codeaudit.core.models.report import Report

FORMATS = ("markdown", "json")

_SEVERITIES = list(Severity)

# severity → recommendation bucket
_BUCKETS = {
    Severity.CRITICAL: "Immediate",
    Severity.HIGH: "Immediate",
    Severity.MEDIUM: "This cycle",
    Severity.LOW: "Backlog",
    Severity.INFO: "Backlog",
}
_BUCKET_ORDER = ("Immediate", "This cycle", "Backlog")

_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
    Severity.INFO: "⚪",
}


def render(report: Report, fmt: str = "markdown") -> str:
    """Render a report.

    Raises:
        ValueError: Unknown format.
    """
    if fmt == "json":
        return render_json(report)
    if fmt == "markdown":
        return render_markdown(report)
    raise ValueError(f"Unknown report format: {fmt!r} (expected one of {', '.join(FORMATS)})")


def render_json(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def render_markdown(report: Report) -> str:
    meta = report.metadata
    lines: list[str] = ["# Code audit report", ""]

    lines.append(f"- **Root:** `{meta.root}`")
    lines.append(f"- **Scope:** {meta.scope}")
    languages = meta.profile.get("languages") or []
    lines.append(f"- **Languages:** {', '.join(languages) if languages else 'none detected'}")
    lines.append(f"- **Tools used:** {', '.join(meta.tools_used) if meta.tools_used else 'none'}")
    lines.append(f"- **Generated:** {meta.generated_at} ({meta.duration_ms} ms)")
    lines.append("")

    # ── Summary ─────────────────────────────────────────────────
    lines += ["## Summary", ""]
    header = "| Category | " + " | ".join(s.value for s in _SEVERITIES) + " | total |"
    lines.append(header)
    lines.append("|" + "---|" * (len(_SEVERITIES) + 2))
    for category, counts in report.summary.items():
        row = [str(counts.get(s.value, 0)) for s in _SEVERITIES]
        lines.append(f"| {category} | " + " | ".join(row) + f" | {sum(counts.values())} |")
    lines.append("")

    if meta.degraded_categories or meta.skipped_categories or meta.dropped_findings:
        lines += ["## Coverage notes", ""]
        for category in meta.degraded_categories:
            info = meta.categories.get(category, {})
            source = info.get("source") or "nothing"
            lines.append(f"- ⚠️ **{category}** degraded: results from `{source}`")
        for category in meta.skipped_categories:
            lines.append(f"- ⊘ **{category}** skipped: not completed before the run deadline")
        if meta.dropped_findings:
            lines.append(f"- {meta.dropped_findings} malformed finding record(s) dropped")
        lines.append("")

    # ── Findings ────────────────────────────────────────────────
    lines += ["## Findings", ""]
    if not report.findings:
        lines += ["No findings.", ""]
    for severity, group in groupby(report.findings, key=lambda f: f.severity):
        items = list(group)
        lines += [f"### {_ICONS[severity]} {severity.value.capitalize()} ({len(items)})", ""]
        for area, in_area in groupby(sorted(items, key=lambda f: f.risk_area), key=lambda f: f.risk_area):
            lines += [f"#### {area}", ""]
            for finding in in_area:
                lines += _finding_lines(finding)
        lines.append("")

    # ── Recommendations ─────────────────────────────────────────
    buckets: dict[str, list[Finding]] = {name: [] for name in _BUCKET_ORDER}
    for finding in report.findings:
        buckets[_BUCKETS[finding.severity]].append(finding)
    if report.findings:
        lines += ["## Recommendations", ""]
        for name in _BUCKET_ORDER:
            if not buckets[name]:
                continue
            lines += [f"### {name}", ""]
            for finding in buckets[name]:
                action = finding.remediation or finding.title
                where = f" (`{finding.location}`)" if finding.location else ""
                lines.append(f"- [{finding.category}] {action}{where}")
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _finding_lines(finding: Finding) -> list[str]:
    where = f" `{finding.location}`" if finding.location else ""
    lines = [f"- **{finding.title}**{where} [{finding.category}]"]
    if finding.description:
        lines.append(f"  {finding.description}")
    for snippet in finding.evidence[:3]:
        lines.append(f"  > {snippet}")
    lines.append(
        f"  _source: {', '.join(finding.provenance)}; confidence: {finding.confidence.value}_"
    )
    return lines


def exit_code(report: Report, threshold: Severity | str = Severity.HIGH, blocking: bool = True) -> int:
    """1 when blocking and any finding is at or above ``threshold``, else 0.

    Skipped categories contribute no findings, so they never block.
    """
    if not blocking:
        return 0
    worst = report.worst_severity
    if worst is None:
        return 0
    return 1 if worst.rank >= Severity.parse(threshold).rank else 0
