"""
Tests for report rendering and the exit signal.
"""

import json

import pytest

from codeaudit.core.models import Finding, Report, ReportMetadata, Severity
from codeaudit.core.services.rendering import exit_code, render


def _report(*severities: str, **meta) -> Report:
    findings = tuple(
        Finding(
            category="security", severity=s, title=f"{s} issue {i}", file="app.py", line=i + 1,
            remediation=f"fix {s} {i}", risk_area="input-validation" if i % 2 else "other",
        )
        for i, s in enumerate(severities)
    )
    summary = {"security": {s.value: sum(1 for f in findings if f.severity == s) for s in Severity}}
    return Report(summary=summary, findings=findings, metadata=ReportMetadata(root="/p", **meta))


class TestRenderMarkdown:
    def test_sections(self):
        text = render(_report("critical", "medium", "low"))
        assert text.startswith("# Code audit report")
        assert "## Summary" in text
        assert "| security | 1 | 0 | 1 | 1 | 0 | 3 |" in text
        assert "## Findings" in text
        assert "## Recommendations" in text

    def test_findings_in_severity_order(self):
        text = render(_report("critical", "high", "medium", "low", "info"))
        positions = [text.index(f"{s} issue") for s in ("critical", "high", "medium", "low", "info")]
        assert positions == sorted(positions)

    def test_recommendation_buckets(self):
        text = render(_report("critical", "high", "medium", "low", "info"))
        recs = text.split("## Recommendations", 1)[1]
        immediate, rest = recs.split("### This cycle", 1)
        this_cycle, backlog = rest.split("### Backlog", 1)
        assert "fix critical" in immediate and "fix high" in immediate
        assert "fix medium" in this_cycle
        assert "fix low" in backlog and "fix info" in backlog

    def test_degraded_and_skipped_notice(self):
        text = render(_report(
            "low",
            degraded_categories=["security"],
            skipped_categories=["duplication"],
            categories={"security": {"source": "heuristic"}},
        ))
        assert "## Coverage notes" in text
        assert "**security** degraded" in text
        assert "`heuristic`" in text
        assert "**duplication** skipped" in text

    def test_no_findings(self):
        text = render(_report())
        assert "No findings." in text
        assert "## Recommendations" not in text
        assert "## Coverage notes" not in text

    def test_deterministic(self):
        report = _report("high", "low")
        assert render(report) == render(report)


class TestRenderJson:
    def test_schema(self):
        data = json.loads(render(_report("high"), "json"))
        assert set(data) == {"summary", "findings", "metadata"}
        assert data["findings"][0]["severity"] == "high"
        assert {"scope", "tools_used", "degraded_categories", "skipped_categories",
                "generated_at"} <= set(data["metadata"])

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown report format"):
            render(_report(), "html")


class TestExitCode:
    def test_blocking_at_threshold(self):
        assert exit_code(_report("high")) == 1
        assert exit_code(_report("critical", "low")) == 1

    def test_below_threshold(self):
        assert exit_code(_report("medium", "low")) == 0
        assert exit_code(_report()) == 0

    def test_custom_threshold(self):
        assert exit_code(_report("medium"), threshold="medium") == 1
        assert exit_code(_report("low"), threshold=Severity.MEDIUM) == 0

    def test_non_blocking(self):
        assert exit_code(_report("critical"), blocking=False) == 0
