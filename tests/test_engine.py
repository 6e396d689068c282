"""
Tests for the engine executor — fallback chain, worker pool and deadline.
"""

import sys
import time
from pathlib import Path

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.adapters.mock import MockAnalyzer
from codeaudit.adapters.registry import ToolRegistry
from codeaudit.core.engine.executor import (
    default_workers,
    generate_run_id,
    run_audit,
    run_category,
)
from codeaudit.core.errors import ToolExecutionError, ToolOutputParseError
from codeaudit.core.models import Finding, ProjectProfile, Scope, ToolDescriptor

HIGH = {"title": "SQL injection", "severity": "high", "file": "app/db.py", "line": 4}


def _descriptor(name: str, category: str = "security", **kwargs) -> ToolDescriptor:
    kwargs.setdefault("command", [name])
    kwargs.setdefault("parser", "semgrep")
    return ToolDescriptor(name=name, category=category, **kwargs)


def _registry(*tools: tuple[ToolDescriptor, Analyzer], heuristics: dict | None = None) -> ToolRegistry:
    reg = ToolRegistry()
    for descriptor, adapter in tools:
        reg.register(descriptor, adapter)
    for category, analyzer in (heuristics or {}).items():
        reg.register_heuristic(category, analyzer)
    reg.freeze()
    return reg


def _heuristic(category: str = "security", severity: str = "medium") -> MockAnalyzer:
    return MockAnalyzer(
        analyzer_name="heuristic",
        findings=[Finding(category=category, severity=severity, title=f"{category} pattern")],
    )


class SlowAnalyzer(Analyzer):
    """Ignores its timeout, like a heuristic stuck on one huge file."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    @property
    def name(self) -> str:
        return "slow"

    def is_available(self) -> bool:
        return True

    def run(self, context: AnalysisContext) -> list:
        time.sleep(self.seconds)
        return []


class TestRunCategory:
    def test_first_success_wins(self, profile, scope):
        first = MockAnalyzer("first", findings=[dict(HIGH)])
        second = MockAnalyzer("second", findings=[dict(HIGH)])
        reg = _registry(
            (_descriptor("first", priority=10), first),
            (_descriptor("second", priority=20), second),
            heuristics={"security": _heuristic()},
        )
        result = run_category("security", reg, profile, scope)
        assert result.status == "ok"
        assert result.source == "first"
        assert len(result.findings) == 1
        assert second.call_count == 0
        assert second.probe_count == 0

    def test_unavailable_falls_through(self, profile, scope):
        missing = MockAnalyzer("missing", available=False)
        backup = MockAnalyzer("backup", findings=[dict(HIGH)])
        reg = _registry(
            (_descriptor("missing", priority=10), missing),
            (_descriptor("backup", priority=20), backup),
        )
        result = run_category("security", reg, profile, scope)
        assert result.source == "backup"
        assert result.degraded
        assert [a.status for a in result.attempts] == ["unavailable", "ok"]
        assert missing.call_count == 0

    def test_no_tools_uses_heuristic(self, profile, scope):
        heuristic = _heuristic()
        reg = _registry(
            (_descriptor("a"), MockAnalyzer("a", available=False)),
            heuristics={"security": heuristic},
        )
        result = run_category("security", reg, profile, scope)
        assert result.degraded
        assert result.source == "heuristic"
        assert heuristic.call_count == 1
        assert result.findings[0].provenance == ("heuristic",)

    def test_parse_error_then_heuristic(self, profile, scope):
        broken = MockAnalyzer("broken", error=ToolOutputParseError("broken", "not json"))
        reg = _registry((_descriptor("broken"), broken), heuristics={"security": _heuristic()})
        result = run_category("security", reg, profile, scope)
        assert [a.status for a in result.attempts] == ["parse-error", "ok"]
        assert result.attempts[0].detail == "not json"
        assert result.source == "heuristic"

    def test_execution_error_and_crash_advance_chain(self, profile, scope):
        reg = _registry(
            (_descriptor("exit7", priority=1), MockAnalyzer("exit7", error=ToolExecutionError("exit7", "exit code 7"))),
            (_descriptor("crash", priority=2), MockAnalyzer("crash", error=RuntimeError("boom"))),
            (_descriptor("good", priority=3), MockAnalyzer("good")),
        )
        result = run_category("security", reg, profile, scope)
        assert [a.status for a in result.attempts] == ["failed", "failed", "ok"]
        assert "RuntimeError" in result.attempts[1].detail
        assert result.source == "good"
        assert result.degraded

    def test_requires_any_not_applicable(self, tmp_path: Path, profile, scope):
        needs_lock = MockAnalyzer("npm-audit")
        reg = _registry(
            (_descriptor("npm-audit", requires_any=["package-lock.json"]), needs_lock),
            heuristics={"security": _heuristic()},
        )
        result = run_category("security", reg, profile, scope)
        assert result.attempts[0].status == "not-applicable"
        assert needs_lock.call_count == 0
        assert needs_lock.probe_count == 0

        (tmp_path / "package-lock.json").write_text("{}")
        needs_lock.reset()
        result = run_category("security", reg, profile, scope)
        assert result.source == "npm-audit"
        assert needs_lock.call_count == 1

    def test_findings_filtered_to_scope(self, tmp_path: Path, profile):
        scope = Scope(root=tmp_path, path="app")
        tool = MockAnalyzer("t", findings=[
            dict(HIGH),
            {"title": "elsewhere", "severity": "low", "file": "other/x.py"},
            {"title": "project-wide", "severity": "low"},
        ])
        reg = _registry((_descriptor("t"), tool))
        result = run_category("security", reg, profile, scope)
        assert [r["title"] for r in result.findings] == ["SQL injection", "project-wide"]

    def test_empty_profile_skips_agnostic_tools(self, tmp_path: Path, scope):
        agnostic = MockAnalyzer("semgrep", findings=[dict(HIGH)])
        heuristic = _heuristic()
        reg = _registry((_descriptor("semgrep"), agnostic), heuristics={"security": heuristic})
        empty = ProjectProfile(root=str(tmp_path))
        assert empty.is_empty

        result = run_category("security", reg, empty, scope)
        assert result.source == "heuristic"
        assert result.degraded
        assert result.attempts[-1].tool == "heuristic"
        assert agnostic.call_count == 0
        assert agnostic.probe_count == 0
        assert heuristic.call_count == 1

    def test_no_heuristic_registered(self, profile, scope):
        reg = _registry((_descriptor("a"), MockAnalyzer("a", available=False)))
        result = run_category("security", reg, profile, scope)
        assert result.degraded
        assert result.findings == []
        assert "no heuristic" in result.notes[0]

    def test_overrides_and_disabled(self, profile, scope):
        a, b = MockAnalyzer("a"), MockAnalyzer("b")
        reg = _registry((_descriptor("a", priority=1), a), (_descriptor("b", priority=2), b))
        result = run_category("security", reg, profile, scope, overrides=["b"])
        assert result.source == "b"
        assert result.status == "ok"
        result = run_category("security", reg, profile, scope, disabled=frozenset({"a"}))
        assert result.source == "b"

    def test_timeout_bound_with_real_subprocess(self, profile, scope):
        sleepy = ToolDescriptor(
            name="sleepy", category="security", parser="semgrep",
            command=[sys.executable, "-c", "import time; time.sleep(5)"],
        )
        reg = ToolRegistry()
        reg.register(sleepy)
        reg.register_heuristic("security", _heuristic())
        reg.freeze()

        start = time.monotonic()
        result = run_category("security", reg, profile, scope, tool_timeout=0.5)
        elapsed = time.monotonic() - start

        assert elapsed < 3
        assert result.attempts[0].status == "timeout"
        assert result.source == "heuristic"
        assert result.degraded

    def test_timeout_capped_by_deadline(self, profile, scope):
        tool = MockAnalyzer("t")
        reg = _registry((_descriptor("t"), tool))
        run_category("security", reg, profile, scope, tool_timeout=120,
                     deadline=time.monotonic() + 2)
        assert tool.call_log[0].timeout <= 2


class TestRunAudit:
    def test_all_categories_collected_in_order(self, profile, scope):
        reg = _registry(heuristics={
            "security": _heuristic("security"),
            "complexity": _heuristic("complexity"),
            "documentation": _heuristic("documentation"),
        })
        results = run_audit(["documentation", "security", "complexity"], reg, profile, scope, workers=2)
        assert list(results) == ["documentation", "security", "complexity"]
        assert all(r.source == "heuristic" for r in results.values())

    def test_duplicate_categories_run_once(self, profile, scope):
        heuristic = _heuristic()
        reg = _registry(heuristics={"security": heuristic})
        results = run_audit(["security", "security"], reg, profile, scope)
        assert list(results) == ["security"]
        assert heuristic.call_count == 1

    def test_empty(self, profile, scope):
        assert run_audit([], ToolRegistry(), profile, scope) == {}

    def test_categories_run_in_parallel(self, profile, scope):
        reg = _registry(heuristics={
            c: MockAnalyzer("heuristic", delay=0.5) for c in ("a", "b", "c", "d")
        })
        start = time.monotonic()
        run_audit(["a", "b", "c", "d"], reg, profile, scope, workers=4)
        assert time.monotonic() - start < 1.5

    def test_deadline_marks_slow_category_skipped(self, profile, scope):
        reg = _registry(
            (_descriptor("slow", category="complexity"), SlowAnalyzer(3)),
            heuristics={"security": _heuristic("security"), "complexity": _heuristic("complexity")},
        )
        start = time.monotonic()
        results = run_audit(
            ["security", "complexity"], reg, profile, scope,
            workers=2, deadline_seconds=0.5,
        )
        assert time.monotonic() - start < 2
        assert results["security"].status == "degraded"
        assert results["security"].findings
        assert results["complexity"].skipped
        assert "deadline" in results["complexity"].notes[0]

    def test_queued_categories_skipped_at_deadline(self, profile, scope):
        reg = _registry(
            (_descriptor("slow", category="complexity"), SlowAnalyzer(2)),
            heuristics={"security": _heuristic("security"), "complexity": _heuristic("complexity")},
        )
        results = run_audit(
            ["complexity", "security"], reg, profile, scope,
            workers=1, deadline_seconds=0.3,
        )
        assert results["complexity"].skipped
        assert results["security"].skipped


class TestHelpers:
    def test_default_workers(self):
        assert default_workers(1) == 1
        assert default_workers(0) == 1
        assert default_workers(1000) >= 1

    def test_generate_run_id(self):
        rid = generate_run_id()
        assert rid.startswith("audit-")
        assert rid != generate_run_id()
