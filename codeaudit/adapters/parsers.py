"""
Output parsers — turn captured tool output into finding records.

Each parser takes a ToolOutput and the AnalysisContext and returns a
list of plain dict records shaped like Finding. The adapter stamps
category/provenance, and the aggregator validates the records, so a
parser only has to map the tool's vocabulary.

Parsers raise ToolOutputParseError when the output is not what the
tool is documented to emit.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.errors import ToolOutputParseError

logger = logging.getLogger(__name__)


@dataclass
class ToolOutput:
    """Captured result of one tool invocation."""

    tool: str
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    files: dict[str, str] = field(default_factory=dict)  # temp output files by name


Parser = Callable[[ToolOutput, AnalysisContext], list[dict[str, Any]]]

PARSERS: dict[str, Parser] = {}


def parser(name: str) -> Callable[[Parser], Parser]:
    """Register a parser under ``name``."""

    def decorate(fn: Parser) -> Parser:
        PARSERS[name] = fn
        return fn

    return decorate


def get_parser(name: str) -> Parser:
    try:
        return PARSERS[name]
    except KeyError:
        raise ToolOutputParseError(name, f"unknown parser '{name}'") from None


def _load_json(output: ToolOutput, text: str | None = None) -> Any:
    raw = output.stdout if text is None else text
    if not raw or not raw.strip():
        raise ToolOutputParseError(output.tool, "empty output")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolOutputParseError(output.tool, f"invalid JSON: {e}") from e


def _output_file(output: ToolOutput, name: str = "output") -> str:
    text = output.files.get(name)
    if text is None:
        raise ToolOutputParseError(output.tool, f"missing output file '{name}'")
    return text


def _python_manifest(context: AnalysisContext) -> str | None:
    for name in ("requirements.txt", "pyproject.toml", "Pipfile", "setup.py"):
        if (context.scope.root / name).is_file():
            return name
    return None


# ── Dependency audit ────────────────────────────────────────────


@parser("pip-audit")
def parse_pip_audit(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    deps = data if isinstance(data, list) else data.get("dependencies", [])
    manifest = _python_manifest(context)
    records = []
    for dep in deps:
        name = dep.get("name", "unknown")
        version = dep.get("version", "")
        for vuln in dep.get("vulns") or []:
            vuln_id = vuln.get("id", "N/A")
            fixes = vuln.get("fix_versions") or []
            records.append({
                "severity": "high",
                "title": f"{name} {version}: {vuln_id}",
                "description": vuln.get("description") or "Known vulnerability",
                "file": manifest,
                "evidence": (f"{name}=={version}",),
                "remediation": (
                    f"Upgrade {name} to {', '.join(fixes)}" if fixes
                    else "No fixed version published yet"
                ),
                "tags": ("dependency", "vulnerability", *vuln.get("aliases", [])),
            })
    return records


@parser("npm-audit")
def parse_npm_audit(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    if "error" in data and "vulnerabilities" not in data:
        raise ToolOutputParseError(output.tool, str(data["error"].get("summary", "audit error")))
    records = []
    for pkg, info in (data.get("vulnerabilities") or {}).items():
        titles, cves = [], []
        for via in info.get("via", []):
            if isinstance(via, dict):
                if via.get("title"):
                    titles.append(via["title"])
                if via.get("url"):
                    cves.append(via["url"].rsplit("/", 1)[-1])
        fix = info.get("fixAvailable", False)
        records.append({
            "severity": info.get("severity", "info"),
            "title": f"{pkg}: {', '.join(cves) if cves else 'vulnerable dependency'}",
            "description": "; ".join(titles) or "Vulnerability reported by npm audit",
            "file": "package.json",
            "evidence": (f"{pkg} {info.get('range', '')}".strip(),),
            "remediation": "Run `npm audit fix`" if fix else "No automatic fix available",
            "tags": ("dependency", "vulnerability"),
        })
    return records


@parser("cargo-audit")
def parse_cargo_audit(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    records = []
    for item in (data.get("vulnerabilities") or {}).get("list", []):
        advisory = item.get("advisory", {})
        package = item.get("package", {})
        patched = (item.get("versions") or {}).get("patched", [])
        records.append({
            "severity": advisory.get("severity") or "high",
            "title": f"{package.get('name', 'unknown')}: {advisory.get('id', 'N/A')}",
            "description": advisory.get("title") or advisory.get("description", ""),
            "file": "Cargo.toml",
            "evidence": (f"{package.get('name')} {package.get('version', '')}".strip(),),
            "remediation": f"Upgrade to {', '.join(patched)}" if patched else "",
            "tags": ("dependency", "vulnerability"),
        })
    return records


@parser("osv-scanner")
def parse_osv_scanner(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    records = []
    for result in data.get("results", []):
        source = (result.get("source") or {}).get("path", "")
        for pkg in result.get("packages", []):
            meta = pkg.get("package", {})
            for vuln in pkg.get("vulnerabilities", []):
                severity = (vuln.get("database_specific") or {}).get("severity", "medium")
                records.append({
                    "severity": severity,
                    "title": f"{meta.get('name', 'unknown')}: {vuln.get('id', 'N/A')}",
                    "description": vuln.get("summary", ""),
                    "file": source or None,
                    "evidence": (f"{meta.get('name')} {meta.get('version', '')}".strip(),),
                    "remediation": "Upgrade to a version outside the affected range",
                    "tags": _tags("dependency", "vulnerability", meta.get("ecosystem")),
                })
    return records


# ── Code quality ────────────────────────────────────────────────

_RADON_SEVERITY = {"C": "low", "D": "medium", "E": "high", "F": "high"}


@parser("radon-cc")
def parse_radon_cc(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    if not isinstance(data, dict):
        raise ToolOutputParseError(output.tool, "expected a mapping of files")
    records = []
    for path, blocks in data.items():
        if isinstance(blocks, dict):  # {"error": "..."} for unparsable files
            continue
        for block in blocks:
            rank = block.get("rank", "A")
            if rank not in _RADON_SEVERITY:
                continue
            records.append({
                "severity": _RADON_SEVERITY[rank],
                "title": f"High cyclomatic complexity in {block.get('name', '?')}",
                "description": (
                    f"{block.get('type', 'block')} {block.get('name')} has complexity "
                    f"{block.get('complexity')} (rank {rank})"
                ),
                "file": path,
                "line": block.get("lineno"),
                "end_line": block.get("endline"),
                "remediation": "Split the function into smaller units",
                "tags": ("complexity",),
            })
    return records


def _ruff_severity(code: str) -> str:
    if code.startswith("C9"):
        return "medium"
    if code.startswith("S"):
        return "high"
    return "low"


@parser("ruff")
def parse_ruff(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output) if output.stdout.strip() else []
    if not isinstance(data, list):
        raise ToolOutputParseError(output.tool, "expected a list of diagnostics")
    records = []
    for diag in data:
        code = diag.get("code") or ""
        location = diag.get("location") or {}
        end = diag.get("end_location") or {}
        records.append({
            "severity": _ruff_severity(code),
            "title": f"{code}: {diag.get('message', '')}".strip(": "),
            "description": diag.get("message", ""),
            "file": diag.get("filename"),
            "line": location.get("row"),
            "end_line": end.get("row"),
            "remediation": diag.get("url") or "",
            "tags": (code,),
        })
    return records


@parser("jscpd")
def parse_jscpd(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output, _output_file(output, "jscpd-report.json"))
    records = []
    for dup in data.get("duplicates", []):
        first = dup.get("firstFile", {})
        second = dup.get("secondFile", {})
        lines = int(dup.get("lines", 0))
        records.append({
            "severity": "medium" if lines >= 50 else "low",
            "title": f"Duplicated block with {second.get('name', '?')}",
            "description": f"{lines} duplicated lines ({dup.get('format', 'text')})",
            "file": first.get("name"),
            "line": first.get("start"),
            "end_line": first.get("end"),
            "evidence": (f"{second.get('name')}:{second.get('start')}-{second.get('end')}",),
            "remediation": "Extract the shared code into a common function or module",
            "tags": ("duplication",),
        })
    return records


_VULTURE_RE = re.compile(r"^(?P<file>.+?):(?P<line>\d+): (?P<message>.+?) \((?P<conf>\d+)% confidence")


@parser("vulture")
def parse_vulture(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    records = []
    for line in output.stdout.splitlines():
        if not line.strip():
            continue
        match = _VULTURE_RE.match(line.strip())
        if not match:
            raise ToolOutputParseError(output.tool, f"unrecognized line: {line[:80]}")
        conf = int(match.group("conf"))
        records.append({
            "severity": "low",
            "title": match.group("message").capitalize(),
            "description": match.group("message"),
            "file": match.group("file"),
            "line": int(match.group("line")),
            "confidence": "high" if conf >= 90 else "medium" if conf >= 60 else "low",
            "remediation": "Remove the unused code or whitelist it if used dynamically",
            "tags": ("dead-code",),
        })
    return records


# ── Security ────────────────────────────────────────────────────


@parser("semgrep")
def parse_semgrep(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    if "results" not in data:
        raise ToolOutputParseError(output.tool, "missing 'results'")
    records = []
    for res in data["results"]:
        extra = res.get("extra", {})
        meta = extra.get("metadata", {})
        cwe = meta.get("cwe", [])
        tags = [res.get("check_id", "").rsplit(".", 1)[-1]]
        tags.extend(cwe if isinstance(cwe, list) else [cwe])
        if meta.get("category"):
            tags.append(meta["category"])
        references = meta.get("references") or []
        records.append({
            "severity": extra.get("severity", "info"),
            "title": extra.get("message", res.get("check_id", "semgrep finding")).split("\n")[0][:160],
            "description": extra.get("message", ""),
            "file": res.get("path"),
            "line": (res.get("start") or {}).get("line"),
            "end_line": (res.get("end") or {}).get("line"),
            "evidence": (extra.get("lines", "").strip(),) if extra.get("lines") else (),
            "remediation": extra.get("fix") or (references[0] if references else ""),
            "tags": tuple(t for t in tags if t),
        })
    return records


@parser("bandit")
def parse_bandit(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    if "results" not in data:
        raise ToolOutputParseError(output.tool, "missing 'results'")
    records = []
    for res in data["results"]:
        records.append({
            "severity": res.get("issue_severity", "low"),
            "confidence": str(res.get("issue_confidence", "medium")).lower(),
            "title": f"{res.get('test_id', '')} {res.get('test_name', '')}".strip(),
            "description": res.get("issue_text", ""),
            "file": res.get("filename"),
            "line": res.get("line_number"),
            "evidence": (res.get("code", "").strip(),) if res.get("code") else (),
            "remediation": res.get("more_info", ""),
            "tags": _tags(res.get("test_name"), _cwe(res.get("issue_cwe"))),
        })
    return records


def _cwe(value: Any) -> str:
    cwe_id = (value or {}).get("id") if isinstance(value, dict) else None
    return f"CWE-{cwe_id}" if cwe_id else ""


def _tags(*values: Any) -> tuple[str, ...]:
    return tuple(str(v) for v in values if v)


def _first_line(value: Any) -> int | None:
    m = re.match(r"\d+", str(value or ""))
    return int(m.group(0)) if m else None


@parser("gosec")
def parse_gosec(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output)
    records = []
    for issue in data.get("Issues") or []:
        records.append({
            "severity": issue.get("severity", "medium"),
            "confidence": str(issue.get("confidence", "medium")).lower(),
            "title": f"{issue.get('rule_id', '')}: {issue.get('details', '')}".strip(": "),
            "description": issue.get("details", ""),
            "file": issue.get("file"),
            "line": _first_line(issue.get("line")),
            "evidence": (issue.get("code", "").strip(),) if issue.get("code") else (),
            "tags": _tags(issue.get("rule_id"), _cwe(issue.get("cwe"))),
        })
    return records


@parser("gitleaks")
def parse_gitleaks(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output, _output_file(output))
    if not isinstance(data, list):
        raise ToolOutputParseError(output.tool, "expected a list of leaks")
    records = []
    for leak in data:
        records.append({
            "severity": "critical",
            "title": f"Hardcoded secret: {leak.get('Description') or leak.get('RuleID', 'secret')}",
            "description": f"Rule {leak.get('RuleID', '?')} matched",
            "file": leak.get("File"),
            "line": leak.get("StartLine"),
            "end_line": leak.get("EndLine"),
            "evidence": (leak.get("Match", ""),) if leak.get("Match") else (),
            "remediation": "Revoke the credential and load it from the environment or a secret store",
            "tags": ("secret", "credential", leak.get("RuleID", "")),
        })
    return records


# ── Test coverage ───────────────────────────────────────────────


@parser("coverage-json")
def parse_coverage_json(output: ToolOutput, context: AnalysisContext) -> list[dict]:
    data = _load_json(output, _output_file(output))
    if "files" not in data:
        raise ToolOutputParseError(output.tool, "missing 'files'")
    records = []
    total = (data.get("totals") or {}).get("percent_covered")
    if total is not None and total < 80:
        records.append({
            "severity": "high" if total < 50 else "medium",
            "title": "Low overall test coverage",
            "description": f"Total line coverage is {total:.1f}%",
            "remediation": "Add tests for the least covered modules first",
            "tags": ("coverage",),
        })
    for path, info in data["files"].items():
        summary = info.get("summary", {})
        pct = summary.get("percent_covered")
        if pct is None or pct >= 50:
            continue
        missing = info.get("missing_lines") or []
        records.append({
            "severity": "medium" if pct == 0 else "low",
            "title": "Untested module" if pct == 0 else "Poorly covered module",
            "description": f"{pct:.1f}% of lines covered",
            "file": path,
            "line": missing[0] if missing else None,
            "remediation": "Add unit tests exercising this module",
            "tags": ("coverage",),
        })
    return records
