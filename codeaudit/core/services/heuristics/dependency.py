"""Dependency heuristic — manifest hygiene without a vulnerability database."""

from __future__ import annotations

import json
import re
from pathlib import Path

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer

# manifest → lock files that pin it
_LOCKS: dict[str, tuple[str, ...]] = {
    "package.json": ("package-lock.json", "yarn.lock", "pnpm-lock.yaml", "npm-shrinkwrap.json"),
    "Pipfile": ("Pipfile.lock",),
    "pyproject.toml": ("poetry.lock", "pdm.lock", "uv.lock", "requirements.txt"),
    "Cargo.toml": ("Cargo.lock",),
    "Gemfile": ("Gemfile.lock",),
    "composer.json": ("composer.lock",),
    "go.mod": ("go.sum",),
}

_REQ_LINE_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)(\[[^\]]*\])?\s*(.*)$")
_VCS_RE = re.compile(r"^(?:-e\s+)?(?:git\+|hg\+|svn\+|https?://)")


class DependencyHeuristic(HeuristicAnalyzer):
    category = CheckCategory.DEPENDENCY_AUDIT.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        findings: list[Finding] = []

        for path, rel in self.iter_files(context):
            name = path.name
            if name in _LOCKS:
                findings.extend(self._check_lock(context, path, rel))
            if name.startswith("requirements") and name.endswith(".txt"):
                content = self.read_text(context, path, rel)
                if content is not None:
                    findings.extend(self._check_requirements(rel, content))
            elif name == "package.json":
                content = self.read_text(context, path, rel)
                if content is not None:
                    findings.extend(self._check_package_json(rel, content, context))

        return findings

    def _check_lock(self, context: AnalysisContext, path: Path, rel: str) -> list[Finding]:
        if any((path.parent / lock).is_file() for lock in _LOCKS[path.name]):
            return []
        # pyproject.toml without dependencies needs no lock
        if path.name == "pyproject.toml":
            text = self.read_text(context, path, rel)
            if text is None or "dependencies" not in text:
                return []
        return [self.finding(
            "medium",
            "Dependencies are not locked",
            file=rel,
            description=f"No lock file found next to {path.name}; builds are not reproducible",
            remediation=f"Commit one of: {', '.join(_LOCKS[path.name])}",
            tags=("dependency", "supply-chain"),
        )]

    def _check_requirements(self, rel: str, content: str) -> list[Finding]:
        findings = []
        for line_num, raw in enumerate(content.splitlines(), 1):
            line = raw.split("#", 1)[0].strip()
            if not line or line.startswith(("-r", "-c", "--")):
                continue
            if _VCS_RE.match(line):
                findings.append(self.finding(
                    "low",
                    "Dependency installed from a URL",
                    file=rel,
                    line=line_num,
                    evidence=line,
                    remediation="Publish the package or pin the exact commit hash",
                    tags=("dependency", "supply-chain"),
                ))
                continue
            match = _REQ_LINE_RE.match(line)
            if match and "==" not in match.group(3) and "@" not in match.group(3):
                findings.append(self.finding(
                    "low",
                    "Unpinned dependency",
                    file=rel,
                    line=line_num,
                    evidence=line,
                    remediation="Pin an exact version (pkg==x.y.z) or use a lock file",
                    tags=("dependency",),
                ))
        return findings

    def _check_package_json(self, rel: str, content: str, context: AnalysisContext) -> list[Finding]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            context.notes.append(f"skipped {rel}: invalid JSON ({e.msg})")
            return []
        if not isinstance(data, dict):
            return []

        findings = []
        for section in ("dependencies", "devDependencies"):
            for pkg, spec in (data.get(section) or {}).items():
                spec = str(spec).strip()
                if spec in ("*", "latest", "") or spec.startswith(("x", ">")):
                    findings.append(self.finding(
                        "medium",
                        "Wildcard dependency version",
                        file=rel,
                        evidence=f"{pkg}: {spec or '(empty)'}",
                        remediation="Use a bounded semver range and a lock file",
                        tags=("dependency",),
                    ))
                elif spec.startswith(("git", "http", "github:", "file:")):
                    findings.append(self.finding(
                        "low",
                        "Dependency installed from a URL",
                        file=rel,
                        evidence=f"{pkg}: {spec}",
                        remediation="Publish the package or pin the exact commit hash",
                        tags=("dependency", "supply-chain"),
                    ))
        return findings
