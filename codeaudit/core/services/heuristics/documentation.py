"""Documentation heuristic — README presence and Python docstrings."""

from __future__ import annotations

import ast

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Confidence, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.scan_common import language_of

_README_NAMES = ("README.md", "README.rst", "README.txt", "README", "readme.md")
MIN_README_LINES = 10


class DocumentationHeuristic(HeuristicAnalyzer):
    category = CheckCategory.DOCUMENTATION.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        findings = self._check_readme(context)

        for path, rel in self.iter_sources(context):
            if language_of(path) != "python" or rel.rsplit("/", 1)[-1].startswith("test"):
                continue
            content = self.read_text(context, path, rel)
            if content is None:
                continue
            try:
                tree = ast.parse(content, filename=rel)
            except (SyntaxError, ValueError):
                context.notes.append(f"skipped {rel}: cannot parse")
                continue
            findings.extend(self._check_docstrings(rel, tree))

        return findings

    def _check_readme(self, context: AnalysisContext) -> list[Finding]:
        target = context.scope.target
        readme = next((target / n for n in _README_NAMES if (target / n).is_file()), None)
        if readme is None:
            if context.scope.files is not None:
                return []  # diff scopes only judge changed files
            return [self.finding(
                "medium",
                "Missing README",
                description="The project has no README at its root",
                remediation="Add a README covering purpose, setup and usage",
                confidence=Confidence.HIGH,
                tags=("docs",),
            )]

        rel = readme.relative_to(context.scope.root).as_posix()
        content = self.read_text(context, readme, rel) or ""
        lines = [ln for ln in content.splitlines() if ln.strip()]
        if len(lines) < MIN_README_LINES:
            return [self.finding(
                "low",
                "README is very short",
                file=rel,
                description=f"{len(lines)} non-empty lines",
                remediation="Document installation, usage and configuration",
                tags=("docs",),
            )]
        return []

    def _check_docstrings(self, rel: str, tree: ast.Module) -> list[Finding]:
        findings = []
        public = [
            node for node in tree.body
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef))
            and not node.name.startswith("_")
        ]
        if public and ast.get_docstring(tree) is None:
            findings.append(self.finding(
                "info",
                "Module has no docstring",
                file=rel,
                line=1,
                remediation="Describe what the module provides",
                tags=("docs",),
            ))

        for node in public:
            if ast.get_docstring(node) is None:
                kind = "class" if isinstance(node, ast.ClassDef) else "function"
                findings.append(self.finding(
                    "low",
                    f"Public {kind} {node.name} has no docstring",
                    file=rel,
                    line=node.lineno,
                    remediation="Document parameters, return value and errors",
                    confidence=Confidence.HIGH,
                    tags=("docs",),
                ))
        return findings
