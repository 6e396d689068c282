"""Dead-code heuristic — unreferenced Python definitions, commented-out code."""

from __future__ import annotations

import ast
import re
from collections import Counter

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Confidence, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.scan_common import language_of

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_CODE_COMMENT_RE = re.compile(
    r"^\s*(?:#|//)\s*(?:def |class |return\b|import |from \S+ import|if .+:|for .+:|"
    r"\w+\s*=\s*\S|\w+(?:\.\w+)*\(.*\)\s*;?$|function\s+\w+|const |let |var )"
)
_MIN_COMMENTED_BLOCK = 3

# Names that frameworks call implicitly
_IMPLICIT = frozenset({"main", "setup", "teardown", "setUp", "tearDown"})


class DeadCodeHeuristic(HeuristicAnalyzer):
    category = CheckCategory.DEAD_CODE.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        findings: list[Finding] = []
        usage: Counter[str] = Counter()
        definitions: list[tuple[str, str, int, str]] = []  # (rel, name, line, kind)

        for path, rel in self.iter_sources(context):
            content = self.read_text(context, path, rel)
            if content is None:
                continue
            usage.update(_IDENT_RE.findall(content))
            findings.extend(self._commented_blocks(rel, content))

            if language_of(path) != "python" or _is_test_file(rel):
                continue
            try:
                tree = ast.parse(content, filename=rel)
            except (SyntaxError, ValueError):
                context.notes.append(f"skipped {rel}: cannot parse")
                continue
            for node in tree.body:
                if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                    kind = "class" if isinstance(node, ast.ClassDef) else "function"
                    definitions.append((rel, node.name, node.lineno, kind))

        for rel, name, line, kind in definitions:
            if name.startswith("__") or name in _IMPLICIT or name.startswith("test"):
                continue
            # The definition itself accounts for one occurrence
            if usage[name] <= 1:
                findings.append(self.finding(
                    "low",
                    f"Unused {kind} {name}",
                    file=rel,
                    line=line,
                    description=f"'{name}' is never referenced in the scanned sources",
                    remediation="Remove it, or document why it is used dynamically",
                    confidence=Confidence.LOW,
                    tags=("dead-code",),
                ))
        return findings

    def _commented_blocks(self, rel: str, content: str) -> list[Finding]:
        findings = []
        run_start = 0
        run_len = 0
        for line_num, line in enumerate(content.splitlines() + [""], 1):
            if _CODE_COMMENT_RE.match(line):
                if run_len == 0:
                    run_start = line_num
                run_len += 1
                continue
            if run_len >= _MIN_COMMENTED_BLOCK:
                findings.append(self.finding(
                    "info",
                    "Commented-out code",
                    file=rel,
                    line=run_start,
                    end_line=run_start + run_len - 1,
                    description=f"{run_len} consecutive lines of commented-out code",
                    remediation="Delete it; version control keeps the history",
                    tags=("dead-code",),
                ))
            run_len = 0
        return findings


def _is_test_file(rel: str) -> bool:
    name = rel.rsplit("/", 1)[-1]
    return name.startswith("test_") or name.endswith("_test.py") or "/tests/" in f"/{rel}"
