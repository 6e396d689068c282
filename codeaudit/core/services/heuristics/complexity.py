"""Complexity heuristic — long, branchy or deeply nested code."""

from __future__ import annotations

import ast

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Confidence, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.scan_common import language_of

MAX_FUNCTION_LINES = 60
MAX_BRANCHES = 10
MAX_NESTING = 4
MAX_FILE_LINES = 1000
MAX_BRACE_DEPTH = 6

_BRANCH_NODES = (
    ast.If, ast.For, ast.AsyncFor, ast.While, ast.ExceptHandler,
    ast.With, ast.AsyncWith, ast.IfExp, ast.comprehension, ast.Assert,
)
_NESTING_NODES = (ast.If, ast.For, ast.AsyncFor, ast.While, ast.Try, ast.With, ast.AsyncWith)
_FUNC_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


def cyclomatic(node: ast.AST) -> int:
    """McCabe-style count: 1 + decision points, not descending into nested defs."""
    count = 1
    for child in _walk_body(node):
        if isinstance(child, _BRANCH_NODES):
            count += 1
        elif isinstance(child, ast.BoolOp):
            count += len(child.values) - 1
        elif isinstance(child, ast.match_case):
            count += 1
    return count


def max_nesting(node: ast.AST, depth: int = 0) -> int:
    deepest = depth
    for child in ast.iter_child_nodes(node):
        if isinstance(child, _FUNC_NODES + (ast.ClassDef,)):
            continue
        child_depth = depth + 1 if isinstance(child, _NESTING_NODES) else depth
        deepest = max(deepest, max_nesting(child, child_depth))
    return deepest


def _walk_body(node: ast.AST):
    stack = list(ast.iter_child_nodes(node))
    while stack:
        child = stack.pop()
        if isinstance(child, _FUNC_NODES + (ast.ClassDef, ast.Lambda)):
            continue
        yield child
        stack.extend(ast.iter_child_nodes(child))


class ComplexityHeuristic(HeuristicAnalyzer):
    category = CheckCategory.COMPLEXITY.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        findings: list[Finding] = []
        for path, rel in self.iter_sources(context):
            content = self.read_text(context, path, rel)
            if content is None:
                continue
            if language_of(path) == "python":
                findings.extend(self._scan_python(context, rel, content))
            else:
                findings.extend(self._scan_braces(rel, content))
        return findings

    def _scan_python(self, context: AnalysisContext, rel: str, content: str) -> list[Finding]:
        try:
            tree = ast.parse(content, filename=rel)
        except (SyntaxError, ValueError) as e:
            context.notes.append(f"skipped {rel}: cannot parse ({e.__class__.__name__})")
            return []

        findings = []
        for node in ast.walk(tree):
            if not isinstance(node, _FUNC_NODES):
                continue
            length = (node.end_lineno or node.lineno) - node.lineno + 1
            branches = cyclomatic(node)
            nesting = max_nesting(node)

            if branches > MAX_BRANCHES:
                findings.append(self.finding(
                    "high" if branches > 2 * MAX_BRANCHES else "medium",
                    f"Function {node.name} is too complex",
                    file=rel,
                    line=node.lineno,
                    end_line=node.end_lineno,
                    description=f"Cyclomatic complexity ~{branches} (limit {MAX_BRANCHES})",
                    remediation="Split the function into smaller units",
                    confidence=Confidence.MEDIUM,
                    tags=("complexity",),
                ))
            if length > MAX_FUNCTION_LINES:
                findings.append(self.finding(
                    "medium" if length > 2 * MAX_FUNCTION_LINES else "low",
                    f"Function {node.name} is too long",
                    file=rel,
                    line=node.lineno,
                    end_line=node.end_lineno,
                    description=f"{length} lines (limit {MAX_FUNCTION_LINES})",
                    remediation="Extract helpers for distinct steps",
                    confidence=Confidence.MEDIUM,
                    tags=("complexity",),
                ))
            if nesting > MAX_NESTING:
                findings.append(self.finding(
                    "medium",
                    f"Deeply nested code in {node.name}",
                    file=rel,
                    line=node.lineno,
                    description=f"Nesting depth {nesting} (limit {MAX_NESTING})",
                    remediation="Use early returns or extract inner blocks",
                    tags=("complexity",),
                ))
        return findings

    def _scan_braces(self, rel: str, content: str) -> list[Finding]:
        findings = []
        lines = content.splitlines()
        if len(lines) > MAX_FILE_LINES:
            findings.append(self.finding(
                "low",
                "File is very large",
                file=rel,
                description=f"{len(lines)} lines (limit {MAX_FILE_LINES})",
                remediation="Split the file by responsibility",
                tags=("complexity",),
            ))

        depth = deepest = 0
        deepest_line = 0
        for line_num, line in enumerate(lines, 1):
            code = line.split("//", 1)[0]
            for ch in code:
                if ch == "{":
                    depth += 1
                    if depth > deepest:
                        deepest, deepest_line = depth, line_num
                elif ch == "}":
                    depth = max(0, depth - 1)
        if deepest > MAX_BRACE_DEPTH:
            findings.append(self.finding(
                "medium",
                "Deeply nested code",
                file=rel,
                line=deepest_line,
                description=f"Brace depth {deepest} (limit {MAX_BRACE_DEPTH})",
                remediation="Use early returns or extract inner blocks",
                tags=("complexity",),
            ))
        return findings
