"""Test-coverage heuristic — source modules without a matching test file."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.errors import ToolTimeout
from codeaudit.core.models.finding import CheckCategory, Confidence, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.scan_common import walk_files

_TEST_NAME_RE = re.compile(
    r"^(?:test_(?P<a>.+)\.py|(?P<b>.+)_test\.(?:py|go)|(?P<c>.+)\.(?:test|spec)\.[jt]sx?|"
    r"(?P<d>.+)Test\.(?:java|kt)|(?P<e>.+)_spec\.rb)$"
)
_TEST_DIRS = frozenset({"test", "tests", "__tests__", "spec", "specs"})

# Modules that rarely deserve their own test file
_EXEMPT = frozenset({"__init__", "__main__", "conftest", "setup", "manage", "index", "main"})


def subject_of_test(name: str) -> str | None:
    """Module stem a test file name refers to, e.g. test_api.py → api."""
    match = _TEST_NAME_RE.match(name)
    if not match:
        return None
    return next(g for g in match.groups() if g)


def is_test_path(rel: str) -> bool:
    path = PurePosixPath(rel)
    return subject_of_test(path.name) is not None or bool(_TEST_DIRS & set(path.parts[:-1]))


class TestCoverageHeuristic(HeuristicAnalyzer):
    category = CheckCategory.TEST_COVERAGE.value

    __test__ = False  # not a pytest class

    def scan(self, context: AnalysisContext) -> list[Finding]:
        # Tests are looked up across the whole root even for narrow scopes
        tested: set[str] = set()
        test_count = 0
        root = context.scope.root
        for path in walk_files(root, max_files=self.max_files):
            if context.deadline_passed():
                raise ToolTimeout(self.name, context.timeout or 0.0)
            rel = path.relative_to(root).as_posix()
            if is_test_path(rel):
                subject = subject_of_test(path.name)
                if subject:
                    tested.add(subject.lower())
                test_count += 1

        sources = [
            (path, rel) for path, rel in self.iter_sources(context)
            if not is_test_path(rel)
        ]
        if not sources:
            return []

        if test_count == 0:
            return [self.finding(
                "high",
                "No tests found",
                description=f"{len(sources)} source file(s) and no test files",
                remediation="Add a test suite and run it in CI",
                confidence=Confidence.MEDIUM,
                tags=("coverage", "testing"),
            )]

        findings = []
        for path, rel in sources:
            stem = path.stem
            if stem in _EXEMPT or stem.lower() in tested:
                continue
            findings.append(self.finding(
                "low",
                "Module has no matching test file",
                file=rel,
                description=f"No test file refers to '{stem}'",
                remediation=f"Add tests for {stem}",
                tags=("coverage", "testing"),
            ))
        return findings
