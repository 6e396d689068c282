"""
Heuristic analyzer base — the tool-independent fallback.

A heuristic runs when no specialized tool is installed (or all of them
failed). It walks the scoped tree, applies pattern rules and produces
lower-confidence findings tagged ``provenance=heuristic``.

Unreadable files are skipped and noted on the context; the run deadline
is checked between files.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.core.errors import HeuristicFailure, ToolTimeout
from codeaudit.core.models.finding import HEURISTIC, Confidence, Finding, Severity
from codeaudit.core.services.scan_common import language_of, walk_files

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 512_000  # 512KB


class HeuristicAnalyzer(Analyzer):
    """Base class for per-category pattern scanners.

    Subclasses set ``category`` and implement ``scan``.
    """

    category: str = ""
    max_files: int = 5000

    @property
    def name(self) -> str:
        return HEURISTIC

    def is_available(self) -> bool:
        return True

    def run(self, context: AnalysisContext) -> list[Any]:
        findings = self.scan(context)
        logger.debug("Heuristic %s produced %d finding(s)", self.category, len(findings))
        return findings

    def scan(self, context: AnalysisContext) -> list[Finding]:
        raise NotImplementedError

    # ── File access ─────────────────────────────────────────────

    def iter_files(
        self,
        context: AnalysisContext,
        *,
        languages: set[str] | None = None,
    ) -> Iterator[tuple[Path, str]]:
        """Yield (absolute path, root-relative path) for scoped files."""
        root = context.scope.root
        for path in walk_files(root, start=context.scope.target, max_files=self.max_files):
            if context.deadline_passed():
                raise ToolTimeout(self.name, context.timeout or 0.0)
            rel = path.relative_to(root).as_posix()
            if not context.scope.contains(rel):
                continue
            if languages is not None and language_of(path) not in languages:
                continue
            yield path, rel

    def iter_sources(self, context: AnalysisContext) -> Iterator[tuple[Path, str]]:
        """Scoped files in any recognized programming language."""
        for path, rel in self.iter_files(context):
            if language_of(path):
                yield path, rel

    def read_text(self, context: AnalysisContext, path: Path, rel: str) -> str | None:
        """Read a text file; None for unreadable (noted), binary or huge files."""
        try:
            return _read(path, rel)
        except HeuristicFailure as e:
            logger.debug("Skipping %s", e)
            context.notes.append(f"skipped {e}")
            return None

    # ── Finding construction ────────────────────────────────────

    def finding(
        self,
        severity: Severity | str,
        title: str,
        *,
        file: str | None = None,
        line: int | None = None,
        end_line: int | None = None,
        description: str = "",
        evidence: str | tuple[str, ...] = (),
        remediation: str = "",
        confidence: Confidence | str = Confidence.LOW,
        tags: tuple[str, ...] = (),
    ) -> Finding:
        return Finding(
            category=self.category,
            severity=severity,
            title=title,
            file=file,
            line=line,
            end_line=end_line,
            description=description,
            evidence=evidence,
            remediation=remediation,
            provenance=(HEURISTIC,),
            confidence=confidence,
            tags=tags,
        )


def _read(path: Path, rel: str) -> str | None:
    try:
        if path.stat().st_size > MAX_FILE_SIZE:
            return None
        data = path.read_bytes()
    except OSError as e:
        raise HeuristicFailure(rel, e.strerror or str(e)) from e
    if b"\x00" in data[:1024]:
        return None
    return data.decode("utf-8", errors="replace")
