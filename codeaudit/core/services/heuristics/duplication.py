"""Duplication heuristic — identical blocks of normalized lines."""

from __future__ import annotations

import hashlib
import re
from collections import defaultdict

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer

WINDOW = 6

_WS_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"[A-Za-z0-9_]")
_IMPORT_RE = re.compile(r"^(?:import|from|using|require|#include|package)\b")


def _significant(line: str) -> str | None:
    """Normalized form of a line, or None if it carries no signal."""
    text = _WS_RE.sub(" ", line.strip())
    if len(_WORD_RE.findall(text)) < 3:
        return None
    if text.startswith(("#", "//", "*", "/*")) or _IMPORT_RE.match(text):
        return None
    return text


class DuplicationHeuristic(HeuristicAnalyzer):
    category = CheckCategory.DUPLICATION.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        windows: dict[str, list[tuple[str, int]]] = defaultdict(list)

        for path, rel in self.iter_sources(context):
            content = self.read_text(context, path, rel)
            if content is None:
                continue
            lines = [
                (num, norm)
                for num, raw in enumerate(content.splitlines(), 1)
                if (norm := _significant(raw)) is not None
            ]
            for i in range(len(lines) - WINDOW + 1):
                chunk = "\n".join(text for _, text in lines[i:i + WINDOW])
                digest = hashlib.blake2b(chunk.encode(), digest_size=12).hexdigest()
                windows[digest].append((rel, lines[i][0]))

        findings: list[Finding] = []
        reported: set[tuple[str, str]] = set()
        for occurrences in windows.values():
            if len(occurrences) < 2:
                continue
            orig_file, orig_line = occurrences[0]
            for file, line in occurrences[1:]:
                if file == orig_file and abs(line - orig_line) < WINDOW:
                    continue
                if (file, orig_file) in reported:
                    continue
                reported.add((file, orig_file))
                findings.append(self.finding(
                    "low",
                    f"Duplicated code with {orig_file}",
                    file=file,
                    line=line,
                    description=f"At least {WINDOW} lines repeat {orig_file}:{orig_line}",
                    evidence=f"{orig_file}:{orig_line}",
                    remediation="Extract the shared code into a common function or module",
                    tags=("duplication",),
                ))
        return findings
