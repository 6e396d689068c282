"""
Shared file-walking rules for the profiler and the heuristics.

Everything here is read-only: files are listed and read, never written.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


SKIP_DIRS = frozenset({
    ".git", ".hg", ".svn", ".venv", "venv", "env", "node_modules", "__pycache__",
    ".mypy_cache", ".ruff_cache", ".pytest_cache", ".tox", ".nox",
    "dist", "build", ".eggs", ".terraform", "target", "vendor",
    "htmlcov", "coverage", ".next", ".idea", ".vscode",
})

SKIP_EXTENSIONS = frozenset({
    ".pyc", ".pyo", ".so", ".dll", ".exe", ".bin", ".class", ".jar", ".o", ".a",
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg", ".webp",
    ".mp4", ".mp3", ".wav", ".avi", ".mov",
    ".zip", ".tar", ".gz", ".bz2", ".xz", ".7z",
    ".woff", ".woff2", ".ttf", ".eot",
    ".pdf", ".doc", ".docx",
    ".lock",
})

SOURCE_EXTENSIONS: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".swift": "swift",
}

# Inline suppression:  code  # nosec   /   code  // nosec
_NOSEC_RE = re.compile(r"(?:#|//)\s*nosec\b", re.IGNORECASE)


def has_nosec(line: str) -> bool:
    """Check if a line has an inline nosec suppression comment."""
    return bool(_NOSEC_RE.search(line))


def language_of(path: Path) -> str | None:
    return SOURCE_EXTENSIONS.get(path.suffix.lower())


def walk_files(
    root: Path,
    *,
    start: Path | None = None,
    max_depth: int | None = None,
    max_files: int | None = None,
) -> Iterator[Path]:
    """Yield files under ``start`` (default ``root``), pruning skip dirs.

    Unlistable subdirectories are logged and skipped; only the caller
    decides whether an unreadable *root* is fatal.
    """
    base = start or root
    base_depth = len(base.parts)
    count = 0

    def _on_error(err: OSError) -> None:
        logger.debug("Cannot list %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(base, onerror=_on_error):
        current = Path(dirpath)
        depth = len(current.parts) - base_depth
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in SKIP_DIRS and not d.endswith(".egg-info")
        )
        if max_depth is not None and depth >= max_depth:
            dirnames[:] = []

        for name in sorted(filenames):
            path = current / name
            if path.suffix.lower() in SKIP_EXTENSIONS:
                continue
            yield path
            count += 1
            if max_files is not None and count >= max_files:
                return
