"""
Scope — which part of the project an audit looks at.

Either the whole root, a subdirectory, or the files touched by a git
revision range (resolved into ``files`` before the run starts).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from codeaudit.core.models.finding import normalize_path


class Scope(BaseModel):
    model_config = ConfigDict(frozen=True)

    root: Path
    path: str | None = None
    diff: str | None = None
    files: frozenset[str] | None = None

    @property
    def target(self) -> Path:
        """Directory analyzers should point at."""
        if self.path:
            return self.root / self.path
        return self.root

    def contains(self, file: str | None) -> bool:
        """Whether a root-relative file path falls inside the scope.

        Project-wide findings (no file) are always in scope.
        """
        if not file:
            return True
        rel = normalize_path(file)
        if self.path:
            prefix = normalize_path(self.path)
            if prefix and rel != prefix and not rel.startswith(prefix + "/"):
                return False
        if self.files is not None:
            return rel in self.files
        return True

    def describe(self) -> str:
        parts = []
        if self.path:
            parts.append(f"path={normalize_path(self.path)}")
        if self.diff:
            parts.append(f"diff={self.diff}")
        return ", ".join(parts) or "full"
