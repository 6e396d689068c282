"""
Detection service — build the project profile.

Looks at the audited root and determines which languages, manifests and
package managers are present. Nothing is executed: manifests are found
by name and languages by manifest or source-file extension.

Pure logic — no side effects, no persistence.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

from codeaudit.core.errors import RootUnreadable
from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.services.scan_common import language_of, walk_files

logger = logging.getLogger(__name__)


# ── Manifest markers ────────────────────────────────────────────
#
# file name (or glob) → (languages, package manager)

_MANIFESTS: dict[str, tuple[tuple[str, ...], str | None]] = {
    # Python
    "pyproject.toml": (("python",), "pip"),
    "requirements.txt": (("python",), "pip"),
    "setup.py": (("python",), "pip"),
    "setup.cfg": (("python",), "pip"),
    "Pipfile": (("python",), "pipenv"),
    # JavaScript / TypeScript
    "package.json": (("javascript",), "npm"),
    "yarn.lock": (("javascript",), "yarn"),
    "pnpm-lock.yaml": (("javascript",), "pnpm"),
    "tsconfig.json": (("typescript",), None),
    # Go
    "go.mod": (("go",), "go"),
    # Rust
    "Cargo.toml": (("rust",), "cargo"),
    # JVM
    "pom.xml": (("java",), "maven"),
    "build.gradle": (("java",), "gradle"),
    "build.gradle.kts": (("kotlin",), "gradle"),
    # Ruby
    "Gemfile": (("ruby",), "bundler"),
    # PHP
    "composer.json": (("php",), "composer"),
    # .NET
    "*.csproj": (("csharp",), "nuget"),
    "*.fsproj": (("fsharp",), "nuget"),
    # Elixir
    "mix.exs": (("elixir",), "mix"),
}


def _match_manifest(name: str) -> tuple[tuple[str, ...], str | None] | None:
    hit = _MANIFESTS.get(name)
    if hit is not None:
        return hit
    for pattern, value in _MANIFESTS.items():
        if "*" in pattern and fnmatch.fnmatch(name, pattern):
            return value
    return None


class ProjectProfiler:
    """Inspect a filesystem root and produce a ProjectProfile.

    Args:
        max_depth: How deep to look for manifests (monorepos keep
            packages a few levels down).
        max_files: Cap on files sampled for extension-based detection.
    """

    def __init__(self, max_depth: int = 4, max_files: int = 5000):
        self.max_depth = max_depth
        self.max_files = max_files

    def detect(self, root: Path | str) -> ProjectProfile:
        """Build the profile for ``root``.

        Raises:
            RootUnreadable: root is missing, not a directory, or unlistable.
        """
        root = Path(root)
        check_root(root)
        root = root.resolve()

        languages: set[str] = set()
        manifests: set[str] = set()
        managers: set[str] = set()

        for path in walk_files(root, max_depth=self.max_depth, max_files=self.max_files):
            hit = _match_manifest(path.name)
            if hit is not None:
                langs, manager = hit
                manifests.add(path.relative_to(root).as_posix())
                languages.update(langs)
                if manager:
                    managers.add(manager)
                continue

            lang = language_of(path)
            if lang:
                languages.add(lang)

        profile = ProjectProfile(
            root=str(root),
            languages=frozenset(languages),
            manifests=frozenset(manifests),
            package_managers=frozenset(managers),
        )
        logger.info(
            "Profiled %s: languages=%s, manifests=%d",
            root, ",".join(sorted(languages)) or "-", len(manifests),
        )
        return profile


def check_root(root: Path) -> None:
    """Raise RootUnreadable unless ``root`` is a listable directory."""
    if not root.exists():
        raise RootUnreadable(str(root), "does not exist")
    if not root.is_dir():
        raise RootUnreadable(str(root), "not a directory")
    try:
        os.listdir(root)
    except OSError as e:
        raise RootUnreadable(str(root), e.strerror or str(e)) from e


def detect_profile(root: Path | str) -> ProjectProfile:
    """Profile ``root`` with default limits."""
    return ProjectProfiler().detect(root)
