"""
Git helpers — resolve a diff-range scope into a file list.

Read-only: only ``git diff --name-only`` is ever run, through the git
CLI.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from codeaudit.core.errors import ConfigError

logger = logging.getLogger(__name__)


def is_available() -> bool:
    return shutil.which("git") is not None


def changed_files(root: Path, diff_range: str, timeout: int = 30) -> frozenset[str]:
    """Files (relative to ``root``) touched by a revision range.

    Args:
        root: Repository working tree.
        diff_range: Anything ``git diff`` accepts, e.g. ``main...HEAD``.

    Raises:
        ConfigError: git is missing or the range cannot be resolved.
    """
    if not is_available():
        raise ConfigError("git is not installed; cannot resolve a diff scope")

    try:
        result = subprocess.run(
            ["git", "diff", "--name-only", "--diff-filter=ACMR", "--relative", diff_range],
            cwd=str(root),
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ConfigError(f"git diff timed out after {timeout}s") from e
    except OSError as e:
        raise ConfigError(f"Cannot run git: {e}") from e

    if result.returncode != 0:
        raise ConfigError(
            f"Cannot resolve diff range '{diff_range}': {result.stderr.strip()}"
        )

    files = frozenset(line.strip() for line in result.stdout.splitlines() if line.strip())
    logger.info("Diff scope %s → %d file(s)", diff_range, len(files))
    return files
