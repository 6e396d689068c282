"""
Analyzer base — the contract between the engine and every analyzer.

External tools (ToolCommandAdapter) and pattern-based fallbacks
(HeuristicAnalyzer) implement the same interface, so the engine picks
between them by walking the registry's candidate list, never by
branching on the category.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.models.scope import Scope


class AnalysisContext(BaseModel):
    """Everything an analyzer needs to produce findings for one category.

    ``timeout`` is the wall-clock budget for this invocation (already
    capped at the remaining run deadline). ``deadline`` is the absolute
    ``time.monotonic()`` value at which the run gives up, if any.
    Analyzers append non-fatal diagnostics to ``notes``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    category: str
    profile: ProjectProfile
    scope: Scope
    timeout: float | None = None
    deadline: float | None = None
    notes: list[str] = Field(default_factory=list)

    @property
    def root(self) -> Path:
        return self.scope.root

    def deadline_passed(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline


class Analyzer(ABC):
    """Abstract base class for all analyzers.

    run() returns findings (Finding instances or raw dict records the
    aggregator validates). Failures are signalled with the non-fatal
    errors in ``codeaudit.core.errors``: ToolUnavailable, ToolTimeout,
    ToolOutputParseError, ToolExecutionError.

    To add an analyzer:
        1. Subclass Analyzer
        2. Implement name, is_available, run
        3. Register it in the ToolRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used as provenance (e.g. 'bandit', 'heuristic')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap existence check. Never runs an analysis, never raises."""

    @abstractmethod
    def run(self, context: AnalysisContext) -> list[Any]:
        """Produce findings for ``context.category``."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
