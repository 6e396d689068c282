"""
Mock analyzer — test double for the fallback chain.

Configurable availability, findings, failure and artificial delay.
Records every context it receives so tests can assert which candidates
ran.
"""

from __future__ import annotations

import threading
import time
from typing import Any

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.core.errors import AnalyzerError, ToolTimeout


class MockAnalyzer(Analyzer):
    """Universal mock analyzer.

    By default available and returns no findings. ``delay`` simulates a
    slow tool: when it exceeds the context timeout the mock sleeps for
    the timeout and raises ToolTimeout, like a killed subprocess.
    """

    def __init__(
        self,
        analyzer_name: str = "mock",
        available: bool = True,
        findings: list[Any] | None = None,
        error: AnalyzerError | Exception | None = None,
        delay: float = 0.0,
    ):
        self._name = analyzer_name
        self._available = available
        self._findings = list(findings or [])
        self._error = error
        self._delay = delay
        self._lock = threading.Lock()
        self._call_log: list[AnalysisContext] = []
        self.probe_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[AnalysisContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def is_available(self) -> bool:
        self.probe_count += 1
        return self._available

    def set_findings(self, findings: list[Any]) -> None:
        self._findings = list(findings)

    def set_failure(self, error: AnalyzerError | Exception) -> None:
        self._error = error

    def run(self, context: AnalysisContext) -> list[Any]:
        with self._lock:
            self._call_log.append(context)

        if self._delay:
            budget = context.timeout
            if budget is not None and self._delay > budget:
                time.sleep(budget)
                raise ToolTimeout(self._name, budget)
            time.sleep(self._delay)

        if self._error is not None:
            raise self._error
        return list(self._findings)

    def reset(self) -> None:
        self._call_log.clear()
        self.probe_count = 0
