"""Adapters — analyzer bindings for external tools.

Public re-exports for convenient access.
"""

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.adapters.mock import MockAnalyzer
from codeaudit.adapters.registry import ToolRegistry

__all__ = [
    "AnalysisContext",
    "Analyzer",
    "MockAnalyzer",
    "ToolRegistry",
]
