"""
Heuristic fallbacks — one pattern-based analyzer per check category.
"""

from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.heuristics.complexity import ComplexityHeuristic
from codeaudit.core.services.heuristics.dead_code import DeadCodeHeuristic
from codeaudit.core.services.heuristics.dependency import DependencyHeuristic
from codeaudit.core.services.heuristics.documentation import DocumentationHeuristic
from codeaudit.core.services.heuristics.duplication import DuplicationHeuristic
from codeaudit.core.services.heuristics.security import SecurityHeuristic
from codeaudit.core.services.heuristics.test_coverage import TestCoverageHeuristic

BUILTIN_HEURISTICS: tuple[type[HeuristicAnalyzer], ...] = (
    DependencyHeuristic,
    ComplexityHeuristic,
    DuplicationHeuristic,
    DeadCodeHeuristic,
    DocumentationHeuristic,
    SecurityHeuristic,
    TestCoverageHeuristic,
)

__all__ = [
    "BUILTIN_HEURISTICS",
    "ComplexityHeuristic",
    "DeadCodeHeuristic",
    "DependencyHeuristic",
    "DocumentationHeuristic",
    "DuplicationHeuristic",
    "HeuristicAnalyzer",
    "SecurityHeuristic",
    "TestCoverageHeuristic",
]
