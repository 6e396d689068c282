"""
Domain models — Pydantic types for an audit run.

    from codeaudit.core.models import Finding, Severity, ProjectProfile, Report
"""

from codeaudit.core.models.finding import (
    ALL_CATEGORIES,
    HEURISTIC,
    CheckCategory,
    Confidence,
    Finding,
    Severity,
    normalize_path,
    normalize_title,
)
from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.models.report import CategoryResult, Report, ReportMetadata, ToolAttempt
from codeaudit.core.models.scope import Scope
from codeaudit.core.models.tool import ToolDescriptor

__all__ = [
    "ALL_CATEGORIES",
    "HEURISTIC",
    "CategoryResult",
    "CheckCategory",
    "Confidence",
    "Finding",
    "ProjectProfile",
    "Report",
    "ReportMetadata",
    "Scope",
    "Severity",
    "ToolAttempt",
    "ToolDescriptor",
    "normalize_path",
    "normalize_title",
]
