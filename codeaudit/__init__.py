"""codeaudit — multi-category code review orchestration."""

__version__ = "0.1.0"
