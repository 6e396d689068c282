"""Audit configuration (.codeaudit.yml)."""

from codeaudit.core.config.loader import AuditConfig, find_config_file, load_config

__all__ = ["AuditConfig", "find_config_file", "load_config"]
