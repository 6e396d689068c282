"""Security heuristic — hardcoded secrets and dangerous calls."""

from __future__ import annotations

import re

from codeaudit.adapters.base import AnalysisContext
from codeaudit.core.models.finding import CheckCategory, Confidence, Finding
from codeaudit.core.services.heuristics.base import HeuristicAnalyzer
from codeaudit.core.services.scan_common import has_nosec

# Each pattern: (name, regex, severity, description, tags)
SECRET_PATTERNS: list[tuple[str, re.Pattern[str], str, str, tuple[str, ...]]] = [
    (
        "AWS Access Key",
        re.compile(r"AKIA[0-9A-Z]{16}"),
        "critical",
        "AWS IAM access key ID",
        ("secret", "credential", "aws"),
    ),
    (
        "GitHub Token",
        re.compile(r"gh[pousr]_[A-Za-z0-9]{36}|github_pat_[A-Za-z0-9_]{82}"),
        "critical",
        "GitHub access token",
        ("secret", "token"),
    ),
    (
        "Google API Key",
        re.compile(r"AIza[0-9A-Za-z\-_]{35}"),
        "high",
        "Google API key",
        ("secret", "api-key"),
    ),
    (
        "Slack Token",
        re.compile(r"xox[baprs]-[0-9A-Za-z-]{10,}"),
        "high",
        "Slack token",
        ("secret", "token"),
    ),
    (
        "Stripe Secret Key",
        re.compile(r"sk_live_[0-9a-zA-Z]{24,}"),
        "critical",
        "Stripe live secret key",
        ("secret", "credential"),
    ),
    (
        "Private Key",
        re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----"),
        "critical",
        "Private key material embedded in source",
        ("secret", "credential"),
    ),
    (
        "Database URL with credentials",
        re.compile(r"""(?:postgres(?:ql)?|mysql|mongodb(?:\+srv)?|redis|amqp)://[^\s:'"/]+:[^\s@'"]+@"""),
        "high",
        "Connection string with embedded credentials",
        ("secret", "database"),
    ),
    (
        "JWT",
        re.compile(r"eyJ[A-Za-z0-9_-]{10,}\.eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}"),
        "high",
        "Hardcoded JWT",
        ("secret", "token", "jwt"),
    ),
    (
        "Password Assignment",
        re.compile(r"""(?i)\b(?:password|passwd|pwd|secret|api_?key)\s*[=:]\s*['"][^'"\s]{6,}['"]"""),
        "medium",
        "Hardcoded credential value",
        ("secret", "password"),
    ),
]

# Each rule: (title, regex, severity, remediation, tags)
DANGEROUS_CALLS: list[tuple[str, re.Pattern[str], str, str, tuple[str, ...]]] = [
    (
        "Use of eval/exec",
        re.compile(r"(?<![\w.])(?:eval|exec)\s*\("),
        "high",
        "Avoid evaluating dynamic code; parse input explicitly",
        ("eval", "injection", "input"),
    ),
    (
        "Shell command built from input",
        re.compile(r"shell\s*=\s*True|os\.system\s*\(|child_process\.exec\s*\("),
        "high",
        "Pass an argument list and avoid the shell",
        ("shell", "injection", "input"),
    ),
    (
        "Unsafe deserialization",
        re.compile(r"pickle\.loads?\s*\(|yaml\.load\s*\((?![^)]*SafeLoader)|marshal\.loads?\s*\("),
        "high",
        "Use a safe loader (yaml.safe_load, JSON) for untrusted data",
        ("deserialization", "input"),
    ),
    (
        "SQL built with string formatting",
        re.compile(
            r"""(?i)(?:execute|query|raw)\s*\(\s*(?:f['"]|['"][^'"]*(?:SELECT|INSERT|UPDATE|DELETE)\b[^'"]*['"]\s*(?:%|\+|\.format))"""
        ),
        "high",
        "Use parameterized queries",
        ("sql", "injection", "database"),
    ),
    (
        "TLS verification disabled",
        re.compile(r"verify\s*=\s*False|rejectUnauthorized\s*:\s*false|InsecureSkipVerify\s*:\s*true"),
        "medium",
        "Keep certificate verification enabled",
        ("tls", "http", "network"),
    ),
    (
        "Weak hash algorithm",
        re.compile(r"(?i)\b(?:hashlib\.)?(?:md5|sha1)\s*\("),
        "low",
        "Use SHA-256 or a password hashing function",
        ("crypto", "hash"),
    ),
    (
        "Debug mode enabled",
        re.compile(r"(?i)\bDEBUG\s*=\s*True\b|app\.run\([^)]*debug\s*=\s*True"),
        "medium",
        "Disable debug mode outside development",
        ("config", "debug"),
    ),
]

# Files expected to hold secrets locally (never committed templates)
_EXPECTED_SECRET_FILES = frozenset({
    ".env", ".env.example", ".env.sample", ".env.template", ".env.local",
})

_COMMENT_PREFIXES = ("#", "//", "*", "/*")


def _preview(raw: str) -> str:
    """Redact most of a matched secret."""
    return raw[:6] + "****" + raw[-3:] if len(raw) > 12 else "****"


class SecurityHeuristic(HeuristicAnalyzer):
    category = CheckCategory.SECURITY.value

    def scan(self, context: AnalysisContext) -> list[Finding]:
        findings: list[Finding] = []

        for path, rel in self.iter_files(context):
            if path.name in _EXPECTED_SECRET_FILES:
                continue
            content = self.read_text(context, path, rel)
            if content is None:
                continue
            is_source = path.suffix.lower() in {
                ".py", ".js", ".jsx", ".ts", ".tsx", ".go", ".rb", ".php", ".java", ".cs",
            }

            for line_num, line in enumerate(content.splitlines(), 1):
                stripped = line.strip()
                if not stripped or has_nosec(stripped):
                    continue

                finding = self._match_secret(rel, line_num, line)
                if finding is None and is_source and not stripped.startswith(_COMMENT_PREFIXES):
                    finding = self._match_call(rel, line_num, stripped)
                if finding is not None:
                    findings.append(finding)

        return findings

    def _match_secret(self, rel: str, line_num: int, line: str) -> Finding | None:
        for name, pattern, severity, description, tags in SECRET_PATTERNS:
            match = pattern.search(line)
            if match:
                return self.finding(
                    severity,
                    f"Hardcoded secret: {name}",
                    file=rel,
                    line=line_num,
                    description=description,
                    evidence=_preview(match.group(0)),
                    remediation="Revoke the value and load it from the environment or a secret store",
                    confidence=Confidence.MEDIUM,
                    tags=tags,
                )
        return None

    def _match_call(self, rel: str, line_num: int, stripped: str) -> Finding | None:
        for title, pattern, severity, remediation, tags in DANGEROUS_CALLS:
            if pattern.search(stripped):
                return self.finding(
                    severity,
                    title,
                    file=rel,
                    line=line_num,
                    evidence=stripped[:160],
                    remediation=remediation,
                    tags=tags,
                )
        return None
