"""Configuration scanner — unsafe sshd directives and secrets in config files."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from vigil.audit.models import ConfigurationResult, Domain, Finding, Severity

logger = logging.getLogger(__name__)

SSHD_CONFIG = Path("/etc/ssh/sshd_config")

SSH_DIRECTIVES: list[tuple[re.Pattern[str], str, Severity]] = [
    (re.compile(r"^PermitRootLogin\s+yes", re.I), "SSH allows root login", Severity.HIGH),
    (re.compile(r"^PasswordAuthentication\s+yes", re.I), "SSH allows password authentication", Severity.MEDIUM),
    (re.compile(r"^PermitEmptyPasswords\s+yes", re.I), "SSH allows empty passwords", Severity.CRITICAL),
]


@dataclass(frozen=True)
class SecretPattern:
    regex: re.Pattern[str]
    kind: str
    severity: Severity


SECRET_PATTERNS: list[SecretPattern] = [
    SecretPattern(re.compile(r"AKIA[0-9A-Z]{16}"), "AWS Access Key", Severity.CRITICAL),
    SecretPattern(re.compile(r"ghp_[a-zA-Z0-9]{36}"), "GitHub Personal Access Token", Severity.CRITICAL),
    SecretPattern(re.compile(r"gho_[a-zA-Z0-9]{36}"), "GitHub OAuth Token", Severity.CRITICAL),
    SecretPattern(re.compile(r"sk-[a-zA-Z0-9]{48}"), "OpenAI API Key", Severity.CRITICAL),
    SecretPattern(re.compile(r"-----BEGIN\s+(?:RSA\s+)?PRIVATE\s+KEY-----"), "Private Key", Severity.CRITICAL),
    SecretPattern(re.compile(r"password\s*[:=]\s*[\"']?[^\"'\s]{8,}", re.I), "Password", Severity.HIGH),
    SecretPattern(re.compile(r"api[_-]?key\s*[:=]\s*[\"']?[a-zA-Z0-9]{16,}", re.I), "API Key", Severity.HIGH),
]

_MAX_FILE_SIZE = 1_048_576
_MAX_MATCHES_PER_FILE = 3
_MAX_MATCH_LEN = 50


def check_sshd_config(text: str, path: str) -> list[Finding]:
    issues: list[Finding] = []
    for line in text.splitlines():
        stripped = line.strip()
        for regex, issue, severity in SSH_DIRECTIVES:
            if regex.match(stripped):
                issues.append(
                    Finding(
                        subject=path,
                        issue=issue,
                        severity=severity,
                        metadata={"line": stripped},
                    )
                )
    return issues


def _truncate(text: str) -> str:
    if len(text) > _MAX_MATCH_LEN:
        return text[:_MAX_MATCH_LEN] + "..."
    return text


def find_secrets(text: str, path: str) -> list[Finding]:
    """Report up to three unique matches of the first pattern that hits."""
    for pattern in SECRET_PATTERNS:
        matches = list(dict.fromkeys(m.group(0) for m in pattern.regex.finditer(text)))
        if not matches:
            continue
        return [
            Finding(
                subject=path,
                issue=f"Potential {pattern.kind} detected",
                severity=pattern.severity,
                metadata={"match": _truncate(match)},
            )
            for match in matches[:_MAX_MATCHES_PER_FILE]
        ]
    return []


def default_config_files(home: Path, cwd: Path) -> list[Path]:
    return [
        cwd / ".env",
        cwd / ".env.local",
        cwd / ".env.production",
        cwd / "config.json",
        cwd / "config.yaml",
        cwd / "config.yml",
        home / ".aws" / "credentials",
        home / ".npmrc",
    ]


class ConfigurationScanner:
    domain = Domain.CONFIGURATION

    def __init__(
        self,
        sshd_config: str | Path = SSHD_CONFIG,
        config_files: Sequence[str | Path] | None = None,
    ) -> None:
        self._sshd_config = Path(sshd_config)
        if config_files is None:
            config_files = default_config_files(Path.home(), Path.cwd())
        self._config_files = [Path(p) for p in config_files]

    async def run(self) -> ConfigurationResult:
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> ConfigurationResult:
        ssh_issues: list[Finding] = []
        text = _read_text(self._sshd_config)
        if text is not None:
            ssh_issues = check_sshd_config(text, str(self._sshd_config))

        secrets: list[Finding] = []
        for path in self._config_files:
            text = _read_text(path)
            if text is None:
                continue
            secrets.extend(find_secrets(text, str(path)))

        return ConfigurationResult(ssh_issues=ssh_issues, secrets_in_config=secrets)


def _read_text(path: Path) -> str | None:
    """Read a small text file, or None if missing, unreadable or too large."""
    try:
        if not path.is_file() or path.stat().st_size > _MAX_FILE_SIZE:
            return None
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError as e:
        logger.debug("Skipping %s: %s", path, e)
        return None
