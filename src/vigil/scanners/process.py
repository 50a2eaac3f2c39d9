"""Process scanner — reverse-shell patterns, root processes, secrets in env."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

import psutil

from vigil.audit.models import (
    Domain,
    EnvSecret,
    Finding,
    ProcessInfo,
    ProcessResult,
    ScanWarning,
    Severity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ProcessPattern:
    regex: re.Pattern[str]
    description: str
    severity: Severity


SUSPICIOUS_PATTERNS: list[_ProcessPattern] = [
    _ProcessPattern(re.compile(r"\bnc\s+-l"), "Netcat listener (reverse shell)", Severity.CRITICAL),
    _ProcessPattern(re.compile(r"\bncat\s+-l"), "Ncat listener (reverse shell)", Severity.CRITICAL),
    _ProcessPattern(re.compile(r"socat"), "Socat (potential reverse shell)", Severity.HIGH),
    _ProcessPattern(re.compile(r"perl.*socket", re.I), "Perl socket (potential reverse shell)", Severity.HIGH),
    _ProcessPattern(re.compile(r"python.*socket", re.I), "Python socket (potential reverse shell)", Severity.HIGH),
    _ProcessPattern(re.compile(r"bash.*/dev/tcp", re.I), "Bash reverse shell", Severity.CRITICAL),
]

# Variable-name pattern → kind. First match wins.
SECRET_ENV_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"AWS_ACCESS_KEY", re.I), "AWS Access Key"),
    (re.compile(r"AWS_SECRET", re.I), "AWS Secret"),
    (re.compile(r"GITHUB_TOKEN", re.I), "GitHub Token"),
    (re.compile(r"API_KEY", re.I), "API Key"),
    (re.compile(r"PASSWORD", re.I), "Password"),
    (re.compile(r"SECRET", re.I), "Secret"),
    (re.compile(r"TOKEN", re.I), "Token"),
    (re.compile(r"PRIVATE_KEY", re.I), "Private Key"),
]

_MAX_PRIVILEGED = 10
_MAX_COMMAND_LEN = 100


@dataclass(frozen=True)
class ProcessSnapshot:
    pid: int
    user: str
    command: str


def scan_environment(env: Mapping[str, str]) -> list[EnvSecret]:
    """Flag variables whose names look like secrets. Values are never kept."""
    secrets: list[EnvSecret] = []
    for name in sorted(env):
        if not env[name]:
            continue
        for pattern, kind in SECRET_ENV_PATTERNS:
            if pattern.search(name):
                secrets.append(EnvSecret(name=name, kind=kind))
                break
    return secrets


def classify_process(proc: ProcessSnapshot) -> list[Finding]:
    """Return the findings for one process command line."""
    findings: list[Finding] = []
    metadata = {"pid": str(proc.pid), "user": proc.user}

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.regex.search(proc.command):
            findings.append(
                Finding(
                    subject=proc.command[:_MAX_COMMAND_LEN],
                    issue=pattern.description,
                    severity=pattern.severity,
                    metadata=dict(metadata),
                )
            )

    if "/tmp/" in proc.command:
        findings.append(
            Finding(
                subject=proc.command[:_MAX_COMMAND_LEN],
                issue="Process running from /tmp directory",
                severity=Severity.HIGH,
                metadata=metadata,
            )
        )
    return findings


class ProcessScanner:
    """Inspects running processes and the supplied environment snapshot.

    The environment is injected so callers (and tests) control exactly what
    is inspected; it defaults to a copy of this process's environment.
    """

    domain = Domain.PROCESSES

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = dict(os.environ if env is None else env)

    async def run(self) -> ProcessResult:
        warnings: list[ScanWarning] = []
        try:
            snapshots = await asyncio.to_thread(self._snapshot)
        except (psutil.Error, OSError) as exc:
            warnings.append(ScanWarning("process_iter", str(exc)))
            snapshots = []

        suspicious: list[Finding] = []
        privileged: list[ProcessInfo] = []
        own_pid = os.getpid()
        for proc in snapshots:
            if proc.pid == own_pid:
                continue
            suspicious.extend(classify_process(proc))
            if proc.user == "root" and len(privileged) < _MAX_PRIVILEGED:
                privileged.append(
                    ProcessInfo(
                        pid=str(proc.pid),
                        user=proc.user,
                        command=proc.command[:_MAX_COMMAND_LEN],
                    )
                )

        return ProcessResult(
            suspicious_processes=suspicious,
            privileged_processes=privileged,
            env_secrets=scan_environment(self._env),
            warnings=warnings,
        )

    @staticmethod
    def _snapshot() -> list[ProcessSnapshot]:
        snapshots: list[ProcessSnapshot] = []
        for proc in psutil.process_iter(["pid", "username", "cmdline", "name"]):
            info = proc.info
            cmdline = info.get("cmdline") or []
            command = " ".join(cmdline) if cmdline else (info.get("name") or "")
            if not command:
                continue
            snapshots.append(
                ProcessSnapshot(
                    pid=info["pid"],
                    user=info.get("username") or "unknown",
                    command=command,
                )
            )
        snapshots.sort(key=lambda p: p.pid)
        return snapshots
