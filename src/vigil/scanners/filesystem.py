"""Filesystem scanner — permissions on sensitive files, SUID binaries, secrets files."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import Sequence
from pathlib import Path

from vigil.audit.models import (
    Domain,
    FilesystemResult,
    Finding,
    PrivilegedFile,
    ScanWarning,
    Severity,
)

logger = logging.getLogger(__name__)

# Home-relative path → severity when group/world readable.
SENSITIVE_FILES: list[tuple[str, Severity]] = [
    (".ssh/id_rsa", Severity.CRITICAL),
    (".ssh/id_ed25519", Severity.CRITICAL),
    (".aws/credentials", Severity.HIGH),
    (".env", Severity.HIGH),
    (".env.local", Severity.HIGH),
    (".npmrc", Severity.MEDIUM),
    (".netrc", Severity.HIGH),
]

HOME_SECRET_FILES = [
    ".env",
    ".env.local",
    ".env.production",
    ".env.development",
    "config.json",
    "config.yaml",
    "config.yml",
    ".npmrc",
    ".aws/credentials",
]

CWD_SECRET_FILES = [".env", ".env.local", "config.json"]

WORLD_WRITABLE_ROOTS = ("/tmp", "/var/tmp")
SUID_ROOTS = ("/usr/bin", "/usr/sbin", "/bin", "/sbin")

_MAX_WORLD_WRITABLE = 20
_MAX_SUID = 20


class FilesystemScanner:
    """Inspects file permissions and well-known secrets locations.

    All roots are constructor arguments so tests can point the scanner at a
    temporary tree.
    """

    domain = Domain.FILESYSTEM

    def __init__(
        self,
        home: str | Path | None = None,
        cwd: str | Path | None = None,
        world_writable_roots: Sequence[str | Path] = WORLD_WRITABLE_ROOTS,
        suid_roots: Sequence[str | Path] = SUID_ROOTS,
    ) -> None:
        self._home = Path(home) if home is not None else Path.home()
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._world_writable_roots = [Path(p) for p in world_writable_roots]
        self._suid_roots = [Path(p) for p in suid_roots]

    async def run(self) -> FilesystemResult:
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> FilesystemResult:
        warnings: list[ScanWarning] = []
        return FilesystemResult(
            sensitive_files=self._check_sensitive_files(),
            world_writable=self._find_world_writable(warnings),
            suid_files=self._find_suid(warnings),
            exposed_secrets=self._find_exposed_secrets(),
            warnings=warnings,
        )

    def _check_sensitive_files(self) -> list[Finding]:
        issues: list[Finding] = []
        for rel, severity in SENSITIVE_FILES:
            path = self._home / rel
            try:
                mode = stat.S_IMODE(path.stat().st_mode)
            except OSError:
                continue
            if mode & 0o044:
                issues.append(
                    Finding(
                        subject=str(path),
                        issue="Sensitive file has overly permissive permissions",
                        severity=severity,
                        metadata={"permissions": format(mode & 0o777, "o")},
                    )
                )
        return issues

    def _find_world_writable(self, warnings: list[ScanWarning]) -> list[Finding]:
        files: list[Finding] = []
        for path in self._walk_files(self._world_writable_roots, warnings):
            try:
                mode = path.lstat().st_mode
            except OSError:
                continue
            if stat.S_ISREG(mode) and mode & stat.S_IWOTH:
                files.append(
                    Finding(
                        subject=str(path),
                        issue="World-writable file",
                        severity=Severity.MEDIUM,
                    )
                )
                if len(files) >= _MAX_WORLD_WRITABLE:
                    break
        return files

    def _find_suid(self, warnings: list[ScanWarning]) -> list[PrivilegedFile]:
        files: list[PrivilegedFile] = []
        for path in self._walk_files(self._suid_roots, warnings, recursive=False):
            try:
                mode = path.lstat().st_mode
            except OSError:
                continue
            if not stat.S_ISREG(mode) or not mode & (stat.S_ISUID | stat.S_ISGID):
                continue
            files.append(
                PrivilegedFile(
                    path=str(path),
                    kind="SUID" if mode & stat.S_ISUID else "SGID",
                    mode=format(stat.S_IMODE(mode), "o"),
                )
            )
            if len(files) >= _MAX_SUID:
                break
        return files

    def _find_exposed_secrets(self) -> list[Finding]:
        secrets: list[Finding] = []
        for rel in HOME_SECRET_FILES:
            path = self._home / rel
            if path.is_file() and os.access(path, os.R_OK):
                secrets.append(
                    Finding(
                        subject=str(path),
                        issue="Potential secrets file found",
                        severity=Severity.MEDIUM,
                    )
                )

        for rel in CWD_SECRET_FILES:
            path = self._cwd / rel
            if path.is_file() and os.access(path, os.R_OK):
                secrets.append(
                    Finding(
                        subject=str(path),
                        issue="Potential secrets file in current directory",
                        severity=Severity.HIGH,
                    )
                )
        return secrets

    @staticmethod
    def _walk_files(roots: list[Path], warnings: list[ScanWarning], recursive: bool = True):
        """Yield files under *roots* in sorted order, skipping unreadable dirs."""

        def _onerror(exc: OSError) -> None:
            logger.debug("Skipping %s: %s", exc.filename, exc)

        for root in roots:
            if not root.is_dir():
                continue
            if not recursive:
                try:
                    names = sorted(os.listdir(root))
                except OSError as exc:
                    warnings.append(ScanWarning(str(root), str(exc)))
                    continue
                for name in names:
                    yield root / name
                continue

            for dirpath, dirs, files in os.walk(root, onerror=_onerror):
                dirs.sort()
                for name in sorted(files):
                    yield Path(dirpath) / name
