"""Dependency scanner — known vulnerabilities reported by ``npm audit``."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from vigil.audit.models import (
    DependencyResult,
    Domain,
    ScanWarning,
    Vulnerability,
    VulnerabilityCounts,
)
from vigil.scanners.base import CommandError, run_command

logger = logging.getLogger(__name__)

_MAX_VULNERABILITIES = 20
_AUDIT_TIMEOUT = 30.0


def parse_npm_audit(text: str) -> tuple[list[Vulnerability], VulnerabilityCounts]:
    """Parse ``npm audit --json`` output (npm 7+ format).

    Raises ``ValueError`` if *text* is not a JSON object of that shape or
    reports a negative count.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("npm audit output is not a JSON object")

    entries = data.get("vulnerabilities") or {}
    if not isinstance(entries, dict):
        raise ValueError("npm audit vulnerabilities is not an object")

    vulnerabilities: list[Vulnerability] = []
    for name, vuln in sorted(entries.items()):
        if not isinstance(vuln, dict):
            continue
        via = vuln.get("via") or []
        description = "No description available"
        if via and isinstance(via[0], dict) and via[0].get("title"):
            description = str(via[0]["title"])
        vulnerabilities.append(
            Vulnerability(
                name=name,
                severity=str(vuln.get("severity") or "info"),
                version=str(vuln.get("range") or "unknown"),
                description=description,
            )
        )

    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError("npm audit metadata is not an object")
    meta = metadata.get("vulnerabilities") or {}
    if not isinstance(meta, dict):
        raise ValueError("npm audit metadata.vulnerabilities is not an object")
    counts = VulnerabilityCounts(
        critical=_bucket(meta, "critical"),
        high=_bucket(meta, "high"),
        moderate=_bucket(meta, "moderate"),
        low=_bucket(meta, "low"),
        info=_bucket(meta, "info"),
    )
    return vulnerabilities, counts


def _bucket(meta: dict, name: str) -> int:
    count = int(meta.get(name) or 0)
    if count < 0:
        raise ValueError(f"negative {name} count in npm audit output: {count}")
    return count


class DependencyScanner:
    """Audits the project in *cwd* when it has a ``package.json``."""

    domain = Domain.DEPENDENCIES

    def __init__(self, cwd: str | Path | None = None) -> None:
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()

    async def run(self) -> DependencyResult:
        if not (self._cwd / "package.json").is_file():
            return DependencyResult(has_manifest=False)

        try:
            # npm audit exits non-zero when it finds vulnerabilities.
            out = await run_command(
                "npm", "audit", "--json", cwd=str(self._cwd), timeout=_AUDIT_TIMEOUT
            )
        except CommandError as exc:
            logger.debug("npm audit failed: %s", exc)
            return DependencyResult(has_manifest=True, warnings=[exc.to_warning("npm")])

        try:
            vulnerabilities, counts = parse_npm_audit(out.stdout)
        except (ValueError, TypeError) as exc:
            logger.debug("Could not parse npm audit output: %s", exc)
            return DependencyResult(
                has_manifest=True,
                warnings=[ScanWarning("npm", f"unparseable audit output: {exc}")],
            )

        return DependencyResult(
            has_manifest=True,
            vulnerabilities=vulnerabilities[:_MAX_VULNERABILITIES],
            total_vulnerabilities=len(vulnerabilities),
            counts=counts,
        )
