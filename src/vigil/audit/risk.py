"""Risk aggregation — severity counts and the overall risk ladder."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from vigil.audit.models import (
    DOMAIN_ORDER,
    RESULT_TYPES,
    DependencyResult,
    Domain,
    DomainResult,
    FilesystemResult,
    NetworkResult,
    ProcessResult,
    RiskLevel,
    Severity,
    Summary,
)


@dataclass
class _Counts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def add(self, severity: Severity, n: int = 1) -> None:
        if severity is Severity.CRITICAL:
            self.critical += n
        elif severity is Severity.HIGH:
            self.high += n
        elif severity is Severity.MEDIUM:
            self.medium += n
        elif severity is Severity.LOW:
            self.low += n


# Structural penalties: conditions that are not findings themselves but still
# contribute to the counts.


def _add_penalties(result: DomainResult, counts: _Counts) -> None:
    if isinstance(result, NetworkResult):
        # Absent status counts the same as disabled.
        if result.firewall is None or not result.firewall.enabled:
            counts.add(Severity.HIGH)
    elif isinstance(result, ProcessResult):
        counts.add(Severity.HIGH, len(result.env_secrets))
    elif isinstance(result, FilesystemResult):
        counts.add(Severity.LOW, len(result.suid_files))
    elif isinstance(result, DependencyResult):
        counts.add(Severity.CRITICAL, result.counts.critical)
        counts.add(Severity.HIGH, result.counts.high)
        counts.add(Severity.MEDIUM, result.counts.moderate)
        counts.add(Severity.LOW, result.counts.low)


def risk_level(critical: int, high: int, medium: int, low: int) -> RiskLevel:
    """Strict priority ladder: the highest non-empty severity wins."""
    if critical > 0:
        return RiskLevel.CRITICAL
    if high > 0:
        return RiskLevel.HIGH
    if medium > 0:
        return RiskLevel.MEDIUM
    if low > 0:
        return RiskLevel.LOW
    return RiskLevel.CLEAN


def summarize(results: Mapping[Domain, DomainResult]) -> Summary:
    """Derive the summary from per-domain results. Pure and deterministic."""
    counts = _Counts()

    for domain in DOMAIN_ORDER:
        result = results.get(domain)
        # A result filed under the wrong domain is not counted.
        if not isinstance(result, RESULT_TYPES[domain]):
            continue
        for finding in result.findings():
            counts.add(finding.severity)
        _add_penalties(result, counts)

    return Summary(
        total_issues=counts.critical + counts.high + counts.medium + counts.low,
        critical_issues=counts.critical,
        high_issues=counts.high,
        medium_issues=counts.medium,
        low_issues=counts.low,
        risk_level=risk_level(counts.critical, counts.high, counts.medium, counts.low),
    )
