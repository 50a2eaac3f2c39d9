"""Audit data models — findings, per-domain results, summary and report."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar


class Severity(enum.Enum):
    """Finding severity level."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(enum.Enum):
    """Overall risk of a scan, highest severity present wins."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    CLEAN = "CLEAN"


class Domain(enum.Enum):
    """Security domains inspected by a full scan, in canonical order."""

    NETWORK = "network"
    PROCESSES = "processes"
    FILESYSTEM = "filesystem"
    DEPENDENCIES = "dependencies"
    CONFIGURATION = "configuration"
    CONTAINERS = "containers"


DOMAIN_ORDER: tuple[Domain, ...] = tuple(Domain)


@dataclass(frozen=True)
class Finding:
    """A single observation produced by a domain scanner."""

    subject: str
    issue: str
    severity: Severity
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanWarning:
    """Why a domain result is partial or degraded."""

    source: str
    message: str


@dataclass
class DomainResult:
    """Base for the per-domain result variants.

    ``degraded`` is set when the scanner failed or timed out; such a result is
    distinguishable from a genuinely clean one.
    """

    domain: ClassVar[Domain]

    degraded: bool = False
    warnings: list[ScanWarning] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        """Findings counted by severity in the summary."""
        return []


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FirewallStatus:
    enabled: bool = False
    type: str = "none"


@dataclass(frozen=True)
class ListeningService:
    pid: str
    command: str
    port: str


@dataclass
class NetworkResult(DomainResult):
    domain: ClassVar[Domain] = Domain.NETWORK

    open_ports: list[Finding] = field(default_factory=list)
    firewall: FirewallStatus | None = None
    listening_services: list[ListeningService] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        return list(self.open_ports)


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessInfo:
    pid: str
    user: str
    command: str


@dataclass(frozen=True)
class EnvSecret:
    """An environment variable whose name suggests a secret. Never the value."""

    name: str
    kind: str


@dataclass
class ProcessResult(DomainResult):
    domain: ClassVar[Domain] = Domain.PROCESSES

    suspicious_processes: list[Finding] = field(default_factory=list)
    privileged_processes: list[ProcessInfo] = field(default_factory=list)
    env_secrets: list[EnvSecret] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        return list(self.suspicious_processes)


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrivilegedFile:
    """A SUID or SGID binary."""

    path: str
    kind: str
    mode: str


@dataclass
class FilesystemResult(DomainResult):
    domain: ClassVar[Domain] = Domain.FILESYSTEM

    sensitive_files: list[Finding] = field(default_factory=list)
    world_writable: list[Finding] = field(default_factory=list)
    suid_files: list[PrivilegedFile] = field(default_factory=list)
    exposed_secrets: list[Finding] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        return [*self.sensitive_files, *self.world_writable, *self.exposed_secrets]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vulnerability:
    name: str
    severity: str
    version: str
    description: str


@dataclass(frozen=True)
class VulnerabilityCounts:
    """Severity buckets as reported by the package auditor."""

    critical: int = 0
    high: int = 0
    moderate: int = 0
    low: int = 0
    info: int = 0


@dataclass
class DependencyResult(DomainResult):
    domain: ClassVar[Domain] = Domain.DEPENDENCIES

    has_manifest: bool = False
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    total_vulnerabilities: int = 0
    counts: VulnerabilityCounts = field(default_factory=VulnerabilityCounts)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class ConfigurationResult(DomainResult):
    domain: ClassVar[Domain] = Domain.CONFIGURATION

    ssh_issues: list[Finding] = field(default_factory=list)
    secrets_in_config: list[Finding] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        return [*self.ssh_issues, *self.secrets_in_config]


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContainerInfo:
    id: str
    name: str
    image: str
    issues: tuple[Finding, ...] = ()


@dataclass
class ContainerResult(DomainResult):
    domain: ClassVar[Domain] = Domain.CONTAINERS

    runtime_available: bool = False
    containers: list[ContainerInfo] = field(default_factory=list)

    def findings(self) -> list[Finding]:
        return [issue for c in self.containers for issue in c.issues]


RESULT_TYPES: dict[Domain, type[DomainResult]] = {
    Domain.NETWORK: NetworkResult,
    Domain.PROCESSES: ProcessResult,
    Domain.FILESYSTEM: FilesystemResult,
    Domain.DEPENDENCIES: DependencyResult,
    Domain.CONFIGURATION: ConfigurationResult,
    Domain.CONTAINERS: ContainerResult,
}


def empty_result(
    domain: Domain,
    degraded: bool = False,
    warnings: list[ScanWarning] | None = None,
) -> DomainResult:
    """Build an empty result for *domain*, optionally marked degraded."""
    return RESULT_TYPES[domain](degraded=degraded, warnings=list(warnings or []))


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Summary:
    """Severity counts and overall risk, always derived from results."""

    total_issues: int = 0
    critical_issues: int = 0
    high_issues: int = 0
    medium_issues: int = 0
    low_issues: int = 0
    risk_level: RiskLevel = RiskLevel.CLEAN


@dataclass(frozen=True)
class ScanReport:
    """One full scan run: the unit that gets hashed and signed."""

    timestamp: datetime
    hostname: str
    results: dict[Domain, DomainResult]
    summary: Summary

    @property
    def degraded_domains(self) -> list[Domain]:
        return [d for d in DOMAIN_ORDER if d in self.results and self.results[d].degraded]
