"""Report display — builds Rich renderables from a ScanReport."""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vigil.audit.canonical import format_timestamp
from vigil.audit.models import (
    DOMAIN_ORDER,
    DependencyResult,
    Domain,
    FilesystemResult,
    NetworkResult,
    ProcessResult,
    RiskLevel,
    ScanReport,
    Severity,
)

SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "magenta",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

RISK_COLORS = {
    RiskLevel.CRITICAL: "bold red",
    RiskLevel.HIGH: "bold magenta",
    RiskLevel.MEDIUM: "bold yellow",
    RiskLevel.LOW: "bold blue",
    RiskLevel.CLEAN: "bold green",
}

_SEVERITY_ORDER = {s: i for i, s in enumerate(Severity)}


def render_summary(report: ScanReport) -> Panel:
    s = report.summary
    color = RISK_COLORS[s.risk_level]
    lines = [
        f"Host: [cyan]{report.hostname}[/cyan]   Time: {format_timestamp(report.timestamp)}",
        f"Risk level: [{color}]{s.risk_level.value}[/{color}]   "
        f"Issues: {s.total_issues} "
        f"([red]{s.critical_issues} critical[/red], "
        f"[magenta]{s.high_issues} high[/magenta], "
        f"[yellow]{s.medium_issues} medium[/yellow], "
        f"[blue]{s.low_issues} low[/blue])",
    ]
    lines.extend(_structural_notes(report))
    degraded = report.degraded_domains
    if degraded:
        names = ", ".join(d.value for d in degraded)
        lines.append(f"[yellow]Degraded domains:[/yellow] {names}")
    return Panel(Text.from_markup("\n".join(lines)), title="Vigil scan", style="bold")


def _structural_notes(report: ScanReport) -> list[str]:
    """Counted conditions that are not listed as findings."""
    notes: list[str] = []
    network = report.results.get(Domain.NETWORK)
    if isinstance(network, NetworkResult):
        if network.firewall is None or not network.firewall.enabled:
            notes.append("[magenta]Firewall:[/magenta] not active")
    processes = report.results.get(Domain.PROCESSES)
    if isinstance(processes, ProcessResult) and processes.env_secrets:
        names = ", ".join(s.name for s in processes.env_secrets)
        notes.append(f"[magenta]Secrets in environment:[/magenta] {names}")
    filesystem = report.results.get(Domain.FILESYSTEM)
    if isinstance(filesystem, FilesystemResult) and filesystem.suid_files:
        notes.append(f"[blue]SUID/SGID binaries:[/blue] {len(filesystem.suid_files)}")
    deps = report.results.get(Domain.DEPENDENCIES)
    if isinstance(deps, DependencyResult):
        c = deps.counts
        if not (c.critical or c.high or c.moderate or c.low):
            return notes
        notes.append(
            f"Dependency vulnerabilities: {deps.total_vulnerabilities} "
            f"({c.critical} critical, {c.high} high, {c.moderate} moderate, {c.low} low)"
        )
    return notes


def render_findings(report: ScanReport) -> Table | Text:
    rows = []
    for domain in DOMAIN_ORDER:
        result = report.results.get(domain)
        if result is None:
            continue
        for finding in result.findings():
            rows.append((domain, finding))

    if not rows:
        return Text("No findings.", style="green")

    rows.sort(key=lambda r: (_SEVERITY_ORDER[r[1].severity], DOMAIN_ORDER.index(r[0])))

    table = Table(title="Findings", show_lines=False)
    table.add_column("Severity", style="bold", width=9)
    table.add_column("Domain", style="cyan")
    table.add_column("Subject", max_width=50)
    table.add_column("Issue")

    for domain, finding in rows:
        color = SEVERITY_COLORS[finding.severity]
        table.add_row(
            f"[{color}]{finding.severity.value}[/{color}]",
            domain.value,
            finding.subject,
            finding.issue,
        )
    return table


def render_report(report: ScanReport) -> Group:
    return Group(render_summary(report), render_findings(report))
