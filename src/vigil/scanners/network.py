"""Network scanner — listening ports, firewall state, listening services."""

from __future__ import annotations

import asyncio
import logging
import socket

import psutil

from vigil.audit.models import (
    Domain,
    Finding,
    FirewallStatus,
    ListeningService,
    NetworkResult,
    ScanWarning,
    Severity,
)
from vigil.scanners.base import CommandError, run_command

logger = logging.getLogger(__name__)

_PROTO_MAP = {
    socket.SOCK_STREAM: "TCP",
    socket.SOCK_DGRAM: "UDP",
}

# Port → (service, severity). Anything else listening is reported as low.
DANGEROUS_PORTS: dict[int, tuple[str, Severity]] = {
    21: ("FTP (unencrypted)", Severity.CRITICAL),
    23: ("Telnet (unencrypted)", Severity.CRITICAL),
    3306: ("MySQL", Severity.HIGH),
    5432: ("PostgreSQL", Severity.HIGH),
    6379: ("Redis", Severity.HIGH),
    27017: ("MongoDB", Severity.HIGH),
    3389: ("RDP", Severity.HIGH),
    5900: ("VNC", Severity.HIGH),
    445: ("SMB", Severity.MEDIUM),
    139: ("NetBIOS", Severity.MEDIUM),
    135: ("RPC", Severity.MEDIUM),
}

# iptables -L prints this many lines for empty default chains.
_IPTABLES_EMPTY_LINES = 8
_MAX_SERVICES = 20
_COMMAND_TIMEOUT = 5.0


def _is_listening(conn) -> bool:
    if conn.type == socket.SOCK_DGRAM:
        return not conn.raddr
    return conn.status == psutil.CONN_LISTEN


def port_finding(port: int, protocol: str) -> Finding:
    service, severity = DANGEROUS_PORTS.get(port, ("Unknown", Severity.LOW))
    return Finding(
        subject=f"{port}/{protocol}",
        issue=f"Listening port: {service}",
        severity=severity,
        metadata={
            "port": str(port),
            "protocol": protocol,
            "service": service,
            "state": "LISTENING",
        },
    )


class NetworkScanner:
    """Inspects listening sockets and whether a host firewall is active."""

    domain = Domain.NETWORK

    async def run(self) -> NetworkResult:
        warnings: list[ScanWarning] = []

        try:
            conns = await asyncio.to_thread(psutil.net_connections, kind="inet")
        except (psutil.AccessDenied, OSError) as exc:
            warnings.append(ScanWarning("net_connections", str(exc)))
            conns = []

        firewall = await self._check_firewall(warnings)

        return NetworkResult(
            open_ports=self._open_ports(conns),
            firewall=firewall,
            listening_services=self._listening_services(conns),
            warnings=warnings,
        )

    def _open_ports(self, conns) -> list[Finding]:
        seen: dict[tuple[int, str], Finding] = {}
        for conn in conns:
            if not conn.laddr or not _is_listening(conn):
                continue
            port = conn.laddr.port
            if not 0 < port < 65536:
                continue
            proto = _PROTO_MAP.get(conn.type, "TCP")
            seen.setdefault((port, proto), port_finding(port, proto))
        return [seen[key] for key in sorted(seen)]

    def _listening_services(self, conns) -> list[ListeningService]:
        services: list[ListeningService] = []
        for conn in conns:
            if len(services) >= _MAX_SERVICES:
                break
            if conn.type != socket.SOCK_STREAM or conn.status != psutil.CONN_LISTEN:
                continue
            command = "unknown"
            if conn.pid:
                try:
                    command = psutil.Process(conn.pid).name()
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    pass
            services.append(
                ListeningService(
                    pid=str(conn.pid or "unknown"),
                    command=command,
                    port=f"{conn.laddr.ip}:{conn.laddr.port}",
                )
            )
        return services

    async def _check_firewall(self, warnings: list[ScanWarning]) -> FirewallStatus:
        try:
            ufw = await run_command("ufw", "status", timeout=_COMMAND_TIMEOUT)
            if "Status: active" in ufw.stdout:
                return FirewallStatus(enabled=True, type="ufw")
        except CommandError as exc:
            logger.debug("ufw check failed: %s", exc)
            warnings.append(exc.to_warning("ufw"))

        try:
            iptables = await run_command("iptables", "-L", timeout=_COMMAND_TIMEOUT)
            if iptables.returncode == 0:
                lines = iptables.stdout.count("\n")
                if lines > _IPTABLES_EMPTY_LINES:
                    return FirewallStatus(enabled=True, type="iptables")
        except CommandError as exc:
            logger.debug("iptables check failed: %s", exc)
            warnings.append(exc.to_warning("iptables"))

        return FirewallStatus(enabled=False, type="none")
