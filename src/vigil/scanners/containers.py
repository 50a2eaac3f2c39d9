"""Container scanner — risky runtime settings of running Docker containers."""

from __future__ import annotations

import json
import logging

from vigil.audit.models import (
    ContainerInfo,
    ContainerResult,
    Domain,
    Finding,
    ScanWarning,
    Severity,
)
from vigil.scanners.base import CommandError, run_command

logger = logging.getLogger(__name__)

_COMMAND_TIMEOUT = 8.0
_DOCKER_SOCKET = "docker.sock"


def container_issues(inspect: dict) -> tuple[Finding, ...]:
    """Derive findings from one ``docker inspect`` record."""
    name = str(inspect.get("Name") or inspect.get("Id", "")[:12]).lstrip("/")
    host_config = inspect.get("HostConfig") or {}
    config = inspect.get("Config") or {}
    issues: list[Finding] = []

    def add(issue: str, severity: Severity) -> None:
        issues.append(Finding(subject=name, issue=issue, severity=severity))

    if host_config.get("Privileged"):
        add("Container runs in privileged mode", Severity.CRITICAL)

    for mount in inspect.get("Mounts") or []:
        if _DOCKER_SOCKET in str(mount.get("Source", "")):
            add("Docker socket mounted into container", Severity.CRITICAL)
            break

    if host_config.get("NetworkMode") == "host":
        add("Container shares the host network namespace", Severity.HIGH)

    user = str(config.get("User") or "").split(":", 1)[0]
    if user in ("", "root", "0"):
        add("Container runs as root", Severity.MEDIUM)

    return tuple(issues)


def parse_inspect(text: str) -> list[ContainerInfo]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("docker inspect output is not a JSON array")

    containers: list[ContainerInfo] = []
    for record in data:
        if not isinstance(record, dict):
            continue
        containers.append(
            ContainerInfo(
                id=str(record.get("Id", ""))[:12],
                name=str(record.get("Name", "")).lstrip("/"),
                image=str((record.get("Config") or {}).get("Image", "")),
                issues=container_issues(record),
            )
        )
    containers.sort(key=lambda c: (c.name, c.id))
    return containers


class ContainerScanner:
    domain = Domain.CONTAINERS

    async def run(self) -> ContainerResult:
        try:
            ps = await run_command("docker", "ps", "-q", "--no-trunc", timeout=_COMMAND_TIMEOUT)
        except CommandError as exc:
            logger.debug("docker unavailable: %s", exc)
            return ContainerResult(runtime_available=False, warnings=[exc.to_warning("docker")])

        if ps.returncode != 0:
            message = ps.stderr.strip() or f"docker ps exited with {ps.returncode}"
            return ContainerResult(
                runtime_available=False, warnings=[ScanWarning("docker", message)]
            )

        ids = ps.stdout.split()
        if not ids:
            return ContainerResult(runtime_available=True)

        try:
            out = await run_command("docker", "inspect", *ids, timeout=_COMMAND_TIMEOUT)
            containers = parse_inspect(out.stdout)
        except CommandError as exc:
            return ContainerResult(runtime_available=True, warnings=[exc.to_warning("docker")])
        except (ValueError, TypeError, AttributeError) as exc:
            logger.debug("Could not parse docker inspect output: %s", exc)
            return ContainerResult(
                runtime_available=True,
                warnings=[ScanWarning("docker", f"unparseable inspect output: {exc}")],
            )

        return ContainerResult(runtime_available=True, containers=containers)
