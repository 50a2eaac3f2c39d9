"""Domain scanners — one per security domain."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from vigil.scanners.base import DomainScanner
from vigil.scanners.configuration import ConfigurationScanner
from vigil.scanners.containers import ContainerScanner
from vigil.scanners.dependencies import DependencyScanner
from vigil.scanners.filesystem import FilesystemScanner
from vigil.scanners.network import NetworkScanner
from vigil.scanners.process import ProcessScanner

__all__ = [
    "ConfigurationScanner",
    "ContainerScanner",
    "DependencyScanner",
    "DomainScanner",
    "FilesystemScanner",
    "NetworkScanner",
    "ProcessScanner",
    "default_scanners",
]


def default_scanners(
    env: Mapping[str, str] | None = None,
    disabled: Iterable[str] = (),
) -> list[DomainScanner]:
    """Build the standard six scanners, minus any *disabled* domain names."""
    skip = set(disabled)
    scanners: list[DomainScanner] = [
        NetworkScanner(),
        ProcessScanner(env=env),
        FilesystemScanner(),
        DependencyScanner(),
        ConfigurationScanner(),
        ContainerScanner(),
    ]
    return [s for s in scanners if s.domain.value not in skip]
