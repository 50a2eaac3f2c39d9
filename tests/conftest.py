"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from vigil.attest.keys import KeyManager, KeyPair
from vigil.audit.models import (
    DOMAIN_ORDER,
    Domain,
    DomainResult,
    Finding,
    FirewallStatus,
    NetworkResult,
    ScanReport,
    Severity,
    empty_result,
)
from vigil.audit.risk import summarize

FIXED_TIME = datetime(2026, 10, 18, 12, 30, 45, 123456, tzinfo=timezone.utc)


def _clean_results() -> dict[Domain, DomainResult]:
    """Empty results for every domain with the firewall enabled."""
    results = {d: empty_result(d) for d in DOMAIN_ORDER}
    results[Domain.NETWORK] = NetworkResult(firewall=FirewallStatus(enabled=True, type="ufw"))
    return results


def _make_report(results: dict[Domain, DomainResult] | None = None) -> ScanReport:
    results = _clean_results() if results is None else results
    return ScanReport(
        timestamp=FIXED_TIME,
        hostname="testhost",
        results=results,
        summary=summarize(results),
    )


@pytest.fixture
def report() -> ScanReport:
    results = _clean_results()
    results[Domain.NETWORK] = NetworkResult(
        open_ports=[
            Finding(
                subject="6379/TCP",
                issue="Listening port: Redis",
                severity=Severity.HIGH,
                metadata={"port": "6379", "protocol": "TCP", "service": "Redis", "state": "LISTENING"},
            )
        ],
        firewall=FirewallStatus(enabled=True, type="ufw"),
    )
    return _make_report(results)


@pytest.fixture
def keys_dir(tmp_path: Path) -> Path:
    return tmp_path / "keys"


@pytest.fixture
def key_pair(keys_dir: Path) -> KeyPair:
    return KeyManager(keys_dir).ensure_key_pair()


@pytest.fixture
def other_key_pair() -> KeyPair:
    return KeyPair.generate()


@pytest.fixture
def clean_results():
    """Factory for a fresh set of clean per-domain results."""
    return _clean_results


@pytest.fixture
def make_report():
    """Factory building a summarized report at a fixed time."""
    return _make_report
