"""Tests for canonical report serialization."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime, timedelta, timezone

import pytest

from vigil.audit.canonical import (
    canonicalize,
    format_timestamp,
    report_from_dict,
    report_to_dict,
)
from vigil.audit.models import (
    DOMAIN_ORDER,
    ContainerInfo,
    ContainerResult,
    DependencyResult,
    Domain,
    Finding,
    FirewallStatus,
    NetworkResult,
    ScanWarning,
    Severity,
    Vulnerability,
    VulnerabilityCounts,
)
from vigil.errors import CanonicalizationError


def test_canonicalize_twice_is_identical(report):
    assert canonicalize(report) == canonicalize(report)


def test_domain_insertion_order_does_not_matter(report):
    shuffled = dict(reversed(list(report.results.items())))
    other = dataclasses.replace(report, results=shuffled)
    assert canonicalize(other) == canonicalize(report)


def test_metadata_key_order_does_not_matter(make_report, clean_results):
    def build(metadata):
        results = clean_results()
        results[Domain.NETWORK] = NetworkResult(
            open_ports=[Finding("21/TCP", "FTP", Severity.CRITICAL, metadata)],
            firewall=FirewallStatus(enabled=True, type="ufw"),
        )
        return make_report(results)

    a = build({"port": "21", "protocol": "TCP", "service": "FTP"})
    b = build({"service": "FTP", "protocol": "TCP", "port": "21"})
    assert canonicalize(a) == canonicalize(b)


def test_domains_emitted_in_fixed_order(report):
    data = json.loads(canonicalize(report))
    assert list(data) == ["timestamp", "hostname", "results", "summary"]
    assert list(data["results"]) == [d.value for d in DOMAIN_ORDER]


def test_record_fields_follow_declaration_order(report):
    data = json.loads(canonicalize(report))
    finding = data["results"]["network"]["open_ports"][0]
    assert list(finding) == ["subject", "issue", "severity", "metadata"]
    assert list(data["summary"]) == [
        "total_issues",
        "critical_issues",
        "high_issues",
        "medium_issues",
        "low_issues",
        "risk_level",
    ]


def test_compact_ascii_encoding(make_report):
    report = make_report()
    report = dataclasses.replace(report, hostname="hôte")
    raw = canonicalize(report)
    raw.decode("ascii")
    assert b" " not in raw
    assert b"\\u00f4" in raw


def test_timestamp_normalized_to_utc():
    plus_two = timezone(timedelta(hours=2))
    local = datetime(2026, 1, 1, 14, 0, 0, tzinfo=plus_two)
    assert format_timestamp(local) == "2026-01-01T12:00:00.000000Z"


def test_naive_timestamp_rejected(report):
    naive = dataclasses.replace(report, timestamp=datetime(2026, 1, 1))
    with pytest.raises(CanonicalizationError):
        canonicalize(naive)


def test_unrepresentable_value_rejected(make_report, clean_results):
    results = clean_results()
    results[Domain.NETWORK] = NetworkResult(
        open_ports=[Finding("x", "y", Severity.LOW, {"when": object()})],
    )
    with pytest.raises(CanonicalizationError):
        canonicalize(make_report(results))


def test_round_trip_through_dict(make_report, clean_results):
    results = clean_results()
    results[Domain.DEPENDENCIES] = DependencyResult(
        has_manifest=True,
        vulnerabilities=[Vulnerability("lodash", "high", "<4.17.21", "Prototype Pollution")],
        total_vulnerabilities=1,
        counts=VulnerabilityCounts(high=1),
    )
    results[Domain.CONTAINERS] = ContainerResult(
        runtime_available=True,
        containers=[
            ContainerInfo(
                id="0123456789ab",
                name="web",
                image="nginx:latest",
                issues=(Finding("web", "Container runs as root", Severity.MEDIUM),),
            )
        ],
        degraded=True,
        warnings=[ScanWarning("docker", "partial")],
    )
    report = make_report(results)

    rebuilt = report_from_dict(json.loads(json.dumps(report_to_dict(report))))
    assert rebuilt == report
    assert canonicalize(rebuilt) == canonicalize(report)


def test_from_dict_rejects_unknown_fields(report):
    data = report_to_dict(report)
    data["results"]["network"]["sneaky"] = True
    with pytest.raises(ValueError, match="unknown field"):
        report_from_dict(data)


def test_from_dict_rejects_bad_types(report):
    data = report_to_dict(report)
    data["summary"]["total_issues"] = "1"
    with pytest.raises(ValueError):
        report_from_dict(data)


def test_from_dict_rejects_unknown_domain(report):
    data = report_to_dict(report)
    data["results"]["printers"] = {}
    with pytest.raises(ValueError):
        report_from_dict(data)


def test_from_dict_rejects_summary_not_matching_results(report):
    data = report_to_dict(report)
    data["results"]["network"]["open_ports"] = []
    with pytest.raises(ValueError, match="does not match"):
        report_from_dict(data)
