"""Canonical serialization of a ScanReport — the exact bytes that get hashed.

The encoding is compact ASCII JSON. Field order is fixed explicitly rather than
left to mapping iteration order:

- dataclass records emit their fields in declaration order;
- per-domain results are emitted in ``DOMAIN_ORDER`` whatever order the
  scanners completed in;
- free-form mappings (finding metadata) are emitted sorted by key.

``report_from_dict`` is the strict inverse used when re-verifying a stored
artifact: unknown or missing fields are rejected instead of ignored.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import math
import types
import typing
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Union

from vigil.audit.models import DOMAIN_ORDER, RESULT_TYPES, Domain, ScanReport
from vigil.audit.risk import summarize
from vigil.errors import CanonicalizationError

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        raise CanonicalizationError("naive datetime has no canonical form")
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    return datetime.strptime(text, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _encode(value: Any, path: str) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CanonicalizationError(f"{path}: non-finite float {value!r}")
        return value
    if isinstance(value, enum.Enum):
        return _encode(value.value, path)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _encode(getattr(value, f.name), f"{path}.{f.name}")
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return _encode_mapping(value, path)
    if isinstance(value, (list, tuple)):
        return [_encode(v, f"{path}[{i}]") for i, v in enumerate(value)]
    raise CanonicalizationError(f"{path}: unsupported type {type(value).__name__}")


def _encode_mapping(value: Mapping, path: str) -> dict[str, Any]:
    if value and all(isinstance(k, Domain) for k in value):
        return {
            d.value: _encode(value[d], f"{path}.{d.value}")
            for d in DOMAIN_ORDER
            if d in value
        }
    for key in value:
        if not isinstance(key, str):
            raise CanonicalizationError(f"{path}: non-string key {key!r}")
    return {k: _encode(value[k], f"{path}.{k}") for k in sorted(value)}


def report_to_dict(report: ScanReport) -> dict[str, Any]:
    """Encode *report* into plain JSON types in canonical field order."""
    return _encode(report, "report")


def canonicalize(report: ScanReport) -> bytes:
    """Return the deterministic byte encoding of *report*.

    Raises ``CanonicalizationError`` if any value has no canonical form.
    """
    data = report_to_dict(report)
    try:
        text = json.dumps(
            data,
            ensure_ascii=True,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as exc:
        raise CanonicalizationError(str(exc)) from exc
    return text.encode("ascii")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _decode(tp: Any, value: Any, path: str) -> Any:
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin in (Union, types.UnionType):
        if value is None and type(None) in args:
            return None
        (inner,) = [a for a in args if a is not type(None)]
        return _decode(inner, value, path)

    if origin is list:
        _expect(value, list, path)
        return [_decode(args[0], v, f"{path}[{i}]") for i, v in enumerate(value)]

    if origin is tuple:
        _expect(value, list, path)
        return tuple(_decode(args[0], v, f"{path}[{i}]") for i, v in enumerate(value))

    if origin is dict:
        _expect(value, dict, path)
        return {_decode(args[0], k, path): _decode(args[1], v, f"{path}.{k}") for k, v in value.items()}

    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        try:
            return tp(value)
        except ValueError:
            raise ValueError(f"{path}: invalid {tp.__name__} {value!r}") from None

    if tp is datetime:
        _expect(value, str, path)
        return parse_timestamp(value)

    if dataclasses.is_dataclass(tp):
        return _decode_dataclass(tp, value, path)

    if tp is bool:
        _expect(value, bool, path)
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{path}: expected int, got {type(value).__name__}")
        return value
    if tp in (str, float):
        _expect(value, tp, path)
        return value

    raise ValueError(f"{path}: cannot decode type {tp!r}")


def _decode_dataclass(cls: type, value: Any, path: str) -> Any:
    _expect(value, dict, path)
    hints = typing.get_type_hints(cls)
    fields = [f for f in dataclasses.fields(cls) if f.init]
    names = {f.name for f in fields}

    unknown = set(value) - names
    if unknown:
        raise ValueError(f"{path}: unknown field(s) {sorted(unknown)}")
    missing = names - set(value)
    if missing:
        raise ValueError(f"{path}: missing field(s) {sorted(missing)}")

    kwargs = {f.name: _decode(hints[f.name], value[f.name], f"{path}.{f.name}") for f in fields}
    return cls(**kwargs)


def _expect(value: Any, tp: type, path: str) -> None:
    if not isinstance(value, tp):
        raise ValueError(f"{path}: expected {tp.__name__}, got {type(value).__name__}")


def report_from_dict(data: Mapping[str, Any]) -> ScanReport:
    """Rebuild a ScanReport from its encoded form.

    Raises ``ValueError`` on any structural mismatch, or when the stored
    summary is not the one its results produce.
    """
    _expect(data, dict, "report")
    expected = {"timestamp", "hostname", "results", "summary"}
    if set(data) != expected:
        raise ValueError(f"report: expected fields {sorted(expected)}, got {sorted(data)}")

    raw_results = data["results"]
    _expect(raw_results, dict, "report.results")
    results = {}
    for key, raw in raw_results.items():
        domain = _decode(Domain, key, "report.results")
        results[domain] = _decode_dataclass(RESULT_TYPES[domain], raw, f"report.results.{key}")

    hints = typing.get_type_hints(ScanReport)
    summary = _decode(hints["summary"], data["summary"], "report.summary")
    if summary != summarize(results):
        raise ValueError("report.summary: does not match the report's results")

    return ScanReport(
        timestamp=_decode(datetime, data["timestamp"], "report.timestamp"),
        hostname=_decode(str, data["hostname"], "report.hostname"),
        results=results,
        summary=summary,
    )
