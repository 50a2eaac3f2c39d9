"""Attestation engine — hash, sign and verify scan reports.

The SHA-256 digest of the canonical report doubles as the displayable
fingerprint and as the signed payload: the Ed25519 signature covers the raw
32 digest bytes. Verification never raises; every failure is ``False``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from vigil.attest.keys import KeyPair
from vigil.audit.canonical import (
    canonicalize,
    format_timestamp,
    report_from_dict,
    report_to_dict,
)
from vigil.audit.models import ScanReport
from vigil.errors import CanonicalizationError, KeyGenerationError

logger = logging.getLogger(__name__)

PrivateKeyLike = Union[Ed25519PrivateKey, KeyPair, bytes, str]
PublicKeyLike = Union[Ed25519PublicKey, KeyPair, bytes, str]

# Everything a malformed input can raise on the verification path.
_VERIFY_ERRORS = (
    InvalidSignature,
    UnsupportedAlgorithm,
    CanonicalizationError,
    KeyGenerationError,
    binascii.Error,
    ValueError,
    TypeError,
    AttributeError,
)


def _private_key(key: PrivateKeyLike) -> Ed25519PrivateKey:
    if isinstance(key, Ed25519PrivateKey):
        return key
    if isinstance(key, KeyPair):
        return key.private_key
    if isinstance(key, str):
        key = key.encode("ascii")
    loaded = serialization.load_pem_private_key(key, password=None)
    if not isinstance(loaded, Ed25519PrivateKey):
        raise TypeError("signing key must be Ed25519")
    return loaded


def load_public_key(key: PublicKeyLike) -> Ed25519PublicKey:
    """Accept a key object, a KeyPair, or PEM text/bytes."""
    if isinstance(key, Ed25519PublicKey):
        return key
    if isinstance(key, KeyPair):
        return key.public_key
    if isinstance(key, str):
        key = key.encode("ascii")
    loaded = serialization.load_pem_public_key(key)
    if not isinstance(loaded, Ed25519PublicKey):
        raise TypeError("verification key must be Ed25519")
    return loaded


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def report_digest(report: ScanReport) -> str:
    """Hex SHA-256 of the canonical report."""
    return digest_bytes(canonicalize(report))


@dataclass(frozen=True)
class Attestation:
    hash: str
    signature: str


def _sign_digest(hex_digest: str, key: PrivateKeyLike) -> str:
    signature = _private_key(key).sign(bytes.fromhex(hex_digest))
    return base64.b64encode(signature).decode("ascii")


def _verify_digest(expected_hex: str, hex_digest: str, signature: str, key: PublicKeyLike) -> bool:
    if not hmac.compare_digest(expected_hex.encode("ascii"), hex_digest.lower().encode("ascii")):
        logger.debug("Digest mismatch: content was modified")
        return False
    raw_signature = base64.b64decode(signature, validate=True)
    load_public_key(key).verify(raw_signature, bytes.fromhex(expected_hex))
    return True


def sign(report: ScanReport, private_key: PrivateKeyLike) -> Attestation:
    """Hash the canonical report and sign the digest.

    Raises ``CanonicalizationError`` if the report cannot be canonicalized.
    """
    hex_digest = report_digest(report)
    return Attestation(hash=hex_digest, signature=_sign_digest(hex_digest, private_key))


def verify(
    report: ScanReport,
    hash: str,
    signature: str,
    public_key: PublicKeyLike,
) -> bool:
    """Return True only if *report* matches *hash* and *signature* is valid for it."""
    try:
        return _verify_digest(report_digest(report), hash, signature, public_key)
    except _VERIFY_ERRORS as exc:
        logger.debug("Verification failed: %s: %s", type(exc).__name__, exc)
        return False


# ---------------------------------------------------------------------------
# Signed artifact
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignedArtifact:
    """A report together with its attestation; evidence, never mutated."""

    report: ScanReport
    hash: str
    signature: str
    public_key_ref: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "report": report_to_dict(self.report),
            "hash": self.hash,
            "signature": self.signature,
            "publicKeyRef": self.public_key_ref,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=True)

    def save(self, path: str | Path) -> None:
        Path(path).write_text(self.to_json() + "\n", encoding="utf-8")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedArtifact:
        """Raises ``ValueError`` if *data* is not a well-formed artifact."""
        if not isinstance(data, dict):
            raise ValueError("artifact must be a JSON object")
        try:
            hash_, signature, ref = data["hash"], data["signature"], data["publicKeyRef"]
            report = report_from_dict(data["report"])
        except KeyError as exc:
            raise ValueError(f"artifact is missing {exc}") from None
        for name, value in (("hash", hash_), ("signature", signature), ("publicKeyRef", ref)):
            if not isinstance(value, str):
                raise ValueError(f"artifact field {name} must be a string")
        return cls(report=report, hash=hash_, signature=signature, public_key_ref=ref)

    @classmethod
    def from_json(cls, text: str) -> SignedArtifact:
        return cls.from_dict(json.loads(text))

    @classmethod
    def load(cls, path: str | Path) -> SignedArtifact:
        return cls.from_json(Path(path).read_text(encoding="utf-8"))


def create_artifact(
    report: ScanReport,
    key_pair: KeyPair,
    public_key_ref: str | Path,
) -> SignedArtifact:
    attestation = sign(report, key_pair)
    return SignedArtifact(
        report=report,
        hash=attestation.hash,
        signature=attestation.signature,
        public_key_ref=str(public_key_ref),
    )


def verify_artifact(artifact: SignedArtifact, public_key: PublicKeyLike) -> bool:
    """Verify *artifact* against a key the caller trusts.

    ``public_key_ref`` is never used here: it comes from the artifact itself,
    so whoever re-signed a forged report would also have rewritten it.
    """
    return verify(artifact.report, artifact.hash, artifact.signature, public_key)


# ---------------------------------------------------------------------------
# Payload proofs
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Proof:
    """A signature over an arbitrary JSON payload bound to a stated purpose."""

    purpose: str
    payload: Any
    timestamp: str
    hash: str
    signature: str
    public_key_ref: str = ""

    def signed_bytes(self) -> bytes:
        return _proof_bytes(self.purpose, self.payload, self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "purpose": self.purpose,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "hash": self.hash,
            "signature": self.signature,
            "publicKeyRef": self.public_key_ref,
        }


def _proof_bytes(purpose: str, payload: Any, timestamp: str) -> bytes:
    try:
        text = json.dumps(
            {"payload": payload, "purpose": purpose, "timestamp": timestamp},
            sort_keys=True,
            ensure_ascii=True,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as exc:
        raise CanonicalizationError(f"payload has no canonical form: {exc}") from exc
    return text.encode("ascii")


def sign_payload(
    payload: Any,
    purpose: str,
    private_key: PrivateKeyLike,
    public_key_ref: str | Path = "",
    clock: Callable[[], datetime] = _utcnow,
) -> Proof:
    """Sign *payload* together with *purpose* and the current time."""
    timestamp = format_timestamp(clock())
    hex_digest = digest_bytes(_proof_bytes(purpose, payload, timestamp))
    return Proof(
        purpose=purpose,
        payload=payload,
        timestamp=timestamp,
        hash=hex_digest,
        signature=_sign_digest(hex_digest, private_key),
        public_key_ref=str(public_key_ref),
    )


def verify_payload(proof: Proof, public_key: PublicKeyLike) -> bool:
    try:
        expected = digest_bytes(proof.signed_bytes())
        return _verify_digest(expected, proof.hash, proof.signature, public_key)
    except _VERIFY_ERRORS as exc:
        logger.debug("Proof verification failed: %s: %s", type(exc).__name__, exc)
        return False
