"""Cryptographic attestation — signing keys, report signatures, proofs."""

from vigil.attest.engine import (
    Attestation,
    Proof,
    SignedArtifact,
    create_artifact,
    sign,
    sign_payload,
    verify,
    verify_artifact,
    verify_payload,
)
from vigil.attest.keys import KeyManager, KeyPair

__all__ = [
    "Attestation",
    "KeyManager",
    "KeyPair",
    "Proof",
    "SignedArtifact",
    "create_artifact",
    "sign",
    "sign_payload",
    "verify",
    "verify_artifact",
    "verify_payload",
]
