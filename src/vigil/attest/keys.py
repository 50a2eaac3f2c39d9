"""Signing key lifecycle — one Ed25519 key pair per installation.

The pair lives in a keys directory as ``private.pem`` (0600) and
``public.pem`` (0644). Files are published by writing a temporary file and
hard-linking it into place: the link either creates the complete file or fails
because it already exists, so an existing private key is never overwritten and
a concurrent reader never sees a half-written one. A process that loses the
creation race discards its own key and loads the winner's.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from vigil.errors import KeyGenerationError

logger = logging.getLogger(__name__)

PRIVATE_KEY_FILE = "private.pem"
PUBLIC_KEY_FILE = "public.pem"

_PRIVATE_MODE = 0o600
_PUBLIC_MODE = 0o644
_DIR_MODE = 0o700


def public_key_pem(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def private_key_pem(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def fingerprint(public_key: Ed25519PublicKey) -> str:
    """SHA-256 hex digest of the raw public key bytes."""
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return hashlib.sha256(raw).hexdigest()


@dataclass(frozen=True)
class KeyPair:
    """PEM-encoded Ed25519 key pair. Equality compares the key material."""

    private_pem: bytes
    public_pem: bytes

    @property
    def private_key(self) -> Ed25519PrivateKey:
        key = serialization.load_pem_private_key(self.private_pem, password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise KeyGenerationError("private key is not Ed25519")
        return key

    @property
    def public_key(self) -> Ed25519PublicKey:
        key = serialization.load_pem_public_key(self.public_pem)
        if not isinstance(key, Ed25519PublicKey):
            raise KeyGenerationError("public key is not Ed25519")
        return key

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key)

    @classmethod
    def generate(cls) -> KeyPair:
        private_key = Ed25519PrivateKey.generate()
        return cls(
            private_pem=private_key_pem(private_key),
            public_pem=public_key_pem(private_key.public_key()),
        )


class KeyManager:
    """Owns the installation's key pair: ``Absent`` until first use, then ``Present``."""

    def __init__(self, keys_dir: str | Path) -> None:
        self._dir = Path(keys_dir)

    @property
    def keys_dir(self) -> Path:
        return self._dir

    @property
    def private_key_path(self) -> Path:
        return self._dir / PRIVATE_KEY_FILE

    @property
    def public_key_path(self) -> Path:
        return self._dir / PUBLIC_KEY_FILE

    def exists(self) -> bool:
        return self.private_key_path.is_file()

    def ensure_key_pair(self) -> KeyPair:
        """Load the key pair, generating and persisting it on first use.

        Raises ``KeyGenerationError`` if the pair can be neither loaded nor
        created (unwritable directory, full disk, corrupt key file).
        """
        if self.exists():
            return self._load()
        return self._generate()

    def _load(self) -> KeyPair:
        try:
            private_pem = self.private_key_path.read_bytes()
            private_key = serialization.load_pem_private_key(private_pem, password=None)
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyGenerationError(
                f"cannot load private key {self.private_key_path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise KeyGenerationError(f"{self.private_key_path} is not an Ed25519 key")

        derived = public_key_pem(private_key.public_key())
        if not self.public_key_path.is_file():
            # The winner of a creation race may not have published it yet.
            logger.info("Public key missing, deriving from %s", self.private_key_path)
            self._publish_quietly(self.public_key_path, derived, _PUBLIC_MODE)

        try:
            public_pem = self.public_key_path.read_bytes()
        except OSError as exc:
            raise KeyGenerationError(
                f"cannot read public key {self.public_key_path}: {exc}"
            ) from exc

        if public_pem != derived:
            raise KeyGenerationError(
                f"{self.public_key_path} does not match {self.private_key_path}"
            )
        return KeyPair(private_pem=private_pem, public_pem=public_pem)

    def _generate(self) -> KeyPair:
        try:
            self._dir.mkdir(parents=True, exist_ok=True, mode=_DIR_MODE)
        except OSError as exc:
            raise KeyGenerationError(f"cannot create {self._dir}: {exc}") from exc

        pair = KeyPair.generate()
        try:
            _publish(self.private_key_path, pair.private_pem, _PRIVATE_MODE)
        except FileExistsError:
            logger.info("Lost key creation race, loading existing key pair")
            return self._load()
        except OSError as exc:
            raise KeyGenerationError(
                f"cannot write {self.private_key_path}: {exc}"
            ) from exc

        self._publish_quietly(self.public_key_path, pair.public_pem, _PUBLIC_MODE)
        logger.info(
            "Generated signing key pair in %s (fingerprint %s)",
            self._dir,
            pair.fingerprint[:16],
        )
        return self._load()

    def _publish_quietly(self, path: Path, data: bytes, mode: int) -> None:
        """Publish *path* unless another process already did."""
        try:
            _publish(path, data, mode)
        except FileExistsError:
            pass
        except OSError as exc:
            raise KeyGenerationError(f"cannot write {path}: {exc}") from exc


def _publish(path: Path, data: bytes, mode: int) -> None:
    """Atomically create *path* holding *data*; ``FileExistsError`` if it exists."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as fh:
            os.fchmod(fh.fileno(), mode)
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.link(tmp, path)
    finally:
        os.unlink(tmp)
