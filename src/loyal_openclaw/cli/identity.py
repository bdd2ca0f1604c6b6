"""Local Ed25519 identity management for the loyal-openclaw CLI."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import TextIO

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

from loyal_openclaw.cli.config import SetupSettings
from loyal_openclaw.errors import IdentityError
from loyal_openclaw.files import ensure_private_dir, write_private_file


@dataclass(frozen=True)
class LocalIdentity:
    private_key: Ed25519PrivateKey

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @property
    def public_key_b64(self) -> str:
        return base64.b64encode(self.public_key_bytes).decode("ascii")

    def private_key_pem(self) -> str:
        return self.private_key.private_bytes(
            Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
        ).decode("ascii")


def has_existing_setup(settings: SetupSettings) -> bool:
    return (
        settings.local_config_path.exists()
        or settings.private_key_path.exists()
        or settings.public_key_path.exists()
    )


def _parse_private_key(settings: SetupSettings) -> LocalIdentity:
    path = settings.private_key_path
    try:
        private = load_pem_private_key(path.read_bytes(), password=None)
    except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise IdentityError(f"invalid private key file: {path} ({exc})") from exc
    if not isinstance(private, Ed25519PrivateKey):
        raise IdentityError(f"private key file is not an Ed25519 key: {path}")
    return LocalIdentity(private_key=private)


def _create_identity(settings: SetupSettings) -> LocalIdentity:
    identity = LocalIdentity(private_key=Ed25519PrivateKey.generate())
    write_private_file(settings.private_key_path, identity.private_key_pem())
    write_private_file(settings.public_key_path, identity.public_key_b64)
    return identity


def load_or_create_identity(settings: SetupSettings) -> tuple[LocalIdentity, bool]:
    ensure_private_dir(settings.config_dir)
    if not settings.private_key_path.exists():
        return _create_identity(settings), True

    identity = _parse_private_key(settings)
    # The public key file is informational; the private key is the source of truth.
    if not settings.public_key_path.exists():
        write_private_file(settings.public_key_path, identity.public_key_b64)
    return identity, False


def load_existing_identity(settings: SetupSettings, *, stderr: TextIO) -> LocalIdentity | None:
    if not settings.private_key_path.exists():
        return None
    try:
        return _parse_private_key(settings)
    except IdentityError as exc:
        print(f"Warning: Failed to load existing keys: {exc}", file=stderr)
        return None
