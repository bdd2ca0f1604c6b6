"""Request signing for the Loyal server.

Signed requests carry an ``Authorization`` header of the form::

    Signature <public_key_b64>:<timestamp_ms>:<signature_b64>

where the signature is Ed25519 over the UTF-8 bytes of
``<timestamp_ms>:<METHOD>:<signed_path>``. ``signed_path`` is the request path
prefixed with the base path of the configured server URL, so a server mounted
under ``https://host/api`` signs ``/api/v1/balance``.
"""

from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

if TYPE_CHECKING:
    from loyal_openclaw.cli.identity import LocalIdentity

SIGNATURE_SCHEME = "Signature"
BEARER_SCHEME = "Bearer"


def build_endpoint(server_url: str, endpoint_path: str) -> tuple[str, str]:
    parts = urlsplit(server_url)
    base_path = "" if parts.path in {"", "/"} else parts.path.rstrip("/")
    endpoint = endpoint_path if endpoint_path.startswith("/") else f"/{endpoint_path}"
    signed_path = f"{base_path}{endpoint}" or "/"
    return f"{parts.scheme}://{parts.netloc}{signed_path}", signed_path


def join_url(server_url: str, endpoint_path: str) -> str:
    url, _ = build_endpoint(server_url, endpoint_path)
    return url


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def build_message_to_sign(timestamp: int | str, method: str, signed_path: str) -> bytes:
    return f"{timestamp}:{method}:{signed_path}".encode("utf-8")


def sign_request(
    private_key: Ed25519PrivateKey,
    method: str,
    signed_path: str,
    timestamp: int | str,
) -> str:
    signature = private_key.sign(build_message_to_sign(timestamp, method, signed_path))
    return base64.b64encode(signature).decode("ascii")


def verify_request_signature(
    public_key_b64: str,
    method: str,
    signed_path: str,
    timestamp: int | str,
    signature_b64: str,
) -> bool:
    try:
        public_key = Ed25519PublicKey.from_public_bytes(
            base64.b64decode(public_key_b64, validate=True)
        )
        signature = base64.b64decode(signature_b64, validate=True)
        public_key.verify(signature, build_message_to_sign(timestamp, method, signed_path))
    except (InvalidSignature, ValueError, binascii.Error):
        return False
    return True


@dataclass(frozen=True)
class SignedRequest:
    public_key_b64: str
    timestamp_ms: int
    method: str
    signed_path: str
    signature_b64: str

    @property
    def authorization_header(self) -> str:
        return f"{SIGNATURE_SCHEME} {self.public_key_b64}:{self.timestamp_ms}:{self.signature_b64}"


def build_signed_request(
    identity: LocalIdentity,
    method: str,
    signed_path: str,
    *,
    timestamp: int | None = None,
) -> SignedRequest:
    ts = timestamp_ms() if timestamp is None else timestamp
    method = method.upper()
    return SignedRequest(
        public_key_b64=identity.public_key_b64,
        timestamp_ms=ts,
        method=method,
        signed_path=signed_path,
        signature_b64=sign_request(identity.private_key, method, signed_path, ts),
    )


def build_bearer_header(api_key: str) -> str:
    return f"{BEARER_SCHEME} {api_key}"


def parse_signature_header(value: str) -> tuple[str, int, str]:
    scheme, _, credentials = value.strip().partition(" ")
    if scheme != SIGNATURE_SCHEME or not credentials:
        raise ValueError("authorization header must use the Signature scheme")
    fields = credentials.split(":")
    if len(fields) != 3 or not all(fields):
        raise ValueError("signature credentials must be <public_key>:<timestamp>:<signature>")
    public_key_b64, raw_timestamp, signature_b64 = fields
    if not raw_timestamp.isdigit():
        raise ValueError("signature timestamp must be milliseconds since the epoch")
    return public_key_b64, int(raw_timestamp), signature_b64
