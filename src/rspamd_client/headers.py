"""
HTTP header utilities for HTTPCrypt.

The ``Key`` header identifies which server key a request was encrypted
for and carries the client's ephemeral public key:

    Key: <base32(BLAKE2b-512(server_key)[:5])>=<base32(ephemeral_public_key)>

Uses Rspamd base32 (see rspamd_client.base32) for both halves.
"""

from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives import hashes

from rspamd_client.base32 import b32_decode, b32_encode
from rspamd_client.constants import BLAKE2B_DIGEST_SIZE, HEADER_KEY, KEY_ID_SIZE
from rspamd_client.exceptions import DecodeError, MalformedHeaderError
from rspamd_client.keys import decode_public_key

__all__ = [
    "HEADER_KEY",
    "build_key_header",
    "get_header",
    "key_id",
    "parse_key_header",
]

_KEY_HEADER_SEPARATOR = "="


def key_id(public_key: bytes) -> bytes:
    """
    Compute the short identifier of a static public key.

    Args:
        public_key: Raw 32-byte public key

    Returns:
        First 5 bytes of BLAKE2b-512(public_key)
    """
    digest = hashes.Hash(hashes.BLAKE2b(BLAKE2B_DIGEST_SIZE))
    digest.update(public_key)
    return digest.finalize()[:KEY_ID_SIZE]


def build_key_header(remote_static_b32: str, local_public_b32: str) -> str:
    """
    Build the ``Key`` header value for an encrypted request.

    Args:
        remote_static_b32: Server static public key (Rspamd base32)
        local_public_b32: Client ephemeral public key (Rspamd base32)

    Returns:
        ``"{key_id_b32}={local_public_b32}"``

    Raises:
        DecodeError: If the server key is not a valid base32 public key
    """
    remote_public = decode_public_key(remote_static_b32)
    return f"{b32_encode(key_id(remote_public))}{_KEY_HEADER_SEPARATOR}{local_public_b32}"


def parse_key_header(value: str) -> tuple[bytes, bytes]:
    """
    Parse a ``Key`` header value (server side).

    Args:
        value: Header value ``"{key_id_b32}={peer_public_b32}"``

    Returns:
        Tuple of (key_id, peer_public_key) as raw bytes

    Raises:
        MalformedHeaderError: If the separator is missing or a half does not decode
    """
    encoded_id, separator, encoded_public = value.strip().partition(_KEY_HEADER_SEPARATOR)
    if not separator:
        raise MalformedHeaderError(f"{HEADER_KEY} header has no '{_KEY_HEADER_SEPARATOR}' separator")
    if not encoded_id or not encoded_public:
        raise MalformedHeaderError(f"{HEADER_KEY} header has an empty component")

    try:
        peer_id = b32_decode(encoded_id)
        peer_public = decode_public_key(encoded_public)
    except DecodeError as e:
        raise MalformedHeaderError(f"Invalid {HEADER_KEY} header encoding") from e

    if len(peer_id) != KEY_ID_SIZE:
        raise MalformedHeaderError(f"{HEADER_KEY} header id must be {KEY_ID_SIZE} bytes, got {len(peer_id)}")
    return (peer_id, peer_public)


def get_header(headers: Mapping[str, Any], name: str) -> str | None:
    """Get header value, handling case-insensitive lookups."""
    # Try exact match first (faster)
    if name in headers:
        return str(headers[name])
    # Fall back to case-insensitive search
    name_lower = name.lower()
    for key in headers:
        if str(key).lower() == name_lower:
            return str(headers[key])
    return None
