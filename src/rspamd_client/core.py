"""
High-level encryption/decryption classes for HTTP transport.

These classes wrap one complete HTTPCrypt cycle:
- Ephemeral key generation and shared secret derivation
- Inner pseudo-HTTP message building and parsing
- Envelope sealing/opening
- ``Key`` header building and parsing
- Reply decompression (``Compression: zstd``)

Every request attempt needs a new RequestEncryptor: key material is never
reused, so a retry always performs a fresh key agreement.

Usage (Client - httpx example):
    from rspamd_client.core import RequestEncryptor, ResponseDecryptor

    with RequestEncryptor(server_key) as encryptor:
        response = httpx.post(
            url,
            content=encryptor.encrypt_all("POST", "/checkv2", headers, message),
            headers=encryptor.get_headers(),
        )
        reply = ResponseDecryptor(encryptor.context).decrypt_all(response.content)

Usage (Server side, e.g. a test double):
    from rspamd_client.core import RequestDecryptor, ResponseEncryptor

    decryptor = RequestDecryptor(request.headers, server_keypair)
    inner, body = decryptor.decrypt_all(await request.read())
    encryptor = ResponseEncryptor(decryptor.context)
    return Response(body=encryptor.encrypt_all(200, "OK", headers, reply))
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from typing_extensions import Self

from rspamd_client._logging import get_logger
from rspamd_client.compression import zstd_decompress
from rspamd_client.constants import HEADER_COMPRESSION, HEADER_KEY, ZSTD_ENCODING
from rspamd_client.envelope import decrypt_envelope_inplace, encrypt_envelope
from rspamd_client.exceptions import AuthenticationError, MalformedHeaderError
from rspamd_client.framing import (
    HeaderItems,
    InnerRequest,
    build_request,
    build_response,
    parse_request,
    parse_response,
)
from rspamd_client.headers import build_key_header, get_header, key_id, parse_key_header
from rspamd_client.keys import (
    EphemeralKeyPair,
    SharedSecret,
    derive_shared_secret,
    generate_keypair,
    shared_secret_from_public,
)

__all__ = [
    "DecryptedResponse",
    # Server-side
    "RequestDecryptor",
    # Client-side
    "RequestEncryptor",
    "ResponseDecryptor",
    "ResponseEncryptor",
]

_logger = get_logger(__name__)


def _is_zstd(value: str | None) -> bool:
    return value is not None and value.strip().lower() == ZSTD_ENCODING


@dataclass
class DecryptedResponse:
    """Reply recovered from an encrypted envelope."""

    status: int
    reason: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class _SecretHolder:
    """Owns a SharedSecret and wipes it on close()."""

    _ctx: SharedSecret

    @property
    def context(self) -> SharedSecret:
        """Shared secret for the paired decryptor/encryptor."""
        return self._ctx

    def close(self) -> None:
        """Wipe the shared secret."""
        self._ctx.wipe()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()


# =============================================================================
# CLIENT SIDE
# =============================================================================


class RequestEncryptor(_SecretHolder):
    """
    Encrypt one request for an HTTPCrypt-enabled Rspamd server.

    Generates an ephemeral keypair, derives the shared secret and wipes the
    ephemeral secret immediately. Single use: create a new instance for
    every attempt.

    Example:
        with RequestEncryptor(config.encryption_key) as encryptor:
            body = encryptor.encrypt_all("POST", "/checkv2", headers, message)
            ...
            reply = ResponseDecryptor(encryptor.context).decrypt_all(raw)
    """

    def __init__(self, server_key: str, *, keypair: EphemeralKeyPair | None = None) -> None:
        """
        Initialize request encryptor.

        Args:
            server_key: Server static public key (Rspamd base32)
            keypair: Ephemeral keypair (generated when omitted; wiped either way)

        Raises:
            DecodeError: If server_key is not a valid base32 public key
            KeyAgreementError: If server_key is a low-order point
        """
        keypair = keypair if keypair is not None else generate_keypair()
        with keypair:
            self._ctx = derive_shared_secret(keypair.secret, server_key)
            self._key_header = build_key_header(server_key, keypair.public_key_b32)
        self._used = False

    def get_headers(self) -> dict[str, str]:
        """
        Get headers to send with the outer request.

        Returns:
            Dict with the Key header
        """
        return {HEADER_KEY: self._key_header}

    def encrypt_all(self, method: str, path: str, headers: HeaderItems, body: bytes = b"") -> bytes:
        """
        Frame and encrypt the request.

        Args:
            method: Inner HTTP method
            path: Inner request path
            headers: Inner headers, in the order they must appear
            body: Request body (already compressed if requested)

        Returns:
            Envelope to send as the outer request body

        Raises:
            RuntimeError: If called twice on the same instance
        """
        if self._used:
            raise RuntimeError("RequestEncryptor is single-use; create a new one for each attempt")
        self._used = True

        plaintext = build_request(method, path, headers, body)
        envelope = encrypt_envelope(plaintext, self._ctx)
        _logger.debug(
            "Request encrypted: method=%s path=%s body_size=%d envelope_size=%d",
            method,
            path,
            len(body),
            len(envelope),
        )
        return envelope


class ResponseDecryptor:
    """
    Decrypt and parse an encrypted reply.

    Example:
        decryptor = ResponseDecryptor(encryptor.context)
        reply = decryptor.decrypt_all(response.content)
        reply.headers, reply.body
    """

    def __init__(self, context: SharedSecret) -> None:
        """
        Initialize response decryptor.

        Args:
            context: SharedSecret from RequestEncryptor.context
        """
        self._ctx = context

    def decrypt_all(self, body: bytes | bytearray) -> DecryptedResponse:
        """
        Decrypt the whole reply.

        Decrypts in place, parses the inner status line and headers, and
        inflates the body when the inner headers carry ``Compression: zstd``.

        Args:
            body: Raw outer reply body (envelope)

        Returns:
            DecryptedResponse

        Raises:
            AuthenticationError: If the envelope does not verify
            FramingError: If the decrypted message is malformed
            ReplyParseError: If zstd inflation fails
        """
        buffer = bytearray(body)
        try:
            offset = decrypt_envelope_inplace(buffer, self._ctx)
        except AuthenticationError:
            _logger.debug("Response authentication failed: envelope_size=%d", len(buffer))
            raise

        inner = parse_response(buffer, offset)
        compressed = _is_zstd(inner.get(HEADER_COMPRESSION))
        with memoryview(buffer) as view:
            payload = zstd_decompress(view[inner.body_offset :]) if compressed else bytes(view[inner.body_offset :])

        _logger.debug(
            "Response decrypted: status=%d headers=%d body_size=%d compressed=%s",
            inner.status,
            len(inner.headers),
            len(payload),
            compressed,
        )
        return DecryptedResponse(
            status=inner.status,
            reason=inner.reason,
            headers=inner.header_map(),
            body=payload,
        )


# =============================================================================
# SERVER SIDE
# =============================================================================


class RequestDecryptor(_SecretHolder):
    """
    Decrypt an encrypted request (server side).

    Example:
        decryptor = RequestDecryptor(request.headers, server_keypair)
        inner, body = decryptor.decrypt_all(raw_body)
        # Use decryptor.context for ResponseEncryptor
    """

    def __init__(self, headers: Mapping[str, Any], server_keypair: EphemeralKeyPair) -> None:
        """
        Initialize request decryptor.

        Args:
            headers: Outer request headers (parses Key)
            server_keypair: Static server keypair (see keys.keypair_from_secret)

        Raises:
            MalformedHeaderError: If Key is missing, malformed or names another key
            KeyAgreementError: If the client public key is a low-order point
        """
        key_header = get_header(headers, HEADER_KEY)
        if not key_header:
            raise MalformedHeaderError(f"Missing {HEADER_KEY} header")

        peer_id, peer_public = parse_key_header(key_header)
        if peer_id != key_id(server_keypair.public_key):
            raise MalformedHeaderError(f"{HEADER_KEY} header references an unknown server key")

        self._ctx = shared_secret_from_public(server_keypair.secret, peer_public)

    def decrypt_all(self, body: bytes | bytearray) -> tuple[InnerRequest, bytes]:
        """
        Decrypt and parse the request.

        Args:
            body: Raw outer request body (envelope)

        Returns:
            Tuple of (inner request head, inner body)

        Raises:
            AuthenticationError: If the envelope does not verify
            FramingError: If the decrypted message is malformed
        """
        buffer = bytearray(body)
        offset = decrypt_envelope_inplace(buffer, self._ctx)
        inner = parse_request(buffer, offset)
        return (inner, bytes(buffer[inner.body_offset :]))


class ResponseEncryptor:
    """
    Encrypt a reply for the client that sent the request (server side).

    Example:
        encryptor = ResponseEncryptor(decryptor.context)
        return Response(body=encryptor.encrypt_all(200, "OK", headers, payload))
    """

    def __init__(self, context: SharedSecret) -> None:
        """
        Initialize response encryptor.

        Args:
            context: SharedSecret from RequestDecryptor.context
        """
        self._ctx = context

    def encrypt_all(self, status: int, reason: str, headers: HeaderItems, body: bytes = b"") -> bytes:
        """
        Frame and encrypt the reply.

        Args:
            status: Inner status code
            reason: Inner reason phrase
            headers: Inner headers
            body: Reply body (already compressed if Compression: zstd is set)

        Returns:
            Envelope to send as the outer reply body
        """
        return encrypt_envelope(build_response(status, reason, headers, body), self._ctx)
