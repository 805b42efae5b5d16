"""
HTTPCrypt key agreement.

Each request runs one key agreement:

    secret  = clamp(random 32 bytes)
    point   = X25519(secret, server_static_key)
    shared  = HChaCha20(key=point, input=16 zero bytes)

The last step is the legacy NaCl derivation Rspamd still uses. It is NOT
an HKDF and the point is never hashed: the HChaCha20 output is the
shared secret. The round count is fixed by the server build
(HCHACHA_ROUNDS).

Key material lives in bytearrays that are wiped when the owning object is
closed; both EphemeralKeyPair and SharedSecret are context managers so
cleanup runs on every exit path.
"""

from __future__ import annotations

import abc
import secrets
import types

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from typing_extensions import Self

from rspamd_client.base32 import b32_decode, b32_encode
from rspamd_client.constants import HCHACHA_NONCE_SIZE, SHARED_SECRET_SIZE, X25519_KEY_SIZE
from rspamd_client.exceptions import DecodeError, KeyAgreementError
from rspamd_client.hchacha import hchacha20

__all__ = [
    "EphemeralKeyPair",
    "SharedSecret",
    "clamp",
    "decode_public_key",
    "derive_shared_secret",
    "generate_keypair",
    "keypair_from_secret",
    "scalarmult",
    "shared_secret_from_public",
]

_ZERO_NONCE = bytes(HCHACHA_NONCE_SIZE)


def _wipe(buffer: bytearray) -> None:
    buffer[:] = bytes(len(buffer))


class _Wipeable(abc.ABC):
    """Context manager protocol for objects holding key material."""

    __slots__ = ()

    @abc.abstractmethod
    def wipe(self) -> None:
        """Zero the key material."""

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.wipe()


def clamp(secret: bytearray) -> bytearray:
    """
    Apply curve25519 clamping in place.

    Clears the low 3 bits of byte 0, clears bit 7 and sets bit 6 of byte 31.

    Args:
        secret: 32-byte scalar (modified in place)

    Returns:
        The same buffer
    """
    secret[0] &= 0xF8
    secret[31] &= 0x7F
    secret[31] |= 0x40
    return secret


class EphemeralKeyPair(_Wipeable):
    """
    Per-request curve25519 keypair.

    Example:
        with generate_keypair() as keypair:
            shared = derive_shared_secret(keypair.secret, server_key)
    """

    __slots__ = ("_public_key", "_secret")

    def __init__(self, secret: bytearray, public_key: bytes) -> None:
        self._secret = secret
        self._public_key = public_key

    @property
    def secret(self) -> bytearray:
        """Clamped 32-byte secret scalar."""
        if not any(self._secret):
            raise RuntimeError("Ephemeral secret has been wiped")
        return self._secret

    @property
    def public_key(self) -> bytes:
        """32-byte Montgomery public point."""
        return self._public_key

    @property
    def public_key_b32(self) -> str:
        """Public point in Rspamd base32 (as sent in the Key header)."""
        return b32_encode(self._public_key)

    def wipe(self) -> None:
        """Zero the secret scalar."""
        _wipe(self._secret)

    def __repr__(self) -> str:
        return f"EphemeralKeyPair(public_key={self.public_key_b32!r})"


class SharedSecret(_Wipeable):
    """32-byte symmetric key shared with the server for one request."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes | bytearray) -> None:
        if len(key) != SHARED_SECRET_SIZE:
            raise ValueError(f"Shared secret must be {SHARED_SECRET_SIZE} bytes, got {len(key)}")
        self._key = bytearray(key)

    @property
    def key(self) -> bytearray:
        """Raw key bytes."""
        if not any(self._key):
            raise RuntimeError("Shared secret has been wiped")
        return self._key

    def wipe(self) -> None:
        """Zero the key."""
        _wipe(self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SharedSecret):
            return NotImplemented
        return secrets.compare_digest(bytes(self._key), bytes(other._key))

    # Mutable (wipe) and compared by value
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        # Never expose the key
        return "SharedSecret(<redacted>)"


def _public_from_secret(secret: bytearray) -> bytes:
    private_key = X25519PrivateKey.from_private_bytes(bytes(secret))
    return private_key.public_key().public_bytes_raw()


def generate_keypair() -> EphemeralKeyPair:
    """
    Generate a fresh ephemeral keypair from the OS CSPRNG.

    Returns:
        Clamped keypair; wipe it (or use it as a context manager) after use
    """
    secret = clamp(bytearray(secrets.token_bytes(X25519_KEY_SIZE)))
    return EphemeralKeyPair(secret, _public_from_secret(secret))


def keypair_from_secret(secret: bytes | bytearray) -> EphemeralKeyPair:
    """
    Build a keypair from an existing secret scalar (clamped on a copy).

    Used for static server keys and test vectors.
    """
    if len(secret) != X25519_KEY_SIZE:
        raise ValueError(f"Secret key must be {X25519_KEY_SIZE} bytes, got {len(secret)}")
    clamped = clamp(bytearray(secret))
    return EphemeralKeyPair(clamped, _public_from_secret(clamped))


def decode_public_key(public_key_b32: str | bytes) -> bytes:
    """
    Decode an Rspamd base32 public key.

    Raises:
        DecodeError: On an invalid symbol or a decoded length other than 32
    """
    decoded = b32_decode(public_key_b32)
    if len(decoded) != X25519_KEY_SIZE:
        raise DecodeError(f"Public key must decode to {X25519_KEY_SIZE} bytes, got {len(decoded)}")
    return decoded


def scalarmult(local_secret: bytes | bytearray, remote_public: bytes) -> bytearray:
    """
    X25519 scalar multiplication.

    Args:
        local_secret: 32-byte secret scalar (clamped by the primitive)
        remote_public: 32-byte Montgomery point

    Returns:
        32-byte shared point (caller must wipe it)

    Raises:
        KeyAgreementError: If the remote point is invalid or of low order
    """
    if len(local_secret) != X25519_KEY_SIZE:
        raise ValueError(f"Secret key must be {X25519_KEY_SIZE} bytes, got {len(local_secret)}")
    if len(remote_public) != X25519_KEY_SIZE:
        raise KeyAgreementError(f"Public key must be {X25519_KEY_SIZE} bytes, got {len(remote_public)}")

    scalar = clamp(bytearray(local_secret))
    try:
        private_key = X25519PrivateKey.from_private_bytes(bytes(scalar))
        point = private_key.exchange(X25519PublicKey.from_public_bytes(remote_public))
    except ValueError as e:
        # cryptography rejects an all-zero result (low-order peer point)
        raise KeyAgreementError("Remote public key is an invalid or low-order point") from e
    finally:
        _wipe(scalar)
    return bytearray(point)


def shared_secret_from_public(local_secret: bytes | bytearray, remote_public: bytes) -> SharedSecret:
    """
    Derive the shared secret from a raw 32-byte remote public key.

    Raises:
        KeyAgreementError: If the remote point is invalid or of low order
    """
    point = scalarmult(local_secret, remote_public)
    try:
        return SharedSecret(hchacha20(point, _ZERO_NONCE))
    finally:
        _wipe(point)


def derive_shared_secret(local_secret: bytes | bytearray, remote_public_b32: str | bytes) -> SharedSecret:
    """
    Derive the per-request shared secret.

    Deterministic: identical inputs always produce the same secret.

    Args:
        local_secret: 32-byte ephemeral secret scalar
        remote_public_b32: Server static public key in Rspamd base32

    Returns:
        SharedSecret (wipe after use)

    Raises:
        DecodeError: If the remote key is not valid base32 or not 32 bytes
        KeyAgreementError: If the remote point is invalid or of low order
    """
    return shared_secret_from_public(local_secret, decode_public_key(remote_public_b32))
