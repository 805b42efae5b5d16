"""
Wire format for HTTPCrypt encrypted envelopes.

Envelope format (sent as the HTTP body, both directions):
┌──────────┬──────────┬────────────┐
│  Nonce   │   Tag    │ Ciphertext │
│  (24B)   │  (16B)   │    (N)     │
└──────────┴──────────┴────────────┘

The tag precedes the ciphertext. This differs from the usual
ciphertext || tag layout and must be kept for compatibility with the
Rspamd server.

Cipher (Rspamd cryptobox, curve25519 mode):
- XChaCha20: subkey = HChaCha20(shared_secret, nonce[0:16]),
  ChaCha20 with a 64-bit block counter and nonce[16:24]
- Keystream block 0: first 32 bytes are the Poly1305 one-time key
- Keystream from block 1 onwards encrypts the plaintext
- Tag = Poly1305(ciphertext) with no associated data and no length block

This is neither the IETF XChaCha20-Poly1305 AEAD nor NaCl secretbox.
"""

from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.ciphers import Cipher, CipherContext, algorithms
from cryptography.hazmat.primitives.poly1305 import Poly1305

from rspamd_client.constants import (
    CHACHA20_BLOCK_SIZE,
    ENVELOPE_HEADER_SIZE,
    HCHACHA_NONCE_SIZE,
    POLY1305_KEY_SIZE,
    XCHACHA20_NONCE_SIZE,
)
from rspamd_client.exceptions import AuthenticationError
from rspamd_client.hchacha import hchacha20
from rspamd_client.keys import SharedSecret

__all__ = [
    "decrypt_envelope",
    "decrypt_envelope_inplace",
    "encrypt_envelope",
    "envelope_overhead",
]

_COUNTER_SIZE = 8  # DJB ChaCha20: 64-bit block counter, 64-bit nonce


def _key_bytes(key: SharedSecret | bytes | bytearray) -> bytes | bytearray:
    return key.key if isinstance(key, SharedSecret) else key


def _keystream(key: bytes | bytearray, nonce: bytes) -> tuple[CipherContext, bytes]:
    """Start an XChaCha20 keystream and consume block 0 for the MAC key.

    Returns:
        Tuple of (stream positioned at block 1, poly1305_key)
    """
    subkey = hchacha20(key, nonce[:HCHACHA_NONCE_SIZE])
    # cryptography's 16-byte ChaCha20 nonce is state words 12-15: counter || nonce
    stream = Cipher(
        algorithms.ChaCha20(subkey, bytes(_COUNTER_SIZE) + nonce[HCHACHA_NONCE_SIZE:]),
        mode=None,
    ).encryptor()
    mac_key = stream.update(bytes(CHACHA20_BLOCK_SIZE))[:POLY1305_KEY_SIZE]
    return stream, mac_key


def _seal(key: SharedSecret | bytes | bytearray, nonce: bytes, plaintext: bytes | memoryview) -> bytes:
    """Seal with an explicit nonce. Callers outside tests use encrypt_envelope()."""
    if len(nonce) != XCHACHA20_NONCE_SIZE:
        raise ValueError(f"Nonce must be {XCHACHA20_NONCE_SIZE} bytes, got {len(nonce)}")
    stream, mac_key = _keystream(_key_bytes(key), nonce)
    ciphertext = stream.update(plaintext)
    tag = Poly1305.generate_tag(mac_key, ciphertext)
    return nonce + tag + ciphertext


def encrypt_envelope(plaintext: bytes | memoryview, key: SharedSecret | bytes | bytearray) -> bytes:
    """
    Encrypt plaintext into an HTTPCrypt envelope.

    A random nonce is safe because the shared secret is never reused
    across requests.

    Args:
        plaintext: Inner message bytes
        key: Per-request shared secret

    Returns:
        nonce (24B) || tag (16B) || ciphertext
    """
    return _seal(key, secrets.token_bytes(XCHACHA20_NONCE_SIZE), plaintext)


def decrypt_envelope_inplace(buffer: bytearray, key: SharedSecret | bytes | bytearray) -> int:
    """
    Verify and decrypt an envelope inside its own buffer.

    The tag is verified before any byte is decrypted; on failure the buffer
    is left untouched. On success the ciphertext region is overwritten with
    plaintext so callers can parse ``buffer[offset:]`` without copying.

    Args:
        buffer: Complete envelope (modified in place on success)
        key: Per-request shared secret

    Returns:
        Offset of the plaintext in buffer (always ENVELOPE_HEADER_SIZE)

    Raises:
        AuthenticationError: If the envelope is truncated or the tag does not verify
    """
    if len(buffer) < ENVELOPE_HEADER_SIZE:
        raise AuthenticationError(
            f"Envelope too short: {len(buffer)} bytes (minimum {ENVELOPE_HEADER_SIZE})"
        )

    nonce = bytes(buffer[:XCHACHA20_NONCE_SIZE])
    tag = bytes(buffer[XCHACHA20_NONCE_SIZE:ENVELOPE_HEADER_SIZE])
    stream, mac_key = _keystream(_key_bytes(key), nonce)

    with memoryview(buffer) as view, view[ENVELOPE_HEADER_SIZE:] as ciphertext:
        try:
            Poly1305.verify_tag(mac_key, ciphertext, tag)
        except InvalidSignature as e:
            raise AuthenticationError("Envelope authentication failed") from e
        ciphertext[:] = stream.update(ciphertext)

    return ENVELOPE_HEADER_SIZE


def decrypt_envelope(envelope: bytes | bytearray, key: SharedSecret | bytes | bytearray) -> tuple[bytes, int]:
    """
    Verify and decrypt an envelope.

    Args:
        envelope: nonce || tag || ciphertext
        key: Per-request shared secret

    Returns:
        Tuple of (plaintext, offset of the plaintext in the envelope)

    Raises:
        AuthenticationError: If the envelope is truncated or the tag does not verify
    """
    buffer = bytearray(envelope)
    offset = decrypt_envelope_inplace(buffer, key)
    return (bytes(buffer[offset:]), offset)


def envelope_overhead() -> int:
    """
    Calculate total overhead added by envelope encoding.

    Returns:
        Overhead in bytes (nonce + tag)
    """
    return ENVELOPE_HEADER_SIZE
