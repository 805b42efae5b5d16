"""
HChaCha20 core permutation.

HChaCha20 runs the ChaCha rounds over (constants, key, 16-byte input) and
returns state words 0-3 and 12-15 without the final feed-forward addition.
It is used twice in HTTPCrypt: to turn the X25519 point into the shared
secret (zero input), and to derive the XChaCha20 subkey from the first
16 nonce bytes.

No available binding exposes the standalone core, so it is implemented
here. Reference: draft-irtf-cfrg-xchacha-03 §2.2
"""

import struct

from rspamd_client.constants import HCHACHA_NONCE_SIZE, HCHACHA_ROUNDS

__all__ = [
    "hchacha20",
]

_SIGMA = (0x61707865, 0x3320646E, 0x79622D32, 0x6B206574)  # "expand 32-byte k"
_MASK32 = 0xFFFFFFFF


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) & _MASK32) | (value >> (32 - shift))


def _quarter_round(x: list[int], a: int, b: int, c: int, d: int) -> None:
    x[a] = (x[a] + x[b]) & _MASK32
    x[d] = _rotl(x[d] ^ x[a], 16)
    x[c] = (x[c] + x[d]) & _MASK32
    x[b] = _rotl(x[b] ^ x[c], 12)
    x[a] = (x[a] + x[b]) & _MASK32
    x[d] = _rotl(x[d] ^ x[a], 8)
    x[c] = (x[c] + x[d]) & _MASK32
    x[b] = _rotl(x[b] ^ x[c], 7)


def hchacha20(key: bytes | bytearray, nonce: bytes | bytearray, rounds: int = HCHACHA_ROUNDS) -> bytes:
    """
    Compute HChaCha20(key, nonce).

    Args:
        key: 32-byte key
        nonce: 16-byte input
        rounds: Number of rounds (must be even; 20 for the Rspamd server)

    Returns:
        32-byte output

    Raises:
        ValueError: On wrong key/nonce sizes or an odd round count
    """
    if len(key) != 32:
        raise ValueError(f"HChaCha20 key must be 32 bytes, got {len(key)}")
    if len(nonce) != HCHACHA_NONCE_SIZE:
        raise ValueError(f"HChaCha20 input must be {HCHACHA_NONCE_SIZE} bytes, got {len(nonce)}")
    if rounds <= 0 or rounds % 2:
        raise ValueError(f"HChaCha20 rounds must be a positive even number, got {rounds}")

    x = [*_SIGMA, *struct.unpack("<8I", key), *struct.unpack("<4I", nonce)]
    for _ in range(rounds // 2):
        # Column round
        _quarter_round(x, 0, 4, 8, 12)
        _quarter_round(x, 1, 5, 9, 13)
        _quarter_round(x, 2, 6, 10, 14)
        _quarter_round(x, 3, 7, 11, 15)
        # Diagonal round
        _quarter_round(x, 0, 5, 10, 15)
        _quarter_round(x, 1, 6, 11, 12)
        _quarter_round(x, 2, 7, 8, 13)
        _quarter_round(x, 3, 4, 9, 14)

    out = struct.pack("<8I", *x[0:4], *x[12:16])
    x[:] = [0] * 16
    return out
