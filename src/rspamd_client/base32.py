"""
Rspamd base32 encoding.

Rspamd uses the zbase32 alphabet but packs bits least-significant first,
so the output is NOT interchangeable with RFC 4648 base32 or with other
zbase32 implementations. Public keys are 52 symbols (32 bytes).
"""

from rspamd_client.constants import BASE32_ALPHABET
from rspamd_client.exceptions import DecodeError

__all__ = [
    "b32_decode",
    "b32_encode",
]

_BITS_PER_SYMBOL = 5
_SYMBOL_MASK = 0x1F

_DECODE_TABLE: dict[str, int] = {}
for _value, _symbol in enumerate(BASE32_ALPHABET):
    _DECODE_TABLE[_symbol] = _value
    _DECODE_TABLE[_symbol.upper()] = _value


def b32_encode(data: bytes) -> str:
    """
    Encode bytes to an Rspamd base32 string.

    Args:
        data: Raw bytes to encode

    Returns:
        Base32 string, ceil(8 * len(data) / 5) symbols
    """
    out: list[str] = []
    acc = 0
    bits = 0
    for byte in data:
        acc |= byte << bits
        bits += 8
        while bits >= _BITS_PER_SYMBOL:
            out.append(BASE32_ALPHABET[acc & _SYMBOL_MASK])
            acc >>= _BITS_PER_SYMBOL
            bits -= _BITS_PER_SYMBOL
    if bits:
        out.append(BASE32_ALPHABET[acc & _SYMBOL_MASK])
    return "".join(out)


def b32_decode(data: str | bytes) -> bytes:
    """
    Decode an Rspamd base32 string.

    Matches the server decoder: symbols are accepted in either case and any
    leftover bits produce a final byte.

    Args:
        data: Base32 string (str or ASCII bytes)

    Returns:
        Decoded bytes

    Raises:
        DecodeError: If an invalid symbol is found
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("ascii")
        except UnicodeDecodeError as e:
            raise DecodeError("Invalid base32 input: non-ASCII bytes") from e

    out = bytearray()
    acc = 0
    bits = 0
    for position, symbol in enumerate(data):
        if bits >= 8:
            out.append(acc & 0xFF)
            acc >>= 8
            bits -= 8
        value = _DECODE_TABLE.get(symbol)
        if value is None:
            raise DecodeError(f"Invalid base32 symbol at position {position}")
        acc |= value << bits
        bits += _BITS_PER_SYMBOL
    if bits:
        out.append(acc & 0xFF)
    return bytes(out)
