"""
Exception hierarchy for rspamd_client.

All client errors inherit from RspamdError; all HTTPCrypt failures
additionally inherit from EncryptionError for easy catching.
"""


class RspamdError(Exception):
    """Base exception for all client errors."""


class ConfigError(RspamdError):
    """Client configuration is invalid."""


class HTTPError(RspamdError):
    """HTTP request failed.

    Raised for transport failures (after retries are exhausted) and for
    non-success status codes. ``status`` is None for transport failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class ReplyParseError(RspamdError):
    """Server reply could not be decoded (JSON, zstd or Message-Offset)."""


class EncryptionError(RspamdError):
    """Base exception for HTTPCrypt errors.

    Every HTTPCrypt error is terminal for the request attempt.
    """


class DecodeError(EncryptionError):
    """Malformed Rspamd base32 input.

    Possible causes:
    - Invalid symbol
    - Decoded key has the wrong length
    """


class KeyAgreementError(EncryptionError):
    """Remote public key is an invalid or low-order curve25519 point."""


class AuthenticationError(EncryptionError):
    """Envelope authentication failed.

    Possible causes:
    - Wrong shared secret
    - Corrupted or truncated envelope
    - Tampered nonce, tag or ciphertext

    Never retry with the same key material; a new attempt must run a
    fresh key agreement.
    """


class FramingError(EncryptionError):
    """Decrypted inner pseudo-HTTP message is malformed.

    - Missing blank-line separator
    - Too many header lines
    - Malformed start or header line
    - Non UTF-8 header bytes
    """


class MalformedHeaderError(EncryptionError):
    """Key header is missing its separator or has undecodable halves."""
