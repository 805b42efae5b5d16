"""
Protocol constants for the Rspamd client and HTTPCrypt.

Byte sizes and header names here are part of the wire contract with the
Rspamd server and must not be changed independently of it.
"""

# =============================================================================
# HTTPCrypt envelope
# =============================================================================

X25519_KEY_SIZE = 32
"""Size of curve25519 secret scalars and public points."""

SHARED_SECRET_SIZE = 32

XCHACHA20_NONCE_SIZE = 24
POLY1305_TAG_SIZE = 16
POLY1305_KEY_SIZE = 32

CHACHA20_BLOCK_SIZE = 64
"""Keystream block 0 feeds the Poly1305 key; encryption starts at block 1."""

ENVELOPE_HEADER_SIZE = XCHACHA20_NONCE_SIZE + POLY1305_TAG_SIZE
"""nonce (24B) || tag (16B) precede the ciphertext: plaintext offset is 40."""

HCHACHA_ROUNDS = 20
"""HChaCha20 rounds (10 double-rounds) used by the Rspamd server build."""

HCHACHA_NONCE_SIZE = 16

KEY_ID_SIZE = 5
"""Bytes of BLAKE2b(remote_key) used to identify the server key."""

BLAKE2B_DIGEST_SIZE = 64

# Rspamd base32 (zbase32 alphabet, least-significant bits first)
BASE32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"

# =============================================================================
# Inner pseudo-HTTP message
# =============================================================================

MAX_INNER_HEADERS = 64
"""Maximum header lines accepted in a decrypted inner message."""

INNER_HTTP_VERSION = "HTTP/1.1"

# =============================================================================
# HTTP headers
# =============================================================================

HEADER_KEY = "Key"
HEADER_PASSWORD = "Password"
HEADER_COMPRESSION = "Compression"
HEADER_CONTENT_ENCODING = "Content-Encoding"
HEADER_MESSAGE_OFFSET = "Message-Offset"
HEADER_FILE = "File"

ZSTD_ENCODING = "zstd"

# =============================================================================
# Client defaults
# =============================================================================

DEFAULT_TIMEOUT = 30.0
"""Per-request timeout and also the delay between retry attempts (seconds)."""

DEFAULT_RETRIES = 1
"""Total number of attempts (1 = no retry)."""

ZSTD_COMPRESSION_LEVEL = 3
ZSTD_STREAMING_THRESHOLD = 1024 * 1024
ZSTD_STREAMING_CHUNK_SIZE = 64 * 1024

