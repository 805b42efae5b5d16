"""
Zstandard compression for request and reply bodies.

Rspamd accepts zstd-compressed messages (``Compression: zstd``) and
compresses replies the same way when the client advertises support.
With HTTPCrypt the compression header travels inside the encrypted inner
message, so the reply body is inflated only after decryption.
"""

from __future__ import annotations

import io
import sys
from typing import Any

from rspamd_client.constants import (
    ZSTD_COMPRESSION_LEVEL,
    ZSTD_STREAMING_CHUNK_SIZE,
    ZSTD_STREAMING_THRESHOLD,
)
from rspamd_client.exceptions import ReplyParseError

__all__ = [
    "import_zstd",
    "zstd_compress",
    "zstd_decompress",
]

# Cached zstd module (PEP 784 pattern)
_zstd_module: Any = None


def import_zstd() -> Any:
    """Import zstd module (PEP 784 pattern, cached).

    Uses Python 3.14+ native compression.zstd, or backports.zstd for earlier versions.

    Returns:
        The zstd module

    Raises:
        ImportError: If backports.zstd is not installed on Python < 3.14
    """
    global _zstd_module
    if _zstd_module is not None:
        return _zstd_module

    if sys.version_info >= (3, 14):
        from compression import zstd  # type: ignore[import-not-found]

        _zstd_module = zstd
    else:
        try:
            from backports import zstd  # type: ignore[import-not-found]

            _zstd_module = zstd  # type: ignore[reportUnknownVariableType]
        except ImportError as e:
            raise ImportError(
                "Zstd compression requires 'backports.zstd' package. Install with: pip install backports.zstd"
            ) from e
    return _zstd_module  # type: ignore[return-value]


def _zstd_decompress_streaming(data: bytes | memoryview, chunk_size: int) -> bytes:
    """Internal: streaming decompression with ZstdFile."""
    zstd = import_zstd()
    input_buffer = io.BytesIO(data)
    output_chunks: list[bytes] = []

    with zstd.ZstdFile(input_buffer, mode="rb") as f:
        while chunk := f.read(chunk_size):
            output_chunks.append(chunk)

    return b"".join(output_chunks)


def zstd_compress(data: bytes, level: int = ZSTD_COMPRESSION_LEVEL) -> bytes:
    """
    Compress a message body.

    Args:
        data: Raw bytes to compress
        level: Compression level (1-22, default 3 = fast)

    Returns:
        Compressed bytes in Zstandard format (a valid frame even for empty input)
    """
    zstd = import_zstd()
    return zstd.compress(data, level=level)


def zstd_decompress(
    data: bytes | memoryview,
    streaming_threshold: int = ZSTD_STREAMING_THRESHOLD,
) -> bytes:
    """
    Decompress a reply body, auto-selecting streaming for large payloads.

    Args:
        data: Zstandard-compressed bytes
        streaming_threshold: Size threshold for streaming mode (default 1MB)

    Returns:
        Decompressed bytes

    Raises:
        ReplyParseError: If data is not a valid zstd stream
    """
    if not data:
        return b""

    zstd = import_zstd()
    try:
        if len(data) >= streaming_threshold:
            return _zstd_decompress_streaming(data, ZSTD_STREAMING_CHUNK_SIZE)
        return zstd.decompress(data)
    except zstd.ZstdError as e:
        raise ReplyParseError(f"Zstd decompression failed: {e}") from e
