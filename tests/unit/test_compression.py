"""Zstd compression tests for request and reply bodies."""

import json
import secrets

import pytest

from rspamd_client.compression import import_zstd, zstd_compress, zstd_decompress
from rspamd_client.exceptions import ReplyParseError


def _zstd_available() -> bool:
    """Check if zstd module is available."""
    try:
        import_zstd()
        return True
    except ImportError:
        return False


# Skip all tests if zstd not available
pytestmark = pytest.mark.skipif(
    not _zstd_available(),
    reason="backports.zstd not installed",
)


class TestZstdHelpers:
    """zstd_compress / zstd_decompress."""

    def test_roundtrip_json_reply(self) -> None:
        """Compressed JSON reply inflates to the original bytes."""
        data = json.dumps({"action": "no action", "symbols": {"A": {"score": 0.0}}}).encode()
        assert zstd_decompress(zstd_compress(data)) == data

    def test_compresses_repetitive_message(self) -> None:
        """A repetitive message shrinks."""
        data = b"Subject: hello\r\n" * 1000
        assert len(zstd_compress(data)) < len(data) // 10

    def test_empty_input_decompresses_to_empty(self) -> None:
        """Empty input is an empty body, not an error."""
        assert zstd_decompress(b"") == b""

    def test_empty_body_compresses_to_valid_frame(self) -> None:
        """Compressing an empty body yields a frame that inflates back."""
        frame = zstd_compress(b"")
        assert frame
        assert zstd_decompress(frame) == b""

    def test_streaming_path_for_large_payload(self) -> None:
        """Payloads above the threshold use the streaming decoder."""
        data = secrets.token_bytes(4096) * 64
        compressed = zstd_compress(data)
        assert zstd_decompress(compressed, streaming_threshold=1) == data

    def test_memoryview_input(self) -> None:
        """Decompression accepts a memoryview slice."""
        data = b"x" * 500
        buffer = b"prefix" + zstd_compress(data)
        assert zstd_decompress(memoryview(buffer)[6:]) == data

    def test_invalid_stream_raises(self) -> None:
        """Garbage input raises ReplyParseError."""
        with pytest.raises(ReplyParseError, match="Zstd decompression failed"):
            zstd_decompress(b"definitely not zstd")
