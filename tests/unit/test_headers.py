"""Tests for the Key header codec (headers.py)."""

import pytest

from rspamd_client.base32 import b32_encode
from rspamd_client.exceptions import DecodeError, MalformedHeaderError
from rspamd_client.headers import build_key_header, get_header, key_id, parse_key_header
from rspamd_client.keys import decode_public_key, generate_keypair
from tests.conftest import REFERENCE_REMOTE_KEY


class TestKeyId:
    """key_id."""

    def test_length(self) -> None:
        """Key ids are 5 bytes."""
        assert len(key_id(generate_keypair().public_key)) == 5

    def test_distinct_keys(self) -> None:
        """Different keys have different ids."""
        assert key_id(generate_keypair().public_key) != key_id(generate_keypair().public_key)


class TestBuildKeyHeader:
    """build_key_header."""

    def test_format(self) -> None:
        """Header is id=public with an 8-symbol id."""
        local = generate_keypair()
        value = build_key_header(REFERENCE_REMOTE_KEY, local.public_key_b32)
        encoded_id, _, encoded_public = value.partition("=")
        assert encoded_id == b32_encode(key_id(decode_public_key(REFERENCE_REMOTE_KEY)))
        assert len(encoded_id) == 8
        assert encoded_public == local.public_key_b32

    def test_invalid_remote_key(self) -> None:
        """A malformed server key is rejected."""
        with pytest.raises(DecodeError):
            build_key_header("short", generate_keypair().public_key_b32)


class TestParseKeyHeader:
    """parse_key_header."""

    def test_roundtrip(self) -> None:
        """Parsing returns the raw id and public key."""
        local = generate_keypair()
        peer_id, peer_public = parse_key_header(build_key_header(REFERENCE_REMOTE_KEY, local.public_key_b32))
        assert peer_id == key_id(decode_public_key(REFERENCE_REMOTE_KEY))
        assert peer_public == local.public_key

    def test_surrounding_whitespace(self) -> None:
        """Surrounding whitespace is ignored."""
        local = generate_keypair()
        value = build_key_header(REFERENCE_REMOTE_KEY, local.public_key_b32)
        assert parse_key_header(f"  {value} ")[1] == local.public_key

    @pytest.mark.parametrize(
        ("value", "match"),
        [
            ("noseparator", "separator"),
            ("=abc", "empty"),
            ("abc=", "empty"),
            ("ybndrfg8=0000", "encoding"),
            ("ybnd=" + "y" * 52, "id must be 5 bytes"),
        ],
        ids=["no-separator", "empty-id", "empty-key", "bad-symbol", "short-id"],
    )
    def test_malformed(self, value: str, match: str) -> None:
        """Malformed values raise MalformedHeaderError."""
        with pytest.raises(MalformedHeaderError, match=match):
            parse_key_header(value)


class TestGetHeader:
    """get_header."""

    def test_case_insensitive(self) -> None:
        """Lookup ignores case."""
        assert get_header({"compression": "zstd"}, "Compression") == "zstd"

    def test_missing(self) -> None:
        """Missing headers return None."""
        assert get_header({}, "Key") is None
