"""Tests for Config, EnvelopeData and TlsSettings."""

import dataclasses

import pytest

from rspamd_client.config import Config, EnvelopeData, TlsSettings
from rspamd_client.exceptions import ConfigError
from tests.conftest import REFERENCE_REMOTE_KEY


class TestConfig:
    """Config validation and defaults."""

    def test_defaults(self) -> None:
        """Defaults match the server's expectations."""
        config = Config(base_url="http://localhost:11333")
        assert config.password is None
        assert config.timeout == 30.0
        assert config.retries == 1
        assert config.zstd is True
        assert config.encryption_key is None
        assert config.tls_settings is None
        assert config.proxy_config is None

    def test_frozen(self) -> None:
        """Config is immutable."""
        config = Config(base_url="http://localhost:11333")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.retries = 5  # type: ignore[misc]

    def test_valid_encryption_key(self) -> None:
        """A valid base32 key is accepted."""
        assert Config(base_url="http://x", encryption_key=REFERENCE_REMOTE_KEY).encryption_key == REFERENCE_REMOTE_KEY

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"base_url": ""}, "base_url"),
            ({"base_url": "http://x", "timeout": 0}, "timeout"),
            ({"base_url": "http://x", "timeout": -1.0}, "timeout"),
            ({"base_url": "http://x", "retries": 0}, "retries"),
            ({"base_url": "http://x", "encryption_key": "abc"}, "encryption_key"),
            ({"base_url": "http://x", "encryption_key": "0" * 52}, "encryption_key"),
        ],
        ids=["empty-url", "zero-timeout", "negative-timeout", "zero-retries", "short-key", "bad-symbol-key"],
    )
    def test_invalid(self, kwargs: dict[str, object], match: str) -> None:
        """Invalid settings raise ConfigError."""
        with pytest.raises(ConfigError, match=match):
            Config(**kwargs)  # type: ignore[arg-type]


class TestEnvelopeData:
    """EnvelopeData header generation."""

    def test_empty(self) -> None:
        """No fields, no headers."""
        assert EnvelopeData().headers() == []

    def test_order(self) -> None:
        """Fixed fields first, then one Rcpt each, then extra headers."""
        envelope = EnvelopeData(
            from_="sender@example.com",
            rcpt=["a@example.com", "b@example.com"],
            ip="192.0.2.1",
            user="user",
            helo="mx.example.com",
            hostname="client.example.com",
            additional_headers={"Queue-Id": "ABC123"},
        )
        assert envelope.headers() == [
            ("From", "sender@example.com"),
            ("IP", "192.0.2.1"),
            ("User", "user"),
            ("Helo", "mx.example.com"),
            ("Hostname", "client.example.com"),
            ("Rcpt", "a@example.com"),
            ("Rcpt", "b@example.com"),
            ("Queue-Id", "ABC123"),
        ]

    def test_file_path(self) -> None:
        """file_path becomes the File header."""
        assert EnvelopeData(file_path="/tmp/message.eml").headers() == [("File", "/tmp/message.eml")]


class TestTlsSettings:
    """TlsSettings.ssl_context."""

    def test_default_context(self) -> None:
        """No paths gives the default verifying context."""
        context = TlsSettings().ssl_context()
        assert context.check_hostname is True

    def test_missing_ca_file(self) -> None:
        """An unreadable CA bundle raises ConfigError."""
        with pytest.raises(ConfigError, match="TLS"):
            TlsSettings(ca_path="/nonexistent/ca.pem").ssl_context()
