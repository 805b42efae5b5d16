"""
Configuration for rspamd_client.

Config customizes the server URL, authentication, retries, TLS, proxying,
compression and HTTPCrypt encryption. EnvelopeData carries the SMTP
envelope that Rspamd receives as request headers.
"""

from __future__ import annotations

import ssl
from collections.abc import Iterator
from dataclasses import dataclass, field

from rspamd_client.constants import DEFAULT_RETRIES, DEFAULT_TIMEOUT, HEADER_FILE
from rspamd_client.exceptions import ConfigError, DecodeError
from rspamd_client.keys import decode_public_key

__all__ = [
    "Config",
    "EnvelopeData",
    "ProxyConfig",
    "TlsSettings",
]


@dataclass(frozen=True)
class TlsSettings:
    """Custom TLS settings."""

    cert_path: str | None = None
    """Client certificate (PEM)."""

    key_path: str | None = None
    """Client certificate key (PEM)."""

    ca_path: str | None = None
    """CA bundle used to verify the server (PEM)."""

    def ssl_context(self) -> ssl.SSLContext:
        """
        Build an SSL context from these settings.

        Raises:
            ConfigError: If a certificate file cannot be loaded
        """
        try:
            context = ssl.create_default_context(cafile=self.ca_path)
            if self.cert_path:
                context.load_cert_chain(self.cert_path, self.key_path)
        except (OSError, ssl.SSLError) as e:
            raise ConfigError(f"Cannot load TLS settings: {e}") from e
        return context


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy configuration."""

    proxy_url: str
    username: str | None = None
    password: str | None = None


@dataclass
class EnvelopeData:
    """
    SMTP envelope sent to Rspamd as request headers.

    Example:
        envelope = EnvelopeData(from_="user@example.com", rcpt=["a@example.com", "b@example.com"])
    """

    from_: str | None = None
    """Sender address (From header)."""

    rcpt: list[str] = field(default_factory=list)
    """Recipients (one Rcpt header each)."""

    ip: str | None = None
    user: str | None = None
    helo: str | None = None
    hostname: str | None = None

    file_path: str | None = None
    """Path of a message file readable by the server (File header).

    When set the message body is not transmitted; Rspamd reads the file
    from disk, which is much faster when client and server share a host.
    """

    additional_headers: dict[str, str] = field(default_factory=dict)

    def headers(self) -> list[tuple[str, str]]:
        """Envelope as ordered (name, value) header pairs."""
        return list(self)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for name, value in (
            ("From", self.from_),
            ("IP", self.ip),
            ("User", self.user),
            ("Helo", self.helo),
            ("Hostname", self.hostname),
            (HEADER_FILE, self.file_path),
        ):
            if value is not None:
                yield (name, value)
        for rcpt in self.rcpt:
            yield ("Rcpt", rcpt)
        yield from self.additional_headers.items()


@dataclass(frozen=True)
class Config:
    """
    Rspamd client configuration.

    Example:
        config = Config(
            base_url="http://localhost:11333",
            encryption_key="k4nz984k36xmcynm1hr9kdbn6jhcxf4ggbrb1quay7f88rpm9kay",
        )
    """

    base_url: str
    """Base URL of the Rspamd server."""

    password: str | None = None
    """Password header value."""

    timeout: float = DEFAULT_TIMEOUT
    """Request timeout in seconds (also the delay between retries)."""

    retries: int = DEFAULT_RETRIES
    """Total number of attempts for transport failures."""

    tls_settings: TlsSettings | None = None
    proxy_config: ProxyConfig | None = None

    zstd: bool = True
    """Compress request bodies and ask for compressed replies."""

    encryption_key: str | None = None
    """Server HTTPCrypt public key (Rspamd base32); enables encryption."""

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("base_url is required")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.retries < 1:
            raise ConfigError(f"retries must be at least 1, got {self.retries}")
        if self.encryption_key is not None:
            try:
                decode_public_key(self.encryption_key)
            except DecodeError as e:
                raise ConfigError(f"Invalid encryption_key: {e}") from e
