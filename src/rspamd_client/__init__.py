"""
Rspamd client with HTTPCrypt encryption.

Scans and trains messages against an Rspamd server over HTTP. When the
server's public key is configured, requests and replies are end-to-end
encrypted with HTTPCrypt (X25519 + XChaCha20-Poly1305), hiding the real
method, path, headers and message from intermediaries.

Usage (asyncio - aiohttp):
    from rspamd_client import Config, EnvelopeData
    from rspamd_client.backend.aiohttp import AsyncClient

    config = Config(base_url="http://localhost:11333", encryption_key=server_key)
    async with AsyncClient(config) as client:
        reply = await client.scan(message, EnvelopeData(from_="user@example.com"))

Usage (blocking - httpx):
    from rspamd_client.backend.httpx import scan_sync

    reply = scan_sync(config, message)
"""

from rspamd_client.commands import RspamdCommand
from rspamd_client.config import Config, EnvelopeData, ProxyConfig, TlsSettings
from rspamd_client.exceptions import (
    AuthenticationError,
    ConfigError,
    DecodeError,
    EncryptionError,
    FramingError,
    HTTPError,
    KeyAgreementError,
    MalformedHeaderError,
    ReplyParseError,
    RspamdError,
)
from rspamd_client.protocol import RspamdScanReply

__all__ = [
    # Configuration
    "Config",
    "EnvelopeData",
    "ProxyConfig",
    "RspamdCommand",
    "TlsSettings",
    # Replies
    "RspamdScanReply",
    # Exceptions
    "AuthenticationError",
    "ConfigError",
    "DecodeError",
    "EncryptionError",
    "FramingError",
    "HTTPError",
    "KeyAgreementError",
    "MalformedHeaderError",
    "ReplyParseError",
    "RspamdError",
]

__version__ = "0.1.0"
