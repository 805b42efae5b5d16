"""
Synchronous Rspamd client built on httpx.

Usage:
    with SyncClient(config) as client:
        reply = client.scan(message)

    reply = scan_sync(config, message)
"""

import time
import types
from typing import Any

import httpx
from typing_extensions import Self

from rspamd_client._logging import get_logger
from rspamd_client.backend.base import BaseRspamdClient
from rspamd_client.commands import RspamdCommand
from rspamd_client.config import Config, EnvelopeData
from rspamd_client.exceptions import HTTPError
from rspamd_client.protocol import RspamdScanReply, parse_learn_reply, parse_scan_reply

__all__ = [
    "SyncClient",
    "scan_sync",
]

_logger = get_logger(__name__)


class SyncClient(BaseRspamdClient):
    """Blocking Rspamd client wrapping one httpx.Client."""

    def __init__(self, config: Config, **httpx_kwargs: Any) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            **httpx_kwargs: Additional arguments passed to httpx.Client
        """
        super().__init__(config)
        self._client: httpx.Client | None = None
        self._httpx_kwargs = httpx_kwargs

    def __enter__(self) -> Self:
        kwargs = dict(self._httpx_kwargs)
        kwargs.setdefault("timeout", self.config.timeout)
        if self.config.tls_settings is not None:
            kwargs.setdefault("verify", self.config.tls_settings.ssl_context())
        proxy = self.config.proxy_config
        if proxy is not None:
            auth = (proxy.username, proxy.password or "") if proxy.username is not None else None
            kwargs.setdefault("proxy", httpx.Proxy(proxy.proxy_url, auth=auth))
        self._client = httpx.Client(**kwargs)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def request(
        self,
        command: RspamdCommand,
        body: bytes = b"",
        envelope: EnvelopeData | None = None,
    ) -> tuple[dict[str, str], bytes]:
        """
        Send a command and return the processed reply.

        Same retry policy as AsyncClient.request().

        Raises:
            HTTPError: On a non-success status or when all attempts fail
            EncryptionError: If an encrypted reply cannot be opened
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'with' context manager.")

        attempt = 0
        while True:
            attempt += 1
            with self._prepare(command, body, envelope) as prepared:
                try:
                    response = self._client.request(
                        prepared.method,
                        prepared.url,
                        headers=prepared.headers,
                        content=prepared.body,
                    )
                except httpx.TransportError as e:
                    _logger.debug(
                        "Request failed: url=%s attempt=%d/%d error=%s",
                        prepared.url,
                        attempt,
                        self.config.retries,
                        e,
                    )
                    if attempt >= self.config.retries:
                        raise HTTPError(f"Request failed after {attempt} attempt(s): {e}") from e
                else:
                    _logger.debug(
                        "Reply received: url=%s status=%d body_size=%d encrypted=%s",
                        prepared.url,
                        response.status_code,
                        len(response.content),
                        prepared.encryptor is not None,
                    )
                    return self._process(prepared, response.status_code, response.headers, response.content)
            time.sleep(self.config.timeout)

    def scan(self, body: bytes, envelope: EnvelopeData | None = None) -> RspamdScanReply:
        """Scan a message (``/checkv2``)."""
        headers, raw = self.request(RspamdCommand.SCAN, body, envelope)
        return parse_scan_reply(headers, raw)

    def learn_spam(self, body: bytes, envelope: EnvelopeData | None = None) -> dict[str, Any]:
        """Train the message as spam (``/learnspam``)."""
        _, raw = self.request(RspamdCommand.LEARN_SPAM, body, envelope)
        return parse_learn_reply(raw)

    def learn_ham(self, body: bytes, envelope: EnvelopeData | None = None) -> dict[str, Any]:
        """Train the message as ham (``/learnham``)."""
        _, raw = self.request(RspamdCommand.LEARN_HAM, body, envelope)
        return parse_learn_reply(raw)


def scan_sync(config: Config, body: bytes, envelope: EnvelopeData | None = None) -> RspamdScanReply:
    """Scan one message with a short-lived SyncClient."""
    with SyncClient(config) as client:
        return client.scan(body, envelope)
