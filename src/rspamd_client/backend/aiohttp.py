"""
asyncio Rspamd client built on aiohttp.

Usage:
    config = Config(base_url="http://localhost:11333", encryption_key=server_key)
    async with AsyncClient(config) as client:
        reply = await client.scan(message, EnvelopeData(from_="a@example.com"))
        print(reply.action, reply.score)

One-shot helper:
    reply = await scan_async(config, message)

Each attempt prepares a new request, so with HTTPCrypt enabled every retry
runs a fresh key agreement.
"""

import asyncio
import types
from typing import Any

import aiohttp
from typing_extensions import Self

from rspamd_client._logging import get_logger
from rspamd_client.backend.base import BaseRspamdClient
from rspamd_client.commands import RspamdCommand
from rspamd_client.config import Config, EnvelopeData
from rspamd_client.exceptions import HTTPError
from rspamd_client.protocol import RspamdScanReply, parse_learn_reply, parse_scan_reply

__all__ = [
    "AsyncClient",
    "scan_async",
]

_logger = get_logger(__name__)


class AsyncClient(BaseRspamdClient):
    """
    Async Rspamd client.

    Wraps one aiohttp.ClientSession; use as an async context manager.
    """

    def __init__(self, config: Config, **aiohttp_kwargs: Any) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            **aiohttp_kwargs: Additional arguments passed to aiohttp.ClientSession
        """
        super().__init__(config)
        self._session: aiohttp.ClientSession | None = None
        self._aiohttp_kwargs = aiohttp_kwargs

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        kwargs = dict(self._aiohttp_kwargs)
        kwargs.setdefault("timeout", aiohttp.ClientTimeout(total=self.config.timeout))
        if self.config.tls_settings is not None and "connector" not in kwargs:
            kwargs["connector"] = aiohttp.TCPConnector(ssl=self.config.tls_settings.ssl_context())
        self._session = aiohttp.ClientSession(**kwargs)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        if self._session:
            await self._session.close()
            self._session = None

    def _proxy_kwargs(self) -> dict[str, Any]:
        proxy = self.config.proxy_config
        if proxy is None:
            return {}
        kwargs: dict[str, Any] = {"proxy": proxy.proxy_url}
        if proxy.username is not None:
            kwargs["proxy_auth"] = aiohttp.BasicAuth(proxy.username, proxy.password or "")
        return kwargs

    async def request(
        self,
        command: RspamdCommand,
        body: bytes = b"",
        envelope: EnvelopeData | None = None,
    ) -> tuple[dict[str, str], bytes]:
        """
        Send a command and return the processed reply.

        Retries transport failures up to ``config.retries`` attempts in
        total, sleeping ``config.timeout`` seconds between attempts.

        Args:
            command: Rspamd command
            body: Raw message bytes
            envelope: SMTP envelope data sent as headers

        Returns:
            Tuple of (reply headers, reply body)

        Raises:
            HTTPError: On a non-success status or when all attempts fail
            EncryptionError: If an encrypted reply cannot be opened
        """
        if not self._session:
            raise RuntimeError("Session not initialized. Use 'async with' context manager.")

        attempt = 0
        while True:
            attempt += 1
            with self._prepare(command, body, envelope) as prepared:
                try:
                    async with self._session.request(
                        prepared.method,
                        prepared.url,
                        headers=prepared.headers,
                        data=prepared.body,
                        **self._proxy_kwargs(),
                    ) as response:
                        raw = await response.read()
                        status = response.status
                        headers = dict(response.headers)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
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
                        status,
                        len(raw),
                        prepared.encryptor is not None,
                    )
                    return self._process(prepared, status, headers, raw)
            await asyncio.sleep(self.config.timeout)

    async def scan(self, body: bytes, envelope: EnvelopeData | None = None) -> RspamdScanReply:
        """Scan a message (``/checkv2``)."""
        headers, raw = await self.request(RspamdCommand.SCAN, body, envelope)
        return parse_scan_reply(headers, raw)

    async def learn_spam(self, body: bytes, envelope: EnvelopeData | None = None) -> dict[str, Any]:
        """Train the message as spam (``/learnspam``)."""
        _, raw = await self.request(RspamdCommand.LEARN_SPAM, body, envelope)
        return parse_learn_reply(raw)

    async def learn_ham(self, body: bytes, envelope: EnvelopeData | None = None) -> dict[str, Any]:
        """Train the message as ham (``/learnham``)."""
        _, raw = await self.request(RspamdCommand.LEARN_HAM, body, envelope)
        return parse_learn_reply(raw)


async def scan_async(
    config: Config,
    body: bytes,
    envelope: EnvelopeData | None = None,
) -> RspamdScanReply:
    """
    Scan one message with a short-lived AsyncClient.

    Args:
        config: Client configuration
        body: Raw message bytes
        envelope: SMTP envelope data

    Returns:
        RspamdScanReply
    """
    async with AsyncClient(config) as client:
        return await client.scan(body, envelope)
