"""
Transport-independent request preparation and reply processing.

Both the asyncio (aiohttp) and the synchronous (httpx) clients delegate
here so that headers, compression and HTTPCrypt behave identically; the
transports only perform I/O and the retry loop.
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from typing_extensions import Self

from rspamd_client._logging import get_logger
from rspamd_client.commands import RspamdCommand, RspamdEndpoint
from rspamd_client.compression import zstd_compress, zstd_decompress
from rspamd_client.config import Config, EnvelopeData
from rspamd_client.constants import (
    HEADER_COMPRESSION,
    HEADER_CONTENT_ENCODING,
    HEADER_FILE,
    HEADER_PASSWORD,
    ZSTD_ENCODING,
)
from rspamd_client.core import RequestEncryptor, ResponseDecryptor
from rspamd_client.exceptions import HTTPError
from rspamd_client.headers import get_header

__all__ = [
    "BaseRspamdClient",
    "PreparedRequest",
]

_logger = get_logger(__name__)


@dataclass
class PreparedRequest:
    """One ready-to-send attempt.

    Holds the RequestEncryptor (if any) so the reply can be decrypted with
    the same shared secret; close() wipes it.
    """

    method: str
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    encryptor: RequestEncryptor | None = None

    def close(self) -> None:
        """Wipe key material held for this attempt."""
        if self.encryptor is not None:
            self.encryptor.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()


def _is_success(status: int) -> bool:
    return HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES


class BaseRspamdClient:
    """Shared logic for the Rspamd clients."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def _endpoint_url(self, endpoint: RspamdEndpoint) -> str:
        """Replace the path of base_url with the endpoint path."""
        parts = urlsplit(self.config.base_url)
        return urlunsplit((parts.scheme, parts.netloc, endpoint.url, "", ""))

    def _prepare(
        self,
        command: RspamdCommand,
        body: bytes,
        envelope: EnvelopeData | None,
    ) -> PreparedRequest:
        """
        Build one attempt.

        Called once per attempt: with encryption enabled each call runs a
        fresh key agreement.
        """
        endpoint = RspamdEndpoint.from_command(command)
        envelope_headers = envelope.headers() if envelope is not None else []

        # With a File header the server reads the message from disk
        has_file = any(name.lower() == HEADER_FILE.lower() for name, _ in envelope_headers)
        need_body = endpoint.need_body and not has_file
        method = "POST" if need_body else "GET"
        compress = self.config.zstd and need_body

        headers: list[tuple[str, str]] = []
        if self.config.password is not None:
            headers.append((HEADER_PASSWORD, self.config.password))
        if compress:
            headers.append((HEADER_CONTENT_ENCODING, ZSTD_ENCODING))
            headers.append((HEADER_COMPRESSION, ZSTD_ENCODING))
        headers.extend(envelope_headers)

        payload = b""
        if need_body:
            payload = zstd_compress(body) if compress else body

        url = self._endpoint_url(endpoint)
        if self.config.encryption_key is None:
            return PreparedRequest(method=method, url=url, headers=headers, body=payload)

        encryptor = RequestEncryptor(self.config.encryption_key)
        try:
            # rspamd always frames the inner request as POST, even without a body
            envelope_body = encryptor.encrypt_all("POST", endpoint.url, headers, payload)
        except BaseException:
            encryptor.close()
            raise
        # The real headers travel inside the envelope
        return PreparedRequest(
            method="POST",
            url=url,
            headers=list(encryptor.get_headers().items()),
            body=envelope_body,
            encryptor=encryptor,
        )

    def _process(
        self,
        prepared: PreparedRequest,
        status: int,
        headers: Mapping[str, Any],
        body: bytes,
    ) -> tuple[dict[str, str], bytes]:
        """
        Check the status, then decrypt and/or decompress the reply.

        Returns:
            Tuple of (headers, body); the inner headers for encrypted replies

        Raises:
            HTTPError: On a non-success outer or inner status
            AuthenticationError: If an encrypted reply does not verify
            FramingError: If a decrypted reply is malformed
            ReplyParseError: If zstd inflation fails
        """
        if not _is_success(status):
            raise HTTPError(f"Status: {status}", status=status)

        if prepared.encryptor is not None:
            reply = ResponseDecryptor(prepared.encryptor.context).decrypt_all(body)
            if not _is_success(reply.status):
                raise HTTPError(f"Status: {reply.status} {reply.reason}".rstrip(), status=reply.status)
            return (reply.headers, reply.body)

        plain_headers = {str(k): str(v) for k, v in headers.items()}
        compression = get_header(plain_headers, HEADER_COMPRESSION)
        if compression is not None and compression.strip().lower() == ZSTD_ENCODING:
            _logger.debug("Reply compressed: compressed_size=%d", len(body))
            body = zstd_decompress(body)
        return (plain_headers, body)
