"""In-process fake Rspamd server for E2E tests.

Speaks both plain HTTP and HTTPCrypt using the server-side classes from
rspamd_client.core, so client and server agree only through the wire
format. Runs an aiohttp.web app on its own event loop in a thread so the
blocking httpx client and the aiohttp client can both reach it.

Behaviour knobs (set on the instance before the request):
- password: required Password header value (403 on mismatch)
- status: inner/outer status code to answer with
- delays: per-request sleep in seconds, consumed in order (simulates timeouts)
- rewrite: rewritten message appended after the JSON with Message-Offset
- tamper_reply: flip one byte of the encrypted reply
"""

import asyncio
import contextlib
import json
import socket
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from rspamd_client.compression import zstd_compress, zstd_decompress
from rspamd_client.constants import (
    HEADER_COMPRESSION,
    HEADER_FILE,
    HEADER_KEY,
    HEADER_MESSAGE_OFFSET,
    HEADER_PASSWORD,
    ZSTD_ENCODING,
)
from rspamd_client.core import RequestDecryptor, ResponseEncryptor
from rspamd_client.exceptions import EncryptionError
from rspamd_client.keys import EphemeralKeyPair

SCAN_REPLY: dict[str, Any] = {
    "is_skipped": False,
    "score": 5.5,
    "required_score": 15.0,
    "action": "add header",
    "thresholds": {"reject": 15.0, "add header": 6.0},
    "symbols": {
        "TEST_SYMBOL": {
            "name": "TEST_SYMBOL",
            "score": 5.5,
            "metric_score": 5.5,
            "options": ["option"],
        },
    },
    "messages": {},
    "urls": ["example.com"],
    "emails": [],
    "message-id": "test@example.com",
    "time_real": 0.01,
    "milter": {"add_headers": {"X-Spam": {"value": "yes", "order": 0}}, "remove_headers": {"X-Old": 0}},
}

LEARN_REPLY: dict[str, Any] = {"success": True}


def get_free_port() -> int:
    """Get a free port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        return s.getsockname()[1]


@dataclass
class RecordedRequest:
    """What the server saw for one request (inner view when encrypted)."""

    outer_method: str
    outer_path: str
    outer_headers: dict[str, str]
    """Outer headers with lowercased names."""

    """Outer headers with lowercased names."""
    method: str
    path: str
    headers: list[tuple[str, str]]
    body: bytes
    encrypted: bool

    def header(self, name: str) -> str | None:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None

    def header_values(self, name: str) -> list[str]:
        return [value for key, value in self.headers if key.lower() == name.lower()]


@dataclass
class FakeRspamd:
    """Fake Rspamd server holding a static HTTPCrypt keypair."""

    keypair: EphemeralKeyPair
    password: str | None = None
    status: int = 200
    delays: list[float] = field(default_factory=list)
    rewrite: bytes | None = None
    tamper_reply: bool = False
    requests: list[RecordedRequest] = field(default_factory=list)
    base_url: str = ""

    def app(self) -> web.Application:
        # Request bodies are decoded by the handler, not by aiohttp
        app = web.Application(handler_args={"auto_decompress": False})
        app.router.add_route("*", "/{path:.*}", self.handle)
        return app

    def _reply(self, path: str, headers: dict[str, str], body: bytes) -> tuple[int, list[tuple[str, str]], bytes]:
        if self.password is not None and headers.get(HEADER_PASSWORD.lower()) != self.password:
            return (403, [], b'{"error":"Unauthorized"}')
        if self.status != 200:
            return (self.status, [], b'{"error":"Injected failure"}')

        if path == "/checkv2":
            reply = dict(SCAN_REPLY)
            file_path = headers.get(HEADER_FILE.lower())
            if file_path is not None:
                reply["filename"] = file_path
            payload = json.dumps(reply).encode()
            if self.rewrite is not None:
                return (200, [(HEADER_MESSAGE_OFFSET, str(len(payload)))], payload + self.rewrite)
            return (200, [], payload)
        if path in ("/learnspam", "/learnham"):
            return (200, [], json.dumps(LEARN_REPLY).encode())
        return (404, [], b'{"error":"Not found"}')

    async def handle(self, request: web.Request) -> web.Response:
        raw = await request.read()
        decryptor: RequestDecryptor | None = None

        if HEADER_KEY in request.headers:
            try:
                decryptor = RequestDecryptor(request.headers, self.keypair)
                inner, body = decryptor.decrypt_all(raw)
            except EncryptionError as e:
                return web.Response(status=400, text=str(e))
            method, path, headers = inner.method, inner.path, inner.headers
        else:
            method, path, headers, body = request.method, request.path, list(request.headers.items()), raw

        header_map = {key.lower(): value for key, value in headers}
        compressed = header_map.get(HEADER_COMPRESSION.lower()) == ZSTD_ENCODING
        if compressed:
            body = zstd_decompress(body)

        self.requests.append(
            RecordedRequest(
                outer_method=request.method,
                outer_path=request.path,
                outer_headers={key.lower(): value for key, value in request.headers.items()},
                method=method,
                path=path,
                headers=headers,
                body=body,
                encrypted=decryptor is not None,
            )
        )
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))

        status, reply_headers, payload = self._reply(path, header_map, body)
        if compressed:
            payload = zstd_compress(payload)
            reply_headers.append((HEADER_COMPRESSION, ZSTD_ENCODING))

        if decryptor is None:
            return web.Response(status=status, headers=reply_headers, body=payload)

        with decryptor:
            reason = "OK" if status == 200 else "Error"
            envelope = bytearray(ResponseEncryptor(decryptor.context).encrypt_all(status, reason, reply_headers, payload))
        if self.tamper_reply:
            envelope[-1] ^= 0x01
        return web.Response(status=200, body=bytes(envelope))

    @contextlib.contextmanager
    def serve(self) -> Iterator[str]:
        """Run the server in a background thread, yielding its base URL."""
        loop = asyncio.new_event_loop()
        runner = web.AppRunner(self.app())
        port = get_free_port()
        loop.run_until_complete(runner.setup())
        loop.run_until_complete(web.TCPSite(runner, "127.0.0.1", port).start())
        thread = threading.Thread(target=loop.run_forever, daemon=True)
        thread.start()
        self.base_url = f"http://127.0.0.1:{port}"
        try:
            yield self.base_url
        finally:
            asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=30)
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=10)
            loop.close()
