"""
Inner pseudo-HTTP messages carried inside HTTPCrypt envelopes.

An encrypted request hides the real method, path and headers inside the
envelope. The plaintext is a minimal HTTP/1.1 message:

    POST /checkv2 HTTP/1.1\\n
    Name:Value\\n            (one line per header, caller order)
    \\n
    <raw body bytes>

There is no length prefix: the blank line ends the head and the rest of
the buffer is the body. Header order is authenticated as part of the
envelope, so it is preserved exactly.

Replies use the same shape with a status line. The parser is a permissive
single pass (LF or CRLF line endings, leading blank lines skipped) that
fails closed on anything it cannot frame.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from rspamd_client.constants import INNER_HTTP_VERSION, MAX_INNER_HEADERS
from rspamd_client.exceptions import FramingError

__all__ = [
    "HeaderItems",
    "InnerRequest",
    "InnerResponse",
    "build_request",
    "build_response",
    "parse_request",
    "parse_response",
]

HeaderItems = Iterable[tuple[str | bytes, str | bytes]] | Mapping[str, str]
"""Headers as ordered (name, value) pairs, or a mapping (iteration order is kept)."""

_STATUS_LINE = re.compile(rb"^(HTTP/\d\.\d) (\d{3})(?: (.*))?$")
_REQUEST_LINE = re.compile(rb"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) (\S+) (HTTP/\d\.\d)$")
_TOKEN = re.compile(rb"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _header_pairs(headers: HeaderItems) -> Iterable[tuple[str | bytes, str | bytes]]:
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


@dataclass
class _InnerMessage:
    headers: list[tuple[str, str]] = field(default_factory=list)
    """Header (name, value) pairs in wire order."""

    body_offset: int = 0
    """Offset of the first body byte in the parsed buffer."""

    def get(self, name: str, default: str | None = None) -> str | None:
        """First value of a header (case-insensitive)."""
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return default

    def header_map(self) -> dict[str, str]:
        """Headers as a dict (first occurrence wins)."""
        result: dict[str, str] = {}
        for key, value in self.headers:
            result.setdefault(key, value)
        return result


@dataclass
class InnerResponse(_InnerMessage):
    """Parsed head of a decrypted reply."""

    version: str = INNER_HTTP_VERSION
    status: int = 0
    reason: str = ""


@dataclass
class InnerRequest(_InnerMessage):
    """Parsed head of a decrypted request (server side)."""

    method: str = ""
    path: str = ""
    version: str = INNER_HTTP_VERSION


def _write_message(start_line: bytes, headers: HeaderItems, body: bytes | memoryview) -> bytes:
    out = bytearray(start_line)
    out += b"\n"
    for name, value in _header_pairs(headers):
        out += _as_bytes(name)
        out += b":"
        out += _as_bytes(value)
        out += b"\n"
    out += b"\n"
    out += body
    return bytes(out)


def build_request(method: str, path: str, headers: HeaderItems, body: bytes | memoryview = b"") -> bytes:
    """
    Build the plaintext inner request.

    Header values are written verbatim; callers must not pass values
    containing line breaks.

    Args:
        method: HTTP method (e.g., "POST")
        path: Request path (e.g., "/checkv2")
        headers: Ordered headers
        body: Raw body, appended without a length prefix

    Returns:
        Plaintext ready for encrypt_envelope()
    """
    start_line = f"{method} {path} {INNER_HTTP_VERSION}".encode()
    return _write_message(start_line, headers, body)


def build_response(
    status: int,
    reason: str,
    headers: HeaderItems,
    body: bytes | memoryview = b"",
) -> bytes:
    """
    Build a plaintext inner reply (server side).

    Args:
        status: HTTP status code
        reason: Reason phrase
        headers: Ordered headers
        body: Raw body

    Returns:
        Plaintext ready for encrypt_envelope()
    """
    start_line = f"{INNER_HTTP_VERSION} {status:03d} {reason}".rstrip().encode()
    return _write_message(start_line, headers, body)


def _read_head(data: bytes | bytearray, start: int) -> tuple[bytes, list[tuple[str, str]], int]:
    """Split start line and headers, returning (start_line, headers, body_offset)."""
    start_line: bytes | None = None
    headers: list[tuple[str, str]] = []
    pos = start

    while True:
        newline = data.find(b"\n", pos)
        if newline < 0:
            raise FramingError("Missing blank line after inner message headers")
        line = bytes(data[pos:newline])
        pos = newline + 1
        if line.endswith(b"\r"):
            line = line[:-1]

        if start_line is None:
            if line:
                start_line = line
            # Leading blank lines before the start line are skipped
            continue

        if not line:
            return (start_line, headers, pos)

        if len(headers) >= MAX_INNER_HEADERS:
            raise FramingError(f"Too many inner headers (maximum {MAX_INNER_HEADERS})")

        name, separator, value = line.partition(b":")
        if not separator or not _TOKEN.match(name):
            raise FramingError("Malformed inner header line")
        try:
            headers.append((name.decode("ascii"), value.strip(b" \t").decode("utf-8")))
        except UnicodeDecodeError as e:
            raise FramingError("Inner header is not valid UTF-8") from e


def parse_response(data: bytes | bytearray, start: int = 0) -> InnerResponse:
    """
    Parse a decrypted inner reply.

    Args:
        data: Buffer holding the decrypted reply
        start: Offset of the reply in data (e.g., the envelope plaintext offset)

    Returns:
        InnerResponse; the body is ``data[response.body_offset:]``

    Raises:
        FramingError: On a malformed status line or header, more than 64
            headers, non UTF-8 header bytes, or a missing blank line
    """
    start_line, headers, body_offset = _read_head(data, start)
    match = _STATUS_LINE.match(start_line)
    if not match:
        raise FramingError("Malformed inner status line")
    version, status, reason = match.groups()
    try:
        reason_text = (reason or b"").decode("utf-8")
    except UnicodeDecodeError as e:
        raise FramingError("Inner status line is not valid UTF-8") from e
    return InnerResponse(
        headers=headers,
        body_offset=body_offset,
        version=version.decode("ascii"),
        status=int(status),
        reason=reason_text,
    )


def parse_request(data: bytes | bytearray, start: int = 0) -> InnerRequest:
    """
    Parse a decrypted inner request (server side).

    Args:
        data: Buffer holding the decrypted request
        start: Offset of the request in data

    Returns:
        InnerRequest; the body is ``data[request.body_offset:]``

    Raises:
        FramingError: On a malformed request line or header, more than 64
            headers, non UTF-8 header bytes, or a missing blank line
    """
    start_line, headers, body_offset = _read_head(data, start)
    match = _REQUEST_LINE.match(start_line)
    if not match:
        raise FramingError("Malformed inner request line")
    method, path, version = match.groups()
    try:
        path_text = path.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FramingError("Inner request path is not valid UTF-8") from e
    return InnerRequest(
        headers=headers,
        body_offset=body_offset,
        method=method.decode("ascii"),
        path=path_text,
        version=version.decode("ascii"),
    )
