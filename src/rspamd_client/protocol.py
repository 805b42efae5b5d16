"""
Scan reply model.

Mirrors the JSON returned by ``/checkv2``. Every field is optional on the
wire and falls back to an empty default.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rspamd_client.constants import HEADER_MESSAGE_OFFSET
from rspamd_client.exceptions import ReplyParseError
from rspamd_client.headers import get_header

__all__ = [
    "MailHeader",
    "Milter",
    "RspamdScanReply",
    "Symbol",
    "parse_learn_reply",
    "parse_scan_reply",
]


def _float(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    return float(value) if value is not None else 0.0


@dataclass
class Symbol:
    """A symbol that matched during the scan."""

    name: str = ""
    score: float = 0.0
    metric_score: float = 0.0
    description: str | None = None
    options: list[str] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Symbol:
        return cls(
            name=data.get("name", ""),
            score=_float(data, "score"),
            metric_score=_float(data, "metric_score"),
            description=data.get("description"),
            options=data.get("options"),
        )


@dataclass
class MailHeader:
    """Header the MTA should add."""

    value: str = ""
    order: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MailHeader:
        return cls(value=data.get("value", ""), order=int(data.get("order", 0)))


@dataclass
class Milter:
    """Milter actions (headers to add and remove)."""

    add_headers: dict[str, MailHeader] = field(default_factory=dict)
    remove_headers: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Milter:
        add_headers: dict[str, MailHeader] = {}
        for name, header in data.get("add_headers", {}).items():
            # Rspamd sends either {"value", "order"} or a bare string
            add_headers[name] = (
                MailHeader.from_dict(header) if isinstance(header, Mapping) else MailHeader(value=str(header))
            )
        return cls(
            add_headers=add_headers,
            remove_headers={name: int(order) for name, order in data.get("remove_headers", {}).items()},
        )


@dataclass
class RspamdScanReply:
    """Result of scanning a message."""

    is_skipped: bool = False
    score: float = 0.0
    required_score: float = 0.0
    action: str = ""
    thresholds: dict[str, float] = field(default_factory=dict)
    symbols: dict[str, Symbol] = field(default_factory=dict)
    messages: dict[str, str] = field(default_factory=dict)
    urls: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    message_id: str = ""
    time_real: float = 0.0
    milter: Milter | None = None
    filename: str = ""
    scan_time: float = 0.0

    rewritten_body: bytes | None = None
    """Rewritten message, present when the server sent Message-Offset."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RspamdScanReply:
        """
        Build a reply from decoded JSON.

        Raises:
            ReplyParseError: If a field has an unexpected type
        """
        try:
            milter = data.get("milter")
            return cls(
                is_skipped=bool(data.get("is_skipped", False)),
                score=_float(data, "score"),
                required_score=_float(data, "required_score"),
                action=data.get("action", ""),
                thresholds={name: float(value) for name, value in data.get("thresholds", {}).items()},
                symbols={name: Symbol.from_dict(symbol) for name, symbol in data.get("symbols", {}).items()},
                messages=dict(data.get("messages", {})),
                urls=list(data.get("urls", [])),
                emails=list(data.get("emails", [])),
                message_id=data.get("message-id", ""),
                time_real=_float(data, "time_real"),
                milter=Milter.from_dict(milter) if milter is not None else None,
                filename=data.get("filename", ""),
                scan_time=_float(data, "scan_time"),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ReplyParseError(f"Unexpected scan reply structure: {e}") from e


def _loads(data: bytes) -> Mapping[str, Any]:
    try:
        decoded = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ReplyParseError(f"Invalid JSON reply: {e}") from e
    if not isinstance(decoded, Mapping):
        raise ReplyParseError("Scan reply is not a JSON object")
    return decoded


def parse_scan_reply(headers: Mapping[str, Any], body: bytes) -> RspamdScanReply:
    """
    Parse a scan reply, splitting off a rewritten body.

    When the server rewrites the message it sends ``Message-Offset``: the
    JSON reply is ``body[:offset]`` and the rewritten message follows it.
    An offset outside the body is ignored and the whole body is parsed.

    Args:
        headers: Reply headers (decrypted inner headers when encrypted)
        body: Reply body (already decompressed)

    Returns:
        RspamdScanReply

    Raises:
        ReplyParseError: On invalid JSON or an invalid Message-Offset value
    """
    offset_header = get_header(headers, HEADER_MESSAGE_OFFSET)
    if offset_header is None:
        return RspamdScanReply.from_dict(_loads(body))

    try:
        offset = int(offset_header.strip())
    except ValueError as e:
        raise ReplyParseError(f"Invalid {HEADER_MESSAGE_OFFSET} value: {offset_header!r}") from e

    if 0 <= offset < len(body):
        reply = RspamdScanReply.from_dict(_loads(body[:offset]))
        reply.rewritten_body = body[offset:]
        return reply
    return RspamdScanReply.from_dict(_loads(body))


def parse_learn_reply(body: bytes) -> dict[str, Any]:
    """
    Parse a learn reply (``{"success": true, ...}``).

    Raises:
        ReplyParseError: On invalid JSON
    """
    return dict(_loads(body))
