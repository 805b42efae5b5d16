"""Commands that can be sent to the server."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "RspamdCommand",
    "RspamdEndpoint",
]


class RspamdCommand(Enum):
    """Commands that can be sent to the server."""

    SCAN = "scan"
    LEARN_SPAM = "learnspam"
    LEARN_HAM = "learnham"


@dataclass(frozen=True)
class RspamdEndpoint:
    """Endpoint path and body requirement for a command."""

    url: str
    command: RspamdCommand
    need_body: bool

    @classmethod
    def from_command(cls, command: RspamdCommand) -> RspamdEndpoint:
        """Create the endpoint for a command."""
        return _ENDPOINTS[command]


_ENDPOINTS: dict[RspamdCommand, RspamdEndpoint] = {
    RspamdCommand.SCAN: RspamdEndpoint(url="/checkv2", command=RspamdCommand.SCAN, need_body=True),
    RspamdCommand.LEARN_SPAM: RspamdEndpoint(url="/learnspam", command=RspamdCommand.LEARN_SPAM, need_body=True),
    RspamdCommand.LEARN_HAM: RspamdEndpoint(url="/learnham", command=RspamdCommand.LEARN_HAM, need_body=True),
}
