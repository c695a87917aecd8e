# dronelink/protocol/reply.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ERROR_MARKER = "error"


@dataclass(frozen=True)
class Reply:
    """A decoded reply datagram, classified by content."""
    text: str
    ok: bool

    @property
    def trimmed(self) -> str:
        return self.text.strip()


@dataclass(frozen=True)
class CommandResult:
    """Success outcome of a command."""
    command: str
    response: str
    result: Optional[str] = None


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def classify_reply(data: bytes, *, error_marker: str = ERROR_MARKER) -> Reply:
    """
    The protocol has no status field: a reply is an error iff its text starts
    with the error marker. Anything else (including an empty datagram) is success.
    """
    text = decode_text(data)
    return Reply(text=text, ok=not text.startswith(error_marker))
