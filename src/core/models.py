"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Telethon or socket-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class ServerRoute:
    """One managed game server and the chat channel it is bound to."""

    name: str
    host: str
    port: int
    password: str = field(repr=False)
    channel_id: str

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)


@dataclass(frozen=True)
class ChatEvent:
    """A player chat line (say or say_team)."""

    speaker_name: str
    speaker_identity: str
    body: str
    team_only: bool = False


@dataclass(frozen=True)
class ErrorEvent:
    """A server-side script error with its multi-line detail."""

    body: str


@dataclass(frozen=True)
class CustomEvent:
    """A message emitted by a server addon through the custom relay tag."""

    sender_name: str
    body: str


@dataclass(frozen=True)
class Unrecognized:
    """Any log line the relay does not care about."""


LogEvent = Union[ChatEvent, ErrorEvent, CustomEvent, Unrecognized]


@dataclass(frozen=True)
class InboundChatMessage:
    """A chat-platform message on its way to a game server."""

    author_id: str
    author_name: str
    body: str
    message_id: str
    channel_id: str


@dataclass(frozen=True)
class FragmentEnvelope:
    """One frame of a fragmented relay message.

    Index 0 is the initiation frame: its payload is the encoded author name
    and ``total`` holds the number of continuation frames. Frames 1..N carry
    consecutive slices of the encoded body.
    """

    index: int
    group_tag: str
    payload: str
    total: Optional[int] = None

    def to_command(self, verb: str) -> str:
        if self.index == 0:
            return f"{verb} 0 {self.total} {self.group_tag} {self.payload}"
        return f"{verb} {self.index} {self.group_tag} {self.payload}"


@dataclass(frozen=True)
class RconResult:
    """Outcome of one RCON exchange.

    ``failed`` is set for transport-level failures (refused connection,
    rejected password, socket errors); ``text`` then holds the error text.
    """

    text: str
    failed: bool = False
