"""Ports (interfaces) used by the relay core.

Ports define the minimal contracts for chat delivery, RCON transport and
avatar lookups so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from core.models import InboundChatMessage, RconResult, ServerRoute


class NotifierPort(Protocol):
    """Posts a chat-style message into the channel bound to a route.

    Implementations raise ``DeliveryError`` when the platform rejects the post.
    """

    async def post(
        self,
        route: ServerRoute,
        display_name: str,
        body: str,
        avatar_url: Optional[str] = None,
    ) -> None:
        ...


class FeedbackPort(Protocol):
    """Acknowledgement channel back to the message that triggered a dispatch."""

    async def react(self, message: InboundChatMessage, reaction: str) -> None:
        ...

    async def reply(self, message: InboundChatMessage, text: str) -> Any:
        ...

    async def edit(self, reply: Any, text: str, preformatted: bool = False) -> None:
        ...


class RconPort(Protocol):
    """Runs one command on a server. Never raises."""

    async def execute(self, route: ServerRoute, command: str) -> RconResult:
        ...


class AvatarLookupPort(Protocol):
    """Resolves a player identity to an avatar image URL."""

    async def lookup(self, identity: str) -> Optional[str]:
        ...
