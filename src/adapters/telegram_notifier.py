"""Telegram notification adapter.

Posts relayed game messages into the chat bound to each server route.
"""

from __future__ import annotations

import logging
from typing import Optional

from telethon import errors

from adapters.notification_formatting import format_relay_message
from core.errors import DeliveryError
from core.models import ServerRoute

LOGGER = logging.getLogger(__name__)


class TelegramRelayNotifier:
    """NotifierPort implementation on top of a Telethon client."""

    def __init__(self, client) -> None:
        self._client = client

    async def post(
        self,
        route: ServerRoute,
        display_name: str,
        body: str,
        avatar_url: Optional[str] = None,
    ) -> None:
        """Send the formatted message to the route's chat."""

        message = format_relay_message(display_name, body, avatar_url)
        try:
            await self._client.send_message(
                int(route.channel_id),
                message,
                parse_mode="html",
                link_preview=bool(avatar_url),
            )
        except errors.RPCError as exc:
            raise DeliveryError(f"{type(exc).__name__}: {exc}") from exc
