"""Telegram-to-core mapping and feedback adapter.

This keeps Telethon-specific details out of the relay dispatcher.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telethon import errors, functions, types, utils
from telethon.tl.custom import Message

from adapters.notification_formatting import format_feedback
from core.models import InboundChatMessage

LOGGER = logging.getLogger(__name__)


async def build_chat_message(message: Message) -> Optional[InboundChatMessage]:
    """Build a core InboundChatMessage from a Telethon Message.

    Returns None for messages the relay never forwards: bot authors and
    messages without a resolvable sender.
    """

    sender = await message.get_sender()
    if sender is None or getattr(sender, "bot", False):
        return None

    return InboundChatMessage(
        author_id=str(message.sender_id),
        author_name=utils.get_display_name(sender),
        body=message.raw_text or "",
        message_id=str(message.id),
        channel_id=str(message.chat_id),
    )


class TelegramFeedback:
    """FeedbackPort implementation: reactions, replies and edits."""

    def __init__(self, client) -> None:
        self._client = client

    async def react(self, message: InboundChatMessage, reaction: str) -> None:
        # Reactions are cosmetic; a chat that disallows them must not break relaying.
        try:
            await self._client(
                functions.messages.SendReactionRequest(
                    peer=int(message.channel_id),
                    msg_id=int(message.message_id),
                    reaction=[types.ReactionEmoji(emoticon=reaction)],
                )
            )
        except errors.RPCError as exc:
            LOGGER.warning("Could not react to message %s: %s", message.message_id, exc)

    async def reply(self, message: InboundChatMessage, text: str) -> Any:
        return await self._client.send_message(
            int(message.channel_id),
            format_feedback(text),
            reply_to=int(message.message_id),
            parse_mode="html",
        )

    async def edit(self, reply: Any, text: str, preformatted: bool = False) -> None:
        await self._client.edit_message(reply, format_feedback(text, preformatted), parse_mode="html")
