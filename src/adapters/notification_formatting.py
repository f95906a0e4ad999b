"""Shared message formatting helpers.

Keeping formatting here prevents drift between the relay notifier and the
command feedback, and keeps everything Telegram HTML-safe.
"""

from __future__ import annotations

import html
import re
from typing import Optional

ZERO_WIDTH_SPACE = "\u200b"
ELLIPSIS = "\u2026"

# Telegram counts message length in UTF-16 code units.
MESSAGE_LIMIT = 4096

_PARTIAL_ENTITY_RE = re.compile(r"&[#a-zA-Z0-9]*$")


def neutralize_mentions(text: str) -> str:
    """Break ``@name`` sequences so relayed chat cannot mention chat users."""

    return text.replace("@", f"@{ZERO_WIDTH_SPACE}")


def _utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def clip_message(message: str, limit: int = MESSAGE_LIMIT) -> str:
    """Cut an HTML message body so Telegram accepts it.

    Only the tail is cut, so it must not end inside a tag; relay messages
    put all markup in front of the text.
    """

    if _utf16_length(message) <= limit:
        return message
    units = message.encode("utf-16-le")[: (limit - len(ELLIPSIS)) * 2]
    clipped = units.decode("utf-16-le", errors="ignore")
    return _PARTIAL_ENTITY_RE.sub("", clipped) + ELLIPSIS


def format_relay_message(display_name: str, body: str, avatar_url: Optional[str] = None) -> str:
    """Return the HTML body for a relayed game message.

    Bots cannot post under another name, so the speaker is rendered in bold
    in front of the text. The avatar rides along as an invisible link so the
    link preview shows it.
    """

    name = html.escape(neutralize_mentions(display_name))
    text = html.escape(neutralize_mentions(body))
    message = f"<b>{name}</b>: {text}"
    if avatar_url:
        safe_url = html.escape(avatar_url, quote=True)
        message = f'<a href="{safe_url}">{ZERO_WIDTH_SPACE}</a>{message}'
    return clip_message(message)


def format_feedback(text: str, preformatted: bool = False) -> str:
    """Return the HTML body for a command acknowledgement or result."""

    escaped = html.escape(text)
    if preformatted:
        return f"<pre>{escaped}</pre>"
    return escaped
