"""Log line classification (core domain).

Every raw console line maps to exactly one event. Patterns are tried in a
fixed priority: a chat line may quote text that looks like an error or a
custom tag, so chat always wins.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

from core.models import ChatEvent, CustomEvent, ErrorEvent, LogEvent, Unrecognized
from core.steam_ids import normalize_steam_id

# Cheap pre-check: a quoted player block followed by a say verb.
CHAT_MARKER_RE = re.compile(r'<\d+><STEAM_[0-5]:[01]:\d+><[^>]*>"\s+say(?:_team)?\s+"')

CHAT_RE = re.compile(
    r'^.*?"(?P<name>.*?)<(?P<uid>\d+)><(?P<identity>STEAM_[0-5]:[01]:\d+)><(?P<team>[^>]*)>"'
    r'\s+(?P<verb>say(?:_team)?)\s+"(?P<body>.*)"'
)

ERROR_RE = re.compile(
    r"^(?:L )?\d{2}/\d{2}/\d{4} - \d{2}:\d{2}:\d{2}: (?P<body>Lua Error:\s*\n\[ERROR\][\s\S]*)$",
    re.MULTILINE,
)

CUSTOM_RE = re.compile(r"\[relay_custom\](?P<inner>.*?)\[/relay_custom\]", re.DOTALL)

CUSTOM_SENDER_PLACEHOLDER = "Server"
CUSTOM_BODY_PLACEHOLDER = "(unreadable message)"


def _classify_chat(line: str) -> Optional[LogEvent]:
    if not CHAT_MARKER_RE.search(line):
        return None
    match = CHAT_RE.search(line)
    # The identity block alone is not enough; without a body the line is noise.
    if not match or not match.group("body"):
        return Unrecognized()
    return ChatEvent(
        speaker_name=match.group("name"),
        speaker_identity=normalize_steam_id(match.group("identity")),
        body=match.group("body"),
        team_only=match.group("verb") == "say_team",
    )


def _classify_error(line: str) -> Optional[LogEvent]:
    match = ERROR_RE.search(line)
    if not match:
        return None
    return ErrorEvent(body=match.group("body").rstrip())


def _decode_field(value: Optional[str], placeholder: str) -> str:
    if not value:
        return placeholder
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return placeholder
    return decoded or placeholder


def _classify_custom(line: str) -> Optional[LogEvent]:
    match = CUSTOM_RE.search(line)
    if not match:
        return None
    fields = match.group("inner").split()
    sender = fields[0] if len(fields) > 0 else None
    body = fields[1] if len(fields) > 1 else None
    return CustomEvent(
        sender_name=_decode_field(sender, CUSTOM_SENDER_PLACEHOLDER),
        body=_decode_field(body, CUSTOM_BODY_PLACEHOLDER),
    )


def classify(line: str, surface_errors: bool = False) -> LogEvent:
    """Return the event for one raw log line.

    Error lines are only reported when ``surface_errors`` is set; otherwise
    they fall through like any other unmatched line.
    """

    event = _classify_chat(line)
    if event is not None:
        return event

    if surface_errors:
        event = _classify_error(line)
        if event is not None:
            return event

    event = _classify_custom(line)
    if event is not None:
        return event

    return Unrecognized()
