"""Relay command encoding and fragmentation (core domain).

The game-server addon reassembles fragments by (group tag, index) and relies
on the frames arriving in order, so the layout produced here is a wire
contract: changing separators, hash, or chunk sizing breaks older addons.
"""

from __future__ import annotations

import base64
import math
from typing import List, Optional

from core.models import FragmentEnvelope

TAG_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
TAG_LENGTH = 4

DEFAULT_VERB = "say_relay"
DEFAULT_CEILING = 500


def encode_text(text: str) -> str:
    """Return the ASCII-safe (UTF-8 + base64) form of ``text``."""

    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_text(payload: str) -> str:
    """Inverse of :func:`encode_text`."""

    return base64.b64decode(payload).decode("utf-8")


def group_tag(message_id: str) -> str:
    """Derive the 4-symbol fragment group tag from a message id.

    Rolling 32-bit hash, then four 6-bit windows folded onto 62 symbols.
    Collisions are possible and are not detected by the addon.
    """

    value = 0
    for char in message_id:
        value = (value * 15 + ord(char)) & 0xFFFFFFFF
    return "".join(
        TAG_ALPHABET[((value >> (i * 6)) & 0x3F) % len(TAG_ALPHABET)] for i in range(TAG_LENGTH)
    )


def single_command_capacity(encoded_author: str, verb: str = DEFAULT_VERB, ceiling: int = DEFAULT_CEILING) -> int:
    """Room left for the encoded body in an unfragmented command."""

    return ceiling - (len(verb) + 2 + len(encoded_author))


def chunk_size(tag: str, verb: str = DEFAULT_VERB, ceiling: int = DEFAULT_CEILING) -> int:
    """Encoded body characters carried by each continuation frame."""

    return ceiling - (len(verb) + 2 + len(tag))


def build_envelopes(
    message_id: str,
    author_name: str,
    body: str,
    verb: str = DEFAULT_VERB,
    ceiling: int = DEFAULT_CEILING,
    tag: Optional[str] = None,
) -> List[FragmentEnvelope]:
    """Return the fragment frames for a message, or [] if it fits in one command."""

    encoded_author = encode_text(author_name)
    encoded_body = encode_text(body)
    if len(encoded_body) <= single_command_capacity(encoded_author, verb, ceiling):
        return []

    tag = tag or group_tag(message_id)
    size = chunk_size(tag, verb, ceiling)
    if size <= 0:
        raise ValueError(f"Ceiling {ceiling} leaves no room for fragment payloads")
    count = math.ceil(len(encoded_body) / size)

    envelopes = [FragmentEnvelope(index=0, group_tag=tag, payload=encoded_author, total=count)]
    for index in range(1, count + 1):
        chunk = encoded_body[(index - 1) * size : index * size]
        envelopes.append(FragmentEnvelope(index=index, group_tag=tag, payload=chunk))
    return envelopes


def encode(
    message_id: str,
    author_name: str,
    body: str,
    verb: str = DEFAULT_VERB,
    ceiling: int = DEFAULT_CEILING,
    tag: Optional[str] = None,
) -> List[str]:
    """Return the ordered RCON commands that deliver one chat message.

    Short messages become a single ``verb author body`` command. Longer ones
    become an initiation frame followed by numbered continuation frames that
    must be sent one at a time, in order.
    """

    envelopes = build_envelopes(message_id, author_name, body, verb, ceiling, tag)
    if not envelopes:
        return [f"{verb} {encode_text(author_name)} {encode_text(body)}"]
    return [envelope.to_command(verb) for envelope in envelopes]
