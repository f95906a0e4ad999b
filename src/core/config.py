"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class OutboundConfig:
    """Settings for the log-to-chat direction."""

    blacklist_prefixes: tuple[str, ...] = ()
    show_errors: bool = False
    error_display_name: str = "Lua Error"


@dataclass(frozen=True)
class InboundConfig:
    """Settings for the chat-to-server direction."""

    max_message_length: int = 512
    announce_trim: bool = True
    trim_reaction: str = "✍"
    failure_reaction: str = "👎"
    failure_markers: tuple[str, ...] = ("error",)


@dataclass(frozen=True)
class CommandConfig:
    """Raw RCON command settings. Aliases are checked in order."""

    aliases: tuple[str, ...] = ("--rcon", "--command", "--c")
    allowed_users: frozenset[str] = field(default_factory=frozenset)
    preview_chars: int = 1993


@dataclass(frozen=True)
class WireConfig:
    """Relay command framing understood by the game-server addon."""

    verb: str = "say_relay"
    ceiling: int = 500
    avoid_tag_collisions: bool = False
