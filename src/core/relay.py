"""Relay dispatcher.

This module is integration-agnostic. It only relies on ports for chat
delivery, acknowledgements and RCON, enabling other chat platforms or
transports without changes here.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from core.avatar_cache import AvatarCache
from core.config import CommandConfig, InboundConfig, OutboundConfig, WireConfig
from core.errors import DeliveryError
from core.fragments import encode, group_tag
from core.log_classifier import classify
from core.models import (
    ChatEvent,
    CustomEvent,
    ErrorEvent,
    InboundChatMessage,
    RconResult,
    ServerRoute,
)
from core.ports import FeedbackPort, NotifierPort, RconPort
from core.routes import RouteTable

LOGGER = logging.getLogger(__name__)

NO_RESULTS_TEXT = "Command executed but returned no results."

# Returns the body to retry with, or None to give up after the first failure.
RetryPolicy = Callable[[str], Optional[str]]


def prepend_space(body: str) -> Optional[str]:
    """Retry once with a leading space.

    Some platforms reject bodies that normalise to empty content; a leading
    space is enough to get them through.
    """

    return " " + body


def no_retry(body: str) -> Optional[str]:
    return None


def truncate(body: str, limit: int) -> Tuple[str, bool]:
    """Return (body cut to ``limit`` characters, whether it was cut)."""

    if len(body) <= limit:
        return body, False
    return body[:limit], True


def looks_failed(result: RconResult, markers: Tuple[str, ...]) -> bool:
    """Decide whether an RCON answer reports a failure.

    Transport failures are flagged explicitly. Remote failures are only
    visible as text, so any configured marker in the output counts as one
    (case-insensitive);
    this misfires on legitimate output that happens to contain a marker.
    """

    if result.failed:
        return True
    lowered = result.text.lower()
    return bool(lowered) and any(marker.lower() in lowered for marker in markers if marker)


class GroupTagRegistry:
    """Track fragment group tags in flight per route.

    When a freshly derived tag is already in use on the same route, a new
    one is derived from the message id with a numeric suffix.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, set[str]] = {}

    def acquire(self, route: ServerRoute, message_id: str) -> str:
        used = self._in_flight.setdefault(route.name, set())
        tag = group_tag(message_id)
        attempt = 0
        while tag in used:
            attempt += 1
            tag = group_tag(f"{message_id}#{attempt}")
        used.add(tag)
        return tag

    def release(self, route: ServerRoute, tag: str) -> None:
        self._in_flight.get(route.name, set()).discard(tag)


class RelayDispatcher:
    """Moves log events to chat and chat messages to game servers."""

    def __init__(
        self,
        routes: RouteTable,
        notifier: NotifierPort,
        rcon: RconPort,
        avatars: Optional[AvatarCache] = None,
        outbound: Optional[OutboundConfig] = None,
        inbound: Optional[InboundConfig] = None,
        commands: Optional[CommandConfig] = None,
        wire: Optional[WireConfig] = None,
        retry_policy: RetryPolicy = prepend_space,
    ) -> None:
        self._routes = routes
        self._notifier = notifier
        self._rcon = rcon
        self._avatars = avatars
        self._outbound = outbound or OutboundConfig()
        self._inbound = inbound or InboundConfig()
        self._commands = commands or CommandConfig()
        self._wire = wire or WireConfig()
        self._retry_policy = retry_policy
        self._tags = GroupTagRegistry() if self._wire.avoid_tag_collisions else None

    # Server -> chat

    async def handle_log_line(self, address: Tuple[str, int], line: str) -> None:
        """Classify one log line from ``address`` and forward it if relevant."""

        route = self._routes.by_address(*address)
        if route is None:
            LOGGER.debug("Log line from unmapped server %s:%s", *address)
            return

        event = classify(line, surface_errors=self._outbound.show_errors)

        if isinstance(event, ChatEvent):
            if self._is_blacklisted(event.body):
                LOGGER.debug("Blacklisted chat line suppressed for %s", route.name)
                return
            avatar = await self._avatars.get(event.speaker_identity) if self._avatars else None
            await self._deliver(route, event.speaker_name, event.body, avatar)
        elif isinstance(event, ErrorEvent):
            await self._deliver(route, self._outbound.error_display_name, event.body)
        elif isinstance(event, CustomEvent):
            await self._deliver(route, event.sender_name, event.body)

    def _is_blacklisted(self, body: str) -> bool:
        stripped = body.strip()
        return any(stripped.startswith(prefix) for prefix in self._outbound.blacklist_prefixes if prefix)

    async def _deliver(
        self,
        route: ServerRoute,
        display_name: str,
        body: str,
        avatar_url: Optional[str] = None,
    ) -> bool:
        try:
            await self._notifier.post(route, display_name, body, avatar_url)
            return True
        except DeliveryError as exc:
            retry_body = self._retry_policy(body)
            if retry_body is None:
                LOGGER.warning("Delivery to %s failed: %s", route.name, exc)
                return False
            LOGGER.info("Delivery to %s failed (%s), retrying once", route.name, exc)

        try:
            await self._notifier.post(route, display_name, retry_body, avatar_url)
            return True
        except DeliveryError as exc:
            LOGGER.warning("Delivery to %s failed after retry: %s", route.name, exc)
            return False

    # Chat -> server

    def _match_alias(self, body: str) -> Optional[str]:
        for alias in self._commands.aliases:
            if body.startswith(alias):
                return alias
        return None

    async def handle_chat_message(self, message: InboundChatMessage, feedback: FeedbackPort) -> None:
        """Relay a chat message to its server, or run it as an RCON command."""

        route = self._routes.by_channel(message.channel_id)
        if route is None:
            return

        alias = self._match_alias(message.body)
        if alias is not None:
            if message.author_id not in self._commands.allowed_users:
                LOGGER.debug("Ignoring command from non-allowed user %s", message.author_id)
                return
            command = message.body[len(alias):].strip().replace('"', "'")
            await self._run_command(route, command, message, feedback)
            return

        if not message.author_name or not message.body:
            return

        body, trimmed = truncate(message.body, self._inbound.max_message_length)
        if trimmed and self._inbound.announce_trim:
            await feedback.react(message, self._inbound.trim_reaction)

        if not await self.relay_chat(route, message.message_id, message.author_name, body):
            await feedback.react(message, self._inbound.failure_reaction)

    async def _run_command(
        self,
        route: ServerRoute,
        command: str,
        message: InboundChatMessage,
        feedback: FeedbackPort,
    ) -> None:
        LOGGER.info("User %s runs RCON on %s: %s", message.author_id, route.name, command)
        reply = await feedback.reply(message, f"Executing command : {command}")
        result = await self._rcon.execute(route, command)
        if not result.text:
            await feedback.edit(reply, NO_RESULTS_TEXT)
            return
        await feedback.edit(reply, result.text[: self._commands.preview_chars], preformatted=True)

    async def relay_chat(self, route: ServerRoute, message_id: str, author_name: str, body: str) -> bool:
        """Send a chat message to ``route`` as one or more relay commands.

        Returns False when the server reported a failure. Fragments are sent
        strictly one after another; the remote reassembles them by order.
        """

        tag = None
        if self._tags is not None:
            tag = self._tags.acquire(route, message_id)
        try:
            commands = encode(
                message_id,
                author_name,
                body,
                verb=self._wire.verb,
                ceiling=self._wire.ceiling,
                tag=tag,
            )
            if len(commands) > 1:
                LOGGER.debug("Relaying %s fragments to %s", len(commands) - 1, route.name)
            for index, command in enumerate(commands):
                result = await self._rcon.execute(route, command)
                if looks_failed(result, self._inbound.failure_markers):
                    LOGGER.warning(
                        "Relay to %s failed at command %s/%s: %s",
                        route.name,
                        index + 1,
                        len(commands),
                        result.text,
                    )
                    return False
            return True
        finally:
            if tag is not None:
                self._tags.release(route, tag)
