from __future__ import annotations

import asyncio
import base64
from typing import Optional

from core.avatar_cache import AvatarCache
from core.config import OutboundConfig
from core.errors import DeliveryError
from core.models import RconResult, ServerRoute
from core.relay import RelayDispatcher, no_retry
from core.routes import RouteTable

ROUTE = ServerRoute(name="main", host="10.0.0.5", port=27015, password="pw", channel_id="-1001")
ADDRESS = ("10.0.0.5", 27015)
CHAT_LINE = 'L 10/20/2025 - 12:00:00: "Alice<1><STEAM_0:0:123><Team>" say "hello"'
LUA_ERROR = "10/20/2025 - 12:00:00: Lua Error: \n[ERROR] lua/x.lua:1: boom\n"


class FakeNotifier:
    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.attempts: list[tuple[str, str, str, Optional[str]]] = []

    async def post(self, route, display_name, body, avatar_url=None) -> None:
        self.attempts.append((route.name, display_name, body, avatar_url))
        if self.failures > 0:
            self.failures -= 1
            raise DeliveryError("MESSAGE_EMPTY")

    @property
    def delivered(self):
        return self.attempts[-1] if self.attempts else None


class FakeLookup:
    def __init__(self, url: Optional[str] = "https://avatars.example/alice.jpg", fail: bool = False) -> None:
        self.url = url
        self.fail = fail
        self.calls: list[str] = []

    async def lookup(self, identity: str) -> Optional[str]:
        self.calls.append(identity)
        if self.fail:
            raise OSError("steam is down")
        return self.url


class NullRcon:
    async def execute(self, route, command) -> RconResult:
        raise AssertionError("log path must not touch RCON")


def _dispatcher(notifier, lookup=None, **outbound) -> RelayDispatcher:
    return RelayDispatcher(
        routes=RouteTable([ROUTE]),
        notifier=notifier,
        rcon=NullRcon(),
        avatars=AvatarCache(lookup or FakeLookup()),
        outbound=OutboundConfig(**outbound),
    )


def test_chat_line_is_posted_with_avatar() -> None:
    notifier = FakeNotifier()
    lookup = FakeLookup()

    asyncio.run(_dispatcher(notifier, lookup).handle_log_line(ADDRESS, CHAT_LINE))

    assert notifier.attempts == [("main", "Alice", "hello", "https://avatars.example/alice.jpg")]
    assert lookup.calls == ["STEAM_0:0:123"]


def test_unrecognized_line_posts_nothing() -> None:
    notifier = FakeNotifier()

    asyncio.run(_dispatcher(notifier).handle_log_line(ADDRESS, 'L 10/20/2025 - 12:00:00: Loading map "gm_flatgrass"'))

    assert notifier.attempts == []


def test_unmapped_server_is_ignored() -> None:
    notifier = FakeNotifier()

    asyncio.run(_dispatcher(notifier).handle_log_line(("10.0.0.9", 27015), CHAT_LINE))

    assert notifier.attempts == []


def test_blacklisted_prefix_is_suppressed() -> None:
    notifier = FakeNotifier()
    dispatcher = _dispatcher(notifier, blacklist_prefixes=("!", "/"))
    line = '"Alice<1><STEAM_0:0:123><Team>" say "   !rtv"'

    asyncio.run(dispatcher.handle_log_line(ADDRESS, line))

    assert notifier.attempts == []


def test_error_lines_only_when_enabled() -> None:
    notifier = FakeNotifier()
    asyncio.run(_dispatcher(notifier).handle_log_line(ADDRESS, LUA_ERROR))
    assert notifier.attempts == []

    asyncio.run(_dispatcher(notifier, show_errors=True).handle_log_line(ADDRESS, LUA_ERROR))
    route, name, body, avatar = notifier.delivered
    assert name == "Lua Error"
    assert body.startswith("Lua Error:")
    assert avatar is None


def test_custom_event_is_posted_without_avatar() -> None:
    notifier = FakeNotifier()
    lookup = FakeLookup()
    sender = base64.b64encode(b"Console").decode()
    body = base64.b64encode("Map vote started".encode()).decode()

    asyncio.run(_dispatcher(notifier, lookup).handle_log_line(ADDRESS, f"[relay_custom]{sender} {body}[/relay_custom]"))

    assert notifier.attempts == [("main", "Console", "Map vote started", None)]
    assert lookup.calls == []


def test_failed_delivery_is_retried_once_with_leading_space() -> None:
    notifier = FakeNotifier(failures=1)

    asyncio.run(_dispatcher(notifier).handle_log_line(ADDRESS, CHAT_LINE))

    assert [attempt[2] for attempt in notifier.attempts] == ["hello", " hello"]


def test_second_delivery_failure_is_swallowed() -> None:
    notifier = FakeNotifier(failures=5)

    asyncio.run(_dispatcher(notifier).handle_log_line(ADDRESS, CHAT_LINE))

    assert len(notifier.attempts) == 2


def test_retry_policy_can_be_disabled() -> None:
    notifier = FakeNotifier(failures=1)
    dispatcher = RelayDispatcher(
        routes=RouteTable([ROUTE]),
        notifier=notifier,
        rcon=NullRcon(),
        retry_policy=no_retry,
    )

    asyncio.run(dispatcher.handle_log_line(ADDRESS, CHAT_LINE))

    assert len(notifier.attempts) == 1


def test_avatar_failure_still_posts() -> None:
    notifier = FakeNotifier()

    asyncio.run(_dispatcher(notifier, FakeLookup(fail=True)).handle_log_line(ADDRESS, CHAT_LINE))

    assert notifier.attempts == [("main", "Alice", "hello", None)]
