from __future__ import annotations

import base64

from core.log_classifier import (
    CUSTOM_BODY_PLACEHOLDER,
    CUSTOM_SENDER_PLACEHOLDER,
    classify,
)
from core.models import ChatEvent, CustomEvent, ErrorEvent, Unrecognized

LUA_ERROR = (
    "10/20/2025 - 12:00:00: Lua Error: \n"
    "[ERROR] addons/shop/lua/autorun/shop.lua:12: attempt to index a nil value\n"
    "  1. unknown - addons/shop/lua/autorun/shop.lua:12\n"
)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def test_plain_chat_line() -> None:
    event = classify('"Alice<1><STEAM_0:0:123><>" say "hello"')

    assert event == ChatEvent(speaker_name="Alice", speaker_identity="STEAM_0:0:123", body="hello")


def test_timestamped_team_chat_line() -> None:
    line = 'L 10/20/2025 - 12:00:00: "Bob the Builder<14><STEAM_0:1:4242><Team>" say_team "go go go"'

    event = classify(line)

    assert isinstance(event, ChatEvent)
    assert event.speaker_name == "Bob the Builder"
    assert event.body == "go go go"
    assert event.team_only is True


def test_chat_identity_is_normalized_to_universe_zero() -> None:
    event = classify('"Carol<3><STEAM_1:1:999><Team>" say "hi"')

    assert event.speaker_identity == "STEAM_0:1:999"


def test_chat_body_with_quotes_keeps_inner_quotes() -> None:
    event = classify('"Dan<3><STEAM_0:1:5><Team>" say "he said "hi" twice"')

    assert event.body == 'he said "hi" twice'


def test_identity_block_without_body_is_unrecognized() -> None:
    assert classify('"Alice<1><STEAM_0:0:123><>" say "') == Unrecognized()
    assert classify('"Alice<1><STEAM_0:0:123><>" say ""') == Unrecognized()


def test_error_line_requires_flag() -> None:
    assert classify(LUA_ERROR) == Unrecognized()

    event = classify(LUA_ERROR, surface_errors=True)

    assert isinstance(event, ErrorEvent)
    assert event.body.startswith("Lua Error:")
    assert "[ERROR] addons/shop" in event.body
    assert event.body.endswith("shop.lua:12")


def test_error_marker_without_detail_is_unrecognized() -> None:
    assert classify("10/20/2025 - 12:00:00: Lua Error: something", surface_errors=True) == Unrecognized()


def test_custom_tag_is_decoded() -> None:
    line = f"10/20/2025 - 12:00:00: [relay_custom]{_b64('Admin')} {_b64('Restart in 5 minutes')}[/relay_custom]"

    assert classify(line) == CustomEvent(sender_name="Admin", body="Restart in 5 minutes")


def test_custom_tag_with_malformed_fields_uses_placeholders() -> None:
    assert classify("[relay_custom]!!notbase64![/relay_custom]") == CustomEvent(
        sender_name=CUSTOM_SENDER_PLACEHOLDER,
        body=CUSTOM_BODY_PLACEHOLDER,
    )
    assert classify(f"[relay_custom]{_b64('Admin')}[/relay_custom]") == CustomEvent(
        sender_name="Admin",
        body=CUSTOM_BODY_PLACEHOLDER,
    )


def test_chat_wins_over_custom_tag() -> None:
    line = f'"Eve<2><STEAM_0:0:7><Team>" say "[relay_custom]{_b64("x")} {_b64("y")}[/relay_custom]"'

    assert isinstance(classify(line), ChatEvent)


def test_unrelated_lines_are_unrecognized() -> None:
    for line in [
        "",
        "10/20/2025 - 12:00:00: Started map \"gm_construct\"",
        '"Alice<1><STEAM_0:0:123><>" connected, address "1.2.3.4:27005"',
        "garbage \x00\xff",
    ]:
        assert classify(line) == Unrecognized()


def test_classify_is_idempotent() -> None:
    lines = [
        '"Alice<1><STEAM_0:0:123><>" say "hello"',
        LUA_ERROR,
        f"[relay_custom]{_b64('a')} {_b64('b')}[/relay_custom]",
        "nothing to see",
    ]
    for line in lines:
        assert classify(line, surface_errors=True) == classify(line, surface_errors=True)
