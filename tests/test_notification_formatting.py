from __future__ import annotations

from adapters.notification_formatting import (
    MESSAGE_LIMIT,
    ZERO_WIDTH_SPACE,
    clip_message,
    format_feedback,
    format_relay_message,
    neutralize_mentions,
)


def test_relay_message_escapes_html() -> None:
    message = format_relay_message("<Admin>", "1 < 2 & 3 > 2")

    assert message == "<b>&lt;Admin&gt;</b>: 1 &lt; 2 &amp; 3 &gt; 2"


def test_mentions_are_neutralized() -> None:
    assert neutralize_mentions("hi @everyone") == f"hi @{ZERO_WIDTH_SPACE}everyone"
    assert "@everyone" not in format_relay_message("Bob", "hi @everyone")


def test_avatar_is_attached_as_hidden_link() -> None:
    message = format_relay_message("Bob", "hello", "https://avatars.example/a.jpg?x=1&y=2")

    assert message.startswith('<a href="https://avatars.example/a.jpg?x=1&amp;y=2">')
    assert message.endswith("<b>Bob</b>: hello")


def test_feedback_formatting() -> None:
    assert format_feedback("Executing command : say <hi>") == "Executing command : say &lt;hi&gt;"
    assert format_feedback("a\nb", preformatted=True) == "<pre>a\nb</pre>"


def test_long_relay_message_fits_telegram_limit() -> None:
    message = format_relay_message("Lua Error", "x" * 10000)

    assert len(message) == MESSAGE_LIMIT
    assert message.startswith("<b>Lua Error</b>: xxx")
    assert message.endswith("…")


def test_clip_does_not_leave_half_an_entity() -> None:
    message = clip_message("ab&amp;cd", limit=5)

    assert message == "ab…"


def test_clip_counts_utf16_units() -> None:
    message = clip_message("\U0001F600" * 10, limit=7)

    assert message == "\U0001F600" * 3 + "…"
    assert len(message.encode("utf-16-le")) // 2 <= 7


def test_short_message_is_unchanged() -> None:
    assert clip_message("<b>Bob</b>: hi") == "<b>Bob</b>: hi"
