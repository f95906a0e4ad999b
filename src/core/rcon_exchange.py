"""RCON request/response state machine (core domain).

One exchange covers one command on one connection:

    CONNECTING -> AUTHENTICATING -> SENDING -> ACCUMULATING -> RESOLVED

The remote may split its answer across several packets with no terminator,
so completion is decided by an idle timer that is re-armed on every chunk.
An error or the connection closing resolves immediately. The exchange
resolves exactly once; later events are ignored.

The transport drives the exchange through the ``on_*`` methods and is
handed in via ``on_connected`` as a link with ``send_command`` and
``close``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import List, Optional, Protocol

from core.models import RconResult

LOGGER = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 0.5


class ExchangeState(enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    SENDING = "sending"
    ACCUMULATING = "accumulating"
    RESOLVED = "resolved"


class ExchangeEvent(enum.Enum):
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    SENT = "sent"
    CHUNK = "chunk"
    IDLE = "idle"
    ERROR = "error"
    END = "end"


_TRANSITIONS: dict[tuple[ExchangeState, ExchangeEvent], ExchangeState] = {
    (ExchangeState.CONNECTING, ExchangeEvent.CONNECTED): ExchangeState.AUTHENTICATING,
    (ExchangeState.AUTHENTICATING, ExchangeEvent.AUTHENTICATED): ExchangeState.SENDING,
    (ExchangeState.SENDING, ExchangeEvent.SENT): ExchangeState.ACCUMULATING,
    (ExchangeState.ACCUMULATING, ExchangeEvent.CHUNK): ExchangeState.ACCUMULATING,
    (ExchangeState.ACCUMULATING, ExchangeEvent.IDLE): ExchangeState.RESOLVED,
}

# Errors and connection end resolve from any live state.
for _state in ExchangeState:
    if _state is not ExchangeState.RESOLVED:
        _TRANSITIONS[(_state, ExchangeEvent.ERROR)] = ExchangeState.RESOLVED
        _TRANSITIONS[(_state, ExchangeEvent.END)] = ExchangeState.RESOLVED


def transition(state: ExchangeState, event: ExchangeEvent) -> Optional[ExchangeState]:
    """Return the next state, or None if the event is not valid in ``state``."""

    return _TRANSITIONS.get((state, event))


def error_text(exc: BaseException) -> str:
    detail = str(exc) or type(exc).__name__
    return f"Error: {detail}"


class ExchangeLink(Protocol):
    def send_command(self, command: str) -> None:
        ...

    def close(self) -> None:
        ...


class RconExchange:
    """Single command exchange resolved by idle-timeout debounce."""

    def __init__(self, command: str, idle_timeout: float = DEFAULT_IDLE_TIMEOUT) -> None:
        self.command = command
        self.idle_timeout = idle_timeout
        self.state = ExchangeState.CONNECTING
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future[RconResult] = self._loop.create_future()
        self._chunks: List[bytes] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._link: Optional[ExchangeLink] = None

    @property
    def resolved(self) -> bool:
        return self._future.done()

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def _advance(self, event: ExchangeEvent) -> bool:
        next_state = transition(self.state, event)
        if next_state is None:
            LOGGER.debug("Ignoring %s while %s", event.value, self.state.value)
            return False
        self.state = next_state
        return True

    def on_connected(self, link: ExchangeLink) -> None:
        if self._advance(ExchangeEvent.CONNECTED):
            self._link = link

    def on_authenticated(self) -> None:
        if not self._advance(ExchangeEvent.AUTHENTICATED):
            return
        self._link.send_command(self.command)
        self._advance(ExchangeEvent.SENT)

    def on_response(self, chunk: bytes) -> None:
        if not self._advance(ExchangeEvent.CHUNK):
            return
        self._chunks.append(chunk)
        self._cancel_timer()
        self._timer = self._loop.call_later(self.idle_timeout, self._on_idle)

    def on_error(self, exc: BaseException) -> None:
        if self._advance(ExchangeEvent.ERROR):
            self._resolve(RconResult(text=error_text(exc), failed=True))

    def on_end(self) -> None:
        if self._advance(ExchangeEvent.END):
            self._resolve(RconResult(text=self.text))

    def _on_idle(self) -> None:
        self._timer = None
        if not self._advance(ExchangeEvent.IDLE):
            return
        self._resolve(RconResult(text=self.text))
        # Output has settled; the session is no longer needed.
        if self._link is not None:
            self._link.close()

    @property
    def text(self) -> str:
        # Decoded as a whole; chunk boundaries may fall inside a character.
        return b"".join(self._chunks).decode("utf-8", errors="replace")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _resolve(self, result: RconResult) -> None:
        self._cancel_timer()
        if self._future.done():
            return
        self._future.set_result(result)

    async def wait(self) -> RconResult:
        return await self._future
