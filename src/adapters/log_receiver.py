"""UDP receiver for Source engine remote logging (``logaddress_add``).

Servers push one datagram per log line:

    \\xff\\xff\\xff\\xff R L <line>            (no secret)
    \\xff\\xff\\xff\\xff S <secret> L <line>   (sv_logsecret set)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, Tuple

LOGGER = logging.getLogger(__name__)

PACKET_HEADER = b"\xff\xff\xff\xff"

LineHandler = Callable[[Tuple[str, int], str], Awaitable[None]]


def parse_log_packet(data: bytes, secret: Optional[str] = None) -> Optional[str]:
    """Return the log line carried by ``data``, or None if it is not one.

    When ``secret`` is set only packets signed with it are accepted.
    """

    if not data.startswith(PACKET_HEADER) or len(data) < 6:
        return None
    kind = data[4:5]
    rest = data[5:]
    if kind == b"S":
        if secret is None:
            return None
        expected = secret.encode("utf-8")
        if not rest.startswith(expected):
            return None
        rest = rest[len(expected):]
    elif kind == b"R":
        if secret is not None:
            return None
    else:
        return None

    if rest.startswith(b"L "):
        rest = rest[2:]
    line = rest.decode("utf-8", errors="replace").rstrip("\x00\r\n")
    return line or None


class SrcdsLogReceiver(asyncio.DatagramProtocol):
    """Accept log datagrams from registered servers and hand lines off.

    Each accepted line is processed in its own task so a slow notifier does
    not hold up the socket.
    """

    def __init__(
        self,
        handler: LineHandler,
        registered: Iterable[Tuple[str, int]],
        secret: Optional[str] = None,
    ) -> None:
        self._handler = handler
        self._registered = set(registered)
        self._secret = secret
        self._tasks: set[asyncio.Task] = set()

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        address = (addr[0], addr[1])
        if address not in self._registered:
            LOGGER.debug("Dropping log datagram from unregistered %s:%s", *address)
            return
        line = parse_log_packet(data, self._secret)
        if line is None:
            return
        task = asyncio.get_running_loop().create_task(self._run(address, line))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, address: Tuple[str, int], line: str) -> None:
        try:
            await self._handler(address, line)
        except Exception:
            LOGGER.exception("Error while processing log line from %s:%s", *address)

    def error_received(self, exc: Exception) -> None:
        LOGGER.warning("Log socket error: %s", exc)
