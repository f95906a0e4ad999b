"""Source RCON transport adapter.

Implements the core RconPort over the Source engine RCON TCP protocol. Every
call opens its own connection, authenticates, sends one command, and hands
the packet stream to a core RconExchange which decides when the answer is
complete.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import struct
from dataclasses import dataclass
from typing import List, Optional

from core.errors import RconAuthError
from core.models import RconResult, ServerRoute
from core.rcon_exchange import DEFAULT_IDLE_TIMEOUT, RconExchange

LOGGER = logging.getLogger(__name__)

AUTH_REQUEST_ID = 1
COMMAND_REQUEST_ID = 2


class PacketType(enum.IntEnum):
    RESPONSE_VALUE = 0
    EXEC_COMMAND = 2
    AUTH_RESPONSE = 2
    AUTH = 3


@dataclass(frozen=True)
class Packet:
    """A single RCON packet.

    Wire format: [size:i32][request_id:i32][type:i32][body\\0\\0], little
    endian. Size covers everything after itself. The body stays raw bytes;
    a multi-packet answer can split a UTF-8 sequence between packets.
    """

    request_id: int
    packet_type: int
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def encode(self) -> bytes:
        body = self.body + b"\x00\x00"
        return struct.pack("<iii", len(body) + 8, self.request_id, self.packet_type) + body

    @classmethod
    def decode(cls, data: bytes) -> "Packet":
        """Decode a packet from the bytes following its size prefix."""

        request_id, packet_type = struct.unpack_from("<ii", data, 0)
        body = data[8:].rstrip(b"\x00")
        return cls(request_id=request_id, packet_type=packet_type, body=body)


def split_packets(buffer: bytearray) -> List[Packet]:
    """Pop every complete packet off the front of ``buffer``."""

    packets: List[Packet] = []
    while len(buffer) >= 4:
        (size,) = struct.unpack_from("<i", buffer, 0)
        if len(buffer) < 4 + size:
            break
        packets.append(Packet.decode(bytes(buffer[4 : 4 + size])))
        del buffer[: 4 + size]
    return packets


class SourceRconProtocol(asyncio.Protocol):
    """Feeds one TCP connection's packets into a RconExchange."""

    def __init__(self, password: str, exchange: RconExchange) -> None:
        self._password = password
        self._exchange = exchange
        self._transport: Optional[asyncio.Transport] = None
        self._buffer = bytearray()
        self._authenticated = False

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self._exchange.on_connected(self)
        transport.write(Packet(AUTH_REQUEST_ID, PacketType.AUTH, self._password.encode("utf-8")).encode())

    def data_received(self, data: bytes) -> None:
        self._buffer.extend(data)
        for packet in split_packets(self._buffer):
            self._handle_packet(packet)

    def _handle_packet(self, packet: Packet) -> None:
        if not self._authenticated:
            # Servers send an empty RESPONSE_VALUE ahead of the auth answer.
            if packet.packet_type != PacketType.AUTH_RESPONSE:
                return
            if packet.request_id == -1:
                self._exchange.on_error(RconAuthError("Authentication failed"))
                self.close()
                return
            self._authenticated = True
            self._exchange.on_authenticated()
            return

        if packet.packet_type == PacketType.RESPONSE_VALUE:
            self._exchange.on_response(packet.body)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self._exchange.on_error(exc)
        else:
            self._exchange.on_end()

    def send_command(self, command: str) -> None:
        self._transport.write(Packet(COMMAND_REQUEST_ID, PacketType.EXEC_COMMAND, command.encode("utf-8")).encode())

    def close(self) -> None:
        if self._transport is not None and not self._transport.is_closing():
            self._transport.close()


class SourceRconClient:
    """RconPort implementation with one connection per command."""

    def __init__(self, idle_timeout: float = DEFAULT_IDLE_TIMEOUT) -> None:
        self._idle_timeout = idle_timeout

    async def execute(self, route: ServerRoute, command: str) -> RconResult:
        loop = asyncio.get_running_loop()
        exchange = RconExchange(command, idle_timeout=self._idle_timeout)
        LOGGER.debug("RCON %s:%s <- %s", route.host, route.port, command)
        try:
            await loop.create_connection(
                lambda: SourceRconProtocol(route.password, exchange),
                route.host,
                route.port,
            )
        except OSError as exc:
            exchange.on_error(exc)
        result = await exchange.wait()
        if result.failed:
            LOGGER.warning("RCON on %s failed: %s", route.name, result.text)
        return result
