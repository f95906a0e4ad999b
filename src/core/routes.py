"""Bidirectional server/channel lookup (core domain)."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple

from core.errors import ConfigError
from core.models import ServerRoute


class RouteTable:
    """Immutable map between server addresses and chat channels.

    Built once at startup. Both the (host, port) pair and the channel id must
    be unique across routes, so either side resolves to exactly one route.
    """

    def __init__(self, routes: Iterable[ServerRoute]) -> None:
        by_address: dict[Tuple[str, int], ServerRoute] = {}
        by_channel: dict[str, ServerRoute] = {}
        for route in routes:
            if route.address in by_address:
                raise ValueError(
                    f"Duplicate server address {route.host}:{route.port} "
                    f"({by_address[route.address].name}, {route.name})"
                )
            if route.channel_id in by_channel:
                raise ValueError(
                    f"Channel {route.channel_id} is bound to both "
                    f"{by_channel[route.channel_id].name} and {route.name}"
                )
            by_address[route.address] = route
            by_channel[route.channel_id] = route
        self._by_address = MappingProxyType(by_address)
        self._by_channel = MappingProxyType(by_channel)

    def by_address(self, host: str, port: int) -> Optional[ServerRoute]:
        return self._by_address.get((host, int(port)))

    def by_channel(self, channel_id: str) -> Optional[ServerRoute]:
        return self._by_channel.get(str(channel_id))

    def by_name(self, name: str) -> Optional[ServerRoute]:
        for route in self._by_address.values():
            if route.name == name:
                return route
        return None

    def addresses(self) -> set[Tuple[str, int]]:
        return set(self._by_address)

    def __iter__(self) -> Iterator[ServerRoute]:
        return iter(self._by_address.values())

    def __len__(self) -> int:
        return len(self._by_address)


def build_route_table(servers_config: Mapping[str, dict]) -> RouteTable:
    """Build the route table from the ``servers`` config section.

    Each entry needs host (or ip), port, password and relay_channel; the
    mapping key becomes the route name.
    """

    routes: List[ServerRoute] = []
    for name, entry in servers_config.items():
        host = entry.get("host") or entry.get("ip")
        channel = entry.get("relay_channel") or entry.get("relaychannel")
        if not host or not entry.get("port") or not channel:
            raise ConfigError(f"Server {name!r} needs host, port and relay_channel")
        try:
            port = int(entry["port"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Server {name!r} has an invalid port: {entry['port']!r}") from exc
        routes.append(
            ServerRoute(
                name=name,
                host=host,
                port=port,
                password=str(entry.get("password", "")),
                channel_id=str(channel),
            )
        )
    try:
        return RouteTable(routes)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
