"""Avatar URL cache (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.ports import AvatarLookupPort

LOGGER = logging.getLogger(__name__)


class AvatarCache:
    """Cache avatar URLs by player identity, with no eviction.

    Lookups are best-effort: a failing lookup is logged and reported as no
    avatar. Only found URLs are cached so a transient failure is retried on
    the player's next message.
    """

    def __init__(self, lookup: AvatarLookupPort) -> None:
        self._lookup = lookup
        self._cache: dict[str, str] = {}

    async def get(self, identity: str) -> Optional[str]:
        if identity in self._cache:
            return self._cache[identity]
        try:
            url = await self._lookup.lookup(identity)
        except Exception:
            LOGGER.warning("Avatar lookup failed for %s", identity, exc_info=True)
            return None
        if url:
            self._cache[identity] = url
        return url

    def __len__(self) -> int:
        return len(self._cache)
