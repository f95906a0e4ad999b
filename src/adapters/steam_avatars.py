"""Steam Web API avatar lookup adapter."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
import urllib.request
from typing import Optional

from core.steam_ids import steam_id_to_64

LOGGER = logging.getLogger(__name__)

PLAYER_SUMMARIES_URL = "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v0002/"

# Real Web API keys are 32 hex characters; anything much shorter is a
# placeholder left in the config.
MIN_API_KEY_LENGTH = 20


class SteamAvatarLookup:
    """AvatarLookupPort backed by ISteamUser/GetPlayerSummaries."""

    def __init__(self, api_key: Optional[str], timeout: float = 10) -> None:
        self._api_key = api_key or ""
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return len(self._api_key) >= MIN_API_KEY_LENGTH

    def _endpoint(self, steam_id64: str) -> str:
        query = urllib.parse.urlencode({"key": self._api_key, "steamids": steam_id64})
        return f"{PLAYER_SUMMARIES_URL}?{query}"

    def _fetch(self, steam_id64: str) -> dict:
        with urllib.request.urlopen(self._endpoint(steam_id64), timeout=self._timeout) as response:
            return json.load(response)

    async def lookup(self, identity: str) -> Optional[str]:
        if not self.enabled:
            return None
        steam_id64 = steam_id_to_64(identity)
        if steam_id64 is None:
            return None
        # urllib blocks; keep it off the event loop.
        data = await asyncio.to_thread(self._fetch, steam_id64)
        players = data.get("response", {}).get("players", [])
        if not players:
            LOGGER.debug("No Steam profile for %s", identity)
            return None
        return players[0].get("avatarfull")
