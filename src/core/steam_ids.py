"""Helpers for working with Steam player identities."""

from __future__ import annotations

import re
from typing import Optional

STEAM_ID_RE = re.compile(r"^STEAM_([0-5]):([01]):(\d+)$")

# Base of the 64-bit community id for individual accounts.
STEAM_ID64_BASE = 76561197960265728


def normalize_steam_id(steam_id: str) -> str:
    """Return the identity with the universe digit forced to 0.

    Engines disagree on the universe digit (STEAM_0 vs STEAM_1) for the same
    account; normalizing keeps cache keys stable across servers.
    """

    match = STEAM_ID_RE.match(steam_id)
    if not match:
        return steam_id
    return f"STEAM_0:{match.group(2)}:{match.group(3)}"


def steam_id_to_64(steam_id: str) -> Optional[str]:
    """Convert ``STEAM_X:Y:Z`` to the 64-bit community id, or None."""

    match = STEAM_ID_RE.match(steam_id)
    if not match:
        return None
    y = int(match.group(2))
    z = int(match.group(3))
    return str(z * 2 + y + STEAM_ID64_BASE)
