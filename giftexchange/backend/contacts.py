"""Trade link parsing for participant destinations."""

from __future__ import annotations

import re

_PARTNER_PATTERN = re.compile(r"partner=(\d+)")

# Individual account, public universe, desktop instance.
_STEAM_ID64_BASE = (1 << 56) | (1 << 52) | (1 << 32)


def extract_steam_id64(trade_link: str) -> str | None:
    """Return the SteamID64 encoded in a trade link's ``partner`` parameter."""
    match = _PARTNER_PATTERN.search(trade_link)
    if match is None:
        return None
    return str(_STEAM_ID64_BASE | int(match.group(1)))
