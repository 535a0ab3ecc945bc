from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any


# Minutes offered by the expiry dropdown.
TTL_MENU_MINUTES: tuple[int, ...] = (1, 5, 10, 15, 30, 60, 120, 360, 720, 1440, 4320, 10080)
DEFAULT_TTL_MINUTES = 60


def resolve_ttl_minutes(raw: Any) -> int:
    """
    Map a caller-supplied TTL onto the fixed menu.

    Missing or unrecognized values (non-numeric strings, values not on the
    menu, booleans) fall back to ``DEFAULT_TTL_MINUTES`` instead of being
    rejected.
    """

    if raw is None or isinstance(raw, bool):
        return DEFAULT_TTL_MINUTES

    if isinstance(raw, str):
        raw = raw.strip()
        if not (raw.isascii() and raw.isdigit()):
            return DEFAULT_TTL_MINUTES
        minutes = int(raw)
    elif isinstance(raw, int):
        minutes = raw
    elif isinstance(raw, float) and raw.is_integer():
        minutes = int(raw)
    else:
        return DEFAULT_TTL_MINUTES

    if minutes not in TTL_MENU_MINUTES:
        return DEFAULT_TTL_MINUTES
    return minutes


def compute_expiry(created_at: datetime, ttl_minutes: int) -> datetime:
    return created_at + timedelta(minutes=ttl_minutes)
