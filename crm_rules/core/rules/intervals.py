"""Human-readable interval parsing for time-based operators."""

from __future__ import annotations

import re
from typing import Dict, Optional

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS

UNIT_MS: Dict[str, int] = {
    "minute": MINUTE_MS,
    "hour": HOUR_MS,
    "day": DAY_MS,
    "week": WEEK_MS,
}

_INTERVAL_RE = re.compile(r"(\d+)\s*(day|hour|minute|week)s?", re.IGNORECASE)


def parse_interval(interval: Optional[str]) -> int:
    """Convert an interval like "2 days" or "30 minutes" to milliseconds.

    Args:
        interval: Interval expression; units are minute, hour, day and week,
            singular or plural, any case

    Returns:
        Milliseconds, or 0 when the expression is not understood
    """
    if not interval:
        return 0

    match = _INTERVAL_RE.search(str(interval))
    if not match:
        return 0

    amount, unit = match.groups()
    return int(amount) * UNIT_MS.get(unit.lower(), 0)
