"""Timezone utilities for the US equity session."""

from datetime import datetime, time

import pytz

MARKET_TZ = "America/New_York"
MARKET_OPEN = time(9, 30)


def localize_time(dt: datetime, tz_name: str = MARKET_TZ) -> datetime:
    """Convert an aware datetime to the given timezone.

    Raises:
        ValueError: If ``dt`` is naive.
    """
    if dt.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return dt.astimezone(pytz.timezone(tz_name))


def market_open_for(dt: datetime, tz_name: str = MARKET_TZ) -> datetime:
    """Market open on the trading day of ``dt``."""
    local = localize_time(dt, tz_name)
    tz = pytz.timezone(tz_name)
    return tz.localize(datetime.combine(local.date(), MARKET_OPEN))


def seconds_since_market_open(dt: datetime, tz_name: str = MARKET_TZ) -> int:
    """Whole seconds since 09:30 exchange time. Negative before the open."""
    delta = localize_time(dt, tz_name) - market_open_for(dt, tz_name)
    return int(delta.total_seconds() // 1)
