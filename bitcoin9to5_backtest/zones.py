"""Zone classification for the direction-flipping strategy.

Pure functions only - no I/O, no shared state. The holiday calendar is
passed in explicitly so results depend on arguments alone.

Local time is a fixed UTC-5 offset with no daylight saving, so during US
summer time the zones run one hour late relative to the New York session.
"""

from datetime import date, datetime
from enum import Enum
from typing import AbstractSet

import pytz

from .config import DEFAULT_ZONE_CONFIG, US_MARKET_HOLIDAYS, ZoneConfig

LOCAL_TZ = pytz.FixedOffset(-5 * 60)

MINUTES_PER_DAY = 24 * 60


class Side(Enum):
    """Trading direction. A zone and a position side share the same values."""
    LONG = "long"
    SHORT = "short"


def to_local_time(timestamp: datetime) -> datetime:
    """Convert a timestamp to strategy local time (UTC-5, no DST).

    Naive timestamps are interpreted as UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = pytz.utc.localize(timestamp)
    return timestamp.astimezone(LOCAL_TZ)


def _is_weekend(local: datetime) -> bool:
    return local.weekday() >= 5


def get_zone(
    timestamp: datetime,
    config: ZoneConfig = DEFAULT_ZONE_CONFIG,
    holidays: AbstractSet[date] = US_MARKET_HOLIDAYS
) -> Side:
    """Determine the trading zone for a timestamp.

    Weekends and holidays are always long. On trading days the zone is
    short when local time is within [short_zone_start, short_zone_end).

    Args:
        timestamp: Instant to classify
        config: Zone timing configuration
        holidays: Calendar dates (local) on which the market is closed

    Returns:
        Side.SHORT inside the short window on trading days, else Side.LONG
    """
    local = to_local_time(timestamp)

    if _is_weekend(local):
        return Side.LONG

    if local.date() in holidays:
        return Side.LONG

    minute_of_day = local.hour * 60 + local.minute
    after_open = minute_of_day >= config.short_zone_start.minute_of_day
    before_close = minute_of_day < config.short_zone_end.minute_of_day

    return Side.SHORT if (after_open and before_close) else Side.LONG


def hours_until_short_zone(timestamp: datetime, config: ZoneConfig = DEFAULT_ZONE_CONFIG) -> float:
    """Fractional hours from timestamp until the next short zone opens.

    Only weekends are skipped when searching for the next trading day;
    holidays are not consulted here.

    Args:
        timestamp: Current instant
        config: Zone timing configuration

    Returns:
        Hours until the next short_zone_start on a weekday
    """
    local = to_local_time(timestamp)
    target_minutes = config.short_zone_start.minute_of_day
    current_minutes = local.hour * 60 + local.minute

    if not _is_weekend(local) and current_minutes < target_minutes:
        return (target_minutes - current_minutes) / 60

    # Walk forward to the next weekday (Monday=0 .. Sunday=6)
    days_until = 1
    next_day = (local.weekday() + 1) % 7
    while next_day >= 5:
        days_until += 1
        next_day = (next_day + 1) % 7

    hours_to_midnight = (MINUTES_PER_DAY - current_minutes) / 60
    hours_after_midnight = target_minutes / 60
    return hours_to_midnight + (days_until - 1) * 24 + hours_after_midnight


def profit_pct(entry_price: float, current_price: float, side: Side) -> float:
    """Signed percentage move in the position's favour.

    Example:
        >>> profit_pct(100000, 101000, Side.LONG)
        1.0
        >>> profit_pct(100000, 99000, Side.SHORT)
        1.0
    """
    if side == Side.SHORT:
        price_diff = entry_price - current_price
    else:
        price_diff = current_price - entry_price
    return (price_diff / entry_price) * 100
