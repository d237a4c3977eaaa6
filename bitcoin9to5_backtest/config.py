"""Strategy and cost configuration using dataclasses.

Pure data: nothing here reads the environment or the filesystem. Run
settings for the command line live in settings.
"""

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union


@dataclass(frozen=True)
class ZoneTime:
    """Wall-clock time of day in the strategy's local (UTC-5) time."""

    hour: int
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 24:
            raise ValueError(f"hour must be in [0, 24], got: {self.hour}")
        if not 0 <= self.minute < 60:
            raise ValueError(f"minute must be in [0, 59], got: {self.minute}")

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute

    @classmethod
    def parse(cls, value: Union["ZoneTime", dict, str]) -> "ZoneTime":
        """Build a ZoneTime from a ZoneTime, {"hour", "minute"} dict or "HH:MM" string."""
        if isinstance(value, ZoneTime):
            return value
        if isinstance(value, dict):
            return cls(hour=int(value["hour"]), minute=int(value.get("minute", 0)))
        if isinstance(value, str):
            hour, _, minute = value.partition(":")
            return cls(hour=int(hour), minute=int(minute or 0))
        raise ValueError(f"Cannot parse zone time from: {value!r}")

    def to_dict(self) -> dict:
        return {"hour": self.hour, "minute": self.minute}

    def __str__(self) -> str:
        return f"{self.hour}:{self.minute:02d}"


@dataclass(frozen=True)
class ZoneConfig:
    """Strategy parameters for the direction-flipping zone strategy.

    The short zone is the half-open window [short_zone_start, short_zone_end)
    in local time on trading days; every other instant is a long zone.
    """

    profit_target_pct: float = 1.0
    tp_zone_trailing_stop_pct: float = 0.5
    tp_zone_hours_threshold: float = 6.0
    leverage: float = 10.0
    short_zone_start: ZoneTime = ZoneTime(9, 29)
    short_zone_end: ZoneTime = ZoneTime(16, 1)

    def to_dict(self) -> dict:
        return {
            "profit_target_pct": self.profit_target_pct,
            "tp_zone_trailing_stop_pct": self.tp_zone_trailing_stop_pct,
            "tp_zone_hours_threshold": self.tp_zone_hours_threshold,
            "leverage": self.leverage,
            "short_zone_start": self.short_zone_start.to_dict(),
            "short_zone_end": self.short_zone_end.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ZoneConfig":
        return merge_config(DEFAULT_ZONE_CONFIG, data)


@dataclass(frozen=True)
class CostConfig:
    """Trading cost assumptions, all in basis points.

    Maker rebates are carried for completeness but the cost model always
    assumes taker execution on both legs.
    """

    taker_fee_bps: float = 5.0
    maker_rebate_bps: float = 2.0
    slippage_bps: float = 5.0
    avg_funding_rate_bps: float = 1.0
    funding_interval_hours: float = 8.0

    @classmethod
    def zero(cls) -> "CostConfig":
        """Cost-free configuration, used to compare gross against net results."""
        return cls(
            taker_fee_bps=0.0,
            maker_rebate_bps=0.0,
            slippage_bps=0.0,
            avg_funding_rate_bps=0.0,
        )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "CostConfig":
        return merge_config(DEFAULT_COST_CONFIG, data)


DEFAULT_ZONE_CONFIG = ZoneConfig()
DEFAULT_COST_CONFIG = CostConfig()

# US market holidays (market treated as closed -> long zone all day)
US_MARKET_HOLIDAYS: FrozenSet[date] = frozenset(
    date.fromisoformat(d)
    for d in [
        "2025-12-25",
        "2026-01-01",
        "2026-01-19",
        "2026-02-16",
        "2026-04-03",
        "2026-05-25",
        "2026-06-19",
        "2026-07-06",
        "2026-09-07",
        "2026-11-26",
        "2026-12-25",
    ]
)


def parse_holidays(values: Iterable[Union[str, date]]) -> FrozenSet[date]:
    """Convert ISO date strings (or dates) into an immutable holiday set."""
    holidays = set()
    for value in values:
        if isinstance(value, datetime):
            holidays.add(value.date())
        elif isinstance(value, date):
            holidays.add(value)
        else:
            holidays.add(date.fromisoformat(str(value)))
    return frozenset(holidays)


_ZONE_TIME_FIELDS = ("short_zone_start", "short_zone_end")


def merge_config(base, overrides: Optional[Dict[str, Any]] = None, **kwargs):
    """Return a copy of a ZoneConfig/CostConfig with overrides applied.

    This is the single place where defaults and overrides are combined.
    Keys are field names; zone times accept a ZoneTime, a {"hour", "minute"}
    dict or an "HH:MM" string, and may also be set one component at a time
    with dotted keys such as "short_zone_start.hour". Numeric fields are
    coerced to float. The base config is never modified.

    Args:
        base: ZoneConfig or CostConfig to start from
        overrides: Mapping of field name to new value
        **kwargs: Additional overrides (take precedence over the mapping)

    Returns:
        New config instance of the same type as base

    Raises:
        ValueError: If a key does not name a field of the config
    """
    merged = dict(overrides or {})
    merged.update(kwargs)
    if not merged:
        return base

    valid = {f.name for f in fields(base)}
    changes: Dict[str, Any] = {}

    for key, value in merged.items():
        name, _, part = key.partition(".")
        if name not in valid:
            raise ValueError(f"Unknown {type(base).__name__} field: {key}")

        if name in _ZONE_TIME_FIELDS:
            current = changes.get(name, getattr(base, name))
            if part:
                if part not in ("hour", "minute"):
                    raise ValueError(f"Unknown zone time component: {key}")
                changes[name] = replace(current, **{part: int(value)})
            else:
                changes[name] = ZoneTime.parse(value)
        elif part:
            raise ValueError(f"Field {name} has no component {part}")
        else:
            changes[name] = float(value)

    return replace(base, **changes)
