"""Unit tests for configuration and overrides"""

import sys
import os
import json
from datetime import date, datetime

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.config import (
    CostConfig,
    DEFAULT_COST_CONFIG,
    DEFAULT_ZONE_CONFIG,
    US_MARKET_HOLIDAYS,
    ZoneConfig,
    ZoneTime,
    merge_config,
    parse_holidays,
)
from bitcoin9to5_backtest.settings import BacktestConfig


def test_defaults():
    assert DEFAULT_ZONE_CONFIG.profit_target_pct == 1.0
    assert DEFAULT_ZONE_CONFIG.leverage == 10.0
    assert DEFAULT_ZONE_CONFIG.short_zone_start == ZoneTime(9, 29)
    assert DEFAULT_ZONE_CONFIG.short_zone_end == ZoneTime(16, 1)
    assert DEFAULT_COST_CONFIG.taker_fee_bps == 5.0
    assert DEFAULT_COST_CONFIG.funding_interval_hours == 8.0


def test_merge_config_does_not_mutate_base():
    merged = merge_config(DEFAULT_ZONE_CONFIG, {"profit_target_pct": 1.5})

    assert merged.profit_target_pct == 1.5
    assert merged.leverage == DEFAULT_ZONE_CONFIG.leverage
    assert DEFAULT_ZONE_CONFIG.profit_target_pct == 1.0


def test_merge_config_zone_time_forms():
    merged = merge_config(
        DEFAULT_ZONE_CONFIG,
        {"short_zone_start.hour": 10, "short_zone_end": "15:30"}
    )

    assert merged.short_zone_start == ZoneTime(10, 29)
    assert merged.short_zone_end == ZoneTime(15, 30)

    merged = merge_config(DEFAULT_ZONE_CONFIG, short_zone_start={"hour": 8, "minute": 0})
    assert merged.short_zone_start == ZoneTime(8, 0)


def test_merge_config_kwargs_take_precedence():
    merged = merge_config(DEFAULT_COST_CONFIG, {"taker_fee_bps": 3}, taker_fee_bps=4)

    assert merged.taker_fee_bps == 4.0
    assert isinstance(merged.taker_fee_bps, float)


def test_merge_config_rejects_unknown_keys():
    with pytest.raises(ValueError):
        merge_config(DEFAULT_ZONE_CONFIG, {"profitTarget": 2.0})
    with pytest.raises(ValueError):
        merge_config(DEFAULT_ZONE_CONFIG, {"short_zone_start.second": 5})
    with pytest.raises(ValueError):
        merge_config(DEFAULT_COST_CONFIG, {"taker_fee_bps.hour": 5})


def test_zone_time_validation():
    with pytest.raises(ValueError):
        ZoneTime(25, 0)
    with pytest.raises(ValueError):
        ZoneTime(9, 60)

    assert ZoneTime.parse("09:29").minute_of_day == 9 * 60 + 29
    assert str(ZoneTime(16, 1)) == "16:01"


def test_cost_config_zero():
    zero = CostConfig.zero()

    assert zero.taker_fee_bps == 0
    assert zero.slippage_bps == 0
    assert zero.avg_funding_rate_bps == 0


def test_holidays():
    assert date(2025, 12, 25) in US_MARKET_HOLIDAYS
    assert parse_holidays(["2026-01-01", date(2026, 7, 3)]) == frozenset({date(2026, 1, 1), date(2026, 7, 3)})

    assert BacktestConfig().holiday_set == US_MARKET_HOLIDAYS
    assert BacktestConfig(holidays=["2026-01-01"]).holiday_set == frozenset({date(2026, 1, 1)})


@pytest.mark.parametrize("kwargs", [
    {"source": "mt5"},
    {"source": "csv"},
    {"interval": "3m"},
    {"days": 0},
    {"start_date": datetime(2025, 2, 1), "end_date": datetime(2025, 1, 1)},
    {"zone": ZoneConfig(leverage=0)},
    {"costs": CostConfig(funding_interval_hours=0)},
])
def test_backtest_config_validation(kwargs):
    with pytest.raises(ValueError):
        BacktestConfig(**kwargs)


def test_json_config(tmp_path):
    config = BacktestConfig(
        days=10,
        start_date=datetime(2025, 1, 1),
        end_date=datetime(2025, 2, 1),
        zone=merge_config(ZoneConfig(), profit_target_pct=1.25, short_zone_start="08:29"),
        costs=CostConfig(taker_fee_bps=4.0),
    )
    path = tmp_path / "config.json"

    config.to_json(str(path))

    with open(path) as f:
        data = json.load(f)
    assert data["zone"]["short_zone_start"] == {"hour": 8, "minute": 29}
    assert data["start_date"] == "2025-01-01"

    assert BacktestConfig.from_json(str(path)) == config


def test_json_config_partial_zone(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"source": "synthetic", "zone": {"leverage": 5}}))

    config = BacktestConfig.from_json(str(path))

    assert config.source == "synthetic"
    assert config.zone.leverage == 5.0
    assert config.zone.profit_target_pct == 1.0
    assert config.costs == CostConfig()
