"""Unit tests for result statistics"""

import sys
import os
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.costs import trading_costs
from bitcoin9to5_backtest.position import ExitReason, Trade
from bitcoin9to5_backtest.stats import (
    calculate_stats,
    group_by_exit_reason,
    kelly_fraction,
    result_summary,
    sharpe_ratio,
)
from bitcoin9to5_backtest.zones import Side

START = datetime(2025, 12, 1, 14, 30, tzinfo=timezone.utc)


def make_trade(side, net_pnl_pct, reason=ExitReason.PROFIT_TARGET, hours=2.0):
    return Trade(
        entry_time=START,
        exit_time=START + timedelta(hours=hours),
        entry_price=100000,
        exit_price=100000,
        side=side,
        exit_reason=reason,
        gross_pnl_pct=net_pnl_pct + 2.0,
        net_pnl_pct=net_pnl_pct,
        duration_hours=hours,
        costs=trading_costs(1.0, hours, side),
    )


@pytest.fixture
def trades():
    return [
        make_trade(Side.LONG, 1.0, hours=1.0),
        make_trade(Side.SHORT, -0.5, ExitReason.ZONE_FLIP, hours=3.0),
        make_trade(Side.LONG, 0.0, ExitReason.ZONE_FLIP, hours=5.0),
        make_trade(Side.LONG, 2.0, ExitReason.TP_TRAILING_STOP, hours=7.0),
    ]


def test_zero_net_counts_as_loser(trades):
    result = calculate_stats(trades, final_equity=102.5, max_drawdown_pct=0.5)
    stats = result.stats

    assert stats.total_trades == 4
    assert stats.winning_trades == 2
    assert stats.losing_trades == 2
    assert result.win_rate == pytest.approx(50.0)
    assert stats.avg_win == pytest.approx(1.5)
    assert stats.avg_loss == pytest.approx(-0.25)
    assert stats.avg_trade_duration == pytest.approx(4.0)


def test_pnl_totals(trades):
    result = calculate_stats(trades, final_equity=102.5, max_drawdown_pct=0.5)

    assert result.net_pnl_pct == pytest.approx(2.5)
    assert result.gross_pnl_pct == pytest.approx(2.5 + 4 * 2.0)
    assert result.max_drawdown_pct == 0.5
    assert result.final_equity == pytest.approx(102.5)


def test_side_stats(trades):
    stats = calculate_stats(trades, final_equity=102.5, max_drawdown_pct=0.5).stats

    assert stats.long_stats.count == 3
    assert stats.long_stats.winning_trades == 2
    assert stats.long_stats.win_rate == pytest.approx(200 / 3)
    assert stats.long_stats.net_pnl == pytest.approx(3.0)

    assert stats.short_stats.count == 1
    assert stats.short_stats.winning_trades == 0
    assert stats.short_stats.win_rate == 0
    assert stats.short_stats.avg_loss == pytest.approx(-0.5)


def test_exit_reasons_in_first_seen_order(trades):
    by_reason = group_by_exit_reason(trades)

    assert list(by_reason) == ["profit-target", "zone-flip", "tp-trailing-stop"]
    assert by_reason["zone-flip"].count == 2
    assert by_reason["zone-flip"].net_pnl == pytest.approx(-0.5)


def test_exit_reason_entries_are_immutable(trades):
    result = calculate_stats(trades, final_equity=100.0, max_drawdown_pct=0.0)
    entry = result.stats.by_exit_reason["zone-flip"]

    with pytest.raises(FrozenInstanceError):
        entry.count = 0

    assert result.stats.by_exit_reason["zone-flip"].count == 2


def test_sharpe_ratio():
    assert sharpe_ratio([1.0, 3.0]) == pytest.approx(2 / np.sqrt(2) * np.sqrt(252))


def test_sharpe_ratio_degenerate_inputs():
    assert sharpe_ratio([]) == 0
    assert sharpe_ratio([1.5]) == 0
    assert sharpe_ratio([1.0, 1.0, 1.0]) == 0


def test_kelly_fraction():
    assert kelly_fraction(60.0, 2.0, -1.0) == pytest.approx(0.4)
    assert kelly_fraction(60.0, 2.0, 0.0) == 0
    assert kelly_fraction(0.0, 0.0, -1.0) == 0


def test_result_summary(trades):
    summary = result_summary(calculate_stats(trades, final_equity=102.5, max_drawdown_pct=0.5))

    assert summary["net_pnl"] == pytest.approx(2.5)
    assert summary["win_rate"] == pytest.approx(50.0)
    assert summary["max_drawdown"] == 0.5
    assert summary["trades"] == 4
