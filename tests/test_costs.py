"""Unit tests for the trading cost model"""

import sys
import os

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.config import CostConfig
from bitcoin9to5_backtest.costs import net_pnl, trade_pnl, trading_costs
from bitcoin9to5_backtest.zones import Side


def test_round_trip_fees_and_slippage():
    costs = trading_costs(1.0, 1.0, Side.LONG)

    assert costs.fees_pct == pytest.approx(0.1)
    assert costs.slippage_pct == pytest.approx(0.1)
    assert costs.funding_periods == 0
    assert costs.funding_pct == 0


def test_long_pays_funding():
    costs = trading_costs(1.0, 9.0, Side.LONG)

    assert costs.funding_periods == 1
    assert costs.funding_pct == pytest.approx(0.01)
    assert costs.total_cost_pct == pytest.approx(0.21)


def test_short_receives_funding():
    costs = trading_costs(1.0, 16.0, Side.SHORT)

    assert costs.funding_periods == 2
    assert costs.funding_pct == pytest.approx(-0.02)
    assert costs.total_cost_pct == pytest.approx(0.18)


def test_total_cost_is_sum_of_components():
    costs = trading_costs(2.0, 25.0, Side.LONG, CostConfig(taker_fee_bps=4.0, slippage_bps=3.0))

    assert costs.total_cost_pct == pytest.approx(costs.fees_pct + costs.slippage_pct + costs.funding_pct)
    assert costs.total_cost == pytest.approx(2.0 * costs.total_cost_pct / 100)


def test_zero_funding_interval_charges_no_funding():
    costs = trading_costs(1.0, 100.0, Side.LONG, CostConfig(funding_interval_hours=0))

    assert costs.funding_periods == 0
    assert costs.funding_pct == 0


def test_net_pnl_scales_costs_by_leverage():
    pnl = net_pnl(100000, 101000, Side.LONG, leverage=10, duration_hours=1.0)

    assert pnl.gross_pnl_pct == pytest.approx(10.0)
    assert pnl.net_pnl_pct == pytest.approx(10.0 - 0.2 * 10)


def test_zero_costs_net_equals_gross():
    pnl = net_pnl(100000, 99000, Side.SHORT, leverage=5, duration_hours=30.0, costs=CostConfig.zero())

    assert pnl.net_pnl_pct == pytest.approx(pnl.gross_pnl_pct)
    assert pnl.gross_pnl_pct == pytest.approx(trade_pnl(100000, 99000, Side.SHORT, 5))
