"""Unit tests for report formatting and export"""

import sys
import os
from datetime import datetime, timezone

import pandas as pd
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.engine import run_backtest
from bitcoin9to5_backtest.models import PricePoint
from bitcoin9to5_backtest.reporting import BacktestReporter


def utc(hour, minute=0):
    return datetime(2025, 12, 1, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def result():
    prices = [(13, 0, 100000), (14, 30, 100000), (15, 30, 99500), (21, 30, 99600), (22, 30, 99700)]
    return run_backtest([
        PricePoint(timestamp=utc(h, m), price=p, high=p, low=p) for h, m, p in prices
    ])


def test_format_results_sections(result):
    report = BacktestReporter().format_results(result)

    for section in ["BACKTEST RESULTS", "TRADING COSTS", "TRADE STATS", "LONG vs SHORT", "EXIT REASONS"]:
        assert section in report

    assert "Total Trades:       2" in report
    assert "zone-flip" in report
    assert "backtest-end" in report
    assert "Kelly Fraction:" in report


def test_format_results_empty():
    report = BacktestReporter().format_results(run_backtest([]))

    assert "Total Trades:       0" in report
    assert "Net PnL:            +0.00%" in report


def test_print_summary_with_trades(result, capsys):
    BacktestReporter().print_summary(result, show_trades=True)

    out = capsys.readouterr().out
    assert "INDIVIDUAL TRADES" in out
    assert "SHORT" in out
    assert "(zone-flip)" in out


def test_format_optimization_results():
    results = [
        {"params": {"leverage": 10}, "label": "10x",
         "metrics": {"net_pnl": 4.5, "sharpe": 1.2, "win_rate": 60.0, "max_drawdown": 2.0, "trades": 12}},
        {"params": {"leverage": 5}, "label": "5x",
         "metrics": {"net_pnl": 2.1, "sharpe": 0.9, "win_rate": 60.0, "max_drawdown": 1.0, "trades": 12}},
    ]

    table = BacktestReporter().format_optimization_results(results, "net_pnl", top=1)

    assert "TOP 1 BY NET_PNL" in table
    assert "10x" in table
    assert "5x" not in table


def test_save_results(result, tmp_path):
    reporter = BacktestReporter(output_dir=str(tmp_path / "out"))

    files = reporter.save_results(result, symbol="BTCUSDT", interval="5m")

    assert set(files) == {"trades", "equity", "summary"}
    for path in files.values():
        assert path.exists()

    trades = pd.read_csv(files["trades"])
    assert len(trades) == 2
    assert list(trades["exit_reason"]) == ["zone-flip", "backtest-end"]

    equity = pd.read_csv(files["equity"])
    assert list(equity.columns) == ["time", "equity", "drawdown_pct"]

    assert "Symbol: BTCUSDT" in files["summary"].read_text(encoding="utf-8")


def test_save_results_summary_only(result, tmp_path):
    files = BacktestReporter(output_dir=str(tmp_path)).save_results(
        result, symbol="BTCUSDT", interval="5m", save_trades=False, save_equity=False
    )

    assert list(files) == ["summary"]
