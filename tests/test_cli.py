"""Tests for the command-line interface (synthetic data only, no network)"""

import sys
import os

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.cli import build_config, main, parse_args


def test_selftest_passes(capsys):
    assert main(["selftest", "--days", "3"]) == 0
    assert "BACKTEST RESULTS" in capsys.readouterr().out


def test_run_synthetic(tmp_path, capsys):
    exit_code = main([
        "run", "--source", "synthetic", "--days", "5", "--trades",
        "--save-trades", "--output-dir", str(tmp_path)
    ])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "BACKTEST RESULTS" in out
    assert "INDIVIDUAL TRADES" in out
    assert list(tmp_path.glob("BTCUSDT_5m_*_trades.csv"))


def test_optimize_synthetic(capsys):
    exit_code = main([
        "optimize", "--source", "synthetic", "--days", "3",
        "--param", "leverage", "--range", "5,10,5", "--metric", "sharpe"
    ])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "TOP 2 BY SHARPE" in out
    assert "Best parameters:" in out


def test_invalid_config_returns_error():
    # csv source without --file
    assert main(["run", "--source", "csv"]) == 1


def test_missing_config_file_returns_error(tmp_path):
    assert main(["run", "--config", str(tmp_path / "missing.json")]) == 1


@pytest.mark.parametrize("command", [["run"], ["optimize", "--param", "leverage"]])
def test_empty_data_returns_error(tmp_path, capsys, command):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("timestamp,open,high,low,close\n")

    exit_code = main(command + ["--source", "csv", "--file", str(csv_path)])

    assert exit_code == 1
    out = capsys.readouterr().out
    assert "BACKTEST RESULTS" not in out
    assert "Best parameters:" not in out


def test_build_config_overrides():
    args = parse_args([
        "run", "--source", "synthetic", "--profit", "1.5", "--leverage", "5",
        "--taker-fee-bps", "4", "--start", "2025-12-01", "--end", "2025-12-08"
    ])

    config = build_config(args)

    assert config.zone.profit_target_pct == 1.5
    assert config.zone.leverage == 5.0
    assert config.zone.tp_zone_hours_threshold == 6.0
    assert config.costs.taker_fee_bps == 4.0
    assert config.costs.slippage_bps == 5.0
    assert config.start_date.day == 1


def test_no_costs_flag():
    config = build_config(parse_args(["run", "--source", "synthetic", "--no-costs"]))

    assert config.costs.taker_fee_bps == 0
    assert config.costs.slippage_bps == 0
    assert config.costs.avg_funding_rate_bps == 0


def test_bad_range_is_rejected():
    with pytest.raises(SystemExit):
        parse_args(["optimize", "--range", "1,2"])
