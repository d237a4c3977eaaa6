"""Unit tests for the parameter optimizer"""

import sys
import os
import json

import pandas as pd
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bitcoin9to5_backtest.config import ZoneTime
from bitcoin9to5_backtest.grid_search import (
    GridSearchEngine,
    generate_range,
    multi_param_combinations,
    normalize_metric,
    single_param_combinations,
)
from bitcoin9to5_backtest.synthetic import generate_synthetic_data


@pytest.fixture(scope="module")
def price_data():
    return generate_synthetic_data(days=7, seed=7)


def test_generate_range_is_inclusive():
    assert generate_range(0.5, 2.0, 0.25) == [0.5, 0.75, 1.0, 1.25, 1.5, 1.75, 2.0]
    assert generate_range(8, 11, 0.5) == [8, 8.5, 9, 9.5, 10, 10.5, 11]
    assert generate_range(0.1, 0.3, 0.1) == [0.1, 0.2, 0.3]


def test_generate_range_rejects_bad_step():
    with pytest.raises(ValueError):
        generate_range(1, 2, 0)


def test_single_param_zone_times():
    combinations = single_param_combinations("shortStart", [8, 9, 0.5])

    assert [c["label"] for c in combinations] == ["8:00", "8:30", "9:00"]
    assert [c["overrides"]["short_zone_start"] for c in combinations] == [
        ZoneTime(8, 0), ZoneTime(8, 30), ZoneTime(9, 0)
    ]


def test_single_param_default_range():
    combinations = single_param_combinations("leverage")

    assert [c["params"]["leverage"] for c in combinations] == [5, 10, 15, 20]
    assert combinations[0]["overrides"] == {"leverage": 5.0}


def test_single_param_rejects_unknown():
    with pytest.raises(ValueError):
        single_param_combinations("stopLoss")
    with pytest.raises(ValueError):
        single_param_combinations("leverage", [1, 2])


def test_multi_param_grid():
    combinations = multi_param_combinations()

    assert len(combinations) == 5 * 3 * 3 * 3
    first = combinations[0]["overrides"]
    assert first["profit_target_pct"] == 0.5
    assert first["short_zone_start"] == ZoneTime(8, 29)
    assert first["short_zone_end"] == ZoneTime(15, 1)
    assert first["tp_zone_hours_threshold"] == 4


def test_metric_aliases():
    assert normalize_metric("netPnl") == "net_pnl"
    assert normalize_metric("winRate") == "win_rate"
    assert normalize_metric("sharpe") == "sharpe"
    with pytest.raises(ValueError):
        normalize_metric("profit")


def test_results_sorted_by_metric(price_data):
    engine = GridSearchEngine(price_data, metric="netPnl")

    results = engine.run(single_param_combinations("profitTarget", [0.5, 1.5, 0.5]))

    assert len(results) == 3
    assert {r["label"] for r in results} == {"0.50%", "1.00%", "1.50%"}
    values = [r["metrics"]["net_pnl"] for r in results]
    assert values == sorted(values, reverse=True)


def test_ties_keep_combination_order():
    engine = GridSearchEngine([], metric="sharpe")
    combinations = single_param_combinations("tpThreshold", [4, 8, 1])

    results = engine.run(combinations)

    assert [r["label"] for r in results] == [c["label"] for c in combinations]


def test_save_results(price_data, tmp_path):
    engine = GridSearchEngine(price_data)
    results = engine.run(single_param_combinations("trailingStop", [0.25, 0.75, 0.25]))

    files = engine.save_results(results, str(tmp_path))

    df = pd.read_csv(files["grid_results"])
    assert len(df) == 3
    assert "metric_net_pnl" in df.columns
    assert "param_trailingStop" in df.columns

    with open(files["best_params"]) as f:
        assert json.load(f) == results[0]["params"]


def test_parallel_matches_sequential(price_data):
    combinations = single_param_combinations("profitTarget", [0.5, 2.0, 0.5])

    sequential = GridSearchEngine(price_data, n_jobs=1).run(combinations)
    parallel = GridSearchEngine(price_data, n_jobs=2).run(combinations)

    assert parallel == sequential


@pytest.mark.parametrize("n_jobs", [1, 2])
def test_failed_combination_is_skipped(price_data, n_jobs):
    bad = {"params": {"stopLoss": 1}, "label": "bad", "overrides": {"no_such_field": 1}}
    combinations = single_param_combinations("leverage", [5, 10, 5]) + [bad]

    results = GridSearchEngine(price_data, n_jobs=n_jobs).run(combinations)

    assert len(results) == 2
    assert "bad" not in [r["label"] for r in results]
