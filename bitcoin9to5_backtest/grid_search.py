"""Grid search for strategy parameter optimization.

Runs the backtest once per parameter combination and ranks the results by
a chosen metric. Every combination is an independent, pure engine run, so
combinations can be evaluated in parallel worker processes and merged
once they complete.
"""

from dataclasses import dataclass
from datetime import date, datetime
from itertools import product
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import AbstractSet, Any, Callable, Dict, List, Optional, Sequence, Tuple
import json
import logging
import os

import pandas as pd

from .config import (
    CostConfig,
    ZoneConfig,
    ZoneTime,
    DEFAULT_COST_CONFIG,
    DEFAULT_ZONE_CONFIG,
    US_MARKET_HOLIDAYS,
    merge_config,
)
from .engine import run_backtest
from .models import PricePoint
from .stats import result_summary

METRIC_ALIASES = {
    "net_pnl": "net_pnl",
    "netPnl": "net_pnl",
    "sharpe": "sharpe",
    "win_rate": "win_rate",
    "winRate": "win_rate",
}


def _format_hour(value: float) -> str:
    return f"{int(value)}:{'30' if value % 1 == 0.5 else '00'}"


def _zone_time_from_hour(value: float) -> ZoneTime:
    # Fractional .5 hours map to minute 30, anything else to minute 0
    return ZoneTime(int(value), 30 if value % 1 == 0.5 else 0)


@dataclass(frozen=True)
class ParamDef:
    """An optimizable parameter with its default sweep range."""

    key: str
    range: Tuple[float, float, float]
    format: Callable[[float], str]
    to_value: Callable[[float], Any] = float


PARAM_DEFS: Dict[str, ParamDef] = {
    "profitTarget": ParamDef("profit_target_pct", (0.5, 2.0, 0.25), lambda v: f"{v:.2f}%"),
    "shortStart": ParamDef("short_zone_start", (8, 11, 0.5), _format_hour, _zone_time_from_hour),
    "shortEnd": ParamDef("short_zone_end", (14, 17, 0.5), _format_hour, _zone_time_from_hour),
    "tpThreshold": ParamDef("tp_zone_hours_threshold", (4, 10, 1), lambda v: f"{v:g}h"),
    "trailingStop": ParamDef("tp_zone_trailing_stop_pct", (0.25, 1.0, 0.25), lambda v: f"{v:.2f}%"),
    "leverage": ParamDef("leverage", (5, 20, 5), lambda v: f"{v:g}x"),
}

# Multi-parameter grid: short zones keep the :29 open / :01 close offsets
MULTI_PARAM_GRID: Dict[str, List[float]] = {
    "profit_target_pct": [0.5, 0.75, 1.0, 1.25, 1.5],
    "short_start_hour": [8, 9, 10],
    "short_end_hour": [15, 16, 17],
    "tp_zone_hours_threshold": [4, 6, 8],
}


def normalize_metric(metric: str) -> str:
    """Map a metric name or alias (netPnl, sharpe, winRate) to its result key."""
    if metric not in METRIC_ALIASES:
        raise ValueError(f"Unknown metric: {metric}. Must be one of {sorted(METRIC_ALIASES)}")
    return METRIC_ALIASES[metric]


def generate_range(minimum: float, maximum: float, step: float) -> List[float]:
    """Inclusive range of values, rounded to 3 decimals.

    Example:
        >>> generate_range(0.5, 1.5, 0.25)
        [0.5, 0.75, 1.0, 1.25, 1.5]
    """
    if step <= 0:
        raise ValueError(f"step must be > 0, got: {step}")

    values = []
    i = 0
    while True:
        value = minimum + i * step
        if value > maximum + 0.0001:
            break
        values.append(round(value, 3))
        i += 1
    return values


def single_param_combinations(
    param: str,
    value_range: Optional[Sequence[float]] = None
) -> List[Dict[str, Any]]:
    """Build combinations sweeping one parameter.

    Args:
        param: Name from PARAM_DEFS (e.g. "profitTarget")
        value_range: (min, max, step); defaults to the parameter's range

    Returns:
        List of combination dicts with params, label and config overrides

    Raises:
        ValueError: If the parameter is unknown or the range is malformed
    """
    if param not in PARAM_DEFS:
        raise ValueError(f"Unknown parameter: {param}. Available: {', '.join(PARAM_DEFS)}")

    param_def = PARAM_DEFS[param]
    if value_range is not None and len(value_range) != 3:
        raise ValueError(f"Range must be min,max,step - got: {value_range}")

    minimum, maximum, step = value_range or param_def.range

    return [
        {
            "params": {param: value},
            "label": param_def.format(value),
            "overrides": {param_def.key: param_def.to_value(value)},
        }
        for value in generate_range(minimum, maximum, step)
    ]


def multi_param_combinations(grid: Optional[Dict[str, List[float]]] = None) -> List[Dict[str, Any]]:
    """Build every combination of MULTI_PARAM_GRID (or a custom grid of the same keys)."""
    grid = grid or MULTI_PARAM_GRID
    combinations = []

    for pt, ss, se, tp in product(
        grid["profit_target_pct"],
        grid["short_start_hour"],
        grid["short_end_hour"],
        grid["tp_zone_hours_threshold"],
    ):
        combinations.append({
            "params": {"profitTarget": pt, "shortStart": ss, "shortEnd": se, "tpThreshold": tp},
            "label": f"{pt:.2f}% {int(ss)}:29-{int(se)}:01 {tp:g}h",
            "overrides": {
                "profit_target_pct": pt,
                "short_zone_start": ZoneTime(int(ss), 29),
                "short_zone_end": ZoneTime(int(se), 1),
                "tp_zone_hours_threshold": tp,
            },
        })

    return combinations


def evaluate_combination(
    price_data: Sequence[PricePoint],
    zone_config: ZoneConfig,
    cost_config: CostConfig,
    holidays: AbstractSet[date],
    combination: Dict[str, Any]
) -> Dict[str, Any]:
    """Run one backtest for a combination and return its metrics."""
    config = merge_config(zone_config, combination["overrides"])
    result = run_backtest(price_data, config, cost_config, holidays)

    return {
        "params": combination["params"],
        "label": combination["label"],
        "metrics": result_summary(result),
    }


# Per-process state for parallel workers, set once by the pool initializer
_WORKER_STATE: Dict[str, Any] = {}


def _init_worker(price_data, zone_config, cost_config, holidays):
    _WORKER_STATE.update(
        price_data=price_data,
        zone_config=zone_config,
        cost_config=cost_config,
        holidays=holidays,
    )


def _evaluate_combination_worker(combination: Dict[str, Any]) -> Dict[str, Any]:
    """Worker function for parallel evaluation. Runs in a separate process."""
    return evaluate_combination(
        _WORKER_STATE["price_data"],
        _WORKER_STATE["zone_config"],
        _WORKER_STATE["cost_config"],
        _WORKER_STATE["holidays"],
        combination
    )


class GridSearchEngine:
    """Grid search engine for parameter optimization.

    Evaluates each parameter combination with a full backtest (in parallel
    when n_jobs != 1) and sorts results by the chosen metric, descending.
    Ties keep combination order.
    """

    def __init__(
        self,
        price_data: Sequence[PricePoint],
        zone_config: ZoneConfig = DEFAULT_ZONE_CONFIG,
        cost_config: CostConfig = DEFAULT_COST_CONFIG,
        holidays: AbstractSet[date] = US_MARKET_HOLIDAYS,
        metric: str = "net_pnl",
        n_jobs: int = 1,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize grid search engine.

        Args:
            price_data: Candles shared by every run
            zone_config: Base strategy configuration
            cost_config: Trading cost configuration
            holidays: Market holidays
            metric: Ranking metric (net_pnl, sharpe, win_rate or their aliases)
            n_jobs: Worker processes; 1 runs sequentially, -1 uses all CPUs
            logger: Optional logger
        """
        self.price_data = list(price_data)
        self.zone_config = zone_config
        self.cost_config = cost_config
        self.holidays = holidays
        self.metric = normalize_metric(metric)
        self.n_jobs = n_jobs
        self.logger = logger or logging.getLogger(__name__)

    def run(self, combinations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Evaluate all combinations and return results sorted by metric.

        Args:
            combinations: From single_param_combinations / multi_param_combinations

        Returns:
            Result dicts (params, label, metrics), best first
        """
        total = len(combinations)
        self.logger.info(f"Testing {total} combinations (metric: {self.metric})")

        if self.n_jobs == 1:
            indexed = self._run_sequential(combinations)
        else:
            indexed = self._run_parallel(combinations)

        # Restore combination order before the stable sort so ties are deterministic
        indexed.sort(key=lambda item: item[0])
        results = [result for _, result in indexed]
        results.sort(key=lambda r: r["metrics"][self.metric], reverse=True)

        self.logger.info(f"Completed {len(results)}/{total} combinations")
        return results

    def _run_sequential(self, combinations: List[Dict[str, Any]]) -> List[Tuple[int, Dict[str, Any]]]:
        results = []
        total = len(combinations)

        for i, combination in enumerate(combinations):
            try:
                result = evaluate_combination(
                    self.price_data, self.zone_config, self.cost_config, self.holidays, combination
                )
            except Exception as e:
                self.logger.error(f"[{i + 1}/{total}] Error {combination['params']}: {e}")
                continue

            results.append((i, result))
            self.logger.debug(
                f"[{i + 1}/{total}] {combination['label']} -> "
                f"net {result['metrics']['net_pnl']:+.2f}%"
            )

        return results

    def _run_parallel(self, combinations: List[Dict[str, Any]]) -> List[Tuple[int, Dict[str, Any]]]:
        results = []
        total = len(combinations)
        completed = 0

        n_jobs = self.n_jobs
        if n_jobs == -1:
            n_jobs = os.cpu_count()

        self.logger.info(f"Running with {n_jobs} parallel workers")

        with ProcessPoolExecutor(
            max_workers=n_jobs,
            initializer=_init_worker,
            initargs=(self.price_data, self.zone_config, self.cost_config, self.holidays)
        ) as executor:
            futures = {
                executor.submit(_evaluate_combination_worker, combination): (i, combination)
                for i, combination in enumerate(combinations)
            }

            for future in as_completed(futures):
                i, combination = futures[future]
                completed += 1

                try:
                    result = future.result()
                except Exception as e:
                    self.logger.error(f"[{completed}/{total}] Error {combination['params']}: {e}")
                    continue

                results.append((i, result))
                self.logger.debug(
                    f"[{completed}/{total}] {combination['label']} -> "
                    f"net {result['metrics']['net_pnl']:+.2f}%"
                )

        return results

    def save_results(self, results: List[Dict[str, Any]], output_dir: str) -> Dict[str, Path]:
        """Save ranked results to CSV and the best parameters to JSON.

        Args:
            results: Sorted results from run()
            output_dir: Base output directory

        Returns:
            Dictionary mapping file type to file path
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = Path(output_dir) / f"grid_search_{timestamp}"
        run_dir.mkdir(parents=True, exist_ok=True)

        output_files = {}

        rows = []
        for result in results:
            row = {"label": result["label"]}
            for key, value in result["params"].items():
                row[f"param_{key}"] = value
            for key, value in result["metrics"].items():
                row[f"metric_{key}"] = value
            rows.append(row)

        grid_results_path = run_dir / "grid_results.csv"
        pd.DataFrame(rows).to_csv(grid_results_path, index=False)
        output_files["grid_results"] = grid_results_path

        if results:
            best_params_path = run_dir / "best_params.json"
            with open(best_params_path, 'w') as f:
                json.dump(results[0]["params"], f, indent=2)
            output_files["best_params"] = best_params_path

        self.logger.info(f"Output files saved to: {run_dir}")
        return output_files
