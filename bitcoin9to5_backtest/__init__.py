"""Bitcoin9to5 Backtest - direction-flipping BTC zone strategy backtester.

This package simulates a strategy that is short Bitcoin during US market
hours and long overnight, on weekends and on holidays:
- Classifies every candle into a long or short zone (fixed UTC-5 clock)
- Drives a position state machine with profit targets and a trailing TP zone
- Charges fees, slippage and funding on every closed trade
- Aggregates PnL, win rate, drawdown, Sharpe and per-side statistics

Usage:
    python -m bitcoin9to5_backtest run --days 30
    python -m bitcoin9to5_backtest optimize --param profitTarget --range 0.5,2.0,0.25
    python -m bitcoin9to5_backtest selftest

Package structure:
- config: ZoneConfig and CostConfig dataclasses, holidays, overrides
- settings: BacktestConfig run settings with .env defaults
- zones: zone classifier
- costs: trading cost model
- position: position state machine
- engine: BacktestEngine for the backtest loop
- stats: result statistics
- data_source / api_client / synthetic: price data loading
- reporting: BacktestReporter for results display and export
- grid_search: GridSearchEngine for parameter sweeps
- cli: Command-line interface

The simulation core (config, zones, costs, position, engine, stats) performs no
I/O; data loading lives only in data_source and api_client.
"""

__version__ = "1.0.0"

from .config import ZoneConfig, ZoneTime, CostConfig, merge_config
from .settings import BacktestConfig
from .zones import Side, get_zone, hours_until_short_zone
from .costs import trading_costs, net_pnl
from .models import PricePoint
from .position import ExitReason, Trade, transition
from .engine import BacktestEngine, run_backtest
from .stats import BacktestResult, calculate_stats
from .data_source import PriceDataSource
from .reporting import BacktestReporter
from .grid_search import GridSearchEngine

__all__ = [
    "BacktestConfig",
    "ZoneConfig",
    "ZoneTime",
    "CostConfig",
    "merge_config",
    "Side",
    "get_zone",
    "hours_until_short_zone",
    "trading_costs",
    "net_pnl",
    "PricePoint",
    "ExitReason",
    "Trade",
    "transition",
    "BacktestEngine",
    "run_backtest",
    "BacktestResult",
    "calculate_stats",
    "PriceDataSource",
    "BacktestReporter",
    "GridSearchEngine"
]
