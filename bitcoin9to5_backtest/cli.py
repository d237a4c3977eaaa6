"""Command-line interface for running backtests and parameter sweeps."""

import argparse
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional
import logging

import requests

from .config import CostConfig, merge_config
from .settings import (
    BacktestConfig,
    VALID_INTERVALS,
    VALID_SOURCES,
    BACKTEST_OUTPUT_DIR,
)
from .api_client import BinanceKlinesClient
from .data_source import PriceDataSource
from .engine import BacktestEngine
from .grid_search import (
    METRIC_ALIASES,
    PARAM_DEFS,
    GridSearchEngine,
    multi_param_combinations,
    single_param_combinations,
)
from .models import PricePoint
from .reporting import BacktestReporter
from .synthetic import generate_synthetic_data
from .zones import Side, get_zone, profit_pct


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def _parse_range(value: str) -> List[float]:
    try:
        parts = [float(v) for v in value.split(",")]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid range (expected min,max,step): {value}")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Invalid range (expected min,max,step): {value}")
    return parts


def _data_options() -> argparse.ArgumentParser:
    """Options shared by the run and optimize commands."""
    parser = argparse.ArgumentParser(add_help=False)

    # Config file (overrides data and strategy args)
    parser.add_argument("--config", type=str, help="Path to JSON config file (overrides all other args)")

    # Data range and source
    parser.add_argument("--days", "-d", type=int, default=30, help="Days of data to use")
    parser.add_argument("--start", "-s", type=_parse_date, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", "-e", type=_parse_date, help="End date (YYYY-MM-DD)")
    parser.add_argument("--interval", "-i", type=str, default="5m", choices=VALID_INTERVALS,
                        help="Candle interval")
    parser.add_argument("--source", type=str, default="binance", choices=VALID_SOURCES,
                        help="Data source type")
    parser.add_argument("--file", type=str, help="Path to CSV/Parquet file (required for csv/parquet source)")
    parser.add_argument("--no-cache", action="store_true", help="Ignore cached Binance data")
    parser.add_argument("--seed", type=int, default=42, help="Seed for the synthetic source")

    # Strategy
    parser.add_argument("--profit", "-p", type=float, help="Profit target (%%)")
    parser.add_argument("--leverage", "-l", type=float, help="Leverage multiplier")

    # Cost model
    parser.add_argument("--taker-fee-bps", type=float, help="Taker fee per side (bps)")
    parser.add_argument("--slippage-bps", type=float, help="Slippage per side (bps)")
    parser.add_argument("--funding-bps", type=float, help="Average funding rate per interval (bps)")
    parser.add_argument("--no-costs", action="store_true", help="Disable trading costs (gross results)")

    # Output settings
    parser.add_argument("--output-dir", type=str, default=BACKTEST_OUTPUT_DIR,
                        help="Output directory for results")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Bitcoin9to5 Backtest - direction-flipping zone strategy backtester",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    common = _data_options()

    run_parser = subparsers.add_parser(
        "run", parents=[common], help="Run a single backtest",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    run_parser.add_argument("--trades", "-t", action="store_true", help="Show individual trades")
    run_parser.add_argument("--save-trades", action="store_true", help="Save trades CSV")
    run_parser.add_argument("--save-equity", action="store_true", help="Save equity curve CSV")

    opt_parser = subparsers.add_parser(
        "optimize", parents=[common], help="Sweep strategy parameters",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    group = opt_parser.add_mutually_exclusive_group()
    group.add_argument("--param", type=str, default="profitTarget", choices=list(PARAM_DEFS),
                       help="Parameter to optimize")
    group.add_argument("--multi", "-m", action="store_true",
                       help="Multi-parameter optimization (predefined grid)")
    opt_parser.add_argument("--range", "-r", type=_parse_range,
                            help="Range as min,max,step (e.g., 0.5,2.0,0.25)")
    opt_parser.add_argument("--metric", type=str, default="net_pnl", choices=list(METRIC_ALIASES),
                            help="Metric to optimize")
    opt_parser.add_argument("--top", type=int, default=10, help="Show top N results")
    opt_parser.add_argument("--n-jobs", type=int, default=1,
                            help="Parallel workers (1 = sequential, -1 = all CPUs)")
    opt_parser.add_argument("--save", action="store_true", help="Save ranked results CSV and best params")

    selftest_parser = subparsers.add_parser(
        "selftest", help="Verify the strategy on synthetic data (no network)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    selftest_parser.add_argument("--days", "-d", type=int, default=14, help="Days of synthetic data")
    selftest_parser.add_argument("--seed", type=int, default=42, help="Random seed")
    selftest_parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False):
    """Setup logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def build_config(args) -> BacktestConfig:
    """Create a BacktestConfig from a JSON file or the command-line args.

    Raises:
        ValueError: If the settings are invalid
        OSError: If the config file cannot be read
    """
    if args.config:
        return BacktestConfig.from_json(args.config)

    zone_overrides = {}
    if args.profit is not None:
        zone_overrides["profit_target_pct"] = args.profit
    if args.leverage is not None:
        zone_overrides["leverage"] = args.leverage

    if args.no_costs:
        costs = CostConfig.zero()
    else:
        cost_overrides = {}
        if args.taker_fee_bps is not None:
            cost_overrides["taker_fee_bps"] = args.taker_fee_bps
        if args.slippage_bps is not None:
            cost_overrides["slippage_bps"] = args.slippage_bps
        if args.funding_bps is not None:
            cost_overrides["avg_funding_rate_bps"] = args.funding_bps
        costs = merge_config(CostConfig(), cost_overrides)

    config = BacktestConfig(
        interval=args.interval,
        days=args.days,
        start_date=args.start,
        end_date=args.end,
        source=args.source,
        file_path=args.file,
        use_cache=not args.no_cache,
        synthetic_seed=args.seed,
        costs=costs,
        output_dir=args.output_dir,
        verbose=args.verbose,
    )
    return replace(config, zone=merge_config(config.zone, zone_overrides))


def load_price_data(
    config: BacktestConfig,
    logger: logging.Logger,
    client: Optional[BinanceKlinesClient] = None
) -> List[PricePoint]:
    """Load candles for the configured source and range."""
    data_source = PriceDataSource(
        source=config.source,
        symbol=config.symbol,
        interval=config.interval,
        start_date=config.start_date,
        end_date=config.end_date,
        days=config.days,
        file_path=config.file_path,
        cache_dir=config.cache_dir,
        use_cache=config.use_cache,
        client=client,
        synthetic_seed=config.synthetic_seed,
        logger=logger
    )

    logger.info("Loading data...")
    price_data = data_source.load()

    if not price_data:
        raise ValueError(f"No data loaded from {config.source} source")

    logger.info(
        f"Loaded {len(price_data)} candles "
        f"({price_data[0].timestamp:%Y-%m-%d} to {price_data[-1].timestamp:%Y-%m-%d})"
    )

    return price_data


def _create_client(config: BacktestConfig, logger: logging.Logger) -> Optional[BinanceKlinesClient]:
    if config.source != "binance":
        return None
    return BinanceKlinesClient(
        base_url=config.api_url,
        timeout=config.api_timeout,
        max_retries=config.api_max_retries,
        retry_delay=config.api_retry_delay,
        request_delay=config.request_delay,
        logger=logger
    )


def _log_client_stats(client: Optional[BinanceKlinesClient], logger: logging.Logger):
    if client is None:
        return

    api_stats = client.get_stats()
    logger.info("=" * 70)
    logger.info("API CLIENT STATISTICS")
    logger.info("=" * 70)
    logger.info(f"Total Requests: {api_stats['total_requests']}")
    logger.info(f"Failed Requests: {api_stats['failed_requests']}")
    logger.info(f"Total Retries: {api_stats['total_retry_count']}")
    logger.info(f"Success Rate: {api_stats['success_rate'] * 100:.2f}%")
    logger.info("=" * 70)
    client.close()


def cmd_run(args, config: BacktestConfig, logger: logging.Logger) -> int:
    """Run a single backtest and print the report."""
    client = _create_client(config, logger)
    try:
        price_data = load_price_data(config, logger, client)
    finally:
        _log_client_stats(client, logger)

    zone = config.zone
    costs = config.costs
    logger.info("=" * 70)
    logger.info("BACKTEST CONFIGURATION")
    logger.info("=" * 70)
    logger.info(f"Profit Target: {zone.profit_target_pct}%")
    logger.info(f"Leverage: {zone.leverage}x")
    logger.info(f"Short Zone: {zone.short_zone_start} - {zone.short_zone_end} (UTC-5, weekdays)")
    logger.info(f"TP Zone: {zone.tp_zone_hours_threshold}h threshold, {zone.tp_zone_trailing_stop_pct}% trailing stop")
    logger.info(
        f"Costs: taker {costs.taker_fee_bps} bps, slippage {costs.slippage_bps} bps, "
        f"funding {costs.avg_funding_rate_bps} bps/{costs.funding_interval_hours:g}h"
    )
    logger.info("=" * 70)

    engine = BacktestEngine(
        zone_config=zone,
        cost_config=costs,
        holidays=config.holiday_set,
        logger=logger,
        verbose=config.verbose
    )
    result = engine.run(price_data)

    reporter = BacktestReporter(output_dir=config.output_dir, logger=logger)
    reporter.print_summary(result, show_trades=args.trades or config.show_trades)

    save_trades = args.save_trades or config.save_trades_csv
    save_equity = args.save_equity or config.save_equity_curve
    if save_trades or save_equity:
        reporter.save_results(
            result,
            symbol=config.symbol,
            interval=config.interval,
            save_trades=save_trades,
            save_equity=save_equity
        )

    logger.info("Backtest complete!")
    return 0


def cmd_optimize(args, config: BacktestConfig, logger: logging.Logger) -> int:
    """Sweep parameters and print the top results."""
    if args.multi:
        combinations = multi_param_combinations()
        logger.info("Multi-parameter optimization")
    else:
        combinations = single_param_combinations(args.param, args.range)
        logger.info(f"Optimizing: {args.param}")

    client = _create_client(config, logger)
    try:
        price_data = load_price_data(config, logger, client)
    finally:
        _log_client_stats(client, logger)

    grid_search = GridSearchEngine(
        price_data,
        zone_config=config.zone,
        cost_config=config.costs,
        holidays=config.holiday_set,
        metric=args.metric,
        n_jobs=args.n_jobs,
        logger=logger
    )
    results = grid_search.run(combinations)

    reporter = BacktestReporter(output_dir=config.output_dir, logger=logger)
    print(reporter.format_optimization_results(results, grid_search.metric, top=args.top))

    if results:
        best = results[0]
        print(f"\nBest parameters: {best['params']} ({best['label']})")

    if args.save:
        grid_search.save_results(results, config.output_dir)

    return 0


def cmd_selftest(args, logger: logging.Logger) -> int:
    """Check the zone classifier and run the strategy on synthetic data."""
    checks = [
        ("get_zone(Monday 10 AM local)",
         get_zone(datetime(2025, 12, 1, 15, 0, tzinfo=timezone.utc)), Side.SHORT),
        ("get_zone(Monday 5 PM local)",
         get_zone(datetime(2025, 12, 1, 22, 0, tzinfo=timezone.utc)), Side.LONG),
        ("get_zone(Saturday)",
         get_zone(datetime(2025, 12, 6, 15, 0, tzinfo=timezone.utc)), Side.LONG),
        ("profit_pct(100000, 101000, long)", round(profit_pct(100000, 101000, Side.LONG), 6), 1.0),
        ("profit_pct(100000, 99000, short)", round(profit_pct(100000, 99000, Side.SHORT), 6), 1.0),
        ("profit_pct(100000, 99000, long)", round(profit_pct(100000, 99000, Side.LONG), 6), -1.0),
    ]

    failed = 0
    logger.info("Testing strategy functions...")
    for name, actual, expected in checks:
        if actual == expected:
            logger.info(f"  {name}: {actual} OK")
        else:
            failed += 1
            logger.error(f"  {name}: {actual} (expected: {expected})")

    if failed:
        logger.error(f"{failed} strategy check(s) failed")
        return 1

    logger.info(f"Generating {args.days} days of synthetic price data...")
    price_data = generate_synthetic_data(days=args.days, seed=args.seed)
    logger.info(f"  Generated {len(price_data)} price points")

    result = BacktestEngine(logger=logger, verbose=args.verbose).run(price_data)
    reporter = BacktestReporter(logger=logger)
    reporter.print_summary(result)

    logger.info("Self-test completed successfully")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if args.command == "selftest":
        return cmd_selftest(args, logger)

    try:
        config = build_config(args)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.config:
        logger.info(f"Config loaded from: {args.config}")

    try:
        if args.command == "run":
            return cmd_run(args, config, logger)
        return cmd_optimize(args, config, logger)
    except (ValueError, OSError) as e:
        logger.error(f"Backtest failed: {e}")
        return 1
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to load data from Binance: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
