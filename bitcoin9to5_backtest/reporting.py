"""Results reporting and CSV export.

Provides the text report, individual trade listing, optimizer tables and
file export of trades, equity curve and summary.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence
import logging

import pandas as pd

from .position import Trade
from .stats import BacktestResult, kelly_fraction

HEAVY_RULE = "═" * 59
LIGHT_RULE = "─" * 59


def _signed(value: float, digits: int = 2) -> str:
    return f"{'+' if value >= 0 else ''}{value:.{digits}f}"


def _section(title: str) -> List[str]:
    return [LIGHT_RULE, title.center(59).rstrip(), LIGHT_RULE, ""]


class BacktestReporter:
    """Generates reports and exports backtest results."""

    def __init__(self, output_dir: str = "./backtest_results", logger: Optional[logging.Logger] = None):
        """Initialize reporter.

        Args:
            output_dir: Directory to save reports
            logger: Optional logger
        """
        self.output_dir = Path(output_dir)
        self.logger = logger or logging.getLogger(__name__)

    def format_results(self, result: BacktestResult) -> str:
        """Format backtest results for display."""
        stats = result.stats
        costs = stats.total_costs
        funding_sign = "-" if costs.funding >= 0 else "+"
        kelly = kelly_fraction(result.win_rate, stats.avg_win, stats.avg_loss)

        lines = [
            HEAVY_RULE,
            "BACKTEST RESULTS".center(59).rstrip(),
            HEAVY_RULE,
            "",
            f"Gross PnL:          {_signed(result.gross_pnl_pct)}%",
            f"Net PnL:            {_signed(result.net_pnl_pct)}%",
            f"Win Rate:           {result.win_rate:.1f}%",
            f"Max Drawdown:       {result.max_drawdown_pct:.2f}%",
            f"Sharpe Ratio:       {result.sharpe_ratio:.2f}",
            f"Kelly Fraction:     {kelly:.2f}",
            "",
            *_section("TRADING COSTS"),
            f"Total Costs:        -{costs.total:.2f}%",
            f"  Fees:             -{costs.fees:.2f}% ({stats.cost_config.taker_fee_bps} bps/trade)",
            f"  Slippage:         -{costs.slippage:.2f}% ({stats.cost_config.slippage_bps} bps/trade)",
            f"  Funding:          {funding_sign}{abs(costs.funding):.2f}%",
            "",
            *_section("TRADE STATS"),
            f"Total Trades:       {stats.total_trades}",
            f"  Winners:          {stats.winning_trades} ({result.win_rate:.1f}%)",
            f"  Losers:           {stats.losing_trades}",
            f"Avg Win:            +{stats.avg_win:.2f}%",
            f"Avg Loss:           {stats.avg_loss:.2f}%",
            f"Avg Duration:       {stats.avg_trade_duration:.1f} hours",
            "",
            *_section("LONG vs SHORT"),
        ]

        for label, side in (("Long", stats.long_stats), ("Short", stats.short_stats)):
            lines.extend([
                f"{label + ' Trades:':<20}{side.count} ({side.win_rate:.1f}% win)",
                f"  Gross PnL:        {_signed(side.gross_pnl)}%",
                f"  Net PnL:          {_signed(side.net_pnl)}%",
            ])

        lines.append("")
        lines.extend(_section("EXIT REASONS"))

        for reason, data in stats.by_exit_reason.items():
            lines.append(f"{reason:<20} {data.count:>4} trades  {_signed(data.net_pnl)}%")

        lines.append("")
        lines.append(HEAVY_RULE)

        return "\n".join(lines)

    def format_trades(self, trades: Sequence[Trade]) -> str:
        """Format individual trades, one per line."""
        lines = [HEAVY_RULE, "INDIVIDUAL TRADES".center(59).rstrip(), HEAVY_RULE, ""]

        for i, t in enumerate(trades, 1):
            lines.append(
                f"#{i:>3} {t.side.value.upper():<5} "
                f"{t.entry_time:%Y-%m-%d %H:%M} -> {t.exit_time:%Y-%m-%d %H:%M} "
                f"${t.entry_price:.0f} -> ${t.exit_price:.0f} "
                f"{_signed(t.net_pnl_pct)}% "
                f"({t.exit_reason.value})"
            )

        return "\n".join(lines)

    def print_summary(self, result: BacktestResult, show_trades: bool = False):
        """Print summary (and optionally trades) to console."""
        print(self.format_results(result))

        if show_trades and result.trades:
            print()
            print(self.format_trades(result.trades))
            print()

    def format_optimization_results(self, results: List[Dict], metric: str, top: int = 10) -> str:
        """Format ranked optimizer results as a table.

        Args:
            results: Sorted results from GridSearchEngine
            metric: Metric the results were ranked by
            top: Number of rows to show

        Returns:
            Formatted table
        """
        lines = [
            HEAVY_RULE,
            f"TOP {min(top, len(results))} BY {metric.upper()}".center(59).rstrip(),
            HEAVY_RULE,
            "",
            f"{'Rank':<5} {'Parameters':<44} {'Net PnL':>9} {'Sharpe':>7} {'Win%':>5} {'DD%':>6} {'Trades':>6}",
        ]

        for i, r in enumerate(results[:top], 1):
            m = r["metrics"]
            lines.append(
                f"#{i:<4} {r['label']:<44} "
                f"{_signed(m['net_pnl']):>8}% "
                f"{m['sharpe']:>7.2f} "
                f"{m['win_rate']:>4.0f}% "
                f"{m['max_drawdown']:>5.1f}% "
                f"{m['trades']:>6}"
            )

        lines.append("")
        lines.append(HEAVY_RULE)
        return "\n".join(lines)

    def save_results(
        self,
        result: BacktestResult,
        symbol: str,
        interval: str,
        save_trades: bool = True,
        save_equity: bool = True
    ) -> Dict[str, Path]:
        """Save backtest results to files.

        Args:
            result: BacktestResult from the engine
            symbol: Trading symbol
            interval: Candle interval
            save_trades: Whether to save trades CSV
            save_equity: Whether to save equity curve CSV

        Returns:
            Dictionary mapping file type to file path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        saved_files = {}

        # Timestamp for unique filenames
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        prefix = f"{symbol}_{interval}_{timestamp}"

        if save_trades and result.trades:
            trades_path = self._save_trades_csv(result.trades, prefix)
            saved_files["trades"] = trades_path
            self.logger.info(f"Saved trades to: {trades_path}")

        if save_equity and result.equity_curve:
            equity_path = self._save_equity_csv(result, prefix)
            saved_files["equity"] = equity_path
            self.logger.info(f"Saved equity curve to: {equity_path}")

        summary_path = self.output_dir / f"{prefix}_summary.txt"
        with open(summary_path, "w", encoding="utf-8") as f:
            f.write(f"Symbol: {symbol}\nInterval: {interval}\n\n")
            f.write(self.format_results(result) + "\n")
        saved_files["summary"] = summary_path
        self.logger.info(f"Saved summary to: {summary_path}")

        return saved_files

    def _save_trades_csv(self, trades: Sequence[Trade], prefix: str) -> Path:
        df = pd.DataFrame([trade.to_dict() for trade in trades])

        for col in ["entry_time", "exit_time"]:
            df[col] = pd.to_datetime(df[col], utc=True)

        filepath = self.output_dir / f"{prefix}_trades.csv"
        df.to_csv(filepath, index=False)
        return filepath

    def _save_equity_csv(self, result: BacktestResult, prefix: str) -> Path:
        df = pd.DataFrame([
            {"time": p.time, "equity": p.equity, "drawdown_pct": p.drawdown_pct}
            for p in result.equity_curve
        ])
        df["time"] = pd.to_datetime(df["time"], utc=True)

        filepath = self.output_dir / f"{prefix}_equity.csv"
        df.to_csv(filepath, index=False)
        return filepath
