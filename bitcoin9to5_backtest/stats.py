"""Aggregate statistics over a backtest trade log."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Sequence

import numpy as np

from .config import CostConfig, ZoneConfig, DEFAULT_COST_CONFIG, DEFAULT_ZONE_CONFIG
from .position import Trade
from .zones import Side

INITIAL_EQUITY = 100.0

# Annualization heuristic borrowed from daily-return conventions
SHARPE_ANNUALIZATION = np.sqrt(252)


@dataclass(frozen=True)
class CostTotals:
    """Leverage-scaled cost totals over all trades, in % of equity."""

    fees: float = 0.0
    slippage: float = 0.0
    funding: float = 0.0

    @property
    def total(self) -> float:
        return self.fees + self.slippage + self.funding

    def add(self, trade: Trade, leverage: float) -> "CostTotals":
        return CostTotals(
            fees=self.fees + trade.costs.fees_pct * leverage,
            slippage=self.slippage + trade.costs.slippage_pct * leverage,
            funding=self.funding + trade.costs.funding_pct * leverage,
        )


@dataclass(frozen=True)
class SideStats:
    """Statistics restricted to one side."""

    count: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    gross_pnl: float
    net_pnl: float
    avg_win: float
    avg_loss: float
    avg_trade_duration: float


@dataclass(frozen=True)
class ExitReasonStats:
    """Trade count and summed PnL for one exit reason."""

    count: int = 0
    gross_pnl: float = 0.0
    net_pnl: float = 0.0


@dataclass(frozen=True)
class TradeStats:
    """Detailed breakdown of a backtest run."""

    total_trades: int
    winning_trades: int
    losing_trades: int
    avg_win: float
    avg_loss: float
    avg_trade_duration: float
    long_stats: SideStats
    short_stats: SideStats
    by_exit_reason: Dict[str, ExitReasonStats]
    total_costs: CostTotals
    cost_config: CostConfig = DEFAULT_COST_CONFIG
    zone_config: ZoneConfig = DEFAULT_ZONE_CONFIG


@dataclass(frozen=True)
class EquityPoint:
    """Equity right after a trade closed."""

    time: datetime
    equity: float
    drawdown_pct: float


@dataclass(frozen=True)
class BacktestResult:
    """Result of one backtest run."""

    trades: tuple
    gross_pnl_pct: float
    net_pnl_pct: float
    win_rate: float
    max_drawdown_pct: float
    sharpe_ratio: float
    stats: TradeStats
    equity_curve: tuple = field(default_factory=tuple)

    @property
    def final_equity(self) -> float:
        return INITIAL_EQUITY + self.net_pnl_pct


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _win_rate(trades: Sequence[Trade]) -> float:
    if not trades:
        return 0.0
    wins = sum(1 for t in trades if t.net_pnl_pct > 0)
    return (wins / len(trades)) * 100


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Per-trade Sharpe ratio annualized by sqrt(252).

    Uses the sample standard deviation (N-1). Returns 0 for fewer than
    two samples or zero dispersion.
    """
    if len(returns) < 2:
        return 0.0

    values = np.asarray(returns, dtype=float)
    std_dev = float(np.std(values, ddof=1))
    if std_dev <= 0:
        return 0.0

    return float(np.mean(values) / std_dev * SHARPE_ANNUALIZATION)


def side_stats(trades: Sequence[Trade], side: Side) -> SideStats:
    """Mirror the top-level statistics for trades on one side."""
    subset = [t for t in trades if t.side == side]
    winners = [t.net_pnl_pct for t in subset if t.net_pnl_pct > 0]
    losers = [t.net_pnl_pct for t in subset if t.net_pnl_pct <= 0]

    return SideStats(
        count=len(subset),
        winning_trades=len(winners),
        losing_trades=len(losers),
        win_rate=_win_rate(subset),
        gross_pnl=sum(t.gross_pnl_pct for t in subset),
        net_pnl=sum(t.net_pnl_pct for t in subset),
        avg_win=_mean(winners),
        avg_loss=_mean(losers),
        avg_trade_duration=_mean([t.duration_hours for t in subset]),
    )


def group_by_exit_reason(trades: Sequence[Trade]) -> Dict[str, ExitReasonStats]:
    """Count and sum PnL per exit reason, in first-seen order."""
    by_reason: Dict[str, ExitReasonStats] = {}
    for trade in trades:
        entry = by_reason.get(trade.exit_reason.value, ExitReasonStats())
        by_reason[trade.exit_reason.value] = ExitReasonStats(
            count=entry.count + 1,
            gross_pnl=entry.gross_pnl + trade.gross_pnl_pct,
            net_pnl=entry.net_pnl + trade.net_pnl_pct,
        )
    return by_reason


def calculate_stats(
    trades: Sequence[Trade],
    final_equity: float,
    max_drawdown_pct: float,
    zone_config: ZoneConfig = DEFAULT_ZONE_CONFIG,
    cost_config: CostConfig = DEFAULT_COST_CONFIG,
    total_costs: Optional[CostTotals] = None,
    equity_curve: Sequence[EquityPoint] = ()
) -> BacktestResult:
    """Reduce a trade log into a BacktestResult.

    Winners are trades with positive net PnL; every other trade counts as
    a loser. All ratios are 0 for an empty log.

    Args:
        trades: Closed trades in order
        final_equity: Equity after the last trade (starting from 100)
        max_drawdown_pct: Maximum drawdown observed during the run
        zone_config: Strategy configuration of the run
        cost_config: Cost configuration of the run
        total_costs: Leverage-scaled cost totals
        equity_curve: Equity after each closed trade

    Returns:
        BacktestResult
    """
    trades = tuple(trades)
    winners = [t.net_pnl_pct for t in trades if t.net_pnl_pct > 0]
    losers = [t.net_pnl_pct for t in trades if t.net_pnl_pct <= 0]

    stats = TradeStats(
        total_trades=len(trades),
        winning_trades=len(winners),
        losing_trades=len(losers),
        avg_win=_mean(winners),
        avg_loss=_mean(losers),
        avg_trade_duration=_mean([t.duration_hours for t in trades]),
        long_stats=side_stats(trades, Side.LONG),
        short_stats=side_stats(trades, Side.SHORT),
        by_exit_reason=group_by_exit_reason(trades),
        total_costs=total_costs or CostTotals(),
        cost_config=cost_config,
        zone_config=zone_config,
    )

    return BacktestResult(
        trades=trades,
        gross_pnl_pct=sum(t.gross_pnl_pct for t in trades),
        net_pnl_pct=final_equity - INITIAL_EQUITY,
        win_rate=_win_rate(trades),
        max_drawdown_pct=max_drawdown_pct,
        sharpe_ratio=sharpe_ratio([t.net_pnl_pct for t in trades]),
        stats=stats,
        equity_curve=tuple(equity_curve),
    )


def kelly_fraction(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """Kelly position-size fraction from aggregated trade statistics.

    Optional post-processing over the stats, not used by the simulation.

    Args:
        win_rate: Win rate in percent (0-100)
        avg_win: Average winning trade net PnL (%)
        avg_loss: Average losing trade net PnL (%, zero or negative)

    Returns:
        W - (1 - W) / R where R = avg_win / |avg_loss|; 0 when undefined
    """
    if avg_win <= 0 or avg_loss >= 0:
        return 0.0

    win_prob = win_rate / 100
    win_loss_ratio = avg_win / abs(avg_loss)
    return win_prob - (1 - win_prob) / win_loss_ratio


def result_summary(result: BacktestResult) -> Dict[str, float]:
    """Flat metric dictionary used for ranking and CSV export."""
    return {
        "net_pnl": result.net_pnl_pct,
        "gross_pnl": result.gross_pnl_pct,
        "sharpe": result.sharpe_ratio,
        "win_rate": result.win_rate,
        "max_drawdown": result.max_drawdown_pct,
        "trades": result.stats.total_trades,
    }
