"""Backtest engine driving the position state machine over a candle sequence.

This module coordinates, per candle:
1. Classifying the candle's zone
2. Applying the position transition
3. Booking closed trades into equity, drawdown and cost totals

The run is a pure function of its inputs: no I/O, no randomness, and no
state shared between runs.
"""

from datetime import date
from typing import AbstractSet, List, Optional, Sequence
import logging

from .config import (
    CostConfig,
    ZoneConfig,
    DEFAULT_COST_CONFIG,
    DEFAULT_ZONE_CONFIG,
    US_MARKET_HOLIDAYS,
)
from .models import PricePoint
from .position import FLAT, PositionState, Trade, close_at_end, transition
from .stats import INITIAL_EQUITY, BacktestResult, CostTotals, EquityPoint, calculate_stats
from .zones import Side, get_zone


class BacktestEngine:
    """Main backtest orchestration engine.

    Implements the backtest loop:
    - For each candle, in order
    - Classify zone and apply the position transition
    - Add each closed trade's net PnL to equity and track drawdown
    - Close any remaining position at the last candle
    """

    def __init__(
        self,
        zone_config: ZoneConfig = DEFAULT_ZONE_CONFIG,
        cost_config: CostConfig = DEFAULT_COST_CONFIG,
        holidays: AbstractSet[date] = US_MARKET_HOLIDAYS,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False
    ):
        """Initialize backtest engine.

        Args:
            zone_config: Strategy configuration
            cost_config: Trading cost configuration
            holidays: Market holidays (always long zone)
            logger: Optional logger
            verbose: Log every closed trade at INFO level
        """
        self.zone_config = zone_config
        self.cost_config = cost_config
        self.holidays = holidays
        self.logger = logger or logging.getLogger(__name__)
        self.verbose = verbose

        self._reset()

    def _reset(self):
        self.trades: List[Trade] = []
        self.position: PositionState = FLAT
        self.previous_zone: Optional[Side] = None
        self.equity: float = INITIAL_EQUITY
        self.peak_equity: float = INITIAL_EQUITY
        self.max_drawdown_pct: float = 0.0
        self.total_costs = CostTotals()
        self.equity_curve: List[EquityPoint] = []

    def run(self, price_data: Sequence[PricePoint]) -> BacktestResult:
        """Run the backtest.

        Args:
            price_data: Candles sorted ascending by timestamp

        Returns:
            BacktestResult with trades and aggregate statistics
        """
        self._reset()

        self.logger.debug(
            f"Starting backtest: {len(price_data)} candles, "
            f"profit target {self.zone_config.profit_target_pct}%, "
            f"leverage {self.zone_config.leverage}x, "
            f"short zone {self.zone_config.short_zone_start}-{self.zone_config.short_zone_end}"
        )

        for candle in price_data:
            self.step(candle)

        if price_data:
            result = close_at_end(self.position, price_data[-1], self.zone_config, self.cost_config)
            self._apply(result.trades)
            self.position = result.state

        results = calculate_stats(
            self.trades,
            self.equity,
            self.max_drawdown_pct,
            zone_config=self.zone_config,
            cost_config=self.cost_config,
            total_costs=self.total_costs,
            equity_curve=self.equity_curve
        )

        self.logger.debug(
            f"Backtest complete: {results.stats.total_trades} trades, "
            f"net {results.net_pnl_pct:+.2f}%, max DD {results.max_drawdown_pct:.2f}%"
        )

        return results

    def step(self, candle: PricePoint) -> List[Trade]:
        """Process one candle and return the trades it closed."""
        zone = get_zone(candle.timestamp, self.zone_config, self.holidays)

        result = transition(
            self.position,
            candle,
            zone,
            self.previous_zone,
            self.zone_config,
            self.cost_config
        )

        self.position = result.state
        self.previous_zone = zone
        self._apply(result.trades)

        return list(result.trades)

    def _apply(self, trades: Sequence[Trade]):
        """Book closed trades into the log, equity, drawdown and cost totals."""
        for trade in trades:
            self.trades.append(trade)
            self.equity += trade.net_pnl_pct
            self.total_costs = self.total_costs.add(trade, self.zone_config.leverage)

            if self.equity > self.peak_equity:
                self.peak_equity = self.equity

            drawdown = 0.0
            if self.peak_equity > 0:
                drawdown = ((self.peak_equity - self.equity) / self.peak_equity) * 100
            if drawdown > self.max_drawdown_pct:
                self.max_drawdown_pct = drawdown

            self.equity_curve.append(EquityPoint(
                time=trade.exit_time,
                equity=self.equity,
                drawdown_pct=drawdown
            ))

            if self.verbose:
                self.logger.info(
                    f"[{trade.exit_time}] Closed {trade.side.value.upper()} "
                    f"{trade.entry_price:.2f} -> {trade.exit_price:.2f} "
                    f"({trade.exit_reason.value}) - net {trade.net_pnl_pct:+.2f}% "
                    f"| equity {self.equity:.2f}"
                )


def run_backtest(
    price_data: Sequence[PricePoint],
    zone_config: ZoneConfig = DEFAULT_ZONE_CONFIG,
    cost_config: CostConfig = DEFAULT_COST_CONFIG,
    holidays: AbstractSet[date] = US_MARKET_HOLIDAYS
) -> BacktestResult:
    """Run the strategy over price data with a fresh engine."""
    return BacktestEngine(zone_config, cost_config, holidays).run(price_data)
