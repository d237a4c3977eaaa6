"""Round-trip trading cost model for leveraged perpetual futures.

All costs are expressed as a percentage of notional. Execution is modelled
as immediate-or-cancel market orders, so both legs pay the taker fee and
slippage; maker rebates are never applied.

Funding is charged per completed funding interval held. Longs pay a
positive funding rate and shorts receive it.
"""

import math
from dataclasses import dataclass

from .config import CostConfig, DEFAULT_COST_CONFIG
from .zones import Side, profit_pct


@dataclass(frozen=True)
class CostBreakdown:
    """Costs of one round trip, unleveraged, as % of notional."""

    fees_pct: float
    slippage_pct: float
    funding_pct: float
    funding_periods: int
    notional: float = 1.0

    @property
    def total_cost_pct(self) -> float:
        return self.fees_pct + self.slippage_pct + self.funding_pct

    @property
    def total_cost(self) -> float:
        """Total cost in notional units."""
        return self.notional * self.total_cost_pct / 100

    def to_dict(self) -> dict:
        return {
            "fees_pct": self.fees_pct,
            "slippage_pct": self.slippage_pct,
            "funding_pct": self.funding_pct,
            "funding_periods": self.funding_periods,
            "total_cost_pct": self.total_cost_pct,
        }


def trading_costs(
    notional: float,
    duration_hours: float,
    side: Side,
    costs: CostConfig = DEFAULT_COST_CONFIG
) -> CostBreakdown:
    """Calculate round-trip costs for a position.

    Args:
        notional: Position size in notional units (normally 1)
        duration_hours: How long the position was held
        side: Side.LONG pays positive funding, Side.SHORT receives it
        costs: Cost configuration in basis points

    Returns:
        CostBreakdown with fees, slippage and signed funding as % of notional

    Example:
        >>> trading_costs(1.0, 9.0, Side.LONG).total_cost_pct
        0.21  # approx: 2 x 0.05% fee + 2 x 0.05% slippage + 1 x 0.01% funding
    """
    fees_pct = 2 * costs.taker_fee_bps / 100
    slippage_pct = 2 * costs.slippage_bps / 100

    if costs.funding_interval_hours > 0 and duration_hours > 0:
        funding_periods = math.floor(duration_hours / costs.funding_interval_hours)
    else:
        funding_periods = 0

    funding_sign = 1 if side == Side.LONG else -1
    funding_pct = funding_periods * (costs.avg_funding_rate_bps / 100) * funding_sign

    return CostBreakdown(
        fees_pct=fees_pct,
        slippage_pct=slippage_pct,
        funding_pct=funding_pct,
        funding_periods=funding_periods,
        notional=notional,
    )


def trade_pnl(entry_price: float, exit_price: float, side: Side, leverage: float) -> float:
    """Leveraged gross PnL percentage of a trade."""
    return profit_pct(entry_price, exit_price, side) * leverage


@dataclass(frozen=True)
class TradePnl:
    """Gross and net PnL of a closed trade with its cost breakdown."""

    gross_pnl_pct: float
    net_pnl_pct: float
    costs: CostBreakdown


def net_pnl(
    entry_price: float,
    exit_price: float,
    side: Side,
    leverage: float,
    duration_hours: float,
    costs: CostConfig = DEFAULT_COST_CONFIG
) -> TradePnl:
    """Calculate gross and net PnL of a trade.

    Costs are charged on the leveraged notional, so
    net = gross - leverage * total_cost_pct.
    """
    gross = trade_pnl(entry_price, exit_price, side, leverage)
    breakdown = trading_costs(1.0, duration_hours, side, costs)
    leveraged_cost_pct = breakdown.total_cost_pct * leverage

    return TradePnl(
        gross_pnl_pct=gross,
        net_pnl_pct=gross - leveraged_cost_pct,
        costs=breakdown,
    )
