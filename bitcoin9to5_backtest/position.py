"""Position lifecycle as an explicit finite-state transition function.

A position is one of three variants:

- Flat: no position
- Open: long or short, waiting for a zone flip or the profit target
- OpenTpZone: a long that hit its profit target far from the next short
  zone and is now trailing further upside

`transition` applies one candle to a state and returns the next state with
any trades closed on that candle. It has no side effects; the backtest loop
owns the state and the trade log.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

from .config import CostConfig, ZoneConfig
from .costs import CostBreakdown, net_pnl
from .models import PricePoint
from .zones import Side, hours_until_short_zone, profit_pct

# Exit price for tp-below-entry: fixed micro-slippage below entry
BELOW_ENTRY_EXIT_FACTOR = 0.999


class ExitReason(Enum):
    """Reason for trade exit."""
    ZONE_FLIP = "zone-flip"
    PROFIT_TARGET = "profit-target"
    TP_BELOW_ENTRY = "tp-below-entry"
    TP_TRAILING_STOP = "tp-trailing-stop"
    TP_TIME_EXIT = "tp-time-exit"
    BACKTEST_END = "backtest-end"


@dataclass(frozen=True)
class Flat:
    """No open position."""

    in_tp_zone = False


@dataclass(frozen=True)
class Open:
    """Open position that has not reached the take-profit zone."""

    side: Side
    entry_price: float
    entry_time: datetime

    in_tp_zone = False
    peak_price = None


@dataclass(frozen=True)
class OpenTpZone:
    """Long position trailing its peak after hitting the profit target."""

    entry_price: float
    entry_time: datetime
    peak_price: float

    side = Side.LONG
    in_tp_zone = True


PositionState = Union[Flat, Open, OpenTpZone]

FLAT = Flat()


@dataclass(frozen=True)
class Trade:
    """Immutable record of a closed position."""

    entry_time: datetime
    exit_time: datetime
    entry_price: float
    exit_price: float
    side: Side
    exit_reason: ExitReason
    gross_pnl_pct: float
    net_pnl_pct: float
    duration_hours: float
    costs: CostBreakdown

    def to_dict(self) -> dict:
        """Convert to dictionary for CSV export."""
        return {
            "entry_time": self.entry_time,
            "exit_time": self.exit_time,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "exit_reason": self.exit_reason.value,
            "gross_pnl_pct": self.gross_pnl_pct,
            "net_pnl_pct": self.net_pnl_pct,
            "duration_hours": self.duration_hours,
            **self.costs.to_dict(),
        }


@dataclass(frozen=True)
class Transition:
    """Result of applying one candle to a position state."""

    state: PositionState
    trades: Tuple[Trade, ...] = ()


def close_position(
    position: Union[Open, OpenTpZone],
    exit_price: float,
    exit_time: datetime,
    reason: ExitReason,
    zone_config: ZoneConfig,
    cost_config: CostConfig
) -> Trade:
    """Close a position and calculate its PnL after costs.

    Args:
        position: Open position to close
        exit_price: Fill price of the exit
        exit_time: Exit timestamp
        reason: Why the position is closed
        zone_config: Strategy configuration (leverage)
        cost_config: Cost configuration

    Returns:
        Trade record
    """
    duration_hours = (exit_time - position.entry_time).total_seconds() / 3600

    pnl = net_pnl(
        position.entry_price,
        exit_price,
        position.side,
        zone_config.leverage,
        duration_hours,
        cost_config
    )

    return Trade(
        entry_time=position.entry_time,
        exit_time=exit_time,
        entry_price=position.entry_price,
        exit_price=exit_price,
        side=position.side,
        exit_reason=reason,
        gross_pnl_pct=pnl.gross_pnl_pct,
        net_pnl_pct=pnl.net_pnl_pct,
        duration_hours=duration_hours,
        costs=pnl.costs,
    )


def check_tp_zone_exit(
    worst_price: float,
    entry_price: float,
    peak_price: float,
    trailing_stop_pct: float,
    hours_until_short: float,
    hours_threshold: float
) -> Optional[ExitReason]:
    """Check whether a take-profit-zone position should exit.

    Conditions are checked in priority order: below entry, trailing
    stop, then time until the short zone.

    Returns:
        ExitReason for the first matching condition, or None to stay open
    """
    if worst_price < entry_price:
        return ExitReason.TP_BELOW_ENTRY

    drop_from_peak = ((peak_price - worst_price) / peak_price) * 100 if peak_price > 0 else 0.0
    if drop_from_peak >= trailing_stop_pct:
        return ExitReason.TP_TRAILING_STOP

    if hours_until_short <= hours_threshold:
        return ExitReason.TP_TIME_EXIT

    return None


def _tp_zone_exit_price(position: OpenTpZone, reason: ExitReason, candle: PricePoint, config: ZoneConfig) -> float:
    if reason == ExitReason.TP_TRAILING_STOP:
        return position.peak_price * (1 - config.tp_zone_trailing_stop_pct / 100)
    if reason == ExitReason.TP_BELOW_ENTRY:
        return position.entry_price * BELOW_ENTRY_EXIT_FACTOR
    return candle.price


def _target_price(position: Open, config: ZoneConfig) -> float:
    # Theoretical target price, not the touched high/low
    if position.side == Side.LONG:
        return position.entry_price * (1 + config.profit_target_pct / 100)
    return position.entry_price * (1 - config.profit_target_pct / 100)


def transition(
    state: PositionState,
    candle: PricePoint,
    zone: Side,
    previous_zone: Optional[Side],
    zone_config: ZoneConfig,
    cost_config: CostConfig
) -> Transition:
    """Apply one candle to a position state.

    Rules, in priority order:
    1. Zone flip: close any open position at the close and open a new one
       in the new zone's direction at the same price.
    2. Take-profit zone (OpenTpZone only): raise the peak to the candle
       high, then exit on below-entry, trailing stop or time.
    3. Profit target (Open only): shorts close at the target price; longs
       enter the take-profit zone when the next short zone is more than
       tp_zone_hours_threshold hours away, otherwise close at the target.

    Args:
        state: Current position state
        candle: Current candle
        zone: Zone of the current candle
        previous_zone: Zone of the previous candle (None on the first candle)
        zone_config: Strategy configuration
        cost_config: Cost configuration

    Returns:
        Transition with the next state and trades closed on this candle
    """
    trades = []

    # 1. Zone flip
    if previous_zone is not None and zone != previous_zone:
        if not isinstance(state, Flat):
            trades.append(close_position(
                state, candle.price, candle.timestamp, ExitReason.ZONE_FLIP, zone_config, cost_config
            ))
        state = Open(side=zone, entry_price=candle.price, entry_time=candle.timestamp)

    # 2. Take-profit zone
    if isinstance(state, OpenTpZone):
        if candle.high > state.peak_price:
            state = replace(state, peak_price=candle.high)

        reason = check_tp_zone_exit(
            candle.low,
            state.entry_price,
            state.peak_price,
            zone_config.tp_zone_trailing_stop_pct,
            hours_until_short_zone(candle.timestamp, zone_config),
            zone_config.tp_zone_hours_threshold
        )

        if reason is not None:
            exit_price = _tp_zone_exit_price(state, reason, candle, zone_config)
            trades.append(close_position(
                state, exit_price, candle.timestamp, reason, zone_config, cost_config
            ))
            state = FLAT

    # 3. Profit target
    elif isinstance(state, Open):
        best_price = candle.high if state.side == Side.LONG else candle.low
        best_profit_pct = profit_pct(state.entry_price, best_price, state.side)

        if best_profit_pct >= zone_config.profit_target_pct:
            if (
                state.side == Side.LONG
                and hours_until_short_zone(candle.timestamp, zone_config) > zone_config.tp_zone_hours_threshold
            ):
                state = OpenTpZone(
                    entry_price=state.entry_price,
                    entry_time=state.entry_time,
                    peak_price=best_price,
                )
            else:
                trades.append(close_position(
                    state,
                    _target_price(state, zone_config),
                    candle.timestamp,
                    ExitReason.PROFIT_TARGET,
                    zone_config,
                    cost_config
                ))
                state = FLAT

    return Transition(state=state, trades=tuple(trades))


def close_at_end(
    state: PositionState,
    last_candle: PricePoint,
    zone_config: ZoneConfig,
    cost_config: CostConfig
) -> Transition:
    """Close any position left open after the last candle."""
    if isinstance(state, Flat):
        return Transition(state=state)

    trade = close_position(
        state, last_candle.price, last_candle.timestamp, ExitReason.BACKTEST_END, zone_config, cost_config
    )
    return Transition(state=FLAT, trades=(trade,))
