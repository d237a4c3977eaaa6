"""Synthetic price data with a simulated 9-to-5 pattern.

Weekday session hours drift down, overnight drifts up and weekends drift
slightly up. Used for offline runs and tests; seeded so repeated calls
return identical candles.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import numpy as np

from .models import PricePoint
from .zones import to_local_time

SYNTHETIC_START = datetime(2025, 12, 1, tzinfo=timezone.utc)


def generate_synthetic_data(
    days: int = 7,
    start: datetime = SYNTHETIC_START,
    base_price: float = 100000.0,
    interval_minutes: int = 5,
    seed: int = 42
) -> List[PricePoint]:
    """Generate candles biased down from 09:00 to 16:00 local and up otherwise.

    Args:
        days: Number of days to generate
        start: Timestamp of the first candle
        base_price: Starting price
        interval_minutes: Candle spacing
        seed: Random seed

    Returns:
        Candles sorted by timestamp
    """
    rng = np.random.default_rng(seed)
    price_data: List[PricePoint] = []
    last_price = base_price

    steps = days * 24 * 60 // interval_minutes
    for i in range(steps):
        timestamp = start + timedelta(minutes=i * interval_minutes)
        local = to_local_time(timestamp)

        if local.weekday() >= 5:
            # Slight upward drift on weekends
            price_move = (rng.random() - 0.4) * 0.001
        elif 9 <= local.hour < 16:
            # Market hours: tend to drop
            price_move = (rng.random() - 0.6) * 0.002
        else:
            # Overnight: tend to rise
            price_move = (rng.random() - 0.3) * 0.002

        new_price = last_price * (1 + price_move)
        volatility = new_price * 0.001

        price_data.append(PricePoint(
            timestamp=timestamp,
            price=new_price,
            open=new_price - volatility * rng.random(),
            high=new_price + volatility * rng.random(),
            low=new_price - volatility * rng.random(),
        ))
        last_price = new_price

    return price_data
