"""Price data record shared by the simulation core and the data layer."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PricePoint:
    """Represents a single candle. `price` is the close."""

    timestamp: datetime
    price: float
    high: float
    low: float
    open: Optional[float] = None

    @property
    def close(self) -> float:
        return self.price

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON/CSV export."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.price,
        }
