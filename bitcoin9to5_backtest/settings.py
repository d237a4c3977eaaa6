"""Run settings for the command line, with defaults from the environment."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, List, Optional
import json
import os

from dotenv import load_dotenv

from .config import CostConfig, ZoneConfig, US_MARKET_HOLIDAYS, parse_holidays

# Load environment variables from .env file
load_dotenv()

BINANCE_FUTURES_URL = os.getenv("BINANCE_FUTURES_URL", "https://fapi.binance.com")
BACKTEST_CACHE_DIR = os.getenv("BACKTEST_CACHE_DIR", "./backtest_data")
BACKTEST_OUTPUT_DIR = os.getenv("BACKTEST_OUTPUT_DIR", "./backtest_results")

VALID_SOURCES = ["binance", "csv", "parquet", "synthetic"]
VALID_INTERVALS = ["1m", "5m", "15m", "1h", "4h", "1d"]


@dataclass
class BacktestConfig:
    """Configuration for a backtest run from the command line.

    Strategy and cost parameters live in the nested ZoneConfig and
    CostConfig; everything else controls where data comes from and
    where results go.
    """

    # Market and candle interval
    symbol: str = "BTCUSDT"
    interval: str = "5m"

    # Data range (days back from now unless start/end are given)
    days: int = 30
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    # Data source
    source: str = "binance"  # "binance", "csv", "parquet" or "synthetic"
    file_path: Optional[str] = None
    cache_dir: str = BACKTEST_CACHE_DIR
    use_cache: bool = True
    synthetic_seed: int = 42

    # API configuration
    api_url: str = BINANCE_FUTURES_URL
    api_timeout: float = 30.0
    api_max_retries: int = 3
    api_retry_delay: float = 1.0
    request_delay: float = 0.1  # Pause between paginated requests (rate limit)

    # Strategy and costs
    zone: ZoneConfig = field(default_factory=ZoneConfig)
    costs: CostConfig = field(default_factory=CostConfig)
    holidays: Optional[List[str]] = None  # ISO dates; None uses US_MARKET_HOLIDAYS

    # Output settings
    output_dir: str = BACKTEST_OUTPUT_DIR
    save_trades_csv: bool = False
    save_equity_curve: bool = False
    show_trades: bool = False
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.source not in VALID_SOURCES:
            raise ValueError(f"source must be one of {VALID_SOURCES}, got: {self.source}")

        if self.interval not in VALID_INTERVALS:
            raise ValueError(f"interval must be one of {VALID_INTERVALS}, got: {self.interval}")

        if self.source in ("csv", "parquet") and not self.file_path:
            raise ValueError(f"file_path is required for source '{self.source}'")

        if self.days <= 0:
            raise ValueError(f"days must be > 0, got: {self.days}")

        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")

        if self.zone.leverage <= 0:
            raise ValueError(f"leverage must be > 0, got: {self.zone.leverage}")

        if self.costs.funding_interval_hours <= 0:
            raise ValueError(
                f"funding_interval_hours must be > 0, got: {self.costs.funding_interval_hours}"
            )

    @property
    def holiday_set(self) -> FrozenSet[date]:
        """Holiday calendar injected into the zone classifier."""
        if self.holidays is None:
            return US_MARKET_HOLIDAYS
        return parse_holidays(self.holidays)

    @classmethod
    def from_json(cls, filepath: str) -> "BacktestConfig":
        """Load configuration from JSON file.

        Args:
            filepath: Path to JSON config file

        Returns:
            BacktestConfig instance

        Example JSON:
            {
                "symbol": "BTCUSDT",
                "interval": "5m",
                "start_date": "2025-01-01",
                "end_date": "2025-06-01",
                "zone": {"profit_target_pct": 1.25, "short_zone_start": "09:29"},
                "costs": {"taker_fee_bps": 4.0}
            }
        """
        with open(filepath, 'r') as f:
            data = json.load(f)

        # Convert date strings to datetime if present
        if data.get('start_date'):
            data['start_date'] = datetime.strptime(data['start_date'], "%Y-%m-%d")
        if data.get('end_date'):
            data['end_date'] = datetime.strptime(data['end_date'], "%Y-%m-%d")

        if 'zone' in data:
            data['zone'] = ZoneConfig.from_dict(data['zone'])
        if 'costs' in data:
            data['costs'] = CostConfig.from_dict(data['costs'])

        return cls(**data)

    def to_json(self, filepath: str):
        """Save configuration to JSON file.

        Args:
            filepath: Path to save JSON config file
        """
        data = self.__dict__.copy()

        # Convert datetime to string
        if data.get('start_date'):
            data['start_date'] = data['start_date'].strftime("%Y-%m-%d")
        if data.get('end_date'):
            data['end_date'] = data['end_date'].strftime("%Y-%m-%d")

        data['zone'] = self.zone.to_dict()
        data['costs'] = self.costs.to_dict()

        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)
