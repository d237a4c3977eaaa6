"""Data source for loading historical price data.

Loads candles from Binance (with a local JSON cache), CSV/Parquet files,
or the synthetic generator, and converts them into PricePoint records for
the engine. Load failures are raised to the caller; nothing here
substitutes data.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional
import json
import logging
import math

import pandas as pd

from .api_client import INTERVAL_MS, BinanceKlinesClient, Kline
from .models import PricePoint
from .synthetic import SYNTHETIC_START, generate_synthetic_data

REQUIRED_COLUMNS = ["timestamp", "open", "high", "low", "close"]


def candles_to_price_points(candles: Iterable[Kline]) -> List[PricePoint]:
    """Convert klines to the format used by the backtester."""
    return [
        PricePoint(
            timestamp=c.open_time,
            price=c.close,
            high=c.high,
            low=c.low,
            open=c.open
        )
        for c in candles
    ]


class PriceDataSource:
    """Loads historical candles from various sources.

    Supports:
    - binance: Binance USD-M futures klines, cached as JSON per date range
    - csv / parquet: files with columns timestamp, open, high, low, close
    - synthetic: seeded 9-to-5 pattern generator (no network)
    """

    def __init__(
        self,
        source: str = "binance",
        symbol: str = "BTCUSDT",
        interval: str = "5m",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        days: int = 30,
        file_path: Optional[str] = None,
        cache_dir: str = "./backtest_data",
        use_cache: bool = True,
        client: Optional[BinanceKlinesClient] = None,
        synthetic_seed: int = 42,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize data source.

        Args:
            source: "binance", "csv", "parquet" or "synthetic"
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Candle interval (e.g., "5m", "1h")
            start_date: Range start (defaults to end_date - days)
            end_date: Range end (defaults to now)
            days: Days of data when no start_date is given
            file_path: Path to CSV/Parquet file
            cache_dir: Directory for cached Binance responses
            use_cache: Read cached data if available
            client: Klines client (created on demand for binance source)
            synthetic_seed: Seed for the synthetic source
            logger: Optional logger
        """
        self.source = source
        self.symbol = symbol
        self.interval = interval
        self.explicit_start = _as_utc(start_date) if start_date else None
        self.explicit_end = _as_utc(end_date) if end_date else None
        self.end_date = _as_utc(end_date) if end_date else datetime.now(timezone.utc)
        self.start_date = _as_utc(start_date) if start_date else self.end_date - timedelta(days=days)
        self.days = days
        self.file_path = file_path
        self.cache_dir = Path(cache_dir)
        self.use_cache = use_cache
        self.client = client
        self.synthetic_seed = synthetic_seed
        self.logger = logger or logging.getLogger(__name__)
        self._data: Optional[pd.DataFrame] = None

    def load(self) -> List[PricePoint]:
        """Load candles from the configured source.

        Returns:
            List of PricePoint objects sorted by timestamp (ascending)

        Raises:
            ValueError: If source is invalid, a file is malformed or the cache is corrupt
            requests.RequestException: If Binance requests fail after retries
        """
        if self.source == "binance":
            points = self._load_binance()
        elif self.source == "csv":
            points = self._df_to_points(self._load_file(pd.read_csv))
        elif self.source == "parquet":
            points = self._df_to_points(self._load_file(pd.read_parquet))
        elif self.source == "synthetic":
            points = self._load_synthetic()
        else:
            raise ValueError(
                f"Invalid source: {self.source}. Must be 'binance', 'csv', 'parquet' or 'synthetic'"
            )

        self._data = pd.DataFrame([p.to_dict() for p in points], columns=REQUIRED_COLUMNS)
        return points

    @property
    def cache_file(self) -> Path:
        """Cache path for the configured symbol, interval and date range."""
        return self.cache_dir / (
            f"{self.symbol}_{self.interval}_"
            f"{self.start_date.date().isoformat()}_{self.end_date.date().isoformat()}.json"
        )

    def _load_binance(self) -> List[PricePoint]:
        cache_file = self.cache_file

        if self.use_cache and cache_file.exists():
            self.logger.info(f"Loading from cache: {cache_file}")
            return self._read_cache(cache_file)

        client = self.client or BinanceKlinesClient(logger=self.logger)
        try:
            klines = client.load_klines(self.symbol, self.interval, self.start_date, self.end_date)
        finally:
            # Injected clients belong to the caller
            if self.client is None:
                client.close()

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with open(cache_file, 'w') as f:
            json.dump([k.to_dict() for k in klines], f, indent=2)
        self.logger.info(f"Cached to: {cache_file}")

        return candles_to_price_points(klines)

    def _load_synthetic(self) -> List[PricePoint]:
        if self.interval not in INTERVAL_MS:
            raise ValueError(f"Unsupported interval: {self.interval}. Must be one of {list(INTERVAL_MS)}")
        interval_minutes = INTERVAL_MS[self.interval] // 60_000

        # Without an explicit start the generator begins at its fixed date
        if self.explicit_end:
            start = self.start_date
        else:
            start = self.explicit_start or SYNTHETIC_START
        end = self.explicit_end or start + timedelta(days=self.days)

        days = max(0, math.ceil((end - start) / timedelta(days=1)))
        points = generate_synthetic_data(
            days=days,
            start=start,
            interval_minutes=interval_minutes,
            seed=self.synthetic_seed
        )
        return [p for p in points if p.timestamp <= end]

    def _read_cache(self, cache_file: Path) -> List[PricePoint]:
        try:
            with open(cache_file, 'r') as f:
                cached = json.load(f)
            return [
                PricePoint(
                    timestamp=datetime.fromisoformat(c["timestamp"]),
                    price=float(c["close"]),
                    high=float(c["high"]),
                    low=float(c["low"]),
                    open=float(c["open"])
                )
                for c in cached
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"Corrupt cache file {cache_file}: {e}") from e

    def _load_file(self, reader) -> pd.DataFrame:
        if not self.file_path:
            raise ValueError(f"file_path required for {self.source} source")

        df = reader(self.file_path)

        # Ensure required columns exist
        missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            raise ValueError(f"{self.source} file missing required columns: {missing}")

        df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
        df = df.sort_values('timestamp').reset_index(drop=True)

        # Files are used whole unless a range was given explicitly
        if self.explicit_start:
            df = df[df['timestamp'] >= self.explicit_start]
        if self.explicit_end:
            df = df[df['timestamp'] <= self.explicit_end]

        return df[REQUIRED_COLUMNS].reset_index(drop=True)

    def _df_to_points(self, df: pd.DataFrame) -> List[PricePoint]:
        """Convert DataFrame rows to PricePoint objects."""
        points = []
        for row in df.itertuples(index=False):
            points.append(PricePoint(
                timestamp=row.timestamp.to_pydatetime(),
                price=float(row.close),
                high=float(row.high),
                low=float(row.low),
                open=float(row.open)
            ))
        return points

    def get_dataframe(self) -> pd.DataFrame:
        """Get the loaded data as a pandas DataFrame.

        Returns:
            DataFrame with columns: timestamp, open, high, low, close

        Raises:
            ValueError: If data hasn't been loaded yet
        """
        if self._data is None:
            raise ValueError("Data not loaded. Call load() first.")
        return self._data.copy()


def load_recent_data(days: int = 30, interval: str = "5m", **kwargs) -> List[PricePoint]:
    """Load BTCUSDT candles for the last `days` days from Binance."""
    return PriceDataSource(source="binance", interval=interval, days=days, **kwargs).load()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
