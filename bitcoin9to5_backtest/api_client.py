"""API client for Binance USD-M futures klines.

Public market data only - no authentication. Handles pagination,
retries with exponential backoff, request timeouts and rate limiting.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
import logging
import time

import requests

# Candle interval lengths in milliseconds (used for pagination)
INTERVAL_MS = {
    "1m": 60 * 1000,
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "1h": 60 * 60 * 1000,
    "4h": 4 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
}

MAX_KLINES_PER_REQUEST = 1000


@dataclass
class Kline:
    """One kline (candlestick) from /fapi/v1/klines."""

    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: datetime

    @classmethod
    def from_list(cls, raw: list) -> "Kline":
        """Parse a raw Binance kline array.

        Binance returns [openTime, open, high, low, close, volume, closeTime, ...]
        with prices as strings and times in epoch milliseconds.
        """
        return cls(
            open_time=_from_ms(raw[0]),
            open=float(raw[1]),
            high=float(raw[2]),
            low=float(raw[3]),
            close=float(raw[4]),
            volume=float(raw[5]),
            close_time=_from_ms(raw[6])
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for the JSON cache."""
        return {
            "timestamp": self.open_time.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "close_time": self.close_time.isoformat()
        }


def _from_ms(value) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class BinanceKlinesClient:
    """Client for the Binance futures /fapi/v1/klines endpoint.

    Fetches arbitrary date ranges by paging through MAX_KLINES_PER_REQUEST
    candles at a time. Network failures are retried and then re-raised;
    they are never replaced with substitute data.
    """

    def __init__(
        self,
        base_url: str = "https://fapi.binance.com",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_delay: float = 0.1,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize API client.

        Args:
            base_url: Base URL of the futures API
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request
            retry_delay: Base delay between retries in seconds
            request_delay: Pause between paginated requests (Binance allows 1200 req/min)
            logger: Optional logger for request/response logging
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_delay = request_delay
        self.logger = logger or logging.getLogger(__name__)

        # Session for connection pooling
        self.session = requests.Session()

        # Stats tracking
        self.total_requests = 0
        self.failed_requests = 0
        self.total_retry_count = 0

    def fetch_klines(
        self,
        symbol: str,
        interval: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = MAX_KLINES_PER_REQUEST
    ) -> List[list]:
        """Fetch a single page of raw klines.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Candle interval (1m, 5m, 15m, 1h, 4h, 1d)
            start_time: Start of the page
            end_time: End of the page
            limit: Maximum klines per page (Binance max 1000)

        Returns:
            List of raw kline arrays

        Raises:
            requests.RequestException: If request fails after retries
        """
        params = {
            "symbol": symbol,
            "interval": interval,
            "startTime": _to_ms(start_time),
            "endTime": _to_ms(end_time),
            "limit": limit
        }
        return self._request("/fapi/v1/klines", params)

    def load_klines(
        self,
        symbol: str,
        interval: str,
        start_time: datetime,
        end_time: datetime
    ) -> List[Kline]:
        """Fetch all klines between start_time and end_time.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Candle interval (1m, 5m, 15m, 1h, 4h, 1d)
            start_time: Range start
            end_time: Range end

        Returns:
            Klines sorted by open time

        Raises:
            ValueError: If interval is not supported
            requests.RequestException: If a page request fails after retries
        """
        if interval not in INTERVAL_MS:
            raise ValueError(f"Unsupported interval: {interval}. Must be one of {list(INTERVAL_MS)}")

        interval_ms = INTERVAL_MS[interval]
        start_ms = _to_ms(start_time)
        end_ms = _to_ms(end_time)

        self.logger.info(f"Fetching {symbol} {interval} klines from Binance...")
        self.logger.info(f"  From: {_from_ms(start_ms).isoformat()}")
        self.logger.info(f"  To:   {_from_ms(end_ms).isoformat()}")

        klines: List[Kline] = []
        current_ms = start_ms

        while current_ms < end_ms:
            batch_end_ms = min(current_ms + MAX_KLINES_PER_REQUEST * interval_ms, end_ms)

            page = self.fetch_klines(symbol, interval, _from_ms(current_ms), _from_ms(batch_end_ms))
            if not page:
                break

            klines.extend(Kline.from_list(raw) for raw in page)

            # Move to next page
            current_ms = int(page[-1][0]) + interval_ms

            if self.request_delay > 0:
                time.sleep(self.request_delay)

            progress = min((current_ms - start_ms) / max(end_ms - start_ms, 1) * 100, 100.0)
            self.logger.debug(f"Progress: {progress:.1f}% ({len(klines)} candles)")

        self.logger.info(f"Fetched {len(klines)} candles")
        return klines

    def _request(self, path: str, params: dict) -> list:
        """Make GET request with retries.

        Args:
            path: Endpoint path
            params: Query parameters

        Returns:
            Decoded JSON response

        Raises:
            requests.RequestException: If request fails after retries
        """
        url = f"{self.base_url}{path}"
        self.total_requests += 1

        for attempt in range(self.max_retries):
            try:
                self.logger.debug(f"GET {path} (attempt {attempt + 1}/{self.max_retries}) {params}")

                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()

                return response.json()

            except requests.exceptions.RequestException as e:
                self.logger.warning(f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}")

                if attempt < self.max_retries - 1:
                    # Retry with exponential backoff
                    delay = self.retry_delay * (2 ** attempt)
                    self.logger.debug(f"Retrying in {delay:.1f}s...")
                    time.sleep(delay)
                    self.total_retry_count += 1
                else:
                    self.failed_requests += 1
                    self.logger.error(f"Request failed after {self.max_retries} attempts")
                    raise

        raise RuntimeError("Unexpected code path in _request")

    def get_stats(self) -> dict:
        """Get client statistics.

        Returns:
            Dictionary with total_requests, failed_requests, total_retry_count
        """
        return {
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "total_retry_count": self.total_retry_count,
            "success_rate": (self.total_requests - self.failed_requests) / max(self.total_requests, 1)
        }

    def close(self):
        """Close the HTTP session and release resources."""
        self.session.close()
