# src/marketsync/adapters/providers/coingecko.py
"""
CoinGecko Provider for BTC Spot Prices and Price History

This module implements the CoinGecko client used by two synchronizers:
- ``simple/price`` for the current BTC price in every tracked fiat currency,
  the USD 24h change and the provider's update time
- ``coins/bitcoin/market_chart`` for daily price points in one currency

The demo API key is optional; without it requests go to the public tier.

Files that USE this module:
- marketsync.application.price_sync (get_spot_price)
- marketsync.application.history_sync (get_market_chart)
- marketsync.app (wiring)
- tests.test_providers (unit tests)

Files that this module USES:
- marketsync.adapters.providers.base (MarketDataProvider HTTP plumbing)
- marketsync.config (settings for API key, base URL and timeouts)
- marketsync.domain.models (PriceSnapshot, HistoryPoint)
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from marketsync.adapters.providers.base import MarketDataProvider
from marketsync.config import settings
from marketsync.domain.errors import SchemaFailure, ValidationFailure
from marketsync.domain.models import (
    TRACKED_CURRENCIES,
    HistoryPoint,
    PriceSnapshot,
    short_date_label,
    utc_now,
)
from marketsync.shared.rate_limiter import RateLimiter
from marketsync.shared.validators import to_finite_float, to_positive_float

log = logging.getLogger(__name__)

COIN_ID = "bitcoin"


def parse_spot_price(data: Any, now: Optional[datetime] = None) -> PriceSnapshot:
    """
    Convert a ``simple/price`` response into a PriceSnapshot.

    Expected shape::

        {"bitcoin": {"usd": 65000, "usd_24h_change": 2.5, "last_updated_at": 1700000000,
                     "eur": 60000, ...}}

    Raises:
        SchemaFailure: If the bitcoin object or a numeric usd price is missing
        ValidationFailure: If the usd price is negative
    """
    if not isinstance(data, dict) or not isinstance(data.get(COIN_ID), dict):
        log.error("CoinGecko price response missing '%s' object: %r", COIN_ID, data)
        raise SchemaFailure("Invalid data received from CoinGecko API")

    coin = data[COIN_ID]
    usd = to_finite_float(coin.get("usd"))
    if usd is None:
        log.error("CoinGecko price response has no numeric usd price: %r", coin)
        raise SchemaFailure("Invalid data received from CoinGecko API")
    if usd < 0:
        raise ValidationFailure(f"CoinGecko returned negative price: {usd}")

    change = to_finite_float(coin.get("usd_24h_change")) or 0.0

    updated_at = to_finite_float(coin.get("last_updated_at"))
    if updated_at is not None and updated_at > 0:
        last_updated = datetime.fromtimestamp(int(updated_at), tz=timezone.utc)
    else:
        last_updated = now or utc_now()

    prices: Dict[str, float] = {"USD": usd}
    for code in TRACKED_CURRENCIES:
        if code == "USD":
            continue
        value = to_positive_float(coin.get(code.lower()))
        if value is not None:
            prices[code] = value

    return PriceSnapshot(price=usd, change_24h=change, last_updated=last_updated, prices=prices)


def parse_market_chart(data: Any, currency: str) -> Tuple[HistoryPoint, ...]:
    """
    Convert a ``market_chart`` response into daily history points.

    The ``prices`` list holds ``[timestamp_ms, price]`` pairs. Points are
    sorted by timestamp and collapsed to one per calendar day (UTC), keeping
    the latest point of each day.

    Raises:
        SchemaFailure: If ``prices`` is missing, empty, or holds malformed pairs
    """
    if not isinstance(data, dict):
        raise SchemaFailure(f"Invalid price data for {currency}")

    raw = data.get("prices")
    if not isinstance(raw, list) or not raw:
        log.error("CoinGecko market_chart for %s has no prices list", currency)
        raise SchemaFailure(f"Invalid price data for {currency}")

    pairs = []
    for pair in raw:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            raise SchemaFailure(f"Invalid price data for {currency}")
        ts = to_finite_float(pair[0])
        price = to_finite_float(pair[1])
        if ts is None or price is None:
            raise SchemaFailure(f"Invalid price data for {currency}")
        pairs.append((ts, price))

    pairs.sort(key=lambda p: p[0])

    by_day: Dict[str, HistoryPoint] = {}
    for ts, price in pairs:
        # dict keeps first-insertion order, so days stay ascending
        by_day[short_date_label(ts)] = HistoryPoint.from_pair(ts, price)
    return tuple(by_day.values())


class CoinGeckoProvider(MarketDataProvider):
    """CoinGecko REST client for spot prices and market charts."""

    name = "coingecko"
    label = "CoinGecko API"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize CoinGecko provider.

        Args:
            api_key: Optional demo API key (defaults to settings.coingecko_key)
            base_url: Optional API root (defaults to settings.coingecko_base_url)
            timeout: Optional HTTP timeout in seconds (defaults to settings.price_timeout_seconds)
            limiter: Optional call-budget tracker
        """
        super().__init__(
            base_url=base_url or settings.coingecko_base_url,
            timeout=timeout or settings.price_timeout_seconds,
            limiter=limiter,
        )
        self.api_key = settings.coingecko_key if api_key is None else api_key

    def _auth_headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"x-cg-demo-api-key": self.api_key}

    def get_spot_price(self, currencies: Iterable[str] = TRACKED_CURRENCIES) -> PriceSnapshot:
        """
        Fetch the current BTC price, USD 24h change and update time.

        Returns:
            PriceSnapshot with ``prices`` filled for every currency the API returned

        Raises:
            SyncError: On any transport, status or payload problem
        """
        log.info("Fetching Bitcoin price from CoinGecko API")
        data = self._get_json(
            f"{self.base_url}/simple/price",
            params={
                "ids": COIN_ID,
                "vs_currencies": ",".join(c.lower() for c in currencies),
                "include_24hr_change": "true",
                "include_last_updated_at": "true",
            },
            headers=self._auth_headers(),
        )
        snapshot = parse_spot_price(data)
        log.info("CoinGecko price: USD=%s, 24h=%.2f%%", snapshot.price, snapshot.change_24h)
        return snapshot

    def get_market_chart(self, currency: str, days: int = 7) -> Tuple[HistoryPoint, ...]:
        """
        Fetch ``days`` of daily BTC prices in ``currency``.

        Returns:
            Points in ascending timestamp order, at most one per day

        Raises:
            SyncError: On any transport, status or payload problem
        """
        log.debug("Fetching %d-day BTC history in %s", days, currency)
        data = self._get_json(
            f"{self.base_url}/coins/{COIN_ID}/market_chart",
            params={"vs_currency": currency.lower(), "days": days, "interval": "daily"},
            headers=self._auth_headers(),
        )
        return parse_market_chart(data, currency.upper())
