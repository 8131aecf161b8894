# src/marketsync/application/history_sync.py
"""
Price-History Synchronizer - 7-Day Daily Series per Currency

Fans out one request per tracked currency, all concurrently and each with
its own deadline, then joins them. The join is all-or-nothing: if any
currency fails, nothing is published, so the per-currency series never
disagree about when they were fetched.

On total failure with no prior data a synthetic series is published so the
chart has something plausible to draw. It is flagged via ``is_synthetic``
and never counts as fresh.

Triggers: fetch on start, every 30 minutes, and on a foreground event when
the data is older than 30 minutes.

Files that USE this module:
- marketsync.application.scheduler (timers and foreground events)
- marketsync.application.health (status reporting)
- marketsync.app (wiring)

Files that this module USES:
- marketsync.application.synchronizer (BaseSynchronizer)
- marketsync.adapters.providers.coingecko (CoinGeckoProvider, via duck typing)
- marketsync.adapters.persistence.file_store (CacheStore)
- marketsync.domain.fallback (generate_fallback_history)
- marketsync.domain.staleness (is_stale)
- marketsync.shared.validators (validate_currency_code)
"""
from __future__ import annotations

import asyncio
import logging
import random
from datetime import timedelta
from typing import Iterable, Optional, Protocol, Tuple

from marketsync.adapters.persistence.file_store import CacheStore
from marketsync.application.synchronizer import BaseSynchronizer, Clock
from marketsync.config import settings
from marketsync.domain.errors import SchemaFailure
from marketsync.domain.fallback import generate_fallback_history
from marketsync.domain.models import (
    DEFAULT_HISTORY_CURRENCY,
    TRACKED_CURRENCIES,
    CacheKind,
    HistoryPoint,
    HistorySeries,
)
from marketsync.domain.staleness import is_stale
from marketsync.shared.validators import validate_currency_code

log = logging.getLogger(__name__)

Series = Tuple[HistoryPoint, ...]


class HistorySource(Protocol):
    """Anything that can fetch a daily series (CoinGeckoProvider in production)."""
    def get_market_chart(self, currency: str, days: int = 7) -> Series:
        ...


class HistorySynchronizer(BaseSynchronizer[HistorySeries]):
    """Maintains the published per-currency price history."""

    name = "history"

    def __init__(
        self,
        provider: HistorySource,
        store: Optional[CacheStore] = None,
        currencies: Iterable[str] = TRACKED_CURRENCIES,
        days: Optional[int] = None,
        ttl: Optional[timedelta] = None,
        timeout: Optional[float] = None,
        fallback_base_price: Optional[int] = None,
        fallback_jitter: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            provider: History source
            store: Cache store for the history record (None disables persistence)
            currencies: Currencies to fetch; must include USD, the default series
            days: Lookback window in days (defaults to settings.history_days)
            ttl: Age that triggers a foreground refetch (defaults to 30 minutes)
            timeout: Deadline per currency request in seconds (defaults to 15)
            fallback_base_price: Centre of the synthetic series
            fallback_jitter: Maximum deviation of the synthetic series
            rng: Random source for the synthetic series
            clock: Time source, injectable for tests
        """
        super().__init__(clock=clock)
        self.provider = provider
        self.store = store
        self.currencies = tuple(c.upper() for c in currencies)
        if DEFAULT_HISTORY_CURRENCY not in self.currencies:
            raise ValueError(f"currencies must include {DEFAULT_HISTORY_CURRENCY}")
        self.days = days or settings.history_days
        self.ttl = ttl or settings.history_ttl
        self.timeout = timeout or settings.history_timeout_seconds
        self.fallback_base_price = fallback_base_price or settings.fallback_base_price
        self.fallback_jitter = settings.fallback_jitter if fallback_jitter is None else fallback_jitter
        self._rng = rng
        self._synthetic = False

    @property
    def price_history(self) -> Optional[Series]:
        """Default (USD) series, or None before anything was published."""
        series = self._state.data
        return series.default if series else None

    @property
    def is_synthetic(self) -> bool:
        return self._synthetic

    def get_price_history_in_currency(self, currency: str) -> Optional[Series]:
        """
        Series for ``currency``, falling back to the USD series, then None.

        Unknown or malformed codes fall back the same way; this never raises.
        """
        series = self._state.data
        if series is None:
            return None
        if validate_currency_code(currency):
            points = series.get(currency)
            if points:
                return points
        return series.default

    def load_cached(self) -> bool:
        """Publish the cached history, if any. Its age is kept, so it may still be stale."""
        if self.store is None:
            return False
        record = self.store.load(CacheKind.HISTORY)
        if record is None:
            return False
        history = record.payload
        self._publish(data=history, last_updated=history.last_updated, error=None)
        log.info("Loaded cached price history (fetched %s)", history.last_updated)
        return True

    async def start(self) -> None:
        """Publish the cache if present, then fetch."""
        self.load_cached()
        await self.refresh()

    async def refresh(self) -> bool:
        """
        Fetch every currency and publish only if all succeed.

        Never raises. Returns False if skipped because a fetch was in flight.
        """
        return await self._guarded(self._fetch)

    def needs_refresh(self) -> bool:
        return is_stale(self._state.last_updated, self._now(), self.ttl)

    async def on_foreground(self) -> bool:
        """Refetch only if the published history is older than the TTL."""
        if not self.needs_refresh():
            log.debug("Price history still fresh (%s), skipping foreground refresh", self._state.last_updated)
            return False
        return await self.refresh()

    async def _fetch_currency(self, currency: str) -> Series:
        return await self._call(self.provider.get_market_chart, currency, self.days, timeout=self.timeout)

    async def _fetch(self) -> None:
        self._publish(is_loading=True)

        # return_exceptions keeps one failure from cancelling the siblings
        results = await asyncio.gather(
            *(self._fetch_currency(code) for code in self.currencies),
            return_exceptions=True,
        )
        if self.closed:
            return

        failures = []
        for code, result in zip(self.currencies, results):
            if isinstance(result, BaseException):
                failures.append((code, result))
            elif not result:
                failures.append((code, SchemaFailure(f"Invalid price data for {code}")))
        if failures:
            for code, exc in failures:
                log.warning("Price history fetch failed for %s: %s", code, exc)
            code, exc = failures[0]
            self._on_failure(f"Price history unavailable ({code}): {str(exc) or type(exc).__name__}")
            return

        now = self._now()
        history = HistorySeries(series=dict(zip(self.currencies, results)), last_updated=now)
        self._synthetic = False
        self._publish(data=history, last_updated=now, is_loading=False, error=None)
        log.info("Bitcoin price history updated successfully for all currencies")

        if self.store is not None and not self.store.save(CacheKind.HISTORY, history, now=now):
            log.warning("History cache not written; in-memory history is still current")

    def _on_failure(self, message: str) -> None:
        if self._state.data is not None:
            self._publish(is_loading=False, error=message)
            return

        now = self._now()
        points = generate_fallback_history(
            now,
            base_price=self.fallback_base_price,
            jitter=self.fallback_jitter,
            days=self.days,
            rng=self._rng,
        )
        self._synthetic = True
        # The payload carries its generation time; the published
        # state.last_updated stays None so synthetic data is always stale
        self._publish(
            data=HistorySeries(series={DEFAULT_HISTORY_CURRENCY: points}, last_updated=now),
            is_loading=False,
            error=message,
        )
        log.info("Using fallback price history data")
