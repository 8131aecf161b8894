# src/marketsync/application/price_sync.py
"""
Price Synchronizer - BTC Spot Price and 24h Change

Keeps the current BTC price fresh:
- on start, a cached snapshot is published without touching the network;
  only when no cache exists is a fetch made immediately
- the scheduler refreshes every 30 seconds unconditionally
- on a foreground event, a refresh happens only if the cache is older
  than 2 minutes

A failed fetch keeps the previous snapshot and sets ``error``. If no
snapshot was ever obtained a zero-valued one is published, so consumers
always receive a well-typed value.

Files that USE this module:
- marketsync.application.scheduler (timers and foreground events)
- marketsync.application.health (status reporting)
- marketsync.app (wiring)

Files that this module USES:
- marketsync.application.synchronizer (BaseSynchronizer)
- marketsync.adapters.providers.coingecko (CoinGeckoProvider, via duck typing)
- marketsync.adapters.persistence.file_store (CacheStore)
- marketsync.domain.staleness (is_stale)
- marketsync.shared.validators (validate_currency_code)
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Protocol

from marketsync.adapters.persistence.file_store import CacheStore
from marketsync.application.synchronizer import BaseSynchronizer, Clock
from marketsync.config import settings
from marketsync.domain.models import CacheKind, PriceSnapshot
from marketsync.domain.staleness import is_stale
from marketsync.shared.validators import validate_currency_code

log = logging.getLogger(__name__)


class SpotPriceSource(Protocol):
    """Anything that can fetch a PriceSnapshot (CoinGeckoProvider in production)."""
    def get_spot_price(self) -> PriceSnapshot:
        ...


class PriceSynchronizer(BaseSynchronizer[PriceSnapshot]):
    """Maintains the published BTC spot price."""

    name = "price"

    def __init__(
        self,
        provider: SpotPriceSource,
        store: Optional[CacheStore] = None,
        timeout: Optional[float] = None,
        visibility_ttl: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            provider: Spot price source
            store: Cache store for the price record (None disables persistence)
            timeout: Deadline per fetch in seconds (defaults to settings.price_timeout_seconds)
            visibility_ttl: Cache age that triggers a foreground refresh (defaults to 2 minutes)
            clock: Time source, injectable for tests
        """
        super().__init__(clock=clock)
        self.provider = provider
        self.store = store
        self.timeout = timeout or settings.price_timeout_seconds
        self.visibility_ttl = visibility_ttl or settings.price_visibility_ttl
        # Write time of the cached snapshot, used for the foreground check
        self._cached_at: Optional[datetime] = None
        self._last_success: Optional[datetime] = None

    @property
    def price(self) -> Optional[float]:
        return self._state.data.price if self._state.data else None

    @property
    def change_24h(self) -> Optional[float]:
        return self._state.data.change_24h if self._state.data else None

    @property
    def cached_at(self) -> Optional[datetime]:
        return self._cached_at

    def get_price_in_currency(self, currency: str) -> Optional[float]:
        """
        BTC price in ``currency``.

        Returns 1.0 for BTC, the USD price for currencies the last fetch did
        not include, and None when there is no snapshot at all.
        """
        snapshot = self._state.data
        if snapshot is None:
            return None
        if not validate_currency_code(currency):
            return snapshot.price
        return snapshot.price_in(currency)

    def load_cached(self) -> bool:
        """
        Publish the cached snapshot, if any, without a network call.

        Returns:
            True if a cached snapshot was published
        """
        if self.store is None:
            return False
        record = self.store.load(CacheKind.PRICE)
        if record is None:
            log.info("No cached price found")
            return False

        snapshot = record.payload
        self._cached_at = record.timestamp
        self._last_success = snapshot.last_updated
        self._publish(data=snapshot, last_updated=snapshot.last_updated, is_loading=False, error=None)
        log.info("Loaded cached price %s (written %s)", snapshot.price, record.timestamp)
        return True

    async def start(self) -> None:
        """Publish the cache if present, otherwise fetch immediately."""
        if not self.load_cached():
            await self.refresh()

    async def refresh(self) -> bool:
        """
        Fetch the spot price once.

        Never raises. Returns False if skipped because a fetch was in flight.
        """
        return await self._guarded(self._fetch)

    def needs_foreground_refresh(self) -> bool:
        return is_stale(self._cached_at, self._now(), self.visibility_ttl)

    async def on_foreground(self) -> bool:
        """Refresh only if the cached price is older than the visibility TTL."""
        if not self.needs_foreground_refresh():
            log.debug("Price still fresh (cached at %s), skipping foreground refresh", self._cached_at)
            return False
        return await self.refresh()

    async def _fetch(self) -> None:
        self._publish(is_loading=True)
        try:
            snapshot: PriceSnapshot = await self._call(self.provider.get_spot_price, timeout=self.timeout)
        except Exception as e:
            self._on_failure(e)
            return
        if self.closed:
            return

        now = self._now()
        # Provider clocks can step back; the published time must not
        if self._last_success is not None and snapshot.last_updated < self._last_success:
            snapshot = replace(snapshot, last_updated=self._last_success)
        self._last_success = snapshot.last_updated
        self._cached_at = now

        self._publish(data=snapshot, last_updated=snapshot.last_updated, is_loading=False, error=None)
        log.info("Bitcoin price updated successfully: %s", snapshot.price)

        if self.store is not None and not self.store.save(CacheKind.PRICE, snapshot, now=now):
            log.warning("Price cache not written; in-memory price is still current")

    def _on_failure(self, exc: Exception) -> None:
        message = str(exc) or "Failed to fetch price"
        log.warning("Bitcoin price fetch failed: %s", message)
        if self._state.data is None:
            now = self._now()
            self._publish(data=PriceSnapshot.zero(now), last_updated=now, is_loading=False, error=message)
        else:
            self._publish(is_loading=False, error=message)
