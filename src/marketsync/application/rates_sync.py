# src/marketsync/application/rates_sync.py
"""
Exchange-Rate Synchronizer - Fiat Conversion Rates

Keeps USD-based conversion rates for the tracked basket (USD, EUR, GBP, JPY,
INR, AUD, CHF). Hardcoded defaults are published from the start and stay
as the floor until a fetch succeeds.

Fetching is gated twice:
- by ``active``, which the host sets while the rate-sensitive view is shown
- by a 90 second freshness window

Rates are cheap to refetch, so they are not written to the cache store.

Two manual operations are kept distinct:
- ``force_refresh()`` marks the rates stale and refreshes through the same gate
- ``invalidate()`` only marks the rates stale; the next gated refresh fetches

Files that USE this module:
- marketsync.application.scheduler (timers, foreground events, active flag)
- marketsync.application.health (status reporting)
- marketsync.app (wiring)

Files that this module USES:
- marketsync.application.synchronizer (BaseSynchronizer)
- marketsync.adapters.providers.exchangerate (ExchangeRateProvider, via duck typing)
- marketsync.domain.staleness (is_stale)
- marketsync.shared.validators (validate_currency_code)
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from functools import partial
from typing import Dict, Mapping, Optional, Protocol

from marketsync.application.synchronizer import BaseSynchronizer, Clock
from marketsync.config import settings
from marketsync.domain.models import RateSnapshot, SyncState
from marketsync.domain.staleness import is_stale
from marketsync.shared.validators import validate_currency_code

log = logging.getLogger(__name__)


class RateSource(Protocol):
    """Anything that can fetch the rate basket (ExchangeRateProvider in production)."""
    def get_latest_rates(self) -> Dict[str, float]:
        ...


class RatesSynchronizer(BaseSynchronizer[RateSnapshot]):
    """Maintains the published fiat conversion rates."""

    name = "rates"

    def __init__(
        self,
        provider: RateSource,
        active: bool = True,
        ttl: Optional[timedelta] = None,
        timeout: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            provider: Rate source
            active: Whether the rate-sensitive view is currently shown
            ttl: Freshness window (defaults to settings.rates_ttl, 90 seconds)
            timeout: Deadline per fetch in seconds (defaults to settings.rates_timeout_seconds)
            clock: Time source, injectable for tests
        """
        super().__init__(clock=clock, initial=SyncState(data=RateSnapshot.defaults()))
        self.provider = provider
        self.active = active
        self.ttl = ttl or settings.rates_ttl
        self.timeout = timeout or settings.rates_timeout_seconds
        # Freshness stamp; None means "stale" (never fetched or invalidated)
        self._checked_at: Optional[datetime] = None
        self._has_succeeded = False

    @property
    def rates(self) -> Mapping[str, float]:
        return self._state.data.rates

    def convert(self, amount_usd: float, currency: str) -> Optional[float]:
        """Convert a USD amount into ``currency``; None for untracked codes."""
        if not validate_currency_code(currency):
            return None
        rate = self.rates.get(currency.upper())
        if rate is None:
            return None
        return amount_usd * rate

    def is_fresh(self) -> bool:
        return not is_stale(self._checked_at, self._now(), self.ttl)

    def invalidate(self) -> None:
        """Mark the rates stale so the next gated refresh fetches."""
        self._checked_at = None

    async def refresh(self, active: Optional[bool] = None) -> bool:
        """
        Fetch the rates if active and stale.

        Args:
            active: Optionally update the gate flag before checking it

        Returns:
            True if a fetch ran, False if it was gated off or skipped
        """
        if active is not None:
            self.active = active
        if not self.active:
            log.info("Exchange rate fetch skipped - rate view not active")
            return False
        now = self._now()
        if not is_stale(self._checked_at, now, self.ttl):
            log.debug("Exchange rates still fresh (checked at %s), skipping", self._checked_at)
            return False
        return await self._guarded(partial(self._fetch, now))

    async def force_refresh(self) -> bool:
        """Mark the rates stale, then take the normal gated path (``active`` still applies)."""
        self.invalidate()
        return await self.refresh()

    async def refresh_rates(self) -> bool:
        """Manual refresh entry point for consumers."""
        return await self.force_refresh()

    async def on_foreground(self) -> bool:
        return await self.refresh()

    async def _fetch(self, started: datetime) -> None:
        # Freshness is measured from the gate check that started this fetch,
        # so a timer period equal to the TTL never lands inside the window
        self._publish(is_loading=True)
        try:
            rates = await self._call(self.provider.get_latest_rates, timeout=self.timeout)
            now = self._now()
            snapshot = RateSnapshot(rates=dict(rates), last_updated=now)
        except Exception as e:
            self._on_failure(e, started)
            return
        if self.closed:
            return

        self._checked_at = started
        self._has_succeeded = True
        self._publish(data=snapshot, last_updated=now, is_loading=False, error=None)
        log.info("Exchange rates updated: %s", snapshot.rates)

    def _on_failure(self, exc: Exception, started: datetime) -> None:
        message = str(exc) or "Failed to fetch exchange rates"
        if self._has_succeeded:
            log.warning("Exchange rate fetch failed, keeping last rates: %s", message)
            self._publish(is_loading=False, error=message)
            return

        # Stamp the defaults so the freshness gate holds until the next interval
        now = self._now()
        log.warning("Exchange rate fetch failed, using default rates: %s", message)
        self._checked_at = started
        self._publish(data=RateSnapshot.defaults(last_updated=now), last_updated=now,
                      is_loading=False, error=message)
