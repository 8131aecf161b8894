# src/marketsync/application/scheduler.py
"""
Sync Scheduler - Interval Timers and Foreground Events

Drives the three synchronizers:
- start: price publishes its cache (or fetches), rates run a gated refresh,
  history publishes its cache and fetches
- one repeating timer per synchronizer (30s price, 90s rates, 30min history)
- a foreground event from the host re-checks staleness on all three
- stop: timers are cancelled; fetches already in flight are left to finish
  and their results are discarded by the closed synchronizers

Timer ticks spawn the refresh as a task so a slow fetch never delays the
next tick. Overlap is prevented by each synchronizer's in-flight guard.

Files that USE this module:
- marketsync.app (composition root)

Files that this module USES:
- marketsync.application.price_sync (PriceSynchronizer)
- marketsync.application.rates_sync (RatesSynchronizer)
- marketsync.application.history_sync (HistorySynchronizer)
- marketsync.config (default intervals)
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from marketsync.application.history_sync import HistorySynchronizer
from marketsync.application.price_sync import PriceSynchronizer
from marketsync.application.rates_sync import RatesSynchronizer
from marketsync.config import settings

log = logging.getLogger(__name__)


class SyncScheduler:
    """Owns the timers and routes host events to the synchronizers."""

    def __init__(
        self,
        price: PriceSynchronizer,
        rates: RatesSynchronizer,
        history: HistorySynchronizer,
        price_interval: Optional[float] = None,
        rates_interval: Optional[float] = None,
        history_interval: Optional[float] = None,
    ):
        self.price = price
        self.rates = rates
        self.history = history
        self.price_interval = price_interval or settings.price_interval_seconds
        self.rates_interval = rates_interval or settings.rates_interval_seconds
        self.history_interval = history_interval or settings.history_interval_seconds
        self._timers: List[asyncio.Task] = []
        self._pending: Set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the initial loads concurrently, then arm the timers."""
        if self._running:
            log.warning("Scheduler already running, start ignored")
            return
        self._running = True
        await asyncio.gather(self.price.start(), self.rates.refresh(), self.history.start())

        self._timers = [
            asyncio.create_task(self._every(self.price_interval, self.price.refresh, "price"), name="price_timer"),
            asyncio.create_task(self._every(self.rates_interval, self.rates.refresh, "rates"), name="rates_timer"),
            asyncio.create_task(self._every(self.history_interval, self.history.refresh, "history"), name="history_timer"),
        ]
        log.info(
            "Scheduler started: price every %gs, rates every %gs, history every %gs",
            self.price_interval, self.rates_interval, self.history_interval,
        )

    async def on_visibility_change(self, visible: bool) -> None:
        """
        Host signal that the app moved to the foreground or background.

        Only the foreground transition does anything: each synchronizer
        re-checks its own staleness and refetches if needed.
        """
        if not visible or not self._running:
            return
        log.info("Foreground event: re-checking staleness")
        await asyncio.gather(
            self.price.on_foreground(),
            self.rates.on_foreground(),
            self.history.on_foreground(),
        )

    async def set_rates_active(self, active: bool) -> None:
        """Update the rate view gate; becoming active triggers a gated refresh."""
        was_active = self.rates.active
        self.rates.active = active
        if active and not was_active and self._running:
            await self.rates.refresh()

    async def stop(self) -> None:
        """Cancel the timers and close the synchronizers."""
        if not self._running:
            return
        self._running = False
        for timer in self._timers:
            timer.cancel()
        await asyncio.gather(*self._timers, return_exceptions=True)
        self._timers = []

        for sync in (self.price, self.rates, self.history):
            sync.close()
        if self._pending:
            log.info("Scheduler stopped; %d fetch(es) still in flight will be discarded", len(self._pending))
        else:
            log.info("Scheduler stopped")

    async def _every(self, interval: float, refresh: Callable[[], Awaitable[bool]], label: str) -> None:
        while True:
            await asyncio.sleep(interval)
            log.debug("%s timer tick", label)
            task = asyncio.create_task(refresh())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
