# src/marketsync/application/synchronizer.py
"""
Synchronizer Base - Shared Fetch Discipline

Every synchronizer owns one published SyncState and follows the same rules:
- providers are blocking clients, run in the default executor and bounded
  by asyncio.wait_for so the event loop is never blocked
- a refresh requested while one is still in flight is skipped
- state is replaced, never mutated, and only by the owning synchronizer
- after close(), late results are discarded instead of published

Files that USE this module:
- marketsync.application.price_sync
- marketsync.application.rates_sync
- marketsync.application.history_sync

Files that this module USES:
- marketsync.domain.models (SyncState, utc_now)
- marketsync.domain.errors (NetworkFailure for timeouts)
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from marketsync.domain.errors import NetworkFailure
from marketsync.domain.models import SyncState, utc_now

log = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]
Listener = Callable[[SyncState], None]


class BaseSynchronizer(Generic[T]):
    """Owns a SyncState and the in-flight guard around its fetches."""

    name = "synchronizer"

    def __init__(self, clock: Optional[Clock] = None, initial: Optional[SyncState[T]] = None):
        self._clock: Clock = clock or utc_now
        self._state: SyncState[T] = initial or SyncState()
        self._inflight = asyncio.Lock()
        self._listeners: List[Listener] = []
        self._closed = False

    # --- Published read surface ---

    @property
    def state(self) -> SyncState[T]:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._state.last_updated

    @property
    def in_flight(self) -> bool:
        return self._inflight.locked()

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with every newly published state.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop publishing; results of fetches still in flight are dropped."""
        self._closed = True
        self._listeners.clear()

    # --- Internals for subclasses ---

    def _now(self) -> datetime:
        return self._clock()

    def _publish(self, **changes: Any) -> None:
        if self._closed:
            log.debug("%s: discarding state update after close", self.name)
            return
        self._state = self._state.evolve(**changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                log.exception("%s: state listener failed", self.name)

    async def _call(self, fn: Callable[..., Any], *args: Any, timeout: float) -> Any:
        """
        Run a blocking provider call in the executor with a deadline.

        Raises:
            NetworkFailure: If the deadline passes (the thread is left to finish)
            Exception: Whatever the provider raised
        """
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, lambda: fn(*args)), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"Request timed out after {timeout:g}s") from e

    async def _guarded(self, fetch: Callable[[], Awaitable[None]]) -> bool:
        """
        Run ``fetch`` unless a previous one is still outstanding.

        Returns:
            True if the fetch ran, False if it was skipped
        """
        if self._inflight.locked():
            log.debug("%s: refresh skipped, previous fetch still in flight", self.name)
            return False
        async with self._inflight:
            await fetch()
        return True
