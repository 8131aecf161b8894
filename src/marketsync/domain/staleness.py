# src/marketsync/domain/staleness.py
"""
Staleness Policy - TTL Checks for Cached Market Data

Pure functions deciding whether a cached value is old enough to refetch.
Each synchronizer applies its own TTL:
- price: 2 minutes, checked only on a foreground event (the 30s timer
  refreshes unconditionally)
- rates: 90 seconds
- history: 30 minutes

Files that USE this module:
- marketsync.application.price_sync
- marketsync.application.rates_sync
- marketsync.application.history_sync

Files that this module USES:
- None (pure domain logic)
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional


def age(last_updated: Optional[datetime], now: datetime) -> Optional[timedelta]:
    """Return how old a value is, or None if it was never written."""
    if last_updated is None:
        return None
    return now - last_updated


def is_stale(last_updated: Optional[datetime], now: datetime, ttl: timedelta) -> bool:
    """
    Check whether a cached value must be refetched.

    Args:
        last_updated: When the value was written, None if absent
        now: Current time
        ttl: Maximum allowed age

    Returns:
        True if the value is absent or at least ``ttl`` old
    """
    elapsed = age(last_updated, now)
    return elapsed is None or elapsed >= ttl
