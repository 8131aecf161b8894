# src/marketsync/domain/fallback.py
"""
Fallback Generator - Synthetic Price History

Produces a plausible-looking daily series for the UI when no real history
exists and the provider cannot be reached. The values are random and must
never be used for anything but display.

Files that USE this module:
- marketsync.application.history_sync (published on total failure with no prior data)

Files that this module USES:
- marketsync.domain.models (HistoryPoint)
"""
from __future__ import annotations

import random
from datetime import datetime
from typing import Optional, Tuple

from marketsync.domain.models import HistoryPoint, to_epoch_ms

DAY_MS = 24 * 60 * 60 * 1000


def generate_fallback_history(
    now: datetime,
    base_price: int = 97000,
    jitter: int = 4000,
    days: int = 7,
    rng: Optional[random.Random] = None,
) -> Tuple[HistoryPoint, ...]:
    """
    Generate ``days`` daily points ending at ``now``.

    Args:
        now: Anchor for the last point
        base_price: Centre of the generated prices
        jitter: Maximum absolute deviation from base_price
        days: Number of points (one per day)
        rng: Random source, injectable for reproducible output

    Returns:
        Points in strictly ascending timestamp order, each price within
        [base_price - jitter, base_price + jitter]
    """
    rng = rng or random.Random()
    now_ms = to_epoch_ms(now)
    points = []
    for days_ago in range(days - 1, -1, -1):
        price = base_price + rng.uniform(-jitter, jitter)
        points.append(HistoryPoint.from_pair(now_ms - days_ago * DAY_MS, price))
    return tuple(points)
