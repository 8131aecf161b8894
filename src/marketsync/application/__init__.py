# src/marketsync/application/__init__.py
"""
Application Layer - Synchronizers and Scheduling

This package contains the synchronizers that keep market data fresh and the
scheduler that drives them. Providers and the cache store are injected.
"""

from marketsync.application.health import HealthChecker, HealthStatus
from marketsync.application.history_sync import HistorySynchronizer
from marketsync.application.price_sync import PriceSynchronizer
from marketsync.application.rates_sync import RatesSynchronizer
from marketsync.application.scheduler import SyncScheduler
from marketsync.application.synchronizer import BaseSynchronizer

__all__ = [
    "BaseSynchronizer",
    "PriceSynchronizer",
    "RatesSynchronizer",
    "HistorySynchronizer",
    "SyncScheduler",
    "HealthChecker",
    "HealthStatus",
]
