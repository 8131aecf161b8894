# src/marketsync/domain/__init__.py
"""
Domain Layer - Pure Business Objects

This package contains domain models and business rules.
No dependencies on infrastructure or external systems.
"""

from marketsync.domain.models import (
    DEFAULT_RATES,
    TRACKED_CURRENCIES,
    CacheKind,
    CacheRecord,
    HistoryPoint,
    HistorySeries,
    PriceSnapshot,
    RateSnapshot,
    SyncState,
)
from marketsync.domain.errors import (
    HttpStatusFailure,
    NetworkFailure,
    SchemaFailure,
    SyncError,
    ValidationFailure,
)
from marketsync.domain.staleness import is_stale
from marketsync.domain.fallback import generate_fallback_history

__all__ = [
    "TRACKED_CURRENCIES",
    "DEFAULT_RATES",
    "CacheKind",
    "CacheRecord",
    "PriceSnapshot",
    "RateSnapshot",
    "HistoryPoint",
    "HistorySeries",
    "SyncState",
    "SyncError",
    "NetworkFailure",
    "HttpStatusFailure",
    "SchemaFailure",
    "ValidationFailure",
    "is_stale",
    "generate_fallback_history",
]
