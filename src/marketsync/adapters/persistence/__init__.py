# src/marketsync/adapters/persistence/__init__.py
"""
Persistence Adapters - Data Storage

This package contains the file-based cache store for market data.
"""

from marketsync.adapters.persistence.file_store import CACHE_SCHEMA_VERSION, CacheStore

__all__ = [
    "CACHE_SCHEMA_VERSION",
    "CacheStore",
]
