# src/marketsync/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Providers (market data APIs)
- Persistence (cache storage)
"""

__all__ = []
