# src/marketsync/adapters/providers/__init__.py
"""
Provider Adapters - External API Clients

This package contains adapters for the external market data APIs.
All providers extend MarketDataProvider.
"""

from marketsync.adapters.providers.base import MarketDataProvider
from marketsync.adapters.providers.coingecko import CoinGeckoProvider
from marketsync.adapters.providers.exchangerate import ExchangeRateProvider

__all__ = [
    "MarketDataProvider",
    "CoinGeckoProvider",
    "ExchangeRateProvider",
]
