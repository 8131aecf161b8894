# src/marketsync/__init__.py
"""
MarketSync - Wallet Market Data Synchronization

Keeps the BTC spot price, 24h change, fiat exchange rates and 7-day price
history of a wallet application fresh without exceeding provider quotas,
serving stale-but-present data when the providers are unreachable.
"""

__version__ = "1.0.0"
