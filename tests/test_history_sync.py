# tests/test_history_sync.py
"""
Price-History Synchronizer Tests

Covers the concurrent all-or-nothing join, the synthetic fallback, the
currency fallback chain and the foreground staleness check.
"""
import random
import threading
import time
from datetime import timedelta

import pytest

from marketsync.application.history_sync import HistorySynchronizer
from marketsync.domain.errors import NetworkFailure
from marketsync.domain.models import TRACKED_CURRENCIES, CacheKind, HistoryPoint, HistorySeries

MAR_1_MS = 1709251200000
DAY_MS = 86400000

# Rough BTC level per currency, to tell the series apart
LEVELS = {"USD": 65000, "EUR": 60000, "GBP": 51000, "JPY": 9700000, "INR": 5400000, "AUD": 99000, "CHF": 57000}


def _points(currency, bump=0):
    base = LEVELS[currency] + bump
    return tuple(HistoryPoint.from_pair(MAR_1_MS + i * DAY_MS, base + i) for i in range(7))


class FakeHistoryProvider:
    """Returns canned series; named currencies fail or stall."""

    def __init__(self, fail=(), slow=(), delay=0.5, bump=0):
        self.fail = set(fail)
        self.slow = set(slow)
        self.delay = delay
        self.bump = bump
        self.calls = []
        self._lock = threading.Lock()

    def get_market_chart(self, currency, days=7):
        with self._lock:
            self.calls.append(currency)
        if currency in self.slow:
            time.sleep(self.delay)
        if currency in self.fail:
            raise NetworkFailure(f"CoinGecko API request failed for {currency}")
        return _points(currency, self.bump)


def _sync(provider, clock, store=None, timeout=1):
    return HistorySynchronizer(provider, store=store, timeout=timeout, rng=random.Random(7), clock=clock)


class TestHistorySynchronizer:
    @pytest.mark.asyncio
    async def test_success_publishes_every_currency(self, clock, store):
        provider = FakeHistoryProvider()
        sync = _sync(provider, clock, store)

        assert await sync.refresh() is True

        assert sorted(provider.calls) == sorted(TRACKED_CURRENCIES)
        assert sync.price_history == _points("USD")
        assert sync.get_price_history_in_currency("gbp") == _points("GBP")
        assert sync.last_updated == clock.now
        assert sync.error is None
        assert not sync.is_synthetic
        assert store.load(CacheKind.HISTORY).payload == sync.state.data

    @pytest.mark.asyncio
    async def test_gbp_timeout_on_first_run(self, clock, store):
        provider = FakeHistoryProvider(slow={"GBP"}, delay=1.0)
        sync = _sync(provider, clock, store, timeout=0.2)

        await sync.refresh()

        # every currency was requested; one failure does not cancel the rest
        assert sorted(provider.calls) == sorted(TRACKED_CURRENCIES)
        assert "GBP" in sync.error
        assert "timed out" in sync.error
        # nothing real was published; only the flagged placeholder
        assert sync.is_synthetic
        assert sync.last_updated is None
        assert set(sync.state.data.series) == {"USD"}
        assert sync.get_price_history_in_currency("EUR") == sync.price_history
        assert store.load(CacheKind.HISTORY) is None

    @pytest.mark.asyncio
    async def test_single_failure_leaves_prior_history_untouched(self, clock, store):
        sync = _sync(FakeHistoryProvider(), clock, store)
        await sync.refresh()
        before = sync.state

        sync.provider = FakeHistoryProvider(fail={"GBP"}, bump=500)
        clock.advance(minutes=31)
        await sync.refresh()

        assert sync.state.data is before.data
        assert sync.last_updated == before.last_updated
        assert sync.get_price_history_in_currency("EUR") == _points("EUR")
        assert "GBP" in sync.error

    @pytest.mark.asyncio
    async def test_fallback_series_shape(self, clock):
        sync = _sync(FakeHistoryProvider(fail=set(TRACKED_CURRENCIES)), clock)

        await sync.refresh()

        points = sync.price_history
        assert len(points) == 7
        assert all(a.timestamp < b.timestamp for a, b in zip(points, points[1:]))
        assert all(93000 <= p.price <= 101000 for p in points)

    @pytest.mark.asyncio
    async def test_synthetic_history_is_always_stale(self, clock):
        sync = _sync(FakeHistoryProvider(fail={"USD"}), clock)
        await sync.refresh()

        # the payload records when it was generated, the published state does not
        assert sync.state.data.last_updated == clock.now
        assert sync.last_updated is None
        assert sync.needs_refresh()

        sync.provider = FakeHistoryProvider()
        assert await sync.on_foreground() is True
        assert not sync.is_synthetic
        assert sync.error is None

    @pytest.mark.asyncio
    async def test_foreground_refetch_only_when_older_than_30_minutes(self, clock):
        provider = FakeHistoryProvider()
        sync = _sync(provider, clock)
        await sync.refresh()

        clock.advance(minutes=10)
        assert await sync.on_foreground() is False
        assert len(provider.calls) == 7

        clock.advance(minutes=21)
        assert await sync.on_foreground() is True
        assert len(provider.calls) == 14

    @pytest.mark.asyncio
    async def test_start_publishes_cache_then_fetches(self, clock, store):
        cached = HistorySeries(series={"USD": _points("USD", bump=-1000)}, last_updated=clock.now - timedelta(hours=2))
        store.save(CacheKind.HISTORY, cached, now=cached.last_updated)
        provider = FakeHistoryProvider()
        sync = _sync(provider, clock, store)
        seen = []
        sync.subscribe(seen.append)

        await sync.start()

        assert seen[0].data == cached
        assert seen[0].last_updated == cached.last_updated
        assert sync.price_history == _points("USD")
        assert len(provider.calls) == 7

    def test_currency_fallback_chain_never_raises(self, clock):
        sync = _sync(FakeHistoryProvider(), clock)
        assert sync.get_price_history_in_currency("EUR") is None
        assert sync.get_price_history_in_currency(None) is None
        assert sync.price_history is None

    @pytest.mark.asyncio
    async def test_unknown_currency_falls_back_to_default(self, clock):
        sync = _sync(FakeHistoryProvider(), clock)
        await sync.refresh()
        assert sync.get_price_history_in_currency("XYZ") == _points("USD")
        assert sync.get_price_history_in_currency("") == _points("USD")
        assert sync.get_price_history_in_currency(None) == _points("USD")
        assert sync.get_price_history_in_currency("gb p") == _points("USD")
        assert sync.get_price_history_in_currency(978) == _points("USD")

    def test_currencies_must_include_usd(self, clock):
        with pytest.raises(ValueError):
            HistorySynchronizer(FakeHistoryProvider(), currencies=("EUR", "GBP"), clock=clock)
