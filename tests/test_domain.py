# tests/test_domain.py
"""
Domain Tests - Models, Staleness Policy and Fallback Generator
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from marketsync.domain.errors import ValidationFailure
from marketsync.domain.fallback import DAY_MS, generate_fallback_history
from marketsync.domain.models import (
    DEFAULT_RATES,
    HistoryPoint,
    HistorySeries,
    PriceSnapshot,
    RateSnapshot,
    SyncState,
    short_date_label,
    to_epoch_ms,
)
from marketsync.domain.staleness import age, is_stale

NOW = datetime(2024, 3, 7, 12, 0, tzinfo=timezone.utc)


class TestStaleness:
    def test_absent_is_stale(self):
        assert is_stale(None, NOW, timedelta(seconds=90))
        assert age(None, NOW) is None

    def test_fresh_within_ttl(self):
        assert not is_stale(NOW - timedelta(seconds=10), NOW, timedelta(seconds=90))

    def test_stale_at_exact_ttl(self):
        assert is_stale(NOW - timedelta(seconds=90), NOW, timedelta(seconds=90))

    def test_history_window(self):
        ttl = timedelta(minutes=30)
        assert not is_stale(NOW - timedelta(minutes=29), NOW, ttl)
        assert is_stale(NOW - timedelta(minutes=31), NOW, ttl)


class TestFallbackHistory:
    def test_shape(self):
        points = generate_fallback_history(NOW, base_price=97000, jitter=4000, days=7, rng=random.Random(1))

        assert len(points) == 7
        stamps = [p.timestamp for p in points]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))
        assert stamps[-1] == to_epoch_ms(NOW)
        assert stamps[-1] - stamps[0] == 6 * DAY_MS
        assert all(93000 <= p.price <= 101000 for p in points)
        assert points[-1].date == "7 Mar"
        assert points[0].date == "1 Mar"

    @pytest.mark.parametrize("seed", range(20))
    def test_prices_stay_in_band(self, seed):
        points = generate_fallback_history(NOW, rng=random.Random(seed))
        assert all(93000 <= p.price <= 101000 for p in points)

    def test_seeded_output_is_reproducible(self):
        a = generate_fallback_history(NOW, rng=random.Random(42))
        b = generate_fallback_history(NOW, rng=random.Random(42))
        assert a == b


class TestModels:
    def test_negative_price_rejected(self):
        with pytest.raises(ValidationFailure):
            PriceSnapshot(price=-1, change_24h=0, last_updated=NOW)

    def test_zero_snapshot(self):
        snap = PriceSnapshot.zero(NOW)
        assert (snap.price, snap.change_24h, snap.last_updated) == (0.0, 0.0, NOW)

    def test_rates_require_usd_one(self):
        with pytest.raises(ValidationFailure):
            RateSnapshot(rates={"USD": 2.0, "EUR": 0.9})

    def test_rates_require_positive(self):
        with pytest.raises(ValidationFailure):
            RateSnapshot(rates={"USD": 1.0, "EUR": 0.0})

    def test_default_rates(self):
        snap = RateSnapshot.defaults()
        assert snap.rates == DEFAULT_RATES
        assert snap.last_updated is None

    def test_history_point_rounding_and_label(self):
        point = HistoryPoint.from_pair(1709251200000, 61234.5)
        assert point.price == 61235
        assert HistoryPoint.from_pair(1709251200000, 97000.5).price == 97001
        assert HistoryPoint.from_pair(1709251200000, 97000.49).price == 97000
        assert isinstance(point.price, int)
        assert point.date == "1 Mar"
        assert short_date_label(1709251200000 + 30 * DAY_MS) == "31 Mar"

    def test_history_series_lookup_is_case_insensitive(self):
        usd = (HistoryPoint.from_pair(1709251200000, 1),)
        series = HistorySeries(series={"USD": usd}, last_updated=NOW)
        assert series.get("usd") == usd
        assert series.default == usd
        assert series.get("EUR") is None

    def test_sync_state_evolve_returns_new_instance(self):
        state = SyncState(data=1)
        newer = state.evolve(error="boom")
        assert state.error is None
        assert newer.error == "boom"
        assert newer.data == 1
