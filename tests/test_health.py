# tests/test_health.py
"""
Health Checker Tests
"""
import random
from unittest.mock import Mock

import pytest

from marketsync.application.health import HealthChecker
from marketsync.application.history_sync import HistorySynchronizer
from marketsync.application.price_sync import PriceSynchronizer
from marketsync.application.rates_sync import RatesSynchronizer
from marketsync.domain.errors import NetworkFailure
from marketsync.domain.models import HistoryPoint, PriceSnapshot
from marketsync.shared.rate_limiter import RateLimitConfig, RateLimiter, rate_limiter


@pytest.fixture
def providers(clock):
    price = Mock()
    price.get_spot_price.return_value = PriceSnapshot(price=65000.0, change_24h=2.5, last_updated=clock.now)
    rates = Mock()
    rates.get_latest_rates.return_value = {"USD": 1.0, "EUR": 0.9, "GBP": 0.78, "JPY": 148.0}
    history = Mock()
    history.get_market_chart.side_effect = lambda currency, days: (HistoryPoint.from_pair(1709251200000, 60000),)
    return price, rates, history


@pytest.fixture
def checker(providers, clock):
    price, rates, history = providers
    return HealthChecker(
        PriceSynchronizer(price, timeout=1, clock=clock),
        RatesSynchronizer(rates, timeout=1, clock=clock),
        HistorySynchronizer(history, timeout=1, rng=random.Random(3), clock=clock),
    )


async def _refresh_all(checker):
    await checker.price.refresh()
    await checker.rates.refresh()
    await checker.history.refresh()


class TestHealthChecker:
    def test_nothing_fetched_yet(self, checker):
        assert not checker.check_price().is_healthy
        assert not checker.check_history().is_healthy
        rates = checker.check_rates()
        assert rates.is_healthy
        assert "defaults" in rates.message

    @pytest.mark.asyncio
    async def test_all_healthy(self, checker):
        await _refresh_all(checker)

        health = checker.get_overall_health()

        assert health["overall_healthy"] is True
        assert health["status"] == "healthy"
        assert health["failed_components"] == []
        assert "$65,000.00" in health["checks"]["price"]["message"]

    @pytest.mark.asyncio
    async def test_degraded_when_providers_fail(self, checker, providers):
        price, rates, history = providers
        price.get_spot_price.side_effect = NetworkFailure("down")
        rates.get_latest_rates.side_effect = NetworkFailure("down")
        history.get_market_chart.side_effect = NetworkFailure("down")

        await _refresh_all(checker)
        health = checker.get_overall_health()

        assert health["status"] == "degraded"
        assert sorted(health["failed_components"]) == ["history", "price", "rates"]
        assert health["checks"]["history"]["details"]["synthetic"] is True

    @pytest.mark.asyncio
    async def test_stale_price_after_failure(self, checker, providers):
        await checker.price.refresh()
        providers[0].get_spot_price.side_effect = NetworkFailure("down")
        await checker.price.refresh()

        status = checker.check_price()

        assert not status.is_healthy
        assert "last known" in status.message
        assert status.details["price"] == 65000.0

    @pytest.mark.asyncio
    async def test_summary_lists_each_component(self, checker):
        await _refresh_all(checker)
        summary = checker.format_summary()
        assert summary.startswith("Health: All systems healthy")
        for name in ("price", "rates", "history"):
            assert f"[OK] {name}:" in summary

    def test_details_report_call_budget(self, checker):
        limiter = RateLimiter({
            "coingecko": RateLimitConfig(max_requests=30, time_window=60),
            "exchangerate": RateLimitConfig(max_requests=1, time_window=60),
        }, clock=lambda: 500.0)
        checker.limiter = limiter
        for _ in range(8):
            limiter.acquire("coingecko")
        limiter.acquire("exchangerate")
        limiter.acquire("exchangerate")

        price_budget = checker.check_price().details["call_budget"]
        rates_budget = checker.check_rates().details["call_budget"]

        assert price_budget["used"] == 8
        assert price_budget["remaining"] == 22
        assert checker.check_history().details["call_budget"] == price_budget
        assert rates_budget["remaining"] == 0
        assert rates_budget["blocked"] is True

    def test_default_limiter_is_process_wide(self, checker):
        assert checker.limiter is rate_limiter
        assert checker.check_rates().details["call_budget"]["used"] == 0
