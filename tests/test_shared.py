# tests/test_shared.py
"""
Shared Utilities Tests - Validators, Call Budget and Logging Setup
"""
import logging

import pytest

from marketsync.shared.logging_conf import setup_logging
from marketsync.shared.rate_limiter import RATE_LIMITS, RateLimitConfig, RateLimiter
from marketsync.shared.validators import (
    to_finite_float,
    to_positive_float,
    validate_api_key,
    validate_currency_code,
    validate_log_level,
)


class TestValidators:
    def test_api_key(self):
        assert validate_api_key("CG-abc_123456")
        assert not validate_api_key("")
        assert not validate_api_key("short")
        assert not validate_api_key("has spaces in it")
        assert not validate_api_key("bad/chars/here")

    def test_log_level(self):
        assert validate_log_level("debug")
        assert validate_log_level("WARNING")
        assert not validate_log_level("LOUD")
        assert not validate_log_level("")

    def test_currency_code(self):
        assert validate_currency_code("usd")
        assert not validate_currency_code("US")
        assert not validate_currency_code("U5D")
        assert not validate_currency_code("usd\n")
        assert not validate_currency_code(None)
        assert not validate_currency_code(840)

    @pytest.mark.parametrize("value, expected", [
        (1, 1.0),
        ("2.5", 2.5),
        (-3, -3.0),
        (None, None),
        (True, None),
        ("abc", None),
        (float("nan"), None),
        (float("inf"), None),
        ([1], None),
    ])
    def test_to_finite_float(self, value, expected):
        assert to_finite_float(value) == expected

    def test_to_positive_float(self):
        assert to_positive_float("0.9") == 0.9
        assert to_positive_float(0) is None
        assert to_positive_float(-1) is None


class FakeMonotonic:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


class TestRateLimiter:
    def test_allows_up_to_budget_then_blocks(self):
        clock = FakeMonotonic()
        limiter = RateLimiter({"x": RateLimitConfig(max_requests=3, time_window=60)}, clock=clock)

        assert [limiter.acquire("x") for _ in range(4)] == [True, True, True, False]
        assert limiter.remaining("x") == 0
        assert limiter.resets_in("x") == 60

    def test_providers_are_independent(self):
        config = RateLimitConfig(max_requests=1, time_window=60)
        limiter = RateLimiter({"a": config, "b": config})
        assert limiter.acquire("a")
        assert limiter.acquire("b")
        assert not limiter.acquire("a")

    def test_unknown_provider_is_never_limited(self):
        limiter = RateLimiter({})
        assert all(limiter.acquire("x") for _ in range(100))
        assert limiter.remaining("x") is None
        assert limiter.usage("x") is None

    def test_window_slides(self):
        clock = FakeMonotonic()
        limiter = RateLimiter({"x": RateLimitConfig(max_requests=1, time_window=60, block_duration=0)}, clock=clock)
        assert limiter.acquire("x")
        assert not limiter.acquire("x")

        clock.now += 61
        assert limiter.acquire("x")

    def test_block_holds_for_cool_down(self):
        clock = FakeMonotonic()
        limiter = RateLimiter({"x": RateLimitConfig(max_requests=1, time_window=10, block_duration=60)}, clock=clock)
        limiter.acquire("x")
        assert not limiter.acquire("x")

        clock.now += 30
        assert not limiter.acquire("x")
        assert limiter.resets_in("x") == 30

        clock.now += 31
        assert limiter.acquire("x")

    def test_usage_report(self):
        clock = FakeMonotonic()
        limiter = RateLimiter({"x": RateLimitConfig(max_requests=5, time_window=60)}, clock=clock)
        limiter.acquire("x")
        clock.now += 15
        limiter.acquire("x")

        assert limiter.usage("x") == {
            "limit": 5,
            "window_seconds": 60,
            "used": 2,
            "remaining": 3,
            "blocked": False,
            "resets_in": 45,
        }

    def test_reset(self):
        limiter = RateLimiter({"x": RateLimitConfig(max_requests=1, time_window=60)})
        limiter.acquire("x")
        limiter.acquire("x")
        limiter.reset("x")
        assert limiter.acquire("x")
        assert limiter.resets_in("y") is None

    def test_default_budgets_cover_normal_schedule(self):
        # price every 30s plus 7 history calls every 30 minutes
        assert RATE_LIMITS["coingecko"].max_requests >= 2 + 7
        assert RATE_LIMITS["exchangerate"].max_requests >= 1
        assert RateLimiter().limits == RATE_LIMITS


class TestSetupLogging:
    def test_file_logging(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MARKETSYNC_LOG_STDOUT", "false")
        setup_logging(level="debug", log_dir=tmp_path / "logs")

        root = logging.getLogger()
        try:
            logging.getLogger("marketsync.test").info("hello from test")
            for handler in root.handlers:
                handler.flush()

            log_file = tmp_path / "logs" / "marketsync.log"
            assert log_file.exists()
            assert "hello from test" in log_file.read_text(encoding="utf-8")
            assert root.level == logging.DEBUG
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
