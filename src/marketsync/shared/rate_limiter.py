# src/marketsync/shared/rate_limiter.py
"""
Rate Limiter - Per-Provider Call Budgets

Third-party market data APIs throttle by per-minute quotas. This module keeps
a sliding-window count of outgoing calls per provider so that a misconfigured
interval, or a burst of manual refreshes, cannot exhaust the upstream quota.
Once a provider's budget is spent it stays blocked for a cool-down period.

Files that USE this module:
- marketsync.adapters.providers.base (acquires a slot before each request)
- marketsync.application.health (reports budget usage per provider)

Files that this module USES:
- None (pure utility implementation)
"""
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Mapping, Optional


@dataclass(frozen=True)
class RateLimitConfig:
    """Call budget for one provider."""
    max_requests: int
    time_window: int  # in seconds
    block_duration: int = 60  # cool-down once the budget is exceeded


# Per-provider budgets, kept below the free-tier quotas.
# CoinGecko serves both price (1 call) and history (7 calls) per round.
RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "coingecko": RateLimitConfig(max_requests=30, time_window=60),
    "exchangerate": RateLimitConfig(max_requests=10, time_window=60),
}


class RateLimiter:
    """
    In-memory sliding-window call budget, keyed by provider name.

    Providers without a configured budget are never limited.
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            limits: Budget per provider name (defaults to RATE_LIMITS)
            clock: Monotonic seconds source, injectable for tests
        """
        self.limits = dict(RATE_LIMITS if limits is None else limits)
        self._clock = clock
        self._calls: Dict[str, Deque[float]] = defaultdict(deque)
        self._blocked_until: Dict[str, float] = {}

    def acquire(self, provider: str) -> bool:
        """
        Record one outgoing call for ``provider`` if its budget allows it.

        Returns:
            True if the call may go ahead, False if the budget is spent
        """
        config = self.limits.get(provider)
        if config is None:
            return True

        now = self._clock()
        if self._is_blocked(provider, now):
            return False

        calls = self._prune(provider, config, now)
        if len(calls) >= config.max_requests:
            self._blocked_until[provider] = now + config.block_duration
            return False

        calls.append(now)
        return True

    def remaining(self, provider: str) -> Optional[int]:
        """Calls still available in the current window; None if unbudgeted."""
        config = self.limits.get(provider)
        if config is None:
            return None
        now = self._clock()
        if self._is_blocked(provider, now):
            return 0
        return max(0, config.max_requests - len(self._prune(provider, config, now)))

    def resets_in(self, provider: str) -> Optional[float]:
        """
        Seconds until a call slot frees up.

        Returns:
            Remaining cool-down while blocked, time until the oldest recorded
            call leaves the window otherwise, None if nothing is recorded
        """
        config = self.limits.get(provider)
        if config is None:
            return None
        now = self._clock()
        if self._is_blocked(provider, now):
            return self._blocked_until[provider] - now
        calls = self._prune(provider, config, now)
        if not calls:
            return None
        return max(0.0, calls[0] + config.time_window - now)

    def usage(self, provider: str) -> Optional[Dict[str, Any]]:
        """Budget snapshot for health reporting; None if ``provider`` is unbudgeted."""
        config = self.limits.get(provider)
        if config is None:
            return None
        remaining = self.remaining(provider)
        return {
            "limit": config.max_requests,
            "window_seconds": config.time_window,
            "used": config.max_requests - remaining,
            "remaining": remaining,
            "blocked": provider in self._blocked_until,
            "resets_in": self.resets_in(provider),
        }

    def reset(self, provider: Optional[str] = None) -> None:
        """Forget recorded calls for one provider, or for all of them."""
        if provider is None:
            self._calls.clear()
            self._blocked_until.clear()
            return
        self._calls.pop(provider, None)
        self._blocked_until.pop(provider, None)

    def _is_blocked(self, provider: str, now: float) -> bool:
        until = self._blocked_until.get(provider)
        if until is None:
            return False
        if now < until:
            return True
        del self._blocked_until[provider]
        return False

    def _prune(self, provider: str, config: RateLimitConfig, now: float) -> Deque[float]:
        calls = self._calls[provider]
        cutoff = now - config.time_window
        while calls and calls[0] <= cutoff:
            calls.popleft()
        return calls


# Global rate limiter instance
rate_limiter = RateLimiter()
