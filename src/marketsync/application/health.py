# src/marketsync/application/health.py
"""
Health Checker - Synchronizer Status and Diagnostics

Reports on the published state of each synchronizer without touching the
network: whether it holds real data, how old that data is, and whether the
last attempt left an error behind.
Each report also carries the call budget left for the provider behind it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from marketsync.application.history_sync import HistorySynchronizer
from marketsync.application.price_sync import PriceSynchronizer
from marketsync.application.rates_sync import RatesSynchronizer
from marketsync.shared.rate_limiter import RateLimiter, rate_limiter

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Represents the health status of a component."""
    is_healthy: bool
    message: str
    last_check: datetime
    details: Optional[Dict[str, Any]] = None


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class HealthChecker:
    """Centralized health checking for the three synchronizers."""

    # Call-budget keys of the provider behind each synchronizer
    PRICE_PROVIDER = "coingecko"
    RATES_PROVIDER = "exchangerate"
    HISTORY_PROVIDER = "coingecko"

    def __init__(
        self,
        price: PriceSynchronizer,
        rates: RatesSynchronizer,
        history: HistorySynchronizer,
        limiter: Optional[RateLimiter] = None,
    ):
        self.price = price
        self.rates = rates
        self.history = history
        self.limiter = limiter or rate_limiter

    def check_price(self) -> HealthStatus:
        """Healthy when a non-zero price is published and the last fetch did not fail."""
        now = datetime.now(timezone.utc)
        details = {
            "price": self.price.price,
            "change_24h": self.price.change_24h,
            "last_updated": _iso(self.price.last_updated),
            "cached_at": _iso(self.price.cached_at),
            "error": self.price.error,
            "call_budget": self.limiter.usage(self.PRICE_PROVIDER),
        }
        if not self.price.price:
            return HealthStatus(
                is_healthy=False,
                message=f"No BTC price available ({self.price.error or 'not fetched yet'})",
                last_check=now,
                details=details,
            )
        if self.price.error:
            return HealthStatus(
                is_healthy=False,
                message=f"Price fetch failing, showing last known ${self.price.price:,.2f}: {self.price.error}",
                last_check=now,
                details=details,
            )
        return HealthStatus(
            is_healthy=True,
            message=f"BTC ${self.price.price:,.2f} ({self.price.change_24h:+.2f}% 24h)",
            last_check=now,
            details=details,
        )

    def check_rates(self) -> HealthStatus:
        """Healthy when the last attempt succeeded; defaults alone count as unhealthy after a failure."""
        now = datetime.now(timezone.utc)
        details = {
            "active": self.rates.active,
            "fresh": self.rates.is_fresh(),
            "last_updated": _iso(self.rates.last_updated),
            "rates": dict(self.rates.rates),
            "error": self.rates.error,
            "call_budget": self.limiter.usage(self.RATES_PROVIDER),
        }
        if self.rates.error:
            return HealthStatus(
                is_healthy=False,
                message=f"Exchange rates degraded: {self.rates.error}",
                last_check=now,
                details=details,
            )
        if self.rates.last_updated is None:
            message = "Exchange rates on defaults (not fetched yet)"
        else:
            message = f"Exchange rates healthy, {len(self.rates.rates)} currencies"
        return HealthStatus(is_healthy=True, message=message, last_check=now, details=details)

    def check_history(self) -> HealthStatus:
        """Healthy when real (not synthetic) history is published."""
        now = datetime.now(timezone.utc)
        series = self.history.state.data
        details = {
            "synthetic": self.history.is_synthetic,
            "currencies": sorted(series.series) if series else [],
            "points": len(self.history.price_history or ()),
            "last_updated": _iso(self.history.last_updated),
            "error": self.history.error,
            "call_budget": self.limiter.usage(self.HISTORY_PROVIDER),
        }
        if series is None:
            return HealthStatus(
                is_healthy=False,
                message="No price history available",
                last_check=now,
                details=details,
            )
        if self.history.is_synthetic:
            return HealthStatus(
                is_healthy=False,
                message=f"Price history is synthetic: {self.history.error}",
                last_check=now,
                details=details,
            )
        if self.history.error:
            return HealthStatus(
                is_healthy=False,
                message=f"Price history stale, last refresh failed: {self.history.error}",
                last_check=now,
                details=details,
            )
        return HealthStatus(
            is_healthy=True,
            message=f"Price history healthy, {len(series.series)} currencies",
            last_check=now,
            details=details,
        )

    def get_overall_health(self) -> Dict[str, Any]:
        """
        Get overall health status of all synchronizers.

        Overall status is degraded if any one of them is unhealthy.
        """
        checks = {
            "price": self.check_price(),
            "rates": self.check_rates(),
            "history": self.check_history(),
        }

        healthy_checks = [name for name, check in checks.items() if check.is_healthy]
        failed_checks = [name for name, check in checks.items() if not check.is_healthy]
        overall_healthy = not failed_checks

        if overall_healthy:
            status_message = "All systems healthy"
        else:
            status_message = f"Degraded - {len(failed_checks)} component(s) failed: {', '.join(failed_checks)}"

        return {
            "overall_healthy": overall_healthy,
            "status": "healthy" if overall_healthy else "degraded",
            "message": status_message,
            "healthy_components": healthy_checks,
            "failed_components": failed_checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                name: {
                    "healthy": check.is_healthy,
                    "message": check.message,
                    "last_check": check.last_check.isoformat(),
                    "details": check.details,
                }
                for name, check in checks.items()
            },
        }

    def format_summary(self) -> str:
        """One line per component, for periodic logging."""
        health = self.get_overall_health()
        lines = [f"Health: {health['message']}"]
        for name, check in health["checks"].items():
            mark = "OK" if check["healthy"] else "FAIL"
            lines.append(f"  [{mark}] {name}: {check['message']}")
        return "\n".join(lines)
