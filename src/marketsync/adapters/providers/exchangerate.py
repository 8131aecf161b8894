# src/marketsync/adapters/providers/exchangerate.py
"""
ExchangeRate-API Provider for Fiat Conversion Rates

This module implements the ExchangeRate-API client for fetching the latest
USD-based conversion rates of the tracked fiat basket. With an API key it
uses the keyed v6 endpoint; without one it falls back to the open-access
endpoint, which serves the same data under ``rates`` instead of
``conversion_rates``.

Files that USE this module:
- marketsync.application.rates_sync (RatesSynchronizer uses get_latest_rates)
- marketsync.app (wiring)
- tests.test_providers (unit tests)

Files that this module USES:
- marketsync.adapters.providers.base (MarketDataProvider HTTP plumbing)
- marketsync.config (settings for API key, base URL and timeouts)
- marketsync.domain.models (tracked currencies and default rates)
"""
import logging
from typing import Any, Dict, Optional

from marketsync.adapters.providers.base import MarketDataProvider
from marketsync.config import settings
from marketsync.domain.errors import SchemaFailure, ValidationFailure
from marketsync.domain.models import DEFAULT_RATES, TRACKED_CURRENCIES
from marketsync.shared.rate_limiter import RateLimiter
from marketsync.shared.validators import to_positive_float

log = logging.getLogger(__name__)

OPEN_ACCESS_URL = "https://open.er-api.com/v6/latest/USD"

# A response without these is rejected outright
REQUIRED_CURRENCIES = ("EUR", "GBP", "JPY")


def parse_conversion_rates(data: Any) -> Dict[str, float]:
    """
    Validate and normalize a "latest rates" response.

    Each tracked currency is coerced to a positive float; a field that is
    missing or unparseable falls back to its default. USD is pinned to 1.0.

    Raises:
        ValidationFailure: If the provider reports a failure result
        SchemaFailure: If the rates object or any of EUR/GBP/JPY is missing
    """
    if not isinstance(data, dict):
        raise SchemaFailure("Exchange rate API returned non-dict JSON")

    result = data.get("result")
    if result is not None and result != "success":
        error_type = data.get("error-type", "unknown")
        log.error("Exchange rate API reported failure: %s", error_type)
        raise ValidationFailure(f"Exchange rate API reported failure: {error_type}")

    raw_rates = data.get("conversion_rates")
    if raw_rates is None:
        raw_rates = data.get("rates")
    if not isinstance(raw_rates, dict):
        log.error("Exchange rate API response missing conversion_rates: %s", list(data.keys()))
        raise SchemaFailure("Exchange rate API response missing conversion_rates")

    missing = [code for code in REQUIRED_CURRENCIES if raw_rates.get(code) is None]
    if missing:
        log.error("Exchange rate API response missing %s", ", ".join(missing))
        raise SchemaFailure(f"Invalid exchange rate data: missing {', '.join(missing)}")

    rates: Dict[str, float] = {}
    for code in TRACKED_CURRENCIES:
        if code == "USD":
            rates[code] = 1.0
            continue
        value = to_positive_float(raw_rates.get(code))
        if value is None:
            log.warning("Unusable %s rate %r, using default %s",
                        code, raw_rates.get(code), DEFAULT_RATES[code])
            value = DEFAULT_RATES[code]
        rates[code] = value
    return rates


class ExchangeRateProvider(MarketDataProvider):
    """ExchangeRate-API client for USD-based conversion rates."""

    name = "exchangerate"
    label = "Exchange rate API"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize ExchangeRate-API provider.

        Args:
            api_key: Optional API key (defaults to settings.exchangerate_key)
            base_url: Optional API root (defaults to settings.exchangerate_base_url)
            timeout: Optional HTTP timeout in seconds (defaults to settings.rates_timeout_seconds)
            limiter: Optional call-budget tracker
        """
        super().__init__(
            base_url=base_url or settings.exchangerate_base_url,
            timeout=timeout or settings.rates_timeout_seconds,
            limiter=limiter,
        )
        self.api_key = settings.exchangerate_key if api_key is None else api_key
        if not self.api_key:
            log.info("EXCHANGERATE_API_KEY not configured, using open-access endpoint")

    @property
    def url(self) -> str:
        if self.api_key:
            return f"{self.base_url}/{self.api_key}/latest/USD"
        return OPEN_ACCESS_URL

    def get_latest_rates(self) -> Dict[str, float]:
        """
        Fetch the latest conversion rates for the tracked basket.

        Returns:
            Mapping of every tracked currency code to units per 1 USD

        Raises:
            SyncError: On any transport, status or payload problem
        """
        log.info("Fetching exchange rates (base USD)")
        rates = parse_conversion_rates(self._get_json(self.url))
        log.info("Exchange rates fetched: EUR=%s GBP=%s JPY=%s", rates["EUR"], rates["GBP"], rates["JPY"])
        return rates
