# src/marketsync/adapters/providers/base.py
"""
Base Provider for Market Data APIs

This module defines the shared HTTP plumbing for all market data providers:
call-budget enforcement, the blocking ``requests`` call with its timeout, and
translation of transport problems into the domain error taxonomy.

Files that USE this module:
- marketsync.adapters.providers.coingecko (CoinGeckoProvider extends MarketDataProvider)
- marketsync.adapters.providers.exchangerate (ExchangeRateProvider extends MarketDataProvider)
- tests.test_providers (unit tests)

Files that this module USES:
- marketsync.domain.errors (NetworkFailure, HttpStatusFailure, SchemaFailure)
- marketsync.shared.rate_limiter (per-provider call budgets)
"""
import logging
from abc import ABC
from typing import Any, Dict, Optional

import requests

from marketsync.domain.errors import HttpStatusFailure, NetworkFailure, SchemaFailure
from marketsync.shared.rate_limiter import RateLimiter, rate_limiter

log = logging.getLogger(__name__)


class MarketDataProvider(ABC):
    """
    Blocking JSON-over-HTTP client for one upstream provider.

    Subclasses set ``name`` (the call-budget key) and ``label`` (used in
    error messages) and build their own URLs on top of ``_get_json``.
    """

    name: str = ""
    label: str = ""

    def __init__(self, base_url: str, timeout: int, limiter: Optional[RateLimiter] = None):
        """
        Args:
            base_url: API root, without trailing slash
            timeout: Per-request socket timeout in seconds
            limiter: Call-budget tracker (defaults to the process-wide one)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limiter = limiter or rate_limiter

    def _check_budget(self) -> None:
        if not self.limiter.acquire(self.name):
            log.warning("%s call budget exhausted, retry in %.0fs",
                        self.label, self.limiter.resets_in(self.name) or 0)
            raise NetworkFailure(f"{self.label} call budget exhausted, try again later")

    def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Perform a GET request and decode the JSON body.

        Raises:
            NetworkFailure: On timeout, connection error or exhausted budget
            HttpStatusFailure: On a non-2xx response
            SchemaFailure: If the body is not valid JSON
        """
        self._check_budget()

        try:
            resp = requests.get(
                url,
                params=params,
                headers={"Accept": "application/json", **(headers or {})},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.exceptions.Timeout as e:
            log.warning("%s timeout after %d seconds", self.label, self.timeout)
            raise NetworkFailure(f"{self.label} timeout after {self.timeout}s") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            log.warning("%s HTTP error %s", self.label, status)
            raise HttpStatusFailure(f"{self.label} error: {status}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            log.warning("%s request failed: %s", self.label, e)
            raise NetworkFailure(f"{self.label} request failed: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            log.error("%s returned invalid JSON: %s", self.label, e)
            raise SchemaFailure(f"{self.label} returned invalid JSON") from e
