# src/marketsync/domain/models.py
"""
Domain Models - Market Data Snapshots and Cache Records

This module contains the value objects published by the synchronizers and
persisted by the cache store:
- Spot price snapshots
- Fiat exchange rate snapshots
- Daily price history series
- Cache records (tagged by cache kind)
- Per-synchronizer published state

Files that USE this module:
- marketsync.application.* (synchronizers build and publish these)
- marketsync.adapters.* (providers return them, the file store persists them)
- tests.* (tests use domain models for test data)

Files that this module USES:
- marketsync.domain.errors (ValidationFailure for invariant violations)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import math  # Half-up rounding of history prices

from dataclasses import dataclass, field, replace  # Immutable value objects
from datetime import datetime, timezone  # Timestamps
from enum import Enum  # Cache kind tag
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar, Union

from marketsync.domain.errors import ValidationFailure

# Closed set of fiat currencies tracked by every synchronizer
TRACKED_CURRENCIES: Tuple[str, ...] = ("USD", "EUR", "GBP", "JPY", "INR", "AUD", "CHF")

# Floor used until the first successful rate fetch (units per 1 USD)
DEFAULT_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 149.5,
    "INR": 83.1,
    "AUD": 1.52,
    "CHF": 0.88,
}

DEFAULT_HISTORY_CURRENCY = "USD"

_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: Union[int, float]) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def short_date_label(timestamp_ms: Union[int, float]) -> str:
    """Format a millisecond timestamp as a short day/month label, e.g. ``"7 Mar"`` (UTC)."""
    dt = from_epoch_ms(timestamp_ms)
    return f"{dt.day} {_MONTH_NAMES[dt.month - 1]}"


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO timestamp written by ``to_json``; accepts both "Z" and "+00:00"."""
    if not isinstance(raw, str):
        return None
    ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _require_dict(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


class CacheKind(str, Enum):
    """The three independently cached payload kinds."""
    PRICE = "price"
    RATES = "rates"
    HISTORY = "history"


@dataclass(frozen=True)
class PriceSnapshot:
    """
    BTC spot price at a point in time.

    Attributes:
        price: BTC price in USD (never negative)
        change_24h: 24-hour change in percent (signed)
        last_updated: Provider-side update time (UTC)
        prices: BTC price per tracked fiat currency, empty when only the USD
            price is known (e.g. loaded from cache)
    """
    price: float
    change_24h: float
    last_updated: datetime
    prices: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if self.price < 0:
            raise ValidationFailure(f"Price must be non-negative, got {self.price}")

    @classmethod
    def zero(cls, now: datetime) -> PriceSnapshot:
        """Well-typed placeholder published when no price was ever obtained."""
        return cls(price=0.0, change_24h=0.0, last_updated=now)

    def price_in(self, currency: str) -> float:
        code = currency.upper()
        if code == "BTC":
            return 1.0
        return self.prices.get(code, self.price)

    def to_json(self) -> dict:
        return {
            "price": self.price,
            "change_24h": self.change_24h,
            "last_updated": self.last_updated.isoformat(),
            "prices": dict(self.prices),
        }

    @staticmethod
    def from_json(data: Any) -> PriceSnapshot:
        data = _require_dict(data, "price payload")
        last_updated = parse_timestamp(data.get("last_updated"))
        if last_updated is None:
            raise ValueError("price cache entry has no last_updated")
        prices = data.get("prices")
        prices = {} if prices is None else _require_dict(prices, "prices")
        return PriceSnapshot(
            price=float(data["price"]),
            change_24h=float(data.get("change_24h", 0.0)),
            last_updated=last_updated,
            prices={str(k): float(v) for k, v in prices.items()},
        )


@dataclass(frozen=True)
class RateSnapshot:
    """
    Fiat conversion rates relative to USD.

    Attributes:
        rates: Units of each tracked currency per 1 USD; USD is always 1.0
        last_updated: When these rates were obtained, None for untouched defaults
    """
    rates: Mapping[str, float]
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        if self.rates.get("USD") != 1.0:
            raise ValidationFailure("USD rate must be exactly 1.0")
        for code, value in self.rates.items():
            if value <= 0:
                raise ValidationFailure(f"Rate for {code} must be positive, got {value}")

    @classmethod
    def defaults(cls, last_updated: Optional[datetime] = None) -> RateSnapshot:
        return cls(rates=dict(DEFAULT_RATES), last_updated=last_updated)

    def to_json(self) -> dict:
        return {
            "rates": dict(self.rates),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @staticmethod
    def from_json(data: Any) -> RateSnapshot:
        data = _require_dict(data, "rates payload")
        rates = _require_dict(data.get("rates"), "rates")
        return RateSnapshot(
            rates={str(k): float(v) for k, v in rates.items()},
            last_updated=parse_timestamp(data.get("last_updated")),
        )


@dataclass(frozen=True)
class HistoryPoint:
    """One daily price point: ms timestamp, price rounded to whole units, short date label."""
    timestamp: int
    price: int
    date: str

    @classmethod
    def from_pair(cls, timestamp_ms: Union[int, float], price: float) -> HistoryPoint:
        return cls(
            timestamp=int(timestamp_ms),
            # half-up, so 97000.5 -> 97001 (round() would give 97000)
            price=math.floor(price + 0.5),
            date=short_date_label(timestamp_ms),
        )


@dataclass(frozen=True)
class HistorySeries:
    """
    Daily price history per currency.

    Attributes:
        series: Currency code -> points in ascending timestamp order
        last_updated: When the whole set was fetched
    """
    series: Mapping[str, Tuple[HistoryPoint, ...]]
    last_updated: datetime

    def get(self, currency: str) -> Optional[Tuple[HistoryPoint, ...]]:
        return self.series.get(currency.upper())

    @property
    def default(self) -> Optional[Tuple[HistoryPoint, ...]]:
        return self.series.get(DEFAULT_HISTORY_CURRENCY)

    def to_json(self) -> dict:
        return {
            "last_updated": self.last_updated.isoformat(),
            "series": {
                code: [[p.timestamp, p.price, p.date] for p in points]
                for code, points in self.series.items()
            },
        }

    @staticmethod
    def from_json(data: Any) -> HistorySeries:
        data = _require_dict(data, "history payload")
        last_updated = parse_timestamp(data.get("last_updated"))
        if last_updated is None:
            raise ValueError("history cache entry has no last_updated")
        series = {}
        for code, points in _require_dict(data.get("series"), "series").items():
            if not isinstance(points, list):
                raise ValueError(f"series for {code} must be a list")
            series[str(code)] = tuple(
                HistoryPoint(int(ts), int(price), str(label)) for ts, price, label in points
            )
        return HistorySeries(series=series, last_updated=last_updated)


CachePayload = Union[PriceSnapshot, RateSnapshot, HistorySeries]

PAYLOAD_TYPES = {
    CacheKind.PRICE: PriceSnapshot,
    CacheKind.RATES: RateSnapshot,
    CacheKind.HISTORY: HistorySeries,
}


@dataclass(frozen=True)
class CacheRecord:
    """
    A persisted cache entry.

    ``timestamp`` is the write time, distinct from the payload's own
    ``last_updated``; it is what staleness arithmetic uses.
    """
    kind: CacheKind
    payload: CachePayload
    timestamp: datetime


T = TypeVar("T")


@dataclass(frozen=True)
class SyncState(Generic[T]):
    """
    Read-only state published by a synchronizer.

    A new instance is published on every transition, so a consumer holding
    a reference never observes a half-applied update.
    """
    data: Optional[T] = None
    is_loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None

    def evolve(self, **changes: Any) -> SyncState[T]:
        return replace(self, **changes)
