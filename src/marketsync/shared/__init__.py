# src/marketsync/shared/__init__.py
"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation and numeric coercion
- Per-provider rate limiting
- Logging configuration
"""

from marketsync.shared.validators import (
    to_finite_float,
    to_positive_float,
    validate_api_key,
    validate_currency_code,
    validate_log_level,
)
from marketsync.shared.rate_limiter import RATE_LIMITS, RateLimitConfig, RateLimiter, rate_limiter

__all__ = [
    "validate_api_key",
    "validate_currency_code",
    "validate_log_level",
    "to_finite_float",
    "to_positive_float",
    "RateLimiter",
    "RateLimitConfig",
    "rate_limiter",
    "RATE_LIMITS",
]
