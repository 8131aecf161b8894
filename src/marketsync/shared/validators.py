# src/marketsync/shared/validators.py
"""
Input Validation Utilities - Configuration and Payload Validation

This module provides small validation and coercion helpers used by the
settings layer and by the provider adapters when normalizing API payloads.

Files that USE this module:
- marketsync.config.settings (API key and log level validators)
- marketsync.adapters.providers.* (numeric coercion of provider fields)
- marketsync.application.* (currency codes passed in by consumers)

Files that this module USES:
- None (pure utility functions)
"""
import math
import re
from typing import Any, Optional

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_api_key(api_key: str, min_length: int = 10) -> bool:
    """
    Validate API key format.

    Args:
        api_key: API key to validate
        min_length: Minimum length requirement

    Returns:
        True if valid, False otherwise
    """
    if not api_key:
        return False

    if api_key.isspace() or len(api_key) < min_length:
        return False

    # Keys are embedded in URLs and headers, so restrict to a safe charset
    return bool(re.match(r'^[A-Za-z0-9_-]+$', api_key))


def validate_log_level(level: str) -> bool:
    """Return True if level names a standard logging level."""
    return bool(level) and level.upper() in _LOG_LEVELS


def validate_currency_code(code: str) -> bool:
    """
    Validate an ISO-4217 style currency code (three ASCII letters).

    Args:
        code: Currency code to validate, any case

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(code, str):
        return False
    return bool(re.fullmatch(r"[A-Za-z]{3}", code))


def to_finite_float(value: Any) -> Optional[float]:
    """
    Coerce a JSON value to a finite float.

    Booleans are rejected even though they are ints in Python.

    Returns:
        The float value, or None if value is missing, non-numeric, NaN or infinite
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def to_positive_float(value: Any) -> Optional[float]:
    """Coerce a JSON value to a strictly positive finite float, or None."""
    number = to_finite_float(value)
    if number is None or number <= 0:
        return None
    return number
