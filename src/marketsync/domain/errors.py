# src/marketsync/domain/errors.py
"""
Domain Errors - Market Data Synchronization Failures

Providers raise these; synchronizers catch them at their boundary and turn
them into a user-facing error string. None of them is fatal.
"""
from typing import Optional


class SyncError(Exception):
    """Base exception for market data fetch failures."""
    pass


class NetworkFailure(SyncError):
    """Raised on connection refused, DNS failure, timeout or an exhausted call budget."""
    pass


class HttpStatusFailure(SyncError):
    """Raised when a provider answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SchemaFailure(SyncError):
    """Raised when a response parses but lacks required fields or is not JSON."""
    pass


class ValidationFailure(SyncError):
    """Raised when fields are present but semantically invalid (e.g. negative price)."""
    pass
