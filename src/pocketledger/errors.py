"""Exception hierarchy for PocketLedger.

Every error carries a stable ``kind`` string so callers (summary views, API
layers) can branch on the failure category without importing classes.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    kind = "ledger"


class ValidationError(LedgerError, ValueError):
    """Raised for malformed or missing input (amounts, names, references)."""

    kind = "validation"


class NotFoundError(LedgerError, LookupError):
    """Raised when a referenced entity id does not resolve."""

    kind = "not_found"


class InvalidStateError(LedgerError):
    """Raised when an operation is not legal in the entity's current state."""

    kind = "invalid_state"


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""

    kind = "configuration"


class PriceError(LedgerError):
    """Base class for price lookup failures."""

    kind = "price"


class RateLimitedError(PriceError):
    """Raised when an upstream price fetch is throttled by the global limiter."""

    kind = "rate_limited"

    def __init__(self, symbol: str, retry_after: Optional[timedelta] = None):
        self.symbol = symbol
        self.retry_after = retry_after
        if retry_after is not None:
            minutes = max(1, int(retry_after.total_seconds() // 60) + 1)
            message = f"Price for {symbol} was refreshed recently; try again in {minutes} minute(s)."
        else:
            message = f"Price for {symbol} was refreshed recently; try again later."
        super().__init__(message)


class InvalidPriceError(PriceError):
    """Raised when the upstream source returns an unusable price."""

    kind = "invalid_price"


class PriceSourceError(PriceError):
    """Raised when the upstream price source is unreachable or answers garbage."""

    kind = "price_source"


__all__ = [
    "ConfigurationError",
    "InvalidPriceError",
    "InvalidStateError",
    "LedgerError",
    "NotFoundError",
    "PriceError",
    "PriceSourceError",
    "RateLimitedError",
    "ValidationError",
]
