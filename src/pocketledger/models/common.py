"""Enumerations and small helpers shared by the ledger tables."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

INVESTED_MONEY_POCKET = "Invested Money"
SHARES_POCKET = "Shares"
DEFAULT_STOCK_SYMBOL = "VOO"


class Currency(str, Enum):
    USD = "USD"
    MXN = "MXN"
    COP = "COP"
    EUR = "EUR"
    GBP = "GBP"


class AccountType(str, Enum):
    NORMAL = "normal"
    INVESTMENT = "investment"


class PocketType(str, Enum):
    NORMAL = "normal"
    FIXED = "fixed"


class MovementType(str, Enum):
    INCOME_NORMAL = "IncomeNormal"
    EXPENSE_NORMAL = "ExpenseNormal"
    INCOME_FIXED = "IncomeFixed"
    EXPENSE_FIXED = "ExpenseFixed"

    @property
    def is_income(self) -> bool:
        return self in (MovementType.INCOME_NORMAL, MovementType.INCOME_FIXED)


def new_id() -> str:
    """Return a fresh opaque identifier for a ledger row."""

    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


__all__ = [
    "AccountType",
    "Currency",
    "DEFAULT_STOCK_SYMBOL",
    "INVESTED_MONEY_POCKET",
    "MovementType",
    "PocketType",
    "SHARES_POCKET",
    "ensure_aware",
    "new_id",
    "utcnow",
]
