"""SQLModel table exports."""

from .account import Account
from .common import (
    DEFAULT_STOCK_SYMBOL,
    INVESTED_MONEY_POCKET,
    SHARES_POCKET,
    AccountType,
    Currency,
    MovementType,
    PocketType,
)
from .movement import Movement
from .pocket import Pocket
from .price import PriceFetchRecord, StockPrice
from .sub_pocket import FixedExpenseGroup, SubPocket

__all__ = [
    "Account",
    "AccountType",
    "Currency",
    "DEFAULT_STOCK_SYMBOL",
    "FixedExpenseGroup",
    "INVESTED_MONEY_POCKET",
    "Movement",
    "MovementType",
    "Pocket",
    "PocketType",
    "PriceFetchRecord",
    "SHARES_POCKET",
    "StockPrice",
    "SubPocket",
]
