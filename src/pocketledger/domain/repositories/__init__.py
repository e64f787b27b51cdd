"""Repository protocol definitions for domain layer."""

from .account import AccountRepository
from .movement import MovementRepository
from .pocket import PocketRepository
from .price import PriceFetchRepository, StockPriceRepository
from .sub_pocket import FixedExpenseGroupRepository, SubPocketRepository

__all__ = [
    "AccountRepository",
    "FixedExpenseGroupRepository",
    "MovementRepository",
    "PocketRepository",
    "PriceFetchRepository",
    "StockPriceRepository",
    "SubPocketRepository",
]
