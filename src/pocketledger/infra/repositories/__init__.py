"""Concrete repository implementations using SQLModel."""

from .account import SQLModelAccountRepository
from .movement import SQLModelMovementRepository
from .pocket import SQLModelPocketRepository
from .price import SQLModelPriceFetchRepository, SQLModelStockPriceRepository
from .sub_pocket import SQLModelFixedExpenseGroupRepository, SQLModelSubPocketRepository

__all__ = [
    "SQLModelAccountRepository",
    "SQLModelFixedExpenseGroupRepository",
    "SQLModelMovementRepository",
    "SQLModelPocketRepository",
    "SQLModelPriceFetchRepository",
    "SQLModelStockPriceRepository",
    "SQLModelSubPocketRepository",
]
