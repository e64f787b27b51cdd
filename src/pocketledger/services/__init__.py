"""Business services for the ledger."""

from .accounts import AccountService, CascadeResult
from .balances import BalancePropagator, apply_to_balance
from .investments import (
    AlphaVantagePriceSource,
    InvestmentService,
    InvestmentValuation,
    InvestmentValues,
    PriceCache,
    PriceSource,
    calculate_investment_values,
)
from .movements import MovementService, RestoreResult
from .sub_pockets import (
    SubPocketSchedule,
    SubPocketService,
    is_name_unique,
    monthly_contribution,
    next_payment_due,
    progress_ratio,
)
from .summary import InvestmentView, SummaryService

__all__ = [
    "AccountService",
    "AlphaVantagePriceSource",
    "BalancePropagator",
    "CascadeResult",
    "InvestmentService",
    "InvestmentValuation",
    "InvestmentValues",
    "InvestmentView",
    "MovementService",
    "PriceCache",
    "PriceSource",
    "RestoreResult",
    "SubPocketSchedule",
    "SubPocketService",
    "SummaryService",
    "apply_to_balance",
    "calculate_investment_values",
    "is_name_unique",
    "monthly_contribution",
    "next_payment_due",
    "progress_ratio",
]
