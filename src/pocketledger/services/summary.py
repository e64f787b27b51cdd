"""Read-only aggregation for dashboards: currency totals, per-account views, fixed expenses."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from ..errors import LedgerError, RateLimitedError
from ..logging_config import get_logger
from ..models import Account, Pocket
from .accounts import AccountService
from .investments import InvestmentService, InvestmentValuation
from .sub_pockets import SubPocketSchedule, SubPocketService

logger = get_logger("services.summary")

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"
STATUS_RATE_LIMITED = "rate_limited"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class InvestmentView:
    """Valuation for display; degraded views carry zero price and value."""

    account_id: str
    status: str
    symbol: Optional[str]
    price: float
    total_value: float
    gains_absolute: float
    gains_pct: float
    valuation: Optional[InvestmentValuation] = None
    message: Optional[str] = None
    retry_after: Optional[timedelta] = None

    @property
    def is_degraded(self) -> bool:
        return self.status != STATUS_OK


@dataclass(frozen=True)
class PocketSummary:
    pocket: Pocket
    balance: float


@dataclass(frozen=True)
class AccountSummary:
    account: Account
    balance: float
    pockets: list[PocketSummary] = field(default_factory=list)


@dataclass(frozen=True)
class FixedExpensesSummary:
    pocket_id: str
    monthly_total: float
    total_balance: float
    schedules: list[SubPocketSchedule] = field(default_factory=list)


def degraded_view(
    account: Account,
    status: str,
    message: Optional[str] = None,
    retry_after: Optional[timedelta] = None,
) -> InvestmentView:
    """Zero price and value, loss equal to everything invested."""

    invested = account.invested_amount
    return InvestmentView(
        account_id=account.id,
        status=status,
        symbol=account.stock_symbol,
        price=0.0,
        total_value=0.0,
        gains_absolute=-invested,
        gains_pct=-100.0 if invested > 0 else 0.0,
        message=message,
        retry_after=retry_after,
    )


class SummaryService:
    """Composes balances, schedules and valuations; never mutates ledger state."""

    def __init__(
        self,
        *,
        accounts: AccountService,
        sub_pockets: SubPocketService,
        investments: InvestmentService,
    ) -> None:
        self.accounts = accounts
        self.sub_pockets = sub_pockets
        self.investments = investments

    def investment_view(self, account: Account) -> InvestmentView:
        if not account.stock_symbol:
            return degraded_view(account, STATUS_NO_DATA, "No stock symbol configured")
        try:
            valuation = self.investments.update_investment_account(account)
        except RateLimitedError as exc:
            return degraded_view(account, STATUS_RATE_LIMITED, str(exc), exc.retry_after)
        except LedgerError as exc:
            logger.warning(
                "Investment valuation failed",
                extra={"account_id": account.id, "error_kind": exc.kind, "error": str(exc)},
            )
            return degraded_view(account, STATUS_FAILED, str(exc))
        return InvestmentView(
            account_id=account.id,
            status=STATUS_OK,
            symbol=valuation.symbol,
            price=valuation.price,
            total_value=valuation.total_value,
            gains_absolute=valuation.gains_absolute,
            gains_pct=valuation.gains_pct,
            valuation=valuation,
        )

    def account_summaries(self) -> list[AccountSummary]:
        summaries = []
        for account in self.accounts.list_accounts():
            pockets = [
                PocketSummary(pocket=pocket, balance=self.accounts.pocket_balance(pocket))
                for pocket in self.accounts.list_pockets(account.id)
            ]
            summaries.append(
                AccountSummary(
                    account=account,
                    balance=self.accounts.account_balance(account.id),
                    pockets=pockets,
                )
            )
        return summaries

    def currency_totals(self) -> dict[str, float]:
        """Total per currency; investment accounts count at market value when it is known."""
        totals: dict[str, float] = defaultdict(float)
        for account in self.accounts.list_accounts():
            balance = self.accounts.account_balance(account.id)
            if account.is_investment:
                view = self.investment_view(account)
                if view.status == STATUS_OK:
                    balance = view.total_value
            totals[account.currency] += balance
        return dict(totals)

    def fixed_expenses_summary(self, pocket_id: str) -> FixedExpensesSummary:
        self.accounts.get_pocket(pocket_id)
        sub_pockets = self.sub_pockets.list_sub_pockets(pocket_id)
        return FixedExpensesSummary(
            pocket_id=pocket_id,
            monthly_total=self.sub_pockets.total_monthly_fixed_expenses(pocket_id),
            total_balance=sum(sp.balance for sp in sub_pockets),
            schedules=[self.sub_pockets.schedule(sp) for sp in sub_pockets],
        )


__all__ = [
    "AccountSummary",
    "FixedExpensesSummary",
    "InvestmentView",
    "PocketSummary",
    "STATUS_FAILED",
    "STATUS_NO_DATA",
    "STATUS_OK",
    "STATUS_RATE_LIMITED",
    "SummaryService",
    "degraded_view",
]
