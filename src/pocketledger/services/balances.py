"""Balance propagation: apply or revert one movement on its balance holder."""

from __future__ import annotations

from typing import Any, Optional

from ..domain.repositories import AccountRepository, PocketRepository, SubPocketRepository
from ..logging_config import get_logger
from ..models import INVESTED_MONEY_POCKET, SHARES_POCKET, Account, Movement, Pocket

logger = get_logger("services.balances")


def apply_to_balance(balance: float, amount: float, is_income: bool) -> float:
    """Return ``balance`` moved by ``amount``; negative results are kept as-is."""

    return balance + amount if is_income else balance - amount


class BalancePropagator:
    """Moves a movement's amount into or out of a pocket or sub-pocket.

    Only the holder row is written, with a single-field partial update. The
    account balance is derived on read and never touched here.
    """

    def __init__(
        self,
        *,
        account_repo: AccountRepository,
        pocket_repo: PocketRepository,
        sub_pocket_repo: SubPocketRepository,
        user_id: int,
    ) -> None:
        self.account_repo = account_repo
        self.pocket_repo = pocket_repo
        self.sub_pocket_repo = sub_pocket_repo
        self.user_id = user_id

    def apply(self, movement: Movement) -> None:
        self._propagate(movement, movement.is_income)

    def revert(self, movement: Movement) -> None:
        self._propagate(movement, not movement.is_income)

    def _propagate(self, movement: Movement, is_income: bool) -> None:
        if movement.sub_pocket_id:
            repo: Any = self.sub_pocket_repo
            holder_id = movement.sub_pocket_id
            holder_kind = "sub_pocket"
        else:
            repo = self.pocket_repo
            holder_id = movement.pocket_id
            holder_kind = "pocket"

        holder = repo.get_by_id(holder_id, user_id=self.user_id)
        if holder is None:
            logger.warning(
                "Balance holder missing; skipping propagation",
                extra={"movement_id": movement.id, "holder_kind": holder_kind, "holder_id": holder_id},
            )
            return

        new_balance = apply_to_balance(holder.balance, movement.amount, is_income)
        repo.update(holder_id, {"balance": new_balance}, user_id=self.user_id)
        logger.debug(
            "Balance propagated",
            extra={
                "movement_id": movement.id,
                "holder_kind": holder_kind,
                "holder_id": holder_id,
                "old_balance": holder.balance,
                "new_balance": new_balance,
            },
        )

    def sync_investment_account(self, account_id: str) -> Optional[Account]:
        """Mirror the "Invested Money" and "Shares" balances onto an investment account.

        Non-investment and unknown accounts are left alone. A well-known
        pocket that does not exist leaves its account field unchanged.
        """
        account = self.account_repo.get_by_id(account_id, user_id=self.user_id)
        if account is None or not account.is_investment:
            return account

        pockets = self.pocket_repo.list_by_account(account_id, user_id=self.user_id)
        updates: dict[str, float] = {}
        invested = self._named_balance(pockets, INVESTED_MONEY_POCKET)
        if invested is not None:
            updates["invested_amount"] = invested
        shares = self._named_balance(pockets, SHARES_POCKET)
        if shares is not None:
            updates["shares"] = shares
        if not updates:
            return account

        logger.debug("Investment account synced", extra={"account_id": account_id, **updates})
        return self.account_repo.update(account_id, updates, user_id=self.user_id)

    def _named_balance(self, pockets: list[Pocket], name: str) -> Optional[float]:
        for pocket in pockets:
            if pocket.name == name:
                return self.effective_pocket_balance(pocket)
        for pocket in pockets:
            if not pocket.is_fixed:
                continue
            for sub_pocket in self.sub_pocket_repo.list_by_pocket(pocket.id, user_id=self.user_id):
                if sub_pocket.name == name:
                    return sub_pocket.balance
        return None

    def effective_pocket_balance(self, pocket: Pocket) -> float:
        """Stored balance for normal pockets; sum of sub-pockets for fixed ones."""
        if not pocket.is_fixed:
            return pocket.balance
        sub_pockets = self.sub_pocket_repo.list_by_pocket(pocket.id, user_id=self.user_id)
        return sum(sp.balance for sp in sub_pockets)


__all__ = ["BalancePropagator", "apply_to_balance"]
