"""Account and pocket workflows, including the deletion paths that orphan movements."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from ..domain.repositories import AccountRepository, PocketRepository, SubPocketRepository
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import (
    DEFAULT_STOCK_SYMBOL,
    INVESTED_MONEY_POCKET,
    SHARES_POCKET,
    Account,
    AccountType,
    Currency,
    Pocket,
    PocketType,
)
from .balances import BalancePropagator
from .movements import MovementService
from .sub_pockets import normalize_name

logger = get_logger("services.accounts")

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass(frozen=True)
class CascadeResult:
    """What a cascade delete removed (or orphaned, for movements)."""

    account: str
    pockets: int
    sub_pockets: int
    movements: int


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} {value!r}; must be one of: {allowed}") from exc


class AccountService:
    """Creates accounts and pockets and runs their deletion and migration workflows."""

    def __init__(
        self,
        *,
        account_repo: AccountRepository,
        pocket_repo: PocketRepository,
        sub_pocket_repo: SubPocketRepository,
        movements: MovementService,
        propagator: BalancePropagator,
        user_id: int,
    ) -> None:
        self.account_repo = account_repo
        self.pocket_repo = pocket_repo
        self.sub_pocket_repo = sub_pocket_repo
        self.movements = movements
        self.propagator = propagator
        self.user_id = user_id

    # ------------------------------------------------------------------ reads

    def get_account(self, account_id: str) -> Account:
        account = self.account_repo.get_by_id(account_id, user_id=self.user_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def get_pocket(self, pocket_id: str) -> Pocket:
        pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id)
        if pocket is None:
            raise NotFoundError(f"Pocket {pocket_id} not found")
        return pocket

    def list_accounts(self) -> list[Account]:
        return self.account_repo.list_all(user_id=self.user_id)

    def list_pockets(self, account_id: str) -> list[Pocket]:
        return self.pocket_repo.list_by_account(account_id, user_id=self.user_id)

    def pocket_balance(self, pocket: Pocket) -> float:
        """Effective balance: stored for normal pockets, sum of sub-pockets for fixed ones."""
        return self.propagator.effective_pocket_balance(pocket)

    def account_balance(self, account_id: str) -> float:
        """Sum of the account's effective pocket balances, computed on every call.

        The "Shares" pocket of an investment account counts units, not money,
        and is left out.
        """
        account = self.get_account(account_id)
        return sum(
            self.pocket_balance(pocket)
            for pocket in self.list_pockets(account_id)
            if not (account.is_investment and pocket.name == SHARES_POCKET)
        )

    # --------------------------------------------------------------- creation

    def create_account(
        self,
        name: str,
        color: str,
        currency: Union[str, Currency],
        account_type: Union[str, AccountType] = AccountType.NORMAL,
        stock_symbol: Optional[str] = None,
    ) -> Account:
        """Create an account; investment accounts come with their two well-known pockets."""
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Account name is required")
        clean_color = (color or "").strip()
        if not HEX_COLOR.match(clean_color):
            raise ValidationError("Invalid color format - must be hex format like #3b82f6")
        account_currency = _coerce(Currency, currency, "currency")
        kind = _coerce(AccountType, account_type, "account type")

        if self.account_repo.get_by_name(clean_name, account_currency.value, user_id=self.user_id):
            raise ValidationError(
                f'An account named "{clean_name}" with currency {account_currency.value} already exists'
            )

        symbol = None
        if kind is AccountType.INVESTMENT:
            symbol = (stock_symbol or DEFAULT_STOCK_SYMBOL).strip().upper()

        account = self.account_repo.create(
            Account(
                user_id=self.user_id,
                name=clean_name,
                color=clean_color,
                currency=account_currency.value,
                type=kind.value,
                stock_symbol=symbol,
            ),
            user_id=self.user_id,
        )
        if account.is_investment:
            for pocket_name in (INVESTED_MONEY_POCKET, SHARES_POCKET):
                self.create_pocket(account.id, pocket_name)

        logger.info(
            "Account created",
            extra={"account_id": account.id, "account_type": account.type, "currency": account.currency},
        )
        return account

    def create_pocket(
        self, account_id: str, name: str, pocket_type: Union[str, PocketType] = PocketType.NORMAL
    ) -> Pocket:
        account = self.account_repo.get_by_id(account_id, user_id=self.user_id)
        if account is None:
            raise ValidationError(f"Account {account_id} not found")
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Pocket name is required")
        kind = _coerce(PocketType, pocket_type, "pocket type")

        siblings = self.list_pockets(account_id)
        if any(normalize_name(p.name) == normalize_name(clean_name) for p in siblings):
            raise ValidationError(f'A pocket named "{clean_name}" already exists in this account')

        if kind is PocketType.FIXED:
            if account.is_investment:
                raise ValidationError("Investment accounts cannot have fixed expense pockets")
            if self.pocket_repo.list_by_type(PocketType.FIXED.value, user_id=self.user_id):
                raise ValidationError("A fixed expenses pocket already exists")

        pocket = self.pocket_repo.create(
            Pocket(
                user_id=self.user_id,
                account_id=account_id,
                name=clean_name,
                type=kind.value,
                currency=account.currency,
            ),
            user_id=self.user_id,
        )
        logger.info("Pocket created", extra={"pocket_id": pocket.id, "account_id": account_id})
        return pocket

    # --------------------------------------------------------------- deletion

    def delete_account(self, account_id: str) -> None:
        """Delete an account and its pockets, keeping its movements as orphans."""
        self.delete_account_cascade(account_id, delete_movements=False)

    def delete_account_cascade(self, account_id: str, delete_movements: bool = False) -> CascadeResult:
        """Remove an account with its pockets and sub-pockets.

        Movements are hard-deleted when ``delete_movements`` is set, and
        orphaned (with name snapshots) otherwise. Orphaning happens before any
        row is removed so the snapshots can still be read.
        """
        account = self.get_account(account_id)
        pockets = self.list_pockets(account_id)

        movements_affected = 0
        if not delete_movements:
            movements_affected = self.movements.mark_movements_as_orphaned(account_id, "account")

        sub_pockets_deleted = 0
        for pocket in pockets:
            if pocket.is_fixed:
                sub_pockets_deleted += self.sub_pocket_repo.delete_by_pocket(pocket.id, user_id=self.user_id)
            if delete_movements:
                movements_affected += self.movements.delete_movements_by_pocket(pocket.id)
            self.pocket_repo.delete(pocket.id, user_id=self.user_id)

        if delete_movements:
            movements_affected += self.movements.delete_movements_by_account(account_id)

        self.account_repo.delete(account_id, user_id=self.user_id)
        result = CascadeResult(
            account=account.name,
            pockets=len(pockets),
            sub_pockets=sub_pockets_deleted,
            movements=movements_affected,
        )
        logger.info(
            "Account deleted",
            extra={
                "account_id": account_id,
                "pockets": result.pockets,
                "sub_pockets": result.sub_pockets,
                "movements": result.movements,
                "hard_delete_movements": delete_movements,
            },
        )
        return result

    def delete_pocket(self, pocket_id: str) -> int:
        """Delete a pocket, orphaning its movements; returns the number orphaned."""
        pocket = self.get_pocket(pocket_id)
        if pocket.is_fixed and self.sub_pocket_repo.list_by_pocket(pocket_id, user_id=self.user_id):
            raise InvalidStateError("Cannot delete a fixed pocket that still has sub-pockets")

        orphaned = self.movements.mark_movements_as_orphaned(pocket_id, "pocket")
        self.pocket_repo.delete(pocket_id, user_id=self.user_id)
        logger.info("Pocket deleted", extra={"pocket_id": pocket_id, "orphaned": orphaned})
        return orphaned

    # -------------------------------------------------------------- migration

    def migrate_fixed_pocket(self, pocket_id: str, target_account_id: str) -> Pocket:
        """Move the fixed expenses pocket, and its movements, to another account."""
        pocket = self.get_pocket(pocket_id)
        if not pocket.is_fixed:
            raise ValidationError("Only fixed expense pockets can be migrated")
        target = self.get_account(target_account_id)
        if target.id == pocket.account_id:
            raise ValidationError("Pocket already belongs to that account")
        if target.is_investment:
            raise ValidationError("Fixed expense pockets cannot move into an investment account")
        if any(
            normalize_name(p.name) == normalize_name(pocket.name)
            for p in self.list_pockets(target_account_id)
        ):
            raise ValidationError(f'Account "{target.name}" already has a pocket named "{pocket.name}"')

        updated = self.pocket_repo.update(
            pocket_id,
            {"account_id": target_account_id, "currency": target.currency},
            user_id=self.user_id,
        )
        if updated is None:
            raise NotFoundError(f"Pocket {pocket_id} not found")
        moved = self.movements.update_movements_account_for_pocket(pocket_id, target_account_id)
        logger.info(
            "Fixed pocket migrated",
            extra={
                "pocket_id": pocket_id,
                "from_account_id": pocket.account_id,
                "to_account_id": target_account_id,
                "movements": moved,
            },
        )
        return updated


__all__ = ["AccountService", "CascadeResult"]
