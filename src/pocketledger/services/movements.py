"""Movement lifecycle: create, edit, delete, pending and orphan transitions.

Every balance-affecting operation runs its steps in order before returning:
revert the old effect, persist, apply the new effect, then re-sync the
investment fields of each touched account. Only movements that are neither
pending nor orphaned carry a balance effect.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from ..domain.repositories import (
    AccountRepository,
    MovementRepository,
    PocketRepository,
    SubPocketRepository,
)
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Movement, MovementType
from ..models.common import ensure_aware, utcnow
from .balances import BalancePropagator

logger = get_logger("services.movements")

UPDATABLE_FIELDS = frozenset(
    {"type", "account_id", "pocket_id", "sub_pocket_id", "amount", "notes", "displayed_date"}
)
ORPHAN_KINDS = ("account", "pocket")


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of matching every orphan back to a live account and pocket."""

    restored: int
    failed: int


def coerce_movement_type(value: Union[str, MovementType]) -> MovementType:
    try:
        return MovementType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown movement type: {value!r}") from exc


def clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    stripped = notes.strip()
    return stripped or None


class MovementService:
    """Owns every transition of a movement and its effect on balances."""

    def __init__(
        self,
        *,
        movement_repo: MovementRepository,
        account_repo: AccountRepository,
        pocket_repo: PocketRepository,
        sub_pocket_repo: SubPocketRepository,
        propagator: BalancePropagator,
        user_id: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.movement_repo = movement_repo
        self.account_repo = account_repo
        self.pocket_repo = pocket_repo
        self.sub_pocket_repo = sub_pocket_repo
        self.propagator = propagator
        self.user_id = user_id
        self.clock = clock

    # ------------------------------------------------------------------ reads

    def get_movement(self, movement_id: str) -> Movement:
        movement = self.movement_repo.get_by_id(movement_id, user_id=self.user_id)
        if movement is None:
            raise NotFoundError(f"Movement {movement_id} not found")
        return movement

    def list_movements(self) -> list[Movement]:
        """All movements in registration order."""
        return sorted(
            self.movement_repo.list_all(user_id=self.user_id),
            key=lambda m: ensure_aware(m.created_at),
        )

    def list_active_movements(self) -> list[Movement]:
        return [m for m in self.list_movements() if not m.is_orphaned]

    def list_pending_movements(self) -> list[Movement]:
        return self.movement_repo.list_pending(user_id=self.user_id)

    def list_orphaned_movements(self) -> list[Movement]:
        return self.movement_repo.list_orphaned(user_id=self.user_id)

    def movements_by_account(self, account_id: str) -> list[Movement]:
        return self.movement_repo.list_by_account(account_id, user_id=self.user_id)

    def movements_by_pocket(self, pocket_id: str) -> list[Movement]:
        return self.movement_repo.list_by_pocket(pocket_id, user_id=self.user_id)

    def movements_by_month(self, year: int, month: int) -> list[Movement]:
        """Active movements whose displayed date falls in the month, newest first."""
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        selected = [
            m
            for m in self.list_active_movements()
            if m.displayed_date.year == year and m.displayed_date.month == month
        ]
        return sorted(selected, key=lambda m: ensure_aware(m.displayed_date), reverse=True)

    def group_by_month(self) -> dict[str, list[Movement]]:
        """Active movements keyed by ``YYYY-MM`` of their displayed date, newest month first."""
        groups: dict[str, list[Movement]] = defaultdict(list)
        for movement in self.list_active_movements():
            groups[movement.displayed_date.strftime("%Y-%m")].append(movement)
        return {
            key: sorted(items, key=lambda m: ensure_aware(m.displayed_date), reverse=True)
            for key, items in sorted(groups.items(), reverse=True)
        }

    # ------------------------------------------------------------- validation

    def _validate_amount(self, amount: Any) -> float:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValidationError("Amount must be a number")
        if not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        return float(amount)

    def _validate_targets(
        self,
        account_id: Optional[str],
        pocket_id: Optional[str],
        sub_pocket_id: Optional[str],
    ) -> None:
        if not account_id or self.account_repo.get_by_id(account_id, user_id=self.user_id) is None:
            raise ValidationError(f"Account {account_id} not found")
        pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id) if pocket_id else None
        if pocket is None:
            raise ValidationError(f"Pocket {pocket_id} not found")
        if pocket.account_id != account_id:
            raise ValidationError(f"Pocket {pocket_id} does not belong to account {account_id}")
        if sub_pocket_id:
            sub_pocket = self.sub_pocket_repo.get_by_id(sub_pocket_id, user_id=self.user_id)
            if sub_pocket is None:
                raise ValidationError(f"Sub-pocket {sub_pocket_id} not found")
            if sub_pocket.pocket_id != pocket_id:
                raise ValidationError(
                    f"Sub-pocket {sub_pocket_id} does not belong to pocket {pocket_id}"
                )

    def _save(self, movement_id: str, changes: Mapping[str, Any]) -> Movement:
        updated = self.movement_repo.update(movement_id, changes, user_id=self.user_id)
        if updated is None:
            raise NotFoundError(f"Movement {movement_id} not found")
        return updated

    def _sync_accounts(self, *account_ids: str) -> None:
        for account_id in dict.fromkeys(account_ids):
            self.propagator.sync_investment_account(account_id)

    # ------------------------------------------------------------- lifecycle

    def create_movement(
        self,
        movement_type: Union[str, MovementType],
        account_id: str,
        pocket_id: str,
        amount: float,
        notes: Optional[str] = None,
        displayed_date: Optional[datetime] = None,
        sub_pocket_id: Optional[str] = None,
        is_pending: bool = False,
    ) -> Movement:
        """Record a movement and, unless pending, apply it to its balance holder."""
        movement_type = coerce_movement_type(movement_type)
        amount = self._validate_amount(amount)
        self._validate_targets(account_id, pocket_id, sub_pocket_id)

        now = self.clock()
        movement = Movement(
            type=movement_type.value,
            account_id=account_id,
            pocket_id=pocket_id,
            sub_pocket_id=sub_pocket_id or None,
            amount=amount,
            notes=clean_notes(notes),
            displayed_date=displayed_date or now,
            created_at=now,
            is_pending=is_pending,
            user_id=self.user_id,
        )
        movement = self.movement_repo.create(movement, user_id=self.user_id)

        if not movement.is_pending:
            self.propagator.apply(movement)
            self._sync_accounts(account_id)

        logger.info(
            "Movement created",
            extra={
                "movement_id": movement.id,
                "type": movement.type,
                "amount": movement.amount,
                "pending": movement.is_pending,
            },
        )
        return movement

    def update_movement(self, movement_id: str, updates: Mapping[str, Any]) -> Movement:
        """Edit a movement; its old effect is always reverted before the new one is applied."""
        existing = self.get_movement(movement_id)

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update movement fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = dict(updates)
        if "type" in changes:
            changes["type"] = coerce_movement_type(changes["type"]).value
        if "amount" in changes:
            changes["amount"] = self._validate_amount(changes["amount"])
        if "notes" in changes:
            changes["notes"] = clean_notes(changes["notes"])
        if "sub_pocket_id" in changes:
            changes["sub_pocket_id"] = changes["sub_pocket_id"] or None
        if "displayed_date" in changes and changes["displayed_date"] is None:
            raise ValidationError("Displayed date cannot be empty")

        targets = ("account_id", "pocket_id", "sub_pocket_id")
        # Orphans point at vanished rows; only re-check references being rewritten
        if not existing.is_orphaned or any(field in changes for field in targets):
            self._validate_targets(
                changes.get("account_id", existing.account_id),
                changes.get("pocket_id", existing.pocket_id),
                changes.get("sub_pocket_id", existing.sub_pocket_id),
            )

        if existing.is_applied:
            self.propagator.revert(existing)

        updated = self._save(movement_id, changes)

        if updated.is_applied:
            self.propagator.apply(updated)
        self._sync_accounts(existing.account_id, updated.account_id)

        logger.info(
            "Movement updated",
            extra={"movement_id": movement_id, "fields": sorted(changes)},
        )
        return updated

    def delete_movement(self, movement_id: str) -> None:
        """Revert a movement's effect and remove it permanently."""
        movement = self.get_movement(movement_id)
        if movement.is_applied:
            self.propagator.revert(movement)
            self._sync_accounts(movement.account_id)
        self.movement_repo.delete(movement_id, user_id=self.user_id)
        logger.info("Movement deleted", extra={"movement_id": movement_id})

    def apply_pending_movement(self, movement_id: str) -> Movement:
        movement = self.get_movement(movement_id)
        if not movement.is_pending:
            raise InvalidStateError(f"Movement {movement_id} is not pending")
        if movement.is_orphaned:
            raise InvalidStateError(f"Movement {movement_id} is orphaned and cannot be applied")

        updated = self._save(movement_id, {"is_pending": False})
        self.propagator.apply(updated)
        self._sync_accounts(updated.account_id)
        logger.info("Pending movement applied", extra={"movement_id": movement_id})
        return updated

    def mark_as_pending(self, movement_id: str) -> Movement:
        movement = self.get_movement(movement_id)
        if movement.is_pending:
            raise InvalidStateError(f"Movement {movement_id} is already pending")

        if not movement.is_orphaned:
            self.propagator.revert(movement)
        updated = self._save(movement_id, {"is_pending": True})
        self._sync_accounts(updated.account_id)
        logger.info("Movement marked as pending", extra={"movement_id": movement_id})
        return updated

    # ---------------------------------------------------------------- orphans

    def mark_movements_as_orphaned(self, entity_id: str, entity_kind: str) -> int:
        """Flag every movement of an account or pocket about to be deleted.

        Snapshots of the account name/currency and pocket name are captured
        so the movements can later be re-matched to recreated entities.
        Must run while the account and pocket still exist.
        """
        if entity_kind == "account":
            movements = self.movement_repo.list_by_account(entity_id, user_id=self.user_id)
        elif entity_kind == "pocket":
            movements = self.movement_repo.list_by_pocket(entity_id, user_id=self.user_id)
        else:
            raise ValidationError(f"entity_kind must be one of {ORPHAN_KINDS}, got {entity_kind!r}")

        by_target: dict[tuple[str, str], list[str]] = defaultdict(list)
        for movement in movements:
            if not movement.is_orphaned:
                by_target[(movement.account_id, movement.pocket_id)].append(movement.id)

        marked = 0
        for (account_id, pocket_id), ids in by_target.items():
            account = self.account_repo.get_by_id(account_id, user_id=self.user_id)
            pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id)
            snapshot: dict[str, Any] = {"is_orphaned": True}
            if account is not None:
                snapshot["orphaned_account_name"] = account.name
                snapshot["orphaned_account_currency"] = account.currency
            if pocket is not None:
                snapshot["orphaned_pocket_name"] = pocket.name
            marked += self.movement_repo.bulk_update(ids, snapshot, user_id=self.user_id)

        logger.info(
            "Movements orphaned",
            extra={"entity_kind": entity_kind, "entity_id": entity_id, "count": marked},
        )
        return marked

    def find_matching_orphaned_movements(
        self, account_name: str, account_currency: str, pocket_name: Optional[str] = None
    ) -> list[Movement]:
        return self.movement_repo.find_orphaned_matching(
            account_name, account_currency, pocket_name, user_id=self.user_id
        )

    def restore_orphaned_movements(
        self, movement_ids: Iterable[str], new_account_id: str, new_pocket_id: str
    ) -> list[Movement]:
        """Rebind orphans to a live account and pocket.

        Balances are not touched; call ``recalculate_balances_for_pocket``
        afterwards.
        """
        ids = list(movement_ids)
        self._validate_targets(new_account_id, new_pocket_id, None)
        valid_sub_pockets = {
            sp.id for sp in self.sub_pocket_repo.list_by_pocket(new_pocket_id, user_id=self.user_id)
        }

        restored: list[Movement] = []
        for movement_id in ids:
            movement = self.get_movement(movement_id)
            if not movement.is_orphaned:
                raise InvalidStateError(f"Movement {movement_id} is not orphaned")
            sub_pocket_id = movement.sub_pocket_id if movement.sub_pocket_id in valid_sub_pockets else None
            movement.account_id = new_account_id
            movement.pocket_id = new_pocket_id
            movement.sub_pocket_id = sub_pocket_id
            movement.is_orphaned = False
            movement.orphaned_account_name = None
            movement.orphaned_account_currency = None
            movement.orphaned_pocket_name = None
            restored.append(movement)

        saved = self.movement_repo.upsert_many(restored, user_id=self.user_id)
        logger.info(
            "Orphaned movements restored",
            extra={"count": len(saved), "account_id": new_account_id, "pocket_id": new_pocket_id},
        )
        return saved

    def restore_all_orphaned_movements(self) -> RestoreResult:
        """Match each orphan to an account by name+currency and a pocket by name within it."""
        orphans = self.movement_repo.list_orphaned(user_id=self.user_id)
        accounts = self.account_repo.list_all(user_id=self.user_id)
        pockets = self.pocket_repo.list_all(user_id=self.user_id)

        batches: dict[tuple[str, str], list[str]] = defaultdict(list)
        failed = 0
        for movement in orphans:
            account = next(
                (
                    a
                    for a in accounts
                    if a.name == movement.orphaned_account_name
                    and a.currency == movement.orphaned_account_currency
                ),
                None,
            )
            if account is None:
                failed += 1
                continue
            pocket = next(
                (
                    p
                    for p in pockets
                    if p.account_id == account.id and p.name == movement.orphaned_pocket_name
                ),
                None,
            )
            if pocket is None:
                failed += 1
                continue
            batches[(account.id, pocket.id)].append(movement.id)

        restored = 0
        for (account_id, pocket_id), ids in batches.items():
            restored += len(self.restore_orphaned_movements(ids, account_id, pocket_id))
            self.recalculate_balances_for_pocket(pocket_id)

        return RestoreResult(restored=restored, failed=failed)

    def recalculate_balances_for_pocket(self, pocket_id: str) -> float:
        """Rebuild a pocket's balance, and its sub-pockets', from applied movements.

        Returns the new pocket balance.
        """
        pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id)
        if pocket is None:
            raise NotFoundError(f"Pocket {pocket_id} not found")

        applied = [
            m for m in self.movement_repo.list_by_pocket(pocket_id, user_id=self.user_id) if m.is_applied
        ]
        pocket_balance = sum(m.signed_amount for m in applied if not m.sub_pocket_id)
        self.pocket_repo.update(pocket_id, {"balance": pocket_balance}, user_id=self.user_id)

        for sub_pocket in self.sub_pocket_repo.list_by_pocket(pocket_id, user_id=self.user_id):
            balance = sum(m.signed_amount for m in applied if m.sub_pocket_id == sub_pocket.id)
            self.sub_pocket_repo.update(sub_pocket.id, {"balance": balance}, user_id=self.user_id)

        self._sync_accounts(pocket.account_id)
        logger.debug(
            "Pocket balance recalculated",
            extra={"pocket_id": pocket_id, "balance": pocket_balance, "movements": len(applied)},
        )
        return pocket_balance

    # ------------------------------------------------------- cascade helpers

    def delete_movements_by_account(self, account_id: str) -> int:
        count = self.movement_repo.delete_by_account(account_id, user_id=self.user_id)
        logger.info("Movements deleted for account", extra={"account_id": account_id, "count": count})
        return count

    def delete_movements_by_pocket(self, pocket_id: str) -> int:
        count = self.movement_repo.delete_by_pocket(pocket_id, user_id=self.user_id)
        logger.info("Movements deleted for pocket", extra={"pocket_id": pocket_id, "count": count})
        return count

    def update_movements_account_for_pocket(self, pocket_id: str, new_account_id: str) -> int:
        """Point every movement of a migrated pocket at its new account."""
        ids = [m.id for m in self.movement_repo.list_by_pocket(pocket_id, user_id=self.user_id)]
        return self.movement_repo.bulk_update(
            ids, {"account_id": new_account_id}, user_id=self.user_id
        )

    # --------------------------------------------------------------- transfer

    def create_transfer(
        self,
        source_account_id: str,
        source_pocket_id: str,
        target_account_id: str,
        target_pocket_id: str,
        amount: float,
        displayed_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> tuple[Movement, Movement]:
        """Move money between pockets as an expense on one side and an income on the other."""
        if source_pocket_id == target_pocket_id:
            raise ValidationError("Source and target pockets must differ")

        source_account = self.account_repo.get_by_id(source_account_id, user_id=self.user_id)
        target_account = self.account_repo.get_by_id(target_account_id, user_id=self.user_id)
        if source_account is None:
            raise ValidationError(f"Account {source_account_id} not found")
        if target_account is None:
            raise ValidationError(f"Account {target_account_id} not found")
        for account_id, pocket_id in (
            (source_account_id, source_pocket_id),
            (target_account_id, target_pocket_id),
        ):
            pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id)
            if pocket is None:
                raise ValidationError(f"Pocket {pocket_id} not found")
            if pocket.account_id != account_id:
                raise ValidationError(f"Pocket {pocket_id} does not belong to account {account_id}")

        self._validate_amount(amount)
        suffix = f": {clean_notes(notes)}" if clean_notes(notes) else ""
        when = displayed_date or self.clock()
        expense = self.create_movement(
            MovementType.EXPENSE_NORMAL,
            source_account_id,
            source_pocket_id,
            amount,
            notes=f"Transfer to {target_account.name}{suffix}",
            displayed_date=when,
        )
        income = self.create_movement(
            MovementType.INCOME_NORMAL,
            target_account_id,
            target_pocket_id,
            amount,
            notes=f"Transfer from {source_account.name}{suffix}",
            displayed_date=when,
        )
        return expense, income


__all__ = ["MovementService", "RestoreResult", "clean_notes", "coerce_movement_type"]
