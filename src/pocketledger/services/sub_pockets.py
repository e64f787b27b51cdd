"""Fixed-expense schedule math and sub-pocket management."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from ..domain.repositories import (
    FixedExpenseGroupRepository,
    PocketRepository,
    SubPocketRepository,
)
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import FixedExpenseGroup, SubPocket

logger = get_logger("services.sub_pockets")

UPDATABLE_FIELDS = frozenset(
    {"name", "value_total", "periodicity_months", "enabled", "group_id", "display_order"}
)


def monthly_contribution(value_total: float, periodicity_months: int) -> float:
    """Amount to set aside each month to reach ``value_total`` on time."""

    if periodicity_months <= 0:
        return 0.0
    return value_total / periodicity_months


def progress_ratio(balance: float, value_total: float) -> float:
    """Raw saved/target ratio; may be negative or above 1, callers clamp for display."""

    if value_total <= 0:
        return 0.0
    return balance / value_total


def next_payment_due(sub_pocket: SubPocket) -> float:
    """What to contribute this period.

    A negative balance is caught up on top of the regular contribution, and
    the final period never overshoots the target (a funded target owes 0).
    """

    contribution = monthly_contribution(sub_pocket.value_total, sub_pocket.periodicity_months)
    if sub_pocket.balance < 0:
        return contribution + abs(sub_pocket.balance)
    remaining = sub_pocket.value_total - sub_pocket.balance
    if remaining < contribution:
        return max(remaining, 0.0)
    return contribution


def normalize_name(name: str) -> str:
    return name.strip().casefold()


def is_name_unique(
    name: str, siblings: Iterable[SubPocket], exclude_id: Optional[str] = None
) -> bool:
    """True unless another sibling has the same trimmed, case-folded name."""

    candidate = normalize_name(name)
    return not any(
        normalize_name(sibling.name) == candidate
        for sibling in siblings
        if sibling.id != exclude_id
    )


@dataclass(frozen=True)
class SubPocketSchedule:
    """Per-sub-pocket planning figures."""

    sub_pocket_id: str
    name: str
    enabled: bool
    balance: float
    value_total: float
    monthly_contribution: float
    progress_ratio: float
    next_payment_due: float
    remaining: float


class SubPocketService:
    """Creates and edits sub-pockets inside fixed pockets and plans their contributions."""

    def __init__(
        self,
        *,
        sub_pocket_repo: SubPocketRepository,
        pocket_repo: PocketRepository,
        group_repo: FixedExpenseGroupRepository,
        user_id: int,
    ) -> None:
        self.sub_pocket_repo = sub_pocket_repo
        self.pocket_repo = pocket_repo
        self.group_repo = group_repo
        self.user_id = user_id

    def get_sub_pocket(self, sub_pocket_id: str) -> SubPocket:
        sub_pocket = self.sub_pocket_repo.get_by_id(sub_pocket_id, user_id=self.user_id)
        if sub_pocket is None:
            raise NotFoundError(f"Sub-pocket {sub_pocket_id} not found")
        return sub_pocket

    def list_sub_pockets(self, pocket_id: str) -> list[SubPocket]:
        return self.sub_pocket_repo.list_by_pocket(pocket_id, user_id=self.user_id)

    def total_monthly_fixed_expenses(self, pocket_id: str) -> float:
        """Sum of monthly contributions over the enabled sub-pockets of a pocket."""
        return sum(
            monthly_contribution(sp.value_total, sp.periodicity_months)
            for sp in self.list_sub_pockets(pocket_id)
            if sp.enabled
        )

    def next_payment_due(self, sub_pocket_id: str) -> float:
        return next_payment_due(self.get_sub_pocket(sub_pocket_id))

    def schedule(self, sub_pocket: SubPocket) -> SubPocketSchedule:
        contribution = monthly_contribution(sub_pocket.value_total, sub_pocket.periodicity_months)
        return SubPocketSchedule(
            sub_pocket_id=sub_pocket.id,
            name=sub_pocket.name,
            enabled=sub_pocket.enabled,
            balance=sub_pocket.balance,
            value_total=sub_pocket.value_total,
            monthly_contribution=contribution,
            progress_ratio=progress_ratio(sub_pocket.balance, sub_pocket.value_total),
            next_payment_due=next_payment_due(sub_pocket),
            remaining=max(sub_pocket.value_total - sub_pocket.balance, 0.0),
        )

    # -------------------------------------------------------------- validation

    @staticmethod
    def _validate_value_total(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError("Target value must be a number")
        if value <= 0:
            raise ValidationError("Target value must be greater than zero")
        return float(value)

    @staticmethod
    def _validate_periodicity(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("Periodicity must be a whole number of months")
        if value <= 0:
            raise ValidationError("Periodicity must be greater than zero")
        return value

    def _validate_name(self, name: Any, pocket_id: str, exclude_id: Optional[str] = None) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Sub-pocket name cannot be empty")
        if not is_name_unique(name, self.list_sub_pockets(pocket_id), exclude_id=exclude_id):
            raise ValidationError(f'A sub-pocket named "{name.strip()}" already exists in this pocket')
        return name.strip()

    def _validate_group(self, group_id: Optional[str]) -> None:
        if group_id is not None and self.group_repo.get_by_id(group_id, user_id=self.user_id) is None:
            raise NotFoundError(f"Group {group_id} not found")

    # ------------------------------------------------------------------ CRUD

    def create_sub_pocket(
        self,
        pocket_id: str,
        name: str,
        value_total: float,
        periodicity_months: int,
        group_id: Optional[str] = None,
    ) -> SubPocket:
        pocket = self.pocket_repo.get_by_id(pocket_id, user_id=self.user_id)
        if pocket is None:
            raise ValidationError(f"Pocket {pocket_id} not found")
        if not pocket.is_fixed:
            raise ValidationError("Sub-pockets can only be created in a fixed pocket")

        clean_name = self._validate_name(name, pocket_id)
        total = self._validate_value_total(value_total)
        periodicity = self._validate_periodicity(periodicity_months)
        self._validate_group(group_id)

        sub_pocket = self.sub_pocket_repo.create(
            SubPocket(
                user_id=self.user_id,
                pocket_id=pocket_id,
                name=clean_name,
                value_total=total,
                periodicity_months=periodicity,
                group_id=group_id,
            ),
            user_id=self.user_id,
        )
        logger.info(
            "Sub-pocket created",
            extra={"sub_pocket_id": sub_pocket.id, "pocket_id": pocket_id, "sub_pocket_name": clean_name},
        )
        return sub_pocket

    def update_sub_pocket(self, sub_pocket_id: str, updates: Mapping[str, Any]) -> SubPocket:
        existing = self.get_sub_pocket(sub_pocket_id)
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update sub-pocket fields: {', '.join(sorted(unknown))}")

        changes = dict(updates)
        if "name" in changes:
            changes["name"] = self._validate_name(
                changes["name"], existing.pocket_id, exclude_id=sub_pocket_id
            )
        if "value_total" in changes:
            changes["value_total"] = self._validate_value_total(changes["value_total"])
        if "periodicity_months" in changes:
            changes["periodicity_months"] = self._validate_periodicity(changes["periodicity_months"])
        if "group_id" in changes:
            self._validate_group(changes["group_id"])

        updated = self.sub_pocket_repo.update(sub_pocket_id, changes, user_id=self.user_id)
        if updated is None:
            raise NotFoundError(f"Sub-pocket {sub_pocket_id} not found")
        return updated

    def delete_sub_pocket(self, sub_pocket_id: str) -> None:
        sub_pocket = self.get_sub_pocket(sub_pocket_id)
        self.sub_pocket_repo.delete(sub_pocket_id, user_id=self.user_id)
        logger.info(
            "Sub-pocket deleted",
            extra={"sub_pocket_id": sub_pocket_id, "pocket_id": sub_pocket.pocket_id},
        )

    def toggle_enabled(self, sub_pocket_id: str) -> SubPocket:
        sub_pocket = self.get_sub_pocket(sub_pocket_id)
        return self.update_sub_pocket(sub_pocket_id, {"enabled": not sub_pocket.enabled})

    def move_to_group(self, sub_pocket_id: str, group_id: Optional[str]) -> SubPocket:
        """Reassign display grouping; ``None`` moves it back to the default group."""
        return self.update_sub_pocket(sub_pocket_id, {"group_id": group_id})

    # ---------------------------------------------------------------- groups

    def create_group(self, name: str, color: str = "#6b7280") -> FixedExpenseGroup:
        if not name or not name.strip():
            raise ValidationError("Group name cannot be empty")
        return self.group_repo.create(
            FixedExpenseGroup(user_id=self.user_id, name=name.strip(), color=color),
            user_id=self.user_id,
        )

    def list_groups(self) -> list[FixedExpenseGroup]:
        return self.group_repo.list_all(user_id=self.user_id)

    def delete_group(self, group_id: str) -> int:
        """Delete a group, returning its sub-pockets to the default group.

        Returns the number of sub-pockets moved.
        """
        self._validate_group(group_id)
        members = self.sub_pocket_repo.list_by_group(group_id, user_id=self.user_id)
        for sub_pocket in members:
            self.sub_pocket_repo.update(sub_pocket.id, {"group_id": None}, user_id=self.user_id)
        self.group_repo.delete(group_id, user_id=self.user_id)
        return len(members)


__all__ = [
    "SubPocketSchedule",
    "SubPocketService",
    "is_name_unique",
    "monthly_contribution",
    "next_payment_due",
    "normalize_name",
    "progress_ratio",
]
