"""Sub-pocket and fixed-expense group repository protocols."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from ...models.sub_pocket import FixedExpenseGroup, SubPocket


class SubPocketRepository(Protocol):
    """Repository for managing sub-pocket entities."""

    def get_by_id(self, sub_pocket_id: str, *, user_id: int) -> Optional[SubPocket]:
        """Retrieve a sub-pocket by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[SubPocket]:
        """List all sub-pockets."""
        ...

    def list_by_pocket(self, pocket_id: str, *, user_id: int) -> list[SubPocket]:
        """List sub-pockets of a fixed pocket."""
        ...

    def list_by_group(self, group_id: Optional[str], *, user_id: int) -> list[SubPocket]:
        """List sub-pockets in a display group."""
        ...

    def create(self, sub_pocket: SubPocket, *, user_id: int) -> SubPocket:
        """Create a new sub-pocket."""
        ...

    def update(
        self, sub_pocket_id: str, updates: Mapping[str, Any], *, user_id: int
    ) -> Optional[SubPocket]:
        """Partially update a sub-pocket."""
        ...

    def delete(self, sub_pocket_id: str, *, user_id: int) -> None:
        """Delete a sub-pocket by ID."""
        ...

    def delete_by_pocket(self, pocket_id: str, *, user_id: int) -> int:
        """Delete all sub-pockets of a pocket and return the count removed."""
        ...


class FixedExpenseGroupRepository(Protocol):
    """Repository for sub-pocket display groups."""

    def get_by_id(self, group_id: str, *, user_id: int) -> Optional[FixedExpenseGroup]:
        ...

    def list_all(self, *, user_id: int) -> list[FixedExpenseGroup]:
        ...

    def create(self, group: FixedExpenseGroup, *, user_id: int) -> FixedExpenseGroup:
        ...

    def update(
        self, group_id: str, updates: Mapping[str, Any], *, user_id: int
    ) -> Optional[FixedExpenseGroup]:
        ...

    def delete(self, group_id: str, *, user_id: int) -> None:
        ...
