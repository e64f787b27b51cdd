"""Movement repository protocol."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol

from ...models.movement import Movement


class MovementRepository(Protocol):
    """Repository for managing movement entities."""

    def get_by_id(self, movement_id: str, *, user_id: int) -> Optional[Movement]:
        """Retrieve a movement by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Movement]:
        """List every movement, oldest registration first."""
        ...

    def list_by_account(self, account_id: str, *, user_id: int) -> list[Movement]:
        ...

    def list_by_pocket(self, pocket_id: str, *, user_id: int) -> list[Movement]:
        ...

    def list_by_sub_pocket(self, sub_pocket_id: str, *, user_id: int) -> list[Movement]:
        ...

    def list_pending(self, *, user_id: int) -> list[Movement]:
        ...

    def list_orphaned(self, *, user_id: int) -> list[Movement]:
        ...

    def find_orphaned_matching(
        self,
        account_name: str,
        account_currency: str,
        pocket_name: Optional[str] = None,
        *,
        user_id: int,
    ) -> list[Movement]:
        """Orphans whose name/currency snapshot matches exactly."""
        ...

    def create(self, movement: Movement, *, user_id: int) -> Movement:
        """Create a new movement."""
        ...

    def update(
        self, movement_id: str, updates: Mapping[str, Any], *, user_id: int
    ) -> Optional[Movement]:
        """Partially update a movement."""
        ...

    def delete(self, movement_id: str, *, user_id: int) -> None:
        """Delete a movement by ID."""
        ...

    def delete_by_account(self, account_id: str, *, user_id: int) -> int:
        """Hard-delete all movements of an account; returns the count."""
        ...

    def delete_by_pocket(self, pocket_id: str, *, user_id: int) -> int:
        """Hard-delete all movements of a pocket; returns the count."""
        ...

    def bulk_update(
        self, movement_ids: Iterable[str], updates: Mapping[str, Any], *, user_id: int
    ) -> int:
        """Apply one partial update to many movements; returns the count."""
        ...

    def upsert_many(self, movements: Iterable[Movement], *, user_id: int) -> list[Movement]:
        """Insert or replace movements by id."""
        ...
