"""SQLModel implementation of the Pocket repository."""

from __future__ import annotations

from ...models.pocket import Pocket
from .base import UserScopedRepository


class SQLModelPocketRepository(UserScopedRepository[Pocket]):
    """SQLModel-based pocket repository implementation."""

    model = Pocket
    default_order = ("display_order", "name")

    def list_by_account(self, account_id: str, *, user_id: int) -> list[Pocket]:
        """List pockets belonging to an account."""
        return self._fetch_all(self._scoped(user_id=user_id).where(Pocket.account_id == account_id))

    def list_by_type(self, pocket_type: str, *, user_id: int) -> list[Pocket]:
        """List pockets of one type across all accounts."""
        return self._fetch_all(self._scoped(user_id=user_id).where(Pocket.type == pocket_type))


__all__ = ["SQLModelPocketRepository"]
