"""SQLModel implementation of the Account repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...models.account import Account
from .base import UserScopedRepository


class SQLModelAccountRepository(UserScopedRepository[Account]):
    """SQLModel-based account repository implementation."""

    model = Account
    default_order = ("display_order", "name")

    def get_by_name(self, name: str, currency: str, *, user_id: int) -> Optional[Account]:
        """Retrieve an account by exact name and currency."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Account)
                .where(Account.user_id == user_id)
                .where(Account.name == name)
                .where(Account.currency == currency)
            ).first()
            if obj:
                session.expunge(obj)
            return obj


__all__ = ["SQLModelAccountRepository"]
