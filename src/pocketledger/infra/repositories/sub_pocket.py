"""SQLModel implementations of the SubPocket and FixedExpenseGroup repositories."""

from __future__ import annotations

from typing import Optional

from sqlmodel import col, select

from ...models.sub_pocket import FixedExpenseGroup, SubPocket
from .base import UserScopedRepository


class SQLModelSubPocketRepository(UserScopedRepository[SubPocket]):
    """SQLModel-based sub-pocket repository implementation."""

    model = SubPocket
    default_order = ("display_order", "name")

    def list_by_pocket(self, pocket_id: str, *, user_id: int) -> list[SubPocket]:
        """List sub-pockets of a fixed pocket."""
        return self._fetch_all(
            self._scoped(user_id=user_id).where(SubPocket.pocket_id == pocket_id)
        )

    def list_by_group(self, group_id: Optional[str], *, user_id: int) -> list[SubPocket]:
        """List sub-pockets in a display group (``None`` for the default group)."""
        statement = self._scoped(user_id=user_id)
        if group_id is None:
            statement = statement.where(col(SubPocket.group_id).is_(None))
        else:
            statement = statement.where(SubPocket.group_id == group_id)
        return self._fetch_all(statement)

    def delete_by_pocket(self, pocket_id: str, *, user_id: int) -> int:
        """Delete every sub-pocket of a pocket, returning how many were removed."""
        with self.session_factory() as session:
            rows = session.exec(
                select(SubPocket)
                .where(SubPocket.user_id == user_id)
                .where(SubPocket.pocket_id == pocket_id)
            ).all()
            for row in rows:
                session.delete(row)
            session.commit()
            return len(rows)


class SQLModelFixedExpenseGroupRepository(UserScopedRepository[FixedExpenseGroup]):
    """SQLModel-based repository for sub-pocket display groups."""

    model = FixedExpenseGroup
    default_order = ("created_at",)


__all__ = ["SQLModelFixedExpenseGroupRepository", "SQLModelSubPocketRepository"]
