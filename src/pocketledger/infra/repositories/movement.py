"""SQLModel implementation of the Movement repository."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from sqlmodel import col, select

from ...models.movement import Movement
from .base import UserScopedRepository


class SQLModelMovementRepository(UserScopedRepository[Movement]):
    """SQLModel-based movement repository implementation."""

    model = Movement
    default_order = ("created_at",)

    def list_by_account(self, account_id: str, *, user_id: int) -> list[Movement]:
        """Get all movements recorded against an account."""
        return self._fetch_all(self._scoped(user_id=user_id).where(Movement.account_id == account_id))

    def list_by_pocket(self, pocket_id: str, *, user_id: int) -> list[Movement]:
        """Get all movements recorded against a pocket, sub-pocket movements included."""
        return self._fetch_all(self._scoped(user_id=user_id).where(Movement.pocket_id == pocket_id))

    def list_by_sub_pocket(self, sub_pocket_id: str, *, user_id: int) -> list[Movement]:
        """Get all movements recorded against a sub-pocket."""
        return self._fetch_all(
            self._scoped(user_id=user_id).where(Movement.sub_pocket_id == sub_pocket_id)
        )

    def list_pending(self, *, user_id: int) -> list[Movement]:
        """Pending movements that are not orphaned."""
        return self._fetch_all(
            self._scoped(user_id=user_id)
            .where(col(Movement.is_pending).is_(True))
            .where(col(Movement.is_orphaned).is_(False))
        )

    def list_orphaned(self, *, user_id: int) -> list[Movement]:
        return self._fetch_all(self._scoped(user_id=user_id).where(col(Movement.is_orphaned).is_(True)))

    def find_orphaned_matching(
        self,
        account_name: str,
        account_currency: str,
        pocket_name: Optional[str] = None,
        *,
        user_id: int,
    ) -> list[Movement]:
        """Orphans whose snapshot matches exactly (case-sensitive)."""
        statement = (
            self._scoped(user_id=user_id)
            .where(col(Movement.is_orphaned).is_(True))
            .where(Movement.orphaned_account_name == account_name)
            .where(Movement.orphaned_account_currency == account_currency)
        )
        if pocket_name is not None:
            statement = statement.where(Movement.orphaned_pocket_name == pocket_name)
        return self._fetch_all(statement)

    def _delete_where(self, clause, *, user_id: int) -> int:
        with self.session_factory() as session:
            rows = session.exec(select(Movement).where(Movement.user_id == user_id).where(clause)).all()
            for row in rows:
                session.delete(row)
            session.commit()
            return len(rows)

    def delete_by_account(self, account_id: str, *, user_id: int) -> int:
        """Hard-delete every movement of an account and return the count removed."""
        return self._delete_where(Movement.account_id == account_id, user_id=user_id)

    def delete_by_pocket(self, pocket_id: str, *, user_id: int) -> int:
        """Hard-delete every movement of a pocket and return the count removed."""
        return self._delete_where(Movement.pocket_id == pocket_id, user_id=user_id)

    def bulk_update(
        self, movement_ids: Iterable[str], updates: Mapping[str, Any], *, user_id: int
    ) -> int:
        """Apply the same partial update to several movements in one transaction."""
        ids = list(movement_ids)
        if not ids:
            return 0
        for field in updates:
            if field not in Movement.model_fields:
                raise AttributeError(f"Movement has no field {field!r}")
        with self.session_factory() as session:
            rows = session.exec(
                select(Movement)
                .where(Movement.user_id == user_id)
                .where(col(Movement.id).in_(ids))
            ).all()
            for row in rows:
                for field, value in updates.items():
                    setattr(row, field, value)
                session.add(row)
            session.commit()
            return len(rows)

    def upsert_many(self, movements: Iterable[Movement], *, user_id: int) -> list[Movement]:
        """Insert or replace movements by id."""
        saved: list[Movement] = []
        with self.session_factory() as session:
            for movement in movements:
                movement.user_id = user_id
                saved.append(session.merge(movement))
            session.commit()
            for movement in saved:
                session.refresh(movement)
            session.expunge_all()
            return saved


__all__ = ["SQLModelMovementRepository"]
