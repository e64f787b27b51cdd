"""Shared plumbing for user-scoped SQLModel repositories."""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Generic, Mapping, Optional, Sequence, Type, TypeVar

from sqlmodel import Session, SQLModel, select

ModelT = TypeVar("ModelT", bound=SQLModel)


class UserScopedRepository(Generic[ModelT]):
    """CRUD over one table whose rows belong to a single user.

    Every row handed back is expunged from its session, so callers get plain
    detached objects that stay readable after the session closes.
    """

    model: ClassVar[Type[SQLModel]]
    default_order: ClassVar[Sequence[str]] = ()

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def _scoped(self, *, user_id: int):
        statement = select(self.model).where(self.model.user_id == user_id)  # type: ignore[attr-defined]
        for column in self.default_order:
            statement = statement.order_by(getattr(self.model, column))
        return statement

    def _fetch_all(self, statement) -> list[ModelT]:
        with self.session_factory() as session:
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def _load(self, session: Session, entity_id: str, *, user_id: int) -> Optional[ModelT]:
        return session.exec(
            select(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .where(self.model.user_id == user_id)  # type: ignore[attr-defined]
        ).first()

    def get_by_id(self, entity_id: str, *, user_id: int) -> Optional[ModelT]:
        """Retrieve a row by ID."""
        with self.session_factory() as session:
            obj = self._load(session, entity_id, user_id=user_id)
            if obj is not None:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: int) -> list[ModelT]:
        """List every row owned by the user."""
        return self._fetch_all(self._scoped(user_id=user_id))

    def create(self, entity: ModelT, *, user_id: int) -> ModelT:
        """Insert a new row."""
        with self.session_factory() as session:
            entity.user_id = user_id  # type: ignore[attr-defined]
            session.add(entity)
            session.commit()
            session.refresh(entity)
            session.expunge(entity)
            return entity

    def update(
        self, entity_id: str, updates: Mapping[str, Any], *, user_id: int
    ) -> Optional[ModelT]:
        """Apply a partial update to a single row; ``None`` when it does not exist."""
        with self.session_factory() as session:
            obj = self._load(session, entity_id, user_id=user_id)
            if obj is None:
                return None
            for field, value in updates.items():
                if field not in self.model.model_fields:
                    raise AttributeError(f"{self.model.__name__} has no field {field!r}")
                setattr(obj, field, value)
            session.add(obj)
            session.commit()
            session.refresh(obj)
            session.expunge(obj)
            return obj

    def delete(self, entity_id: str, *, user_id: int) -> None:
        """Delete a row by ID."""
        with self.session_factory() as session:
            obj = self._load(session, entity_id, user_id=user_id)
            if obj is not None:
                session.delete(obj)
                session.commit()


__all__ = ["UserScopedRepository"]
