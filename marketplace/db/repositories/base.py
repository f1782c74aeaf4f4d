from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from marketplace.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """create / get / update / list / count for one mapped entity.

    ``filters`` are keyword equality filters on column attributes; ``None``
    values are ignored so callers can pass optional query params through.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _conditions(self, filters: dict[str, Any]) -> list[ColumnElement[bool]]:
        return [
            getattr(self.model, name) == value
            for name, value in filters.items()
            if value is not None
        ]

    async def create(self, **values: Any) -> ModelT:
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get_by_id(self, id: str) -> Optional[ModelT]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, instance: ModelT, **values: Any) -> ModelT:
        for name, value in values.items():
            setattr(instance, name, value)
        await self.session.flush()
        return instance

    async def list(
        self,
        offset: int = 0,
        limit: Optional[int] = None,
        extra: Sequence[ColumnElement[bool]] = (),
        **filters: Any,
    ) -> list[ModelT]:
        stmt = (
            select(self.model)
            .where(*self._conditions(filters), *extra)
            .order_by(self.model.created_at, self.model.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(
        self, extra: Sequence[ColumnElement[bool]] = (), **filters: Any
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self._conditions(filters), *extra)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
