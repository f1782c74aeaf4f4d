from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from marketplace.core.enums import CommissionStatus
from marketplace.db.models import Commission, PayoutReservation
from marketplace.db.repositories.base import BaseRepository


class CommissionRepository(BaseRepository[Commission]):
    model = Commission

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    def _live(self) -> ColumnElement[bool]:
        return Commission.deleted_at.is_(None)

    async def get_by_id(self, id: str) -> Optional[Commission]:
        stmt = select(Commission).where(Commission.id == id).where(self._live())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_line_item(
        self, order_id: str, line_item_id: str
    ) -> Optional[Commission]:
        stmt = (
            select(Commission)
            .where(Commission.order_id == order_id)
            .where(Commission.line_item_id == line_item_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(
        self, ids: Iterable[str], for_update: bool = False
    ) -> dict[str, Commission]:
        ids = list(ids)
        if not ids:
            return {}
        stmt = select(Commission).where(Commission.id.in_(ids)).where(self._live())
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return {commission.id: commission for commission in result.scalars().all()}

    async def list_for_order(self, order_id: str) -> list[Commission]:
        return await self.list(order_id=order_id, extra=[self._live()])

    async def search(
        self,
        offset: int = 0,
        limit: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        **filters: Any,
    ) -> tuple[list[Commission], int]:
        extra: list[ColumnElement[bool]] = [self._live()]
        if created_from is not None:
            extra.append(Commission.created_at >= created_from)
        if created_to is not None:
            extra.append(Commission.created_at <= created_to)
        items = await self.list(offset=offset, limit=limit, extra=extra, **filters)
        total = await self.count(extra=extra, **filters)
        return items, total

    async def totals_by_status(
        self, seller_id: Optional[str] = None, currency: Optional[str] = None
    ) -> Sequence[Any]:
        """Rows of (status, count, line_item_total, commission_amount, seller_payout)."""
        stmt = (
            select(
                Commission.status,
                func.count(Commission.id).label("count"),
                func.coalesce(func.sum(Commission.line_item_total_cents), 0).label(
                    "line_item_total"
                ),
                func.coalesce(func.sum(Commission.commission_amount_cents), 0).label(
                    "commission_amount"
                ),
                func.coalesce(func.sum(Commission.seller_payout_cents), 0).label(
                    "seller_payout"
                ),
            )
            .where(self._live())
            .group_by(Commission.status)
        )
        if seller_id is not None:
            stmt = stmt.where(Commission.seller_id == seller_id)
        if currency is not None:
            stmt = stmt.where(Commission.currency == currency)
        result = await self.session.execute(stmt)
        return result.all()

    async def get_unreserved_approved_total(self, seller_id: str, currency: str) -> int:
        """Sum of seller_payout over approved commissions no payout holds."""
        reserved = select(PayoutReservation.commission_id).where(
            PayoutReservation.seller_id == seller_id
        )
        stmt = (
            select(func.coalesce(func.sum(Commission.seller_payout_cents), 0))
            .where(Commission.seller_id == seller_id)
            .where(Commission.currency == currency)
            .where(Commission.status == CommissionStatus.APPROVED)
            .where(self._live())
            .where(Commission.id.not_in(reserved))
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)
