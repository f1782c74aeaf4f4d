from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import PayoutStatus
from marketplace.db.models import Payout, PayoutReservation
from marketplace.db.repositories.base import BaseRepository


class PayoutRepository(BaseRepository[Payout]):
    model = Payout

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_id(self, id: str, for_update: bool = False) -> Optional[Payout]:
        stmt = select(Payout).where(Payout.id == id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_last_requested_at(self, seller_id: str) -> Optional[datetime]:
        """Latest request time over the seller's payouts that were not cancelled."""
        stmt = (
            select(func.max(Payout.requested_at))
            .where(Payout.seller_id == seller_id)
            .where(Payout.status != PayoutStatus.CANCELLED)
        )
        result = await self.session.execute(stmt)
        return result.scalar()

    async def count_failed(self, seller_id: str) -> int:
        return await self.count(seller_id=seller_id, status=PayoutStatus.FAILED)

    async def totals_by_status(self, seller_id: Optional[str] = None) -> Sequence[Any]:
        """Rows of (status, count, amount)."""
        stmt = select(
            Payout.status,
            func.count(Payout.id).label("count"),
            func.coalesce(func.sum(Payout.amount_cents), 0).label("amount"),
        ).group_by(Payout.status)
        if seller_id is not None:
            stmt = stmt.where(Payout.seller_id == seller_id)
        result = await self.session.execute(stmt)
        return result.all()


class ReservationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_reserved(self, commission_ids: list[str]) -> dict[str, str]:
        """Map of commission_id -> payout_id for the given ids that are already held."""
        if not commission_ids:
            return {}
        stmt = select(PayoutReservation.commission_id, PayoutReservation.payout_id).where(
            PayoutReservation.commission_id.in_(commission_ids)
        )
        result = await self.session.execute(stmt)
        return {row.commission_id: row.payout_id for row in result.all()}

    async def reserve(
        self, payout_id: str, seller_id: str, items: list[tuple[str, int]]
    ) -> None:
        for commission_id, seller_payout_cents in items:
            self.session.add(
                PayoutReservation(
                    payout_id=payout_id,
                    commission_id=commission_id,
                    seller_id=seller_id,
                    seller_payout_cents=seller_payout_cents,
                )
            )
        await self.session.flush()

    async def release(self, payout_id: str) -> int:
        stmt = delete(PayoutReservation).where(PayoutReservation.payout_id == payout_id)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
