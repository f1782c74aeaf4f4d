from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.models import Seller
from marketplace.db.repositories.base import BaseRepository


class SellerRepository(BaseRepository[Seller]):
    model = Seller

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_for_update(self, seller_id: str) -> Optional[Seller]:
        """Row-lock the seller for the rest of the transaction (no-op on SQLite)."""
        stmt = select(Seller).where(Seller.id == seller_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_customer_id(self, customer_id: str) -> Optional[Seller]:
        stmt = select(Seller).where(Seller.customer_id == customer_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
