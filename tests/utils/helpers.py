import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Optional
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.enums import PaymentMethod, VerificationStatus
from marketplace.db.models import Commission, Seller
from marketplace.services.commission_ledger import CommissionLedger


async def seed_seller(
    session_factory: async_sessionmaker[AsyncSession],
    verification_status: VerificationStatus = VerificationStatus.VERIFIED,
    commission_rate: Optional[Decimal] = None,
    **overrides: Any,
) -> Seller:
    """Insert a seller directly; defaults to an established verified account."""
    values = {
        "customer_id": f"cus_{uuid4().hex[:8]}",
        "business_name": "Acme Goods",
        "business_email": "owner@acme.test",
        "payout_method": PaymentMethod.BANK_TRANSFER,
        "verification_status": verification_status,
        "commission_rate": commission_rate,
        "is_active": True,
        "created_at": datetime.now(timezone.utc) - timedelta(days=365),
    }
    values.update(overrides)
    async with session_factory() as session, session.begin():
        seller = Seller(**values)
        session.add(seller)
    return seller


async def seed_approved_commissions(
    session_factory: async_sessionmaker[AsyncSession],
    seller_id: str,
    totals_cents: List[int],
    rate: Decimal = Decimal("10"),
    currency: str = "USD",
) -> List[Commission]:
    """Record one order per total and approve every resulting commission."""
    commissions = []
    async with session_factory() as session, session.begin():
        ledger = CommissionLedger(session)
        for total in totals_cents:
            commission, _ = await ledger.record(
                order_id=f"ord_{uuid4().hex[:8]}",
                line_item_id=f"li_{uuid4().hex[:8]}",
                seller_id=seller_id,
                line_item_total_cents=total,
                quantity=1,
                commission_rate=rate,
                currency=currency,
            )
            commissions.append(await ledger.approve(commission.id))
    return commissions


async def process_order_events_batch(
    client: AsyncClient,
    events: List[dict],
) -> List[dict]:
    """Send order events one after another and return their responses."""
    responses = []
    for event in events:
        response = await client.post("/v1/orders/events", json=event)
        responses.append(response.json())
    return responses


async def request_payouts_concurrent(
    client: AsyncClient,
    payouts: List[dict],
) -> List[Any]:
    """Fire payout requests at the same time."""
    tasks = [client.post("/v1/payouts", json=payout) for payout in payouts]
    return await asyncio.gather(*tasks)


def format_currency(amount_cents: int, currency: str = "USD") -> str:
    """Format cents to currency string."""
    amount = amount_cents / 100
    return f"{currency} {amount:.2f}"
