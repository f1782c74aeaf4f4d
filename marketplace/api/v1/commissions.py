from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from marketplace.api.dependencies import SessionDep
from marketplace.core.config import settings
from marketplace.core.enums import CommissionStatus
from marketplace.schemas.commissions import (
    CommissionActionRequest,
    CommissionCancelRequest,
    CommissionData,
    CommissionDisputeRequest,
    CommissionListResponse,
    CommissionResolveRequest,
    CommissionResponse,
    PlatformEarnings,
)
from marketplace.services.commission_ledger import CommissionLedger

router = APIRouter()


@router.get("", response_model=CommissionListResponse)
async def list_commissions(
    session: SessionDep,
    seller_id: Optional[str] = None,
    order_id: Optional[str] = None,
    status: Optional[CommissionStatus] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
) -> CommissionListResponse:
    ledger = CommissionLedger(session)
    items, total = await ledger.search(
        page=page,
        limit=limit,
        seller_id=seller_id,
        order_id=order_id,
        status=status,
        created_from=created_from,
        created_to=created_to,
    )
    return CommissionListResponse(
        items=[CommissionData.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/platform/earnings", response_model=PlatformEarnings)
async def get_platform_earnings(
    session: SessionDep, currency: str = settings.default_currency
) -> PlatformEarnings:
    return await CommissionLedger(session).platform_earnings(currency)


@router.get("/{commission_id}", response_model=CommissionResponse)
async def get_commission(commission_id: str, session: SessionDep) -> CommissionResponse:
    commission = await CommissionLedger(session).get(commission_id)
    return CommissionResponse.model_validate(commission)


@router.post("/{commission_id}/approve", response_model=CommissionResponse)
async def approve_commission(
    commission_id: str, session: SessionDep, body: Optional[CommissionActionRequest] = None
) -> CommissionResponse:
    actor_id = body.actor_id if body else None
    async with session.begin():
        commission = await CommissionLedger(session).approve(commission_id, actor_id)
    return CommissionResponse.model_validate(commission)


@router.post("/{commission_id}/dispute", response_model=CommissionResponse)
async def dispute_commission(
    commission_id: str, body: CommissionDisputeRequest, session: SessionDep
) -> CommissionResponse:
    async with session.begin():
        commission = await CommissionLedger(session).dispute(
            commission_id, body.notes, body.actor_id
        )
    return CommissionResponse.model_validate(commission)


@router.post("/{commission_id}/resolve", response_model=CommissionResponse)
async def resolve_commission_dispute(
    commission_id: str, body: CommissionResolveRequest, session: SessionDep
) -> CommissionResponse:
    async with session.begin():
        commission = await CommissionLedger(session).resolve_dispute(
            commission_id, body.outcome, body.actor_id, body.notes
        )
    return CommissionResponse.model_validate(commission)


@router.post("/{commission_id}/cancel", response_model=CommissionResponse)
async def cancel_commission(
    commission_id: str, session: SessionDep, body: Optional[CommissionCancelRequest] = None
) -> CommissionResponse:
    async with session.begin():
        commission = await CommissionLedger(session).cancel(
            commission_id,
            body.reason if body else None,
            body.actor_id if body else None,
        )
    return CommissionResponse.model_validate(commission)


@router.delete("/{commission_id}", response_model=CommissionResponse)
async def delete_commission(
    commission_id: str, session: SessionDep, actor_id: Optional[str] = None
) -> CommissionResponse:
    async with session.begin():
        commission = await CommissionLedger(session).soft_delete(commission_id, actor_id)
    return CommissionResponse.model_validate(commission)
