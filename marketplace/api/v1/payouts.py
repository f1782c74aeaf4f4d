import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Query, status

from marketplace.api.dependencies import SessionDep, SessionFactoryDep
from marketplace.core.config import settings
from marketplace.core.enums import PayoutStatus
from marketplace.exceptions import PayoutReconciliationException
from marketplace.schemas.payouts import (
    PayoutCancelRequest,
    PayoutCompleteRequest,
    PayoutCreate,
    PayoutData,
    PayoutFailRequest,
    PayoutListResponse,
    PayoutProcessRequest,
    PayoutResponse,
    PayoutReviewRequest,
    PayoutStats,
)
from marketplace.services.payment_providers import submit_payout
from marketplace.services.payout_orchestrator import PayoutOrchestrator
from marketplace.services.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def request_payout(payout_data: PayoutCreate, session: SessionDep) -> PayoutResponse:
    enforce_rate_limit(
        "payout_request",
        f"payout_request:{payout_data.seller_id}",
        settings.payout_request_rate_limit,
        settings.payout_request_rate_window_seconds,
    )
    async with session.begin():
        payout = await PayoutOrchestrator(session).request_payout(
            seller_id=payout_data.seller_id,
            commission_ids=payout_data.commission_ids,
            amount_cents=payout_data.amount_cents,
            payment_method=payout_data.payment_method,
            notes=payout_data.notes,
        )
    return PayoutResponse.model_validate(payout)


@router.get("", response_model=PayoutListResponse)
async def list_payouts(
    session: SessionDep,
    seller_id: Optional[str] = None,
    status: Optional[PayoutStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
) -> PayoutListResponse:
    items, total = await PayoutOrchestrator(session).search(
        page=page, limit=limit, seller_id=seller_id, status=status
    )
    return PayoutListResponse(
        items=[PayoutData.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=PayoutStats)
async def get_payout_stats(session: SessionDep) -> PayoutStats:
    return await PayoutOrchestrator(session).stats()


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(payout_id: str, session: SessionDep) -> PayoutResponse:
    payout = await PayoutOrchestrator(session).get(payout_id)
    return PayoutResponse.model_validate(payout)


@router.post("/{payout_id}/review", response_model=PayoutResponse)
async def review_payout(
    payout_id: str, body: PayoutReviewRequest, session: SessionDep
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).review(
            payout_id, body.decision, body.admin_id, body.notes
        )
    return PayoutResponse.model_validate(payout)


@router.post(
    "/{payout_id}/process",
    response_model=PayoutResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def process_payout(
    payout_id: str,
    session: SessionDep,
    session_factory: SessionFactoryDep,
    background_tasks: BackgroundTasks,
    body: Optional[PayoutProcessRequest] = None,
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).start_processing(
            payout_id,
            payment_method=body.payment_method if body else None,
            admin_id=body.admin_id if body else None,
        )

    logger.info(
        "Payout submission scheduled payout_id=%s",
        payout.id,
        extra={"payout_id": payout.id, "seller_id": payout.seller_id},
    )
    background_tasks.add_task(submit_payout, payout.id, session_factory)
    return PayoutResponse.model_validate(payout)


@router.post("/{payout_id}/complete", response_model=PayoutResponse)
async def complete_payout(
    payout_id: str, body: PayoutCompleteRequest, session: SessionDep
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).complete(
            payout_id, body.payment_reference, body.payment_metadata
        )

    # Flag is committed; the caller still has to hear about it.
    if payout.requires_reconciliation:
        raise PayoutReconciliationException(payout.id, payout.failure_reason)
    return PayoutResponse.model_validate(payout)


@router.post("/{payout_id}/fail", response_model=PayoutResponse)
async def fail_payout(
    payout_id: str, body: PayoutFailRequest, session: SessionDep
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).fail(payout_id, body.reason)
    return PayoutResponse.model_validate(payout)


@router.post("/{payout_id}/retry", response_model=PayoutResponse)
async def retry_payout(
    payout_id: str,
    session: SessionDep,
    session_factory: SessionFactoryDep,
    background_tasks: BackgroundTasks,
    admin_id: Optional[str] = None,
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).retry(payout_id, admin_id)

    background_tasks.add_task(submit_payout, payout.id, session_factory)
    return PayoutResponse.model_validate(payout)


@router.post("/{payout_id}/cancel", response_model=PayoutResponse)
async def cancel_payout(
    payout_id: str, body: PayoutCancelRequest, session: SessionDep
) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutOrchestrator(session).cancel(
            payout_id, body.admin_id, body.reason
        )
    return PayoutResponse.model_validate(payout)
