from fastapi import APIRouter, status

from marketplace.api.dependencies import SessionDep
from marketplace.core.config import settings
from marketplace.schemas.commissions import SellerEarnings
from marketplace.schemas.payouts import PayoutSummary
from marketplace.schemas.sellers import (
    SellerCreate,
    SellerEligibility,
    SellerReactivateRequest,
    SellerReasonRequest,
    SellerResponse,
    SellerVerifyRequest,
)
from marketplace.services.commission_ledger import CommissionLedger
from marketplace.services.payout_orchestrator import PayoutOrchestrator
from marketplace.services.rate_limiter import enforce_rate_limit
from marketplace.services.seller_service import SellerService

router = APIRouter()


@router.post("", response_model=SellerResponse, status_code=status.HTTP_201_CREATED)
async def register_seller(seller_data: SellerCreate, session: SessionDep) -> SellerResponse:
    enforce_rate_limit(
        "seller_registration",
        f"seller_registration:{seller_data.customer_id}",
        settings.seller_registration_rate_limit,
        settings.seller_registration_rate_window_seconds,
    )
    async with session.begin():
        seller = await SellerService(session).register(seller_data)
    return SellerResponse.model_validate(seller)


@router.get("/{seller_id}", response_model=SellerResponse)
async def get_seller(seller_id: str, session: SessionDep) -> SellerResponse:
    seller = await SellerService(session).get(seller_id)
    return SellerResponse.model_validate(seller)


@router.post("/{seller_id}/verify", response_model=SellerResponse)
async def verify_seller(
    seller_id: str, body: SellerVerifyRequest, session: SessionDep
) -> SellerResponse:
    async with session.begin():
        seller = await SellerService(session).verify(seller_id, body.admin_id, body.notes)
    return SellerResponse.model_validate(seller)


@router.post("/{seller_id}/reject", response_model=SellerResponse)
async def reject_seller(
    seller_id: str, body: SellerReasonRequest, session: SessionDep
) -> SellerResponse:
    async with session.begin():
        seller = await SellerService(session).reject(seller_id, body.admin_id, body.reason)
    return SellerResponse.model_validate(seller)


@router.post("/{seller_id}/suspend", response_model=SellerResponse)
async def suspend_seller(
    seller_id: str, body: SellerReasonRequest, session: SessionDep
) -> SellerResponse:
    async with session.begin():
        seller = await SellerService(session).suspend(seller_id, body.admin_id, body.reason)
    return SellerResponse.model_validate(seller)


@router.post("/{seller_id}/reactivate", response_model=SellerResponse)
async def reactivate_seller(
    seller_id: str, body: SellerReactivateRequest, session: SessionDep
) -> SellerResponse:
    async with session.begin():
        seller = await SellerService(session).reactivate(seller_id, body.admin_id)
    return SellerResponse.model_validate(seller)


@router.get("/{seller_id}/eligibility", response_model=SellerEligibility)
async def get_seller_eligibility(seller_id: str, session: SessionDep) -> SellerEligibility:
    return await SellerService(session).eligibility(seller_id)


@router.get("/{seller_id}/earnings", response_model=SellerEarnings)
async def get_seller_earnings(
    seller_id: str, session: SessionDep, currency: str = settings.default_currency
) -> SellerEarnings:
    await SellerService(session).get(seller_id)
    return await CommissionLedger(session).seller_earnings(seller_id, currency)


@router.get("/{seller_id}/payouts/summary", response_model=PayoutSummary)
async def get_seller_payout_summary(seller_id: str, session: SessionDep) -> PayoutSummary:
    await SellerService(session).get(seller_id)
    return await PayoutOrchestrator(session).seller_summary(seller_id)
