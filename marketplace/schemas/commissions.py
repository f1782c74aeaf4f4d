from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.core.enums import CommissionStatus, DisputeOutcome
from marketplace.schemas.common import Page, response_meta


class CommissionData(BaseModel):
    id: str
    order_id: str
    line_item_id: str
    seller_id: str
    product_id: Optional[str] = None
    product_title: Optional[str] = None
    variant_id: Optional[str] = None
    line_item_total_cents: int
    quantity: int
    commission_rate: Decimal
    commission_amount_cents: int
    seller_payout_cents: int
    currency: str
    status: CommissionStatus
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    disputed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommissionResponse(CommissionData):
    meta: dict = Field(default_factory=response_meta)


class CommissionListResponse(Page):
    items: list[CommissionData] = Field(default_factory=list)
    meta: dict = Field(default_factory=response_meta)


class CommissionActionRequest(BaseModel):
    actor_id: Optional[str] = Field(default=None, max_length=50)


class CommissionDisputeRequest(CommissionActionRequest):
    notes: str = Field(..., min_length=1)


class CommissionCancelRequest(CommissionActionRequest):
    reason: Optional[str] = None


class CommissionResolveRequest(CommissionActionRequest):
    outcome: DisputeOutcome
    notes: Optional[str] = None


class EarningsBucket(BaseModel):
    count: int = 0
    line_item_total_cents: int = 0
    commission_amount_cents: int = 0
    seller_payout_cents: int = 0


class SellerEarnings(BaseModel):
    seller_id: str
    currency: str
    totals: EarningsBucket
    by_status: dict[CommissionStatus, EarningsBucket]
    available_for_payout_cents: int
    meta: dict = Field(default_factory=response_meta)


class PlatformEarnings(BaseModel):
    currency: str
    total_commission_cents: int
    paid_commission_cents: int
    pending_commission_cents: int
    meta: dict = Field(default_factory=response_meta)


class BulkFailure(BaseModel):
    id: str
    error_code: str
    message: str


class BulkResult(BaseModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)
