from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.core.enums import PaymentMethod, PayoutStatus, ReviewDecision
from marketplace.schemas.common import Page, response_meta


class PayoutCreate(BaseModel):
    seller_id: str = Field(..., min_length=1, max_length=50)
    commission_ids: list[str]
    amount_cents: int
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class PayoutReviewRequest(BaseModel):
    decision: ReviewDecision
    admin_id: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class PayoutProcessRequest(BaseModel):
    payment_method: Optional[PaymentMethod] = None
    admin_id: Optional[str] = Field(default=None, max_length=50)


class PayoutCompleteRequest(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)
    payment_metadata: Optional[dict] = None


class PayoutFailRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PayoutCancelRequest(BaseModel):
    admin_id: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., min_length=1)


class PayoutData(BaseModel):
    id: str
    seller_id: str
    amount_cents: int
    currency: str
    commission_ids: list[str]
    status: PayoutStatus
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    processing_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    admin_notes: Optional[str] = None
    failure_reason: Optional[str] = None
    retry_count: int
    requires_reconciliation: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutResponse(PayoutData):
    meta: dict = Field(default_factory=response_meta)


class PayoutListResponse(Page):
    items: list[PayoutData] = Field(default_factory=list)
    meta: dict = Field(default_factory=response_meta)


class PayoutSummary(BaseModel):
    seller_id: str
    total_requested_cents: int
    total_paid_cents: int
    total_pending_cents: int
    payout_count: int
    meta: dict = Field(default_factory=response_meta)


class StatusGroup(BaseModel):
    count: int = 0
    amount_cents: int = 0


class PayoutStats(BaseModel):
    total: StatusGroup
    pending: StatusGroup
    approved: StatusGroup
    completed: StatusGroup
    failed: StatusGroup
    cancelled: StatusGroup
    meta: dict = Field(default_factory=response_meta)
