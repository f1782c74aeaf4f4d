from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.core.enums import PaymentMethod, RiskLevel, VerificationStatus
from marketplace.schemas.common import response_meta


class SellerCreate(BaseModel):
    # Field rules are checked together by the seller service so every
    # problem is reported in one response.
    customer_id: Optional[str] = None
    business_name: Optional[str] = None
    business_email: Optional[str] = None
    business_phone: Optional[str] = Field(default=None, max_length=50)
    payout_method: Optional[str] = None
    commission_rate: Optional[Decimal] = None
    metadata: Optional[dict] = None


class SellerVerifyRequest(BaseModel):
    admin_id: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class SellerReasonRequest(BaseModel):
    admin_id: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., min_length=1)


class SellerReactivateRequest(BaseModel):
    admin_id: str = Field(..., min_length=1, max_length=50)


class SellerResponse(BaseModel):
    id: str
    customer_id: str
    business_name: str
    business_email: str
    business_phone: Optional[str] = None
    verification_status: VerificationStatus
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    payout_method: Optional[PaymentMethod] = None
    commission_rate: Optional[Decimal] = None
    is_active: bool
    suspension_count: int
    chargeback_count: int
    average_rating: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    meta: dict = Field(default_factory=response_meta)

    model_config = ConfigDict(from_attributes=True)


class RiskScore(BaseModel):
    score: int
    level: RiskLevel
    flags: list[str] = Field(default_factory=list)


class SellerEligibility(BaseModel):
    seller_id: str
    eligible: bool
    reasons: list[str] = Field(default_factory=list)
    failed_payout_count: int
    last_payout_at: Optional[datetime] = None
    available_for_payout_cents: int
    risk: RiskScore
    meta: dict = Field(default_factory=response_meta)
