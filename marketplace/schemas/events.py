from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from marketplace.core.enums import OrderEventType
from marketplace.schemas.commissions import BulkResult, CommissionData
from marketplace.schemas.common import response_meta


class OrderLineItem(BaseModel):
    line_item_id: str = Field(..., min_length=1, max_length=100)
    seller_id: str = Field(..., min_length=1, max_length=50)
    product_id: Optional[str] = Field(default=None, max_length=100)
    product_title: Optional[str] = Field(default=None, max_length=255)
    variant_id: Optional[str] = Field(default=None, max_length=100)
    line_item_total_cents: int = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1)
    category_commission_rate: Optional[Decimal] = Field(
        default=None, ge=0, le=100, decimal_places=2
    )


class OrderEventCreate(BaseModel):
    event_type: OrderEventType
    order_id: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    items: list[OrderLineItem] = Field(default_factory=list)
    reason: Optional[str] = None
    actor_id: Optional[str] = Field(default=None, max_length=50)


class OrderEventResponse(BaseModel):
    order_id: str
    event_type: OrderEventType
    commissions: list[CommissionData] = Field(default_factory=list)
    created: int = 0
    idempotent: bool = False
    result: Optional[BulkResult] = None
    meta: dict = Field(default_factory=response_meta)
