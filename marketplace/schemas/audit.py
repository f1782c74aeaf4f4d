from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.core.enums import AuditAction, AuditEntityType, AuditOutcome
from marketplace.schemas.common import response_meta


class AuditLogData(BaseModel):
    id: str
    user_id: Optional[str] = None
    seller_id: Optional[str] = None
    customer_id: Optional[str] = None
    entity_type: AuditEntityType
    entity_id: str
    action: AuditAction
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    description: Optional[str] = None
    status: AuditOutcome
    error_message: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    items: list[AuditLogData] = Field(default_factory=list)
    meta: dict = Field(default_factory=response_meta)
