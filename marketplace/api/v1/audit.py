from typing import Optional

from fastapi import APIRouter, Query

from marketplace.api.dependencies import SessionDep
from marketplace.core.enums import AuditEntityType
from marketplace.schemas.audit import AuditLogData, AuditLogListResponse
from marketplace.services.audit_recorder import AuditRecorder

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    session: SessionDep,
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=500),
) -> AuditLogListResponse:
    logs = await AuditRecorder(session).list_for_entity(
        entity_type=entity_type,
        entity_id=entity_id,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return AuditLogListResponse(items=[AuditLogData.model_validate(log) for log in logs])
