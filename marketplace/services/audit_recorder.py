import logging
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import (
    AuditAction,
    AuditEntityType,
    AuditOutcome,
    enum_value,
)
from marketplace.db.models import AuditLog, Commission, Payout, Seller
from marketplace.db.repositories import AuditLogRepository
from marketplace.metrics import audit_failures_total

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    entity_type: AuditEntityType
    entity_id: str
    action: AuditAction
    user_id: Optional[str] = None
    seller_id: Optional[str] = None
    customer_id: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    description: Optional[str] = None
    status: AuditOutcome = AuditOutcome.SUCCESS
    error_message: Optional[str] = None


class AuditRecorder:
    """Append-only audit trail.

    Recording never fails the caller: the row is written in a savepoint and
    any error while writing it only rolls back that savepoint.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.audit_repo = AuditLogRepository(session)

    async def record(self, event: AuditEvent) -> Optional[AuditLog]:
        entity_type = enum_value(event.entity_type)
        action = enum_value(event.action)
        try:
            async with self.session.begin_nested():
                audit_log = await self.audit_repo.create(
                    user_id=event.user_id,
                    seller_id=event.seller_id,
                    customer_id=event.customer_id,
                    entity_type=entity_type,
                    entity_id=event.entity_id,
                    action=action,
                    old_values=event.old_values,
                    new_values=event.new_values,
                    description=event.description,
                    status=enum_value(event.status),
                    error_message=event.error_message,
                )
        except Exception:
            audit_failures_total.inc()
            logger.exception(
                "Failed to store audit event entity_type=%s entity_id=%s action=%s",
                entity_type,
                event.entity_id,
                action,
                extra={
                    "entity_type": entity_type,
                    "entity_id": event.entity_id,
                    "action": action,
                },
            )
            return None

        logger.info(
            "Audit %s %s %s",
            entity_type,
            event.entity_id,
            action,
            extra={
                "entity_type": entity_type,
                "entity_id": event.entity_id,
                "action": action,
                "audit_status": enum_value(event.status),
            },
        )
        return audit_log

    async def commission_transition(
        self,
        commission: Commission,
        old_status: Any,
        action: AuditAction,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return await self.record(
            AuditEvent(
                entity_type=AuditEntityType.COMMISSION,
                entity_id=commission.id,
                action=action,
                user_id=user_id,
                seller_id=commission.seller_id,
                old_values={"status": enum_value(old_status)} if old_status else None,
                new_values={"status": enum_value(commission.status)},
                description=description,
            )
        )

    async def payout_transition(
        self,
        payout: Payout,
        old_status: Any,
        action: AuditAction,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return await self.record(
            AuditEvent(
                entity_type=AuditEntityType.PAYOUT,
                entity_id=payout.id,
                action=action,
                user_id=user_id,
                seller_id=payout.seller_id,
                old_values={"status": enum_value(old_status)} if old_status else None,
                new_values={
                    "status": enum_value(payout.status),
                    "amount_cents": payout.amount_cents,
                },
                description=description,
            )
        )

    async def seller_action(
        self,
        seller: Seller,
        action: AuditAction,
        user_id: Optional[str] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return await self.record(
            AuditEvent(
                entity_type=AuditEntityType.SELLER,
                entity_id=seller.id,
                action=action,
                user_id=user_id,
                seller_id=seller.id,
                customer_id=seller.customer_id,
                old_values=old_values,
                new_values=new_values,
                description=description,
            )
        )

    async def failure(
        self,
        entity_type: AuditEntityType,
        entity_id: str,
        action: AuditAction,
        error_message: str,
        user_id: Optional[str] = None,
        seller_id: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return await self.record(
            AuditEvent(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                user_id=user_id,
                seller_id=seller_id,
                status=AuditOutcome.FAILURE,
                error_message=error_message,
            )
        )

    async def list_for_entity(
        self,
        entity_type: Optional[AuditEntityType] = None,
        entity_id: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[AuditLog]:
        return await self.audit_repo.list_for_entity(
            entity_type=enum_value(entity_type) if entity_type else None,
            entity_id=entity_id,
            offset=offset,
            limit=limit,
        )
