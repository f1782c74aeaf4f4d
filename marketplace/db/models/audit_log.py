from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.enums import AuditAction, AuditEntityType, AuditOutcome
from marketplace.db.base import Base, JSONType, prefixed_id, utcnow


class AuditLog(Base):
    """Append-only record of a state change. Never updated."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        String(50), primary_key=True, default=prefixed_id("aud")
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    seller_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_type: Mapped[AuditEntityType] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[AuditAction] = mapped_column(String(20), nullable=False)
    old_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AuditOutcome] = mapped_column(
        String(10), default=AuditOutcome.SUCCESS, nullable=False
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('success', 'failure')", name="valid_audit_status"),
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )
