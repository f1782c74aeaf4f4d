from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.enums import PaymentMethod, PayoutStatus
from marketplace.db.base import Base, JSONType, prefixed_id, utcnow


class Payout(Base):
    """Seller payout covering a set of approved commissions.

    Status lifecycle: requested -> pending_review -> approved -> processing ->
    completed, with failed (retryable) and cancelled branches.
    """

    __tablename__ = "payouts"

    id: Mapped[str] = mapped_column(
        String(50), primary_key=True, default=prefixed_id("pay")
    )
    seller_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("sellers.id", ondelete="RESTRICT"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    commission_ids: Mapped[list] = mapped_column(JSONType, nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        String(20), default=PayoutStatus.REQUESTED, nullable=False
    )

    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        String(20), nullable=True
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_metadata: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    reviewed_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requires_reconciliation: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="positive_payout_amount"),
        CheckConstraint("retry_count >= 0", name="non_negative_retry_count"),
        CheckConstraint(
            "status IN ('requested', 'pending_review', 'approved', 'processing', "
            "'completed', 'failed', 'cancelled')",
            name="valid_payout_status",
        ),
        CheckConstraint(
            "(status = 'completed' AND completed_at IS NOT NULL) OR "
            "(status != 'completed' AND completed_at IS NULL)",
            name="completed_at_consistency",
        ),
        Index(
            "idx_payouts_active",
            "seller_id",
            "status",
            postgresql_where="status IN ('requested', 'pending_review', 'approved', 'processing', 'failed')",
        ),
        Index("idx_payouts_seller_requested_at", "seller_id", "requested_at"),
    )
