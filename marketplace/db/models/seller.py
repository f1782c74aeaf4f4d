from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.enums import PaymentMethod, VerificationStatus
from marketplace.db.base import Base, JSONType, prefixed_id, utcnow


class Seller(Base):
    """Marketplace seller. Read by the ledger and payout services, never written by them."""

    __tablename__ = "sellers"

    id: Mapped[str] = mapped_column(
        String(50), primary_key=True, default=prefixed_id("sel")
    )
    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_email: Mapped[str] = mapped_column(String(255), nullable=False)
    business_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    verification_status: Mapped[VerificationStatus] = mapped_column(
        String(20), default=VerificationStatus.PENDING, nullable=False
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    verification_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payout_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        String(20), nullable=True
    )
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    suspension_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    chargeback_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected', 'suspended')",
            name="valid_verification_status",
        ),
        CheckConstraint(
            "commission_rate IS NULL OR (commission_rate >= 0 AND commission_rate <= 100)",
            name="seller_commission_rate_range",
        ),
        Index("idx_sellers_customer_id", "customer_id"),
    )
