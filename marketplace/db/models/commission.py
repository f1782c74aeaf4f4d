from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.enums import CommissionStatus
from marketplace.db.base import Base, JSONType, prefixed_id, utcnow


class Commission(Base):
    """Platform commission on one order line item. Soft-deleted only.

    Status lifecycle: pending -> approved -> paid, with disputed/cancelled branches.
    """

    __tablename__ = "commissions"

    id: Mapped[str] = mapped_column(
        String(50), primary_key=True, default=prefixed_id("com")
    )
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)
    line_item_id: Mapped[str] = mapped_column(String(100), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(50), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    product_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    variant_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    line_item_total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    seller_payout_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    status: Mapped[CommissionStatus] = mapped_column(
        String(20), default=CommissionStatus.PENDING, nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    disputed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("order_id", "line_item_id", name="uq_commission_line_item"),
        CheckConstraint("line_item_total_cents >= 0", name="non_negative_line_total"),
        CheckConstraint("quantity >= 1", name="positive_quantity"),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="commission_rate_range",
        ),
        CheckConstraint(
            "commission_amount_cents + seller_payout_cents = line_item_total_cents",
            name="commission_reconciles",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'paid', 'disputed', 'cancelled')",
            name="valid_commission_status",
        ),
        Index("idx_commissions_seller_status", "seller_id", "status"),
        Index("idx_commissions_order_id", "order_id"),
    )
