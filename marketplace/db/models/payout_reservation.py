from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.db.base import Base


class PayoutReservation(Base):
    """Claim of one commission by one payout. commission_id is unique across all rows."""

    __tablename__ = "payout_reservations"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    payout_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("payouts.id", ondelete="CASCADE"),
        nullable=False,
    )
    commission_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("commissions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    seller_id: Mapped[str] = mapped_column(String(50), nullable=False)
    seller_payout_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("commission_id", name="uq_reservation_commission"),
        Index("idx_payout_reservations_payout_id", "payout_id"),
        Index("idx_payout_reservations_seller_id", "seller_id"),
    )
