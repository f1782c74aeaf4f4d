from marketplace.db.repositories.audit_repository import AuditLogRepository
from marketplace.db.repositories.commission_repository import CommissionRepository
from marketplace.db.repositories.payout_repository import (
    PayoutRepository,
    ReservationRepository,
)
from marketplace.db.repositories.seller_repository import SellerRepository

__all__ = [
    "AuditLogRepository",
    "CommissionRepository",
    "PayoutRepository",
    "ReservationRepository",
    "SellerRepository",
]
