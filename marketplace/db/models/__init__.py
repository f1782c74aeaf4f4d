from marketplace.db.models.audit_log import AuditLog
from marketplace.db.models.commission import Commission
from marketplace.db.models.payout import Payout
from marketplace.db.models.payout_reservation import PayoutReservation
from marketplace.db.models.seller import Seller

__all__ = ["AuditLog", "Commission", "Payout", "PayoutReservation", "Seller"]
