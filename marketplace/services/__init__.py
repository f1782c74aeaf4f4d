from marketplace.services.audit_recorder import AuditEvent, AuditRecorder
from marketplace.services.commission_ledger import CommissionLedger
from marketplace.services.order_event_processor import OrderEventProcessor
from marketplace.services.payout_orchestrator import PayoutOrchestrator
from marketplace.services.seller_service import SellerService

__all__ = [
    "AuditEvent",
    "AuditRecorder",
    "CommissionLedger",
    "OrderEventProcessor",
    "PayoutOrchestrator",
    "SellerService",
]
