from enum import Enum


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class DisputeOutcome(str, Enum):
    APPROVED = "approved"
    CANCELLED = "cancelled"


class PayoutStatus(str, Enum):
    REQUESTED = "requested"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class OrderEventType(str, Enum):
    PLACED = "order.placed"
    COMPLETED = "order.completed"
    CANCELLED = "order.cancelled"


class AuditEntityType(str, Enum):
    SELLER = "seller"
    COMMISSION = "commission"
    PAYOUT = "payout"
    ORDER = "order"


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    PAID = "paid"
    FAILED = "failed"
    DISPUTED = "disputed"
    PROCESSING = "processing"
    COMPLETED = "completed"


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def enum_value(value) -> str:
    """Plain string for an enum member or a raw column value."""
    return value.value if hasattr(value, "value") else str(value)
