from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


class BaseAPIException(Exception):
    """
    Base exception for all API errors.

    Provides consistent structure with status_code, error_code, and details.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}


class ValidationException(BaseAPIException):
    """Invalid input data (HTTP 400)."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class BusinessException(BaseAPIException):
    """Business rule violation (HTTP 409)."""

    status_code = 409
    error_code = "BUSINESS_RULE_VIOLATION"


class ConflictException(BusinessException):
    """Concurrent or duplicate claim on the same resource (HTTP 409)."""

    error_code = "CONFLICT"


class NotFoundException(BaseAPIException):
    """Resource not found (HTTP 404)."""

    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"


class RateLimitException(BaseAPIException):
    """Too many attempts in the current window (HTTP 429)."""

    status_code = 429
    error_code = "RATE_LIMITED"


class SystemException(BaseAPIException):
    """Internal system error (HTTP 500)."""

    status_code = 500
    error_code = "SYSTEM_ERROR"


# Domain-specific exceptions
class InvalidRateException(ValidationException):
    """Commission rate outside [0, 100]."""

    error_code = "COMMISSION_INVALID_RATE"

    def __init__(self, rate: Decimal):
        super().__init__(
            message=f"Commission rate must be between 0 and 100, got {rate}",
            details={"commission_rate": str(rate)},
        )


class InvalidAmountException(ValidationException):
    """Negative line item total or non-positive quantity."""

    error_code = "COMMISSION_INVALID_AMOUNT"

    def __init__(self, message: str, **details: Any):
        super().__init__(message=message, details=details)


class InvalidTransitionException(BusinessException):
    """Requested status change is not allowed by the state machine."""

    error_code = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity_type} {entity_id} from {current} to {target}",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_status": current,
                "target_status": target,
            },
        )


class InvalidCommissionSetException(ValidationException):
    """Commissions referenced by a payout request are not payable."""

    error_code = "PAYOUT_INVALID_COMMISSION_SET"

    def __init__(self, reasons: list[str], commission_ids: Optional[list[str]] = None):
        super().__init__(
            message="Some commissions are invalid. Only approved commissions "
            "from this seller can be included.",
            details={"reasons": reasons, "commission_ids": commission_ids or []},
        )


class CommissionAlreadyReservedException(ConflictException):
    """Commission already held by another active payout."""

    error_code = "PAYOUT_COMMISSION_ALREADY_RESERVED"

    def __init__(self, commission_ids: list[str]):
        super().__init__(
            message="Commissions are already included in another payout",
            details={"commission_ids": commission_ids},
        )


class AmountOutOfRangeException(ValidationException):
    """Payout amount violates min/max or exceeds the referenced commissions."""

    error_code = "PAYOUT_AMOUNT_OUT_OF_RANGE"

    def __init__(self, reason: str, amount_cents: int, **details: Any):
        super().__init__(
            message=reason,
            details={"amount_cents": amount_cents, **details},
        )


class IneligibleSellerException(ValidationException):
    """Seller fails one or more payout eligibility rules."""

    error_code = "PAYOUT_INELIGIBLE_SELLER"

    def __init__(self, seller_id: str, reasons: list[str]):
        super().__init__(
            message="; ".join(reasons) or "Seller is not eligible for payouts",
            details={"seller_id": seller_id, "reasons": reasons},
        )


class SellerValidationException(ValidationException):
    """Seller registration or verification data is incomplete or invalid."""

    error_code = "SELLER_VALIDATION_ERROR"

    def __init__(self, errors: list[str], seller_id: Optional[str] = None):
        details: dict[str, Any] = {"reasons": errors}
        if seller_id:
            details["seller_id"] = seller_id
        super().__init__(message="; ".join(errors), details=details)


class RetryLimitExceededException(BusinessException):
    """Failed payout has used all automatic retries."""

    error_code = "PAYOUT_RETRY_LIMIT_EXCEEDED"

    def __init__(self, payout_id: str, retry_count: int, max_retries: int):
        super().__init__(
            message=f"Payout {payout_id} reached the retry limit ({retry_count}/{max_retries}); manual review required",
            details={
                "payout_id": payout_id,
                "retry_count": retry_count,
                "max_retries": max_retries,
            },
        )


class PayoutReconciliationException(BusinessException):
    """Payout completion could not mark every commission as paid."""

    error_code = "PAYOUT_RECONCILIATION_REQUIRED"

    def __init__(self, payout_id: str, reason: Optional[str]):
        super().__init__(
            message=f"Payout {payout_id} requires manual reconciliation",
            details={"payout_id": payout_id, "reason": reason},
        )


class CommissionNotFoundException(NotFoundException):
    error_code = "COMMISSION_NOT_FOUND"

    def __init__(self, commission_id: str):
        super().__init__(
            message=f"Commission not found: {commission_id}",
            details={"commission_id": commission_id},
        )


class PayoutNotFoundException(NotFoundException):
    error_code = "PAYOUT_NOT_FOUND"

    def __init__(self, payout_id: str):
        super().__init__(
            message=f"Payout not found: {payout_id}",
            details={"payout_id": payout_id},
        )


class SellerNotFoundException(NotFoundException):
    error_code = "SELLER_NOT_FOUND"

    def __init__(self, seller_id: str):
        super().__init__(
            message=f"Seller not found: {seller_id}",
            details={"seller_id": seller_id},
        )


class RateLimitExceededException(RateLimitException):
    def __init__(self, action: str, key: str, reset_at: datetime):
        super().__init__(
            message=f"Too many {action} attempts, try again later",
            details={"action": action, "key": key, "reset_at": reset_at.isoformat()},
        )


class ExternalProviderException(SystemException):
    """Payment provider rejected or failed to process a payout (HTTP 502)."""

    status_code = 502
    error_code = "PAYMENT_PROVIDER_ERROR"

    def __init__(self, provider: str, message: str):
        super().__init__(message=message, details={"provider": provider})
