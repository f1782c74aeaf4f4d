from marketplace.schemas.audit import AuditLogData, AuditLogListResponse
from marketplace.schemas.commissions import (
    BulkFailure,
    BulkResult,
    CommissionActionRequest,
    CommissionCancelRequest,
    CommissionData,
    CommissionDisputeRequest,
    CommissionListResponse,
    CommissionResolveRequest,
    CommissionResponse,
    EarningsBucket,
    PlatformEarnings,
    SellerEarnings,
)
from marketplace.schemas.common import ErrorDetail, ErrorResponse, Page
from marketplace.schemas.events import (
    OrderEventCreate,
    OrderEventResponse,
    OrderLineItem,
)
from marketplace.schemas.payouts import (
    PayoutCancelRequest,
    PayoutCompleteRequest,
    PayoutCreate,
    PayoutData,
    PayoutFailRequest,
    PayoutListResponse,
    PayoutProcessRequest,
    PayoutResponse,
    PayoutReviewRequest,
    PayoutStats,
    PayoutSummary,
    StatusGroup,
)
from marketplace.schemas.sellers import (
    RiskScore,
    SellerCreate,
    SellerEligibility,
    SellerReactivateRequest,
    SellerReasonRequest,
    SellerResponse,
    SellerVerifyRequest,
)

__all__ = [
    "AuditLogData",
    "AuditLogListResponse",
    "BulkFailure",
    "BulkResult",
    "CommissionActionRequest",
    "CommissionCancelRequest",
    "CommissionData",
    "CommissionDisputeRequest",
    "CommissionListResponse",
    "CommissionResolveRequest",
    "CommissionResponse",
    "EarningsBucket",
    "PlatformEarnings",
    "SellerEarnings",
    "ErrorDetail",
    "ErrorResponse",
    "Page",
    "OrderEventCreate",
    "OrderEventResponse",
    "OrderLineItem",
    "PayoutCancelRequest",
    "PayoutCompleteRequest",
    "PayoutCreate",
    "PayoutData",
    "PayoutFailRequest",
    "PayoutListResponse",
    "PayoutProcessRequest",
    "PayoutResponse",
    "PayoutReviewRequest",
    "PayoutStats",
    "PayoutSummary",
    "StatusGroup",
    "RiskScore",
    "SellerCreate",
    "SellerEligibility",
    "SellerReactivateRequest",
    "SellerReasonRequest",
    "SellerResponse",
    "SellerVerifyRequest",
]
