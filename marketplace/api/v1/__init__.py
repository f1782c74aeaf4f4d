from fastapi import APIRouter

from marketplace.api.v1 import audit, commissions, orders, payouts, sellers

api_router = APIRouter()

api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(
    commissions.router, prefix="/commissions", tags=["commissions"]
)
api_router.include_router(sellers.router, prefix="/sellers", tags=["sellers"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["payouts"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["audit"])
