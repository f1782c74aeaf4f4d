from tests.utils.factories import OrderEventFactory, PayoutFactory, SellerFactory
from tests.utils.helpers import (
    format_currency,
    process_order_events_batch,
    request_payouts_concurrent,
    seed_approved_commissions,
    seed_seller,
)

__all__ = [
    "OrderEventFactory",
    "PayoutFactory",
    "SellerFactory",
    "format_currency",
    "process_order_events_batch",
    "request_payouts_concurrent",
    "seed_approved_commissions",
    "seed_seller",
]
