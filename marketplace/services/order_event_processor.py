import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import OrderEventType, enum_value
from marketplace.db.repositories import CommissionRepository, SellerRepository
from marketplace.exceptions import SellerNotFoundException
from marketplace.schemas.commissions import CommissionData
from marketplace.schemas.events import OrderEventCreate, OrderEventResponse
from marketplace.services.business_rules import resolve_commission_rate
from marketplace.services.commission_ledger import CommissionLedger

logger = logging.getLogger(__name__)


class OrderEventProcessor:
    """Turns order lifecycle events into commission ledger operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.ledger = CommissionLedger(session)
        self.commission_repo = CommissionRepository(session)
        self.seller_repo = SellerRepository(session)

    async def process_event(self, event: OrderEventCreate) -> OrderEventResponse:
        event_type_value = enum_value(event.event_type)
        logger.info(
            "Processing order event order_id=%s event_type=%s items=%s",
            event.order_id,
            event_type_value,
            len(event.items),
            extra={"order_id": event.order_id, "event_type": event_type_value},
        )

        if event.event_type == OrderEventType.PLACED:
            return await self._order_placed(event)

        if event.event_type == OrderEventType.COMPLETED:
            result = await self.ledger.approve_for_order(event.order_id, event.actor_id)
        else:
            result = await self.ledger.cancel_for_order(
                event.order_id, event.reason, event.actor_id
            )

        commissions = await self.commission_repo.list_for_order(event.order_id)
        return OrderEventResponse(
            order_id=event.order_id,
            event_type=event.event_type,
            commissions=[CommissionData.model_validate(c) for c in commissions],
            result=result,
        )

    async def _order_placed(self, event: OrderEventCreate) -> OrderEventResponse:
        commissions = []
        created = 0

        for item in event.items:
            seller = await self.seller_repo.get_by_id(item.seller_id)
            if seller is None:
                logger.warning(
                    "Order line item references unknown seller order_id=%s line_item_id=%s seller_id=%s",
                    event.order_id,
                    item.line_item_id,
                    item.seller_id,
                    extra={
                        "order_id": event.order_id,
                        "line_item_id": item.line_item_id,
                        "seller_id": item.seller_id,
                    },
                )
                raise SellerNotFoundException(item.seller_id)

            commission, is_new = await self.ledger.record(
                order_id=event.order_id,
                line_item_id=item.line_item_id,
                seller_id=item.seller_id,
                line_item_total_cents=item.line_item_total_cents,
                quantity=item.quantity,
                commission_rate=resolve_commission_rate(
                    seller, item.category_commission_rate
                ),
                currency=event.currency,
                product_id=item.product_id,
                product_title=item.product_title,
                variant_id=item.variant_id,
            )
            commissions.append(commission)
            created += int(is_new)

        if event.items and not created:
            logger.info(
                "Idempotent order event received order_id=%s",
                event.order_id,
                extra={"order_id": event.order_id, "event_type": "order.placed"},
            )

        return OrderEventResponse(
            order_id=event.order_id,
            event_type=event.event_type,
            commissions=[CommissionData.model_validate(c) for c in commissions],
            created=created,
            idempotent=bool(event.items) and created == 0,
        )
