import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.enums import (
    AuditAction,
    CommissionStatus,
    DisputeOutcome,
    enum_value,
)
from marketplace.core.transitions import (
    TERMINAL_COMMISSION_STATUSES,
    can_transition_commission,
)
from marketplace.db.base import utcnow
from marketplace.db.models import Commission
from marketplace.db.repositories import CommissionRepository
from marketplace.exceptions import (
    BaseAPIException,
    CommissionNotFoundException,
    InvalidAmountException,
    InvalidRateException,
    InvalidTransitionException,
)
from marketplace.metrics import commission_transitions_total, commissions_total
from marketplace.schemas.commissions import (
    BulkFailure,
    BulkResult,
    EarningsBucket,
    PlatformEarnings,
    SellerEarnings,
)
from marketplace.services.audit_recorder import AuditRecorder
from marketplace.services.business_rules import calculate_commission, to_rate

logger = logging.getLogger(__name__)

# Status -> (timestamp column, audit action)
_TRANSITION_FIELDS: dict[CommissionStatus, tuple[str, AuditAction]] = {
    CommissionStatus.APPROVED: ("approved_at", AuditAction.APPROVED),
    CommissionStatus.PAID: ("paid_at", AuditAction.PAID),
    CommissionStatus.DISPUTED: ("disputed_at", AuditAction.DISPUTED),
    CommissionStatus.CANCELLED: ("cancelled_at", AuditAction.CANCELLED),
}


class CommissionLedger:
    """Per-line-item commission records and their status machine."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.commission_repo = CommissionRepository(session)
        self.audit = AuditRecorder(session)

    async def record(
        self,
        order_id: str,
        line_item_id: str,
        seller_id: str,
        line_item_total_cents: int,
        quantity: int,
        commission_rate: Any,
        currency: str = settings.default_currency,
        product_id: Optional[str] = None,
        product_title: Optional[str] = None,
        variant_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> tuple[Commission, bool]:
        """Create the commission for one line item; replays return the existing row."""
        try:
            rate = to_rate(commission_rate)
        except ValueError:
            raise InvalidRateException(commission_rate) from None
        if rate < Decimal(0) or rate > Decimal(100):
            raise InvalidRateException(rate)
        if line_item_total_cents < 0:
            raise InvalidAmountException(
                "Line item total cannot be negative",
                line_item_total_cents=line_item_total_cents,
            )
        if quantity < 1:
            raise InvalidAmountException(
                "Quantity must be at least 1", quantity=quantity
            )

        existing = await self.commission_repo.get_by_line_item(order_id, line_item_id)
        if existing:
            logger.info(
                "Idempotent commission replay order_id=%s line_item_id=%s commission_id=%s",
                order_id,
                line_item_id,
                existing.id,
                extra={
                    "order_id": order_id,
                    "line_item_id": line_item_id,
                    "commission_id": existing.id,
                },
            )
            return existing, False

        commission_cents, seller_payout_cents = calculate_commission(
            line_item_total_cents, rate
        )

        try:
            async with self.session.begin_nested():
                commission = await self.commission_repo.create(
                    order_id=order_id,
                    line_item_id=line_item_id,
                    seller_id=seller_id,
                    product_id=product_id,
                    product_title=product_title,
                    variant_id=variant_id,
                    line_item_total_cents=line_item_total_cents,
                    quantity=quantity,
                    commission_rate=rate,
                    commission_amount_cents=commission_cents,
                    seller_payout_cents=seller_payout_cents,
                    currency=currency.upper(),
                    status=CommissionStatus.PENDING,
                    metadata_=metadata,
                )
        except IntegrityError:
            # Lost a race with a concurrent recording of the same line item
            existing = await self.commission_repo.get_by_line_item(order_id, line_item_id)
            if existing is None:
                raise
            return existing, False

        commissions_total.labels(status=CommissionStatus.PENDING.value).inc()
        await self.audit.commission_transition(
            commission,
            None,
            AuditAction.CREATED,
            description=f"Commission recorded for order {order_id}",
        )
        logger.info(
            "Commission recorded commission_id=%s order_id=%s seller_id=%s amount_cents=%s",
            commission.id,
            order_id,
            seller_id,
            commission_cents,
            extra={
                "commission_id": commission.id,
                "order_id": order_id,
                "seller_id": seller_id,
                "commission_amount_cents": commission_cents,
                "seller_payout_cents": seller_payout_cents,
            },
        )
        return commission, True

    async def get(self, commission_id: str) -> Commission:
        commission = await self.commission_repo.get_by_id(commission_id)
        if not commission:
            raise CommissionNotFoundException(commission_id)
        return commission

    async def _transition(
        self,
        commission: Commission,
        target: CommissionStatus,
        user_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Commission:
        current = commission.status
        if not can_transition_commission(current, target):
            logger.warning(
                "Rejected commission transition commission_id=%s from=%s to=%s",
                commission.id,
                enum_value(current),
                target.value,
                extra={
                    "commission_id": commission.id,
                    "status": enum_value(current),
                    "target_status": target.value,
                },
            )
            raise InvalidTransitionException(
                "commission", commission.id, enum_value(current), target.value
            )

        timestamp_field, action = _TRANSITION_FIELDS[target]
        values: dict[str, Any] = {"status": target}
        if getattr(commission, timestamp_field) is None:
            values[timestamp_field] = utcnow()
        if notes is not None:
            values["notes"] = notes
        await self.commission_repo.update(commission, **values)

        commission_transitions_total.labels(status=target.value).inc()
        await self.audit.commission_transition(
            commission, current, action, user_id=user_id, description=notes
        )
        logger.info(
            "Commission transitioned commission_id=%s from=%s to=%s",
            commission.id,
            enum_value(current),
            target.value,
            extra={
                "commission_id": commission.id,
                "seller_id": commission.seller_id,
                "status": target.value,
            },
        )
        return commission

    async def approve(self, commission_id: str, user_id: Optional[str] = None) -> Commission:
        commission = await self.get(commission_id)
        return await self._transition(commission, CommissionStatus.APPROVED, user_id)

    async def mark_paid(
        self, commission_id: str, payout_id: Optional[str] = None
    ) -> Commission:
        commission = await self.get(commission_id)
        notes = f"Paid by payout {payout_id}" if payout_id else None
        return await self._transition(commission, CommissionStatus.PAID, notes=notes)

    async def dispute(
        self, commission_id: str, notes: Optional[str] = None, user_id: Optional[str] = None
    ) -> Commission:
        commission = await self.get(commission_id)
        return await self._transition(
            commission,
            CommissionStatus.DISPUTED,
            user_id,
            notes=notes or "Commission disputed",
        )

    async def cancel(
        self, commission_id: str, reason: Optional[str] = None, user_id: Optional[str] = None
    ) -> Commission:
        commission = await self.get(commission_id)
        if commission.status == CommissionStatus.CANCELLED:
            return commission
        return await self._transition(
            commission,
            CommissionStatus.CANCELLED,
            user_id,
            notes=reason or "Order cancelled",
        )

    async def resolve_dispute(
        self,
        commission_id: str,
        outcome: DisputeOutcome,
        user_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Commission:
        commission = await self.get(commission_id)
        target = CommissionStatus(enum_value(outcome))
        if commission.status != CommissionStatus.DISPUTED:
            raise InvalidTransitionException(
                "commission", commission.id, enum_value(commission.status), target.value
            )
        return await self._transition(commission, target, user_id, notes=notes)

    async def soft_delete(self, commission_id: str, user_id: Optional[str] = None) -> Commission:
        """Archive a paid or cancelled commission; it disappears from every read."""
        commission = await self.get(commission_id)
        if CommissionStatus(commission.status) not in TERMINAL_COMMISSION_STATUSES:
            raise InvalidTransitionException(
                "commission", commission.id, enum_value(commission.status), "deleted"
            )
        await self.commission_repo.update(commission, deleted_at=utcnow())
        logger.info(
            "Commission archived commission_id=%s",
            commission.id,
            extra={"commission_id": commission.id, "user_id": user_id},
        )
        return commission

    async def _for_order(
        self, order_id: str, operation: Callable[[str], Awaitable[Commission]]
    ) -> BulkResult:
        result = BulkResult()
        commissions = await self.commission_repo.list_for_order(order_id)
        for commission_id in [commission.id for commission in commissions]:
            try:
                async with self.session.begin_nested():
                    await operation(commission_id)
            except BaseAPIException as exc:
                result.failed.append(
                    BulkFailure(
                        id=commission_id, error_code=exc.error_code, message=exc.message
                    )
                )
                continue
            result.succeeded.append(commission_id)

        logger.info(
            "Bulk commission update order_id=%s succeeded=%s failed=%s",
            order_id,
            len(result.succeeded),
            len(result.failed),
            extra={
                "order_id": order_id,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    async def approve_for_order(
        self, order_id: str, user_id: Optional[str] = None
    ) -> BulkResult:
        return await self._for_order(
            order_id, lambda commission_id: self.approve(commission_id, user_id)
        )

    async def cancel_for_order(
        self, order_id: str, reason: Optional[str] = None, user_id: Optional[str] = None
    ) -> BulkResult:
        return await self._for_order(
            order_id, lambda commission_id: self.cancel(commission_id, reason, user_id)
        )

    async def search(
        self,
        page: int = 1,
        limit: int = 50,
        seller_id: Optional[str] = None,
        order_id: Optional[str] = None,
        status: Optional[CommissionStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> tuple[list[Commission], int]:
        return await self.commission_repo.search(
            offset=(page - 1) * limit,
            limit=limit,
            created_from=created_from,
            created_to=created_to,
            seller_id=seller_id,
            order_id=order_id,
            status=enum_value(status) if status else None,
        )

    async def available_for_payout(
        self, seller_id: str, currency: str = settings.default_currency
    ) -> int:
        return await self.commission_repo.get_unreserved_approved_total(
            seller_id, currency.upper()
        )

    async def seller_earnings(
        self, seller_id: str, currency: str = settings.default_currency
    ) -> SellerEarnings:
        currency = currency.upper()
        rows = await self.commission_repo.totals_by_status(
            seller_id=seller_id, currency=currency
        )

        totals = EarningsBucket()
        by_status = {status: EarningsBucket() for status in CommissionStatus}
        for row in rows:
            bucket = EarningsBucket(
                count=int(row.count),
                line_item_total_cents=int(row.line_item_total),
                commission_amount_cents=int(row.commission_amount),
                seller_payout_cents=int(row.seller_payout),
            )
            by_status[CommissionStatus(row.status)] = bucket
            totals.count += bucket.count
            totals.line_item_total_cents += bucket.line_item_total_cents
            totals.commission_amount_cents += bucket.commission_amount_cents
            totals.seller_payout_cents += bucket.seller_payout_cents

        return SellerEarnings(
            seller_id=seller_id,
            currency=currency,
            totals=totals,
            by_status=by_status,
            available_for_payout_cents=await self.available_for_payout(
                seller_id, currency
            ),
        )

    async def platform_earnings(
        self, currency: str = settings.default_currency
    ) -> PlatformEarnings:
        currency = currency.upper()
        rows = await self.commission_repo.totals_by_status(currency=currency)
        amounts = {enum_value(row.status): int(row.commission_amount) for row in rows}

        return PlatformEarnings(
            currency=currency,
            total_commission_cents=sum(amounts.values()),
            paid_commission_cents=amounts.get(CommissionStatus.PAID.value, 0),
            pending_commission_cents=amounts.get(CommissionStatus.PENDING.value, 0)
            + amounts.get(CommissionStatus.APPROVED.value, 0),
        )
