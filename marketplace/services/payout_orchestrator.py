import logging
from collections import Counter
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, settings
from marketplace.core.enums import (
    AuditAction,
    AuditEntityType,
    CommissionStatus,
    PaymentMethod,
    PayoutStatus,
    ReviewDecision,
    enum_value,
)
from marketplace.core.transitions import can_transition_payout
from marketplace.db.base import utcnow
from marketplace.db.models import Commission, Payout
from marketplace.db.repositories import (
    CommissionRepository,
    PayoutRepository,
    ReservationRepository,
    SellerRepository,
)
from marketplace.exceptions import (
    AmountOutOfRangeException,
    BaseAPIException,
    CommissionAlreadyReservedException,
    IneligibleSellerException,
    InvalidCommissionSetException,
    InvalidTransitionException,
    PayoutNotFoundException,
    RetryLimitExceededException,
    SellerNotFoundException,
)
from marketplace.metrics import (
    payout_amount_cents_total,
    payouts_total,
    reservation_conflicts_total,
)
from marketplace.schemas.payouts import PayoutStats, PayoutSummary, StatusGroup
from marketplace.services.audit_recorder import AuditRecorder
from marketplace.services.business_rules import (
    check_amount_range,
    check_payout_eligibility,
    format_cents,
)
from marketplace.services.commission_ledger import CommissionLedger

logger = logging.getLogger(__name__)

STATUS_GROUPS: dict[str, tuple[PayoutStatus, ...]] = {
    "pending": (PayoutStatus.REQUESTED, PayoutStatus.PENDING_REVIEW),
    "approved": (PayoutStatus.APPROVED, PayoutStatus.PROCESSING),
    "completed": (PayoutStatus.COMPLETED,),
    "failed": (PayoutStatus.FAILED,),
    "cancelled": (PayoutStatus.CANCELLED,),
}


class PayoutOrchestrator:
    """Payout requests and the payout status machine.

    All methods must run inside a transaction owned by the caller. A payout
    request holds its commissions through ``payout_reservations`` rows whose
    unique ``commission_id`` keeps any commission in at most one active
    payout, even across processes.
    """

    def __init__(self, session: AsyncSession, rules: Settings = settings) -> None:
        self.session = session
        self.rules = rules
        self.payout_repo = PayoutRepository(session)
        self.reservation_repo = ReservationRepository(session)
        self.seller_repo = SellerRepository(session)
        self.commission_repo = CommissionRepository(session)
        self.ledger = CommissionLedger(session)
        self.audit = AuditRecorder(session)

    async def request_payout(
        self,
        seller_id: str,
        commission_ids: list[str],
        amount_cents: int,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Payout:
        logger.info(
            "Payout requested seller_id=%s commissions=%s amount_cents=%s",
            seller_id,
            len(commission_ids),
            amount_cents,
            extra={"seller_id": seller_id, "amount_cents": amount_cents},
        )

        # Serialises concurrent requests for the same seller until commit
        seller = await self.seller_repo.get_for_update(seller_id)

        commissions = await self._validate_commission_set(seller_id, commission_ids)

        reserved = await self.reservation_repo.find_reserved(commission_ids)
        if reserved:
            reservation_conflicts_total.inc()
            logger.warning(
                "Commissions already reserved seller_id=%s commission_ids=%s",
                seller_id,
                sorted(reserved),
                extra={"seller_id": seller_id, "commission_ids": sorted(reserved)},
            )
            raise CommissionAlreadyReservedException(sorted(reserved))

        amount_check = check_amount_range(amount_cents, self.rules)
        if not amount_check.valid:
            raise AmountOutOfRangeException(amount_check.reason, amount_cents)
        payable_cents = sum(c.seller_payout_cents for c in commissions)
        if amount_cents > payable_cents:
            raise AmountOutOfRangeException(
                f"Payout amount exceeds the seller payout of the included "
                f"commissions ({format_cents(payable_cents)})",
                amount_cents,
                payable_cents=payable_cents,
            )

        if seller is None:
            raise SellerNotFoundException(seller_id)
        last_payout_at = await self.payout_repo.get_last_requested_at(seller_id)
        failed_count = await self.payout_repo.count_failed(seller_id)
        eligibility = check_payout_eligibility(
            seller, last_payout_at, failed_count, now=now, rules=self.rules
        )
        if not eligibility.eligible:
            logger.warning(
                "Seller not eligible for payout seller_id=%s reasons=%s",
                seller_id,
                eligibility.reasons,
                extra={"seller_id": seller_id, "reasons": eligibility.reasons},
            )
            raise IneligibleSellerException(seller_id, eligibility.reasons)

        try:
            async with self.session.begin_nested():
                payout = await self.payout_repo.create(
                    seller_id=seller_id,
                    amount_cents=amount_cents,
                    currency=commissions[0].currency,
                    commission_ids=list(commission_ids),
                    status=PayoutStatus.REQUESTED,
                    payment_method=payment_method or seller.payout_method,
                    requested_at=now or utcnow(),
                    metadata_={"notes": notes} if notes else None,
                )
                await self.reservation_repo.reserve(
                    payout.id,
                    seller_id,
                    [(c.id, c.seller_payout_cents) for c in commissions],
                )
        except IntegrityError:
            reservation_conflicts_total.inc()
            logger.warning(
                "Reservation conflict on insert seller_id=%s",
                seller_id,
                extra={"seller_id": seller_id},
            )
            raise CommissionAlreadyReservedException(list(commission_ids)) from None

        payouts_total.labels(status=PayoutStatus.REQUESTED.value).inc()
        payout_amount_cents_total.labels(status=PayoutStatus.REQUESTED.value).inc(
            amount_cents
        )
        await self.audit.payout_transition(
            payout,
            None,
            AuditAction.CREATED,
            user_id=seller_id,
            description=f"Payout requested for {len(commission_ids)} commissions",
        )
        logger.info(
            "Payout created payout_id=%s seller_id=%s amount_cents=%s",
            payout.id,
            seller_id,
            amount_cents,
            extra={
                "payout_id": payout.id,
                "seller_id": seller_id,
                "amount_cents": amount_cents,
                "status": PayoutStatus.REQUESTED.value,
            },
        )
        return payout

    async def _validate_commission_set(
        self, seller_id: str, commission_ids: list[str]
    ) -> list[Commission]:
        if not commission_ids:
            raise InvalidCommissionSetException(["At least one commission is required"])

        reasons: list[str] = []
        invalid: list[str] = []

        duplicates = sorted(cid for cid, n in Counter(commission_ids).items() if n > 1)
        if duplicates:
            reasons.append(f"Duplicate commission ids: {', '.join(duplicates)}")
            invalid.extend(duplicates)

        found = await self.commission_repo.get_many(commission_ids)
        for commission_id in dict.fromkeys(commission_ids):
            commission = found.get(commission_id)
            if commission is None:
                reasons.append(f"Commission not found: {commission_id}")
                invalid.append(commission_id)
            elif commission.seller_id != seller_id:
                reasons.append(
                    f"Commission {commission_id} does not belong to seller {seller_id}"
                )
                invalid.append(commission_id)
            elif commission.status != CommissionStatus.APPROVED:
                reasons.append(
                    f"Commission {commission_id} is not approved "
                    f"(status: {enum_value(commission.status)})"
                )
                invalid.append(commission_id)

        currencies = {c.currency for c in found.values()}
        if len(currencies) > 1:
            reasons.append(
                f"Commissions must share one currency, got {', '.join(sorted(currencies))}"
            )

        if reasons:
            logger.warning(
                "Invalid commission set seller_id=%s reasons=%s",
                seller_id,
                reasons,
                extra={"seller_id": seller_id, "reasons": reasons},
            )
            raise InvalidCommissionSetException(reasons, invalid)

        return [found[cid] for cid in commission_ids]

    async def get(self, payout_id: str, for_update: bool = False) -> Payout:
        payout = await self.payout_repo.get_by_id(payout_id, for_update=for_update)
        if not payout:
            raise PayoutNotFoundException(payout_id)
        return payout

    async def _transition(
        self,
        payout: Payout,
        target: PayoutStatus,
        action: AuditAction,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
        **values: Any,
    ) -> Payout:
        current = payout.status
        if not can_transition_payout(current, target):
            logger.warning(
                "Rejected payout transition payout_id=%s from=%s to=%s",
                payout.id,
                enum_value(current),
                target.value,
                extra={
                    "payout_id": payout.id,
                    "status": enum_value(current),
                    "target_status": target.value,
                },
            )
            raise InvalidTransitionException(
                "payout", payout.id, enum_value(current), target.value
            )

        await self.payout_repo.update(payout, status=target, **values)

        payouts_total.labels(status=target.value).inc()
        payout_amount_cents_total.labels(status=target.value).inc(payout.amount_cents)
        await self.audit.payout_transition(
            payout, current, action, user_id=user_id, description=description
        )
        logger.info(
            "Payout transitioned payout_id=%s from=%s to=%s",
            payout.id,
            enum_value(current),
            target.value,
            extra={
                "payout_id": payout.id,
                "seller_id": payout.seller_id,
                "status": target.value,
            },
        )
        return payout

    async def _ensure_commissions_payable(self, payout: Payout) -> None:
        """Every commission on the payout must still be approved.

        The ledger can dispute or cancel a reserved commission after the
        request, so this is rechecked before the payout moves toward money.
        """
        commission_ids = list(payout.commission_ids)
        found = await self.commission_repo.get_many(commission_ids, for_update=True)
        reasons: list[str] = []
        invalid: list[str] = []
        for commission_id in commission_ids:
            commission = found.get(commission_id)
            if commission is None:
                reasons.append(f"Commission not found: {commission_id}")
                invalid.append(commission_id)
            elif commission.status != CommissionStatus.APPROVED:
                reasons.append(
                    f"Commission {commission_id} is no longer approved "
                    f"(status: {enum_value(commission.status)})"
                )
                invalid.append(commission_id)

        if reasons:
            logger.warning(
                "Payout references unpayable commissions payout_id=%s reasons=%s",
                payout.id,
                reasons,
                extra={"payout_id": payout.id, "seller_id": payout.seller_id},
            )
            raise InvalidCommissionSetException(reasons, invalid)

    async def _release(self, payout: Payout) -> None:
        released = await self.reservation_repo.release(payout.id)
        logger.info(
            "Payout reservation released payout_id=%s commissions=%s",
            payout.id,
            released,
            extra={"payout_id": payout.id, "released": released},
        )

    async def review(
        self,
        payout_id: str,
        decision: ReviewDecision,
        admin_id: str,
        notes: Optional[str] = None,
    ) -> Payout:
        payout = await self.get(payout_id, for_update=True)
        now = utcnow()

        if decision == ReviewDecision.REJECT:
            if payout.status not in (PayoutStatus.REQUESTED, PayoutStatus.PENDING_REVIEW):
                raise InvalidTransitionException(
                    "payout",
                    payout.id,
                    enum_value(payout.status),
                    PayoutStatus.CANCELLED.value,
                )
            await self._transition(
                payout,
                PayoutStatus.CANCELLED,
                AuditAction.REJECTED,
                user_id=admin_id,
                description=notes,
                reviewed_at=now,
                reviewed_by=admin_id,
                cancelled_at=now,
                admin_notes=notes,
            )
            await self._release(payout)
            return payout

        if payout.status == PayoutStatus.REQUESTED:
            return await self._transition(
                payout,
                PayoutStatus.PENDING_REVIEW,
                AuditAction.UPDATED,
                user_id=admin_id,
                description=notes,
                reviewed_at=now,
                reviewed_by=admin_id,
                admin_notes=notes,
            )

        if can_transition_payout(payout.status, PayoutStatus.APPROVED):
            await self._ensure_commissions_payable(payout)
        return await self._transition(
            payout,
            PayoutStatus.APPROVED,
            AuditAction.APPROVED,
            user_id=admin_id,
            description=notes,
            reviewed_at=payout.reviewed_at or now,
            approved_at=now,
            reviewed_by=admin_id,
            admin_notes=notes if notes is not None else payout.admin_notes,
        )

    async def start_processing(
        self,
        payout_id: str,
        payment_method: Optional[PaymentMethod] = None,
        admin_id: Optional[str] = None,
    ) -> Payout:
        payout = await self.get(payout_id, for_update=True)
        if can_transition_payout(payout.status, PayoutStatus.PROCESSING):
            await self._ensure_commissions_payable(payout)
        return await self._transition(
            payout,
            PayoutStatus.PROCESSING,
            AuditAction.PROCESSING,
            user_id=admin_id,
            processing_at=utcnow(),
            payment_method=payment_method or payout.payment_method,
        )

    async def complete(
        self,
        payout_id: str,
        payment_reference: str,
        payment_metadata: Optional[dict] = None,
    ) -> Payout:
        """Mark every included commission paid, then the payout completed.

        If any commission cannot be paid none of them are; the payout stays
        ``processing`` with ``requires_reconciliation`` set and is returned
        so the caller can commit the flag before reporting the problem.
        """
        payout = await self.get(payout_id, for_update=True)
        if not can_transition_payout(payout.status, PayoutStatus.COMPLETED):
            raise InvalidTransitionException(
                "payout",
                payout.id,
                enum_value(payout.status),
                PayoutStatus.COMPLETED.value,
            )

        commission_ids = list(payout.commission_ids)
        current_id: Optional[str] = None
        try:
            async with self.session.begin_nested():
                for current_id in commission_ids:
                    await self.ledger.mark_paid(current_id, payout.id)
        except (BaseAPIException, SQLAlchemyError) as exc:
            message = exc.message if isinstance(exc, BaseAPIException) else str(exc)
            reason = f"Commission {current_id} could not be marked paid: {message}"
            await self.payout_repo.update(
                payout, requires_reconciliation=True, failure_reason=reason
            )
            await self.audit.failure(
                AuditEntityType.PAYOUT,
                payout.id,
                AuditAction.COMPLETED,
                reason,
                seller_id=payout.seller_id,
            )
            logger.error(
                "Payout completion needs reconciliation payout_id=%s commission_id=%s reason=%s",
                payout.id,
                current_id,
                reason,
                extra={
                    "payout_id": payout.id,
                    "seller_id": payout.seller_id,
                    "commission_id": current_id,
                },
            )
            return payout

        return await self._transition(
            payout,
            PayoutStatus.COMPLETED,
            AuditAction.COMPLETED,
            description=f"Paid with reference {payment_reference}",
            completed_at=utcnow(),
            payment_reference=payment_reference,
            payment_metadata=payment_metadata,
            requires_reconciliation=False,
            failure_reason=None,
        )

    async def fail(self, payout_id: str, reason: str) -> Payout:
        payout = await self.get(payout_id, for_update=True)
        return await self._transition(
            payout,
            PayoutStatus.FAILED,
            AuditAction.FAILED,
            description=reason,
            failed_at=utcnow(),
            failure_reason=reason,
            retry_count=payout.retry_count + 1,
        )

    async def retry(self, payout_id: str, admin_id: Optional[str] = None) -> Payout:
        payout = await self.get(payout_id, for_update=True)
        if payout.status != PayoutStatus.FAILED:
            raise InvalidTransitionException(
                "payout",
                payout.id,
                enum_value(payout.status),
                PayoutStatus.PROCESSING.value,
            )
        if payout.retry_count >= self.rules.payout_max_retries:
            logger.warning(
                "Payout retry limit reached payout_id=%s retry_count=%s",
                payout.id,
                payout.retry_count,
                extra={"payout_id": payout.id, "retry_count": payout.retry_count},
            )
            raise RetryLimitExceededException(
                payout.id, payout.retry_count, self.rules.payout_max_retries
            )
        await self._ensure_commissions_payable(payout)

        return await self._transition(
            payout,
            PayoutStatus.PROCESSING,
            AuditAction.PROCESSING,
            user_id=admin_id,
            description=f"Retry {payout.retry_count} of {self.rules.payout_max_retries}",
            processing_at=utcnow(),
            failed_at=None,
            failure_reason=None,
        )

    async def cancel(
        self, payout_id: str, admin_id: str, reason: Optional[str] = None
    ) -> Payout:
        payout = await self.get(payout_id, for_update=True)
        await self._transition(
            payout,
            PayoutStatus.CANCELLED,
            AuditAction.CANCELLED,
            user_id=admin_id,
            description=reason,
            cancelled_at=utcnow(),
            reviewed_by=admin_id,
            admin_notes=reason,
        )
        await self._release(payout)
        return payout

    async def search(
        self,
        page: int = 1,
        limit: int = 50,
        seller_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
    ) -> tuple[list[Payout], int]:
        filters = {
            "seller_id": seller_id,
            "status": enum_value(status) if status else None,
        }
        items = await self.payout_repo.list(
            offset=(page - 1) * limit, limit=limit, **filters
        )
        total = await self.payout_repo.count(**filters)
        return items, total

    async def seller_summary(self, seller_id: str) -> PayoutSummary:
        rows = await self.payout_repo.totals_by_status(seller_id=seller_id)
        amounts = {enum_value(row.status): int(row.amount) for row in rows}
        pending = STATUS_GROUPS["pending"] + STATUS_GROUPS["approved"]

        return PayoutSummary(
            seller_id=seller_id,
            total_requested_cents=sum(amounts.values()),
            total_paid_cents=amounts.get(PayoutStatus.COMPLETED.value, 0),
            total_pending_cents=sum(amounts.get(s.value, 0) for s in pending),
            payout_count=sum(int(row.count) for row in rows),
        )

    async def stats(self) -> PayoutStats:
        rows = await self.payout_repo.totals_by_status()
        by_status = {
            enum_value(row.status): StatusGroup(
                count=int(row.count), amount_cents=int(row.amount)
            )
            for row in rows
        }

        groups: dict[str, StatusGroup] = {}
        for name, statuses in STATUS_GROUPS.items():
            group = StatusGroup()
            for status in statuses:
                found = by_status.get(status.value)
                if found:
                    group.count += found.count
                    group.amount_cents += found.amount_cents
            groups[name] = group

        total = StatusGroup(
            count=sum(g.count for g in by_status.values()),
            amount_cents=sum(g.amount_cents for g in by_status.values()),
        )
        return PayoutStats(total=total, **groups)
