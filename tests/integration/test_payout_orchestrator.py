import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import Settings
from marketplace.core.enums import (
    CommissionStatus,
    PaymentMethod,
    PayoutStatus,
    ReviewDecision,
    VerificationStatus,
)
from marketplace.db.repositories import ReservationRepository
from marketplace.exceptions import (
    AmountOutOfRangeException,
    CommissionAlreadyReservedException,
    IneligibleSellerException,
    InvalidCommissionSetException,
    InvalidTransitionException,
    RetryLimitExceededException,
)
from marketplace.services.commission_ledger import CommissionLedger
from marketplace.services.payout_orchestrator import PayoutOrchestrator
from tests.utils import seed_approved_commissions, seed_seller


async def request(
    db_session: AsyncSession,
    seller_id: str,
    commission_ids: list[str],
    amount_cents: int,
    **kwargs,
) -> str:
    async with db_session.begin():
        payout = await PayoutOrchestrator(db_session).request_payout(
            seller_id, commission_ids, amount_cents, **kwargs
        )
        return payout.id


async def advance_to_processing(db_session: AsyncSession, payout_id: str) -> None:
    async with db_session.begin():
        orchestrator = PayoutOrchestrator(db_session)
        await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")
        await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")
        await orchestrator.start_processing(payout_id, admin_id="admin_1")


async def load_payout(session_factory: async_sessionmaker[AsyncSession], payout_id: str):
    async with session_factory() as session, session.begin():
        return await PayoutOrchestrator(session).get(payout_id)


async def load_commission_statuses(
    session_factory: async_sessionmaker[AsyncSession], commission_ids: list[str]
) -> list[str]:
    async with session_factory() as session, session.begin():
        ledger = CommissionLedger(session)
        return [(await ledger.get(cid)).status for cid in commission_ids]


@pytest.mark.integration
class TestPayoutRequest:
    async def test_request_payout(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        async with db_session.begin():
            payout = await PayoutOrchestrator(db_session).request_payout(
                verified_seller_id, approved_commission_ids, 7200, notes="Monthly"
            )

        assert payout.status == PayoutStatus.REQUESTED
        assert payout.amount_cents == 7200
        assert payout.currency == "USD"
        assert payout.payment_method == PaymentMethod.BANK_TRANSFER
        assert payout.commission_ids == approved_commission_ids
        assert payout.metadata_ == {"notes": "Monthly"}

        async with db_session.begin():
            reserved = await ReservationRepository(db_session).find_reserved(
                approved_commission_ids
            )
        assert set(reserved) == set(approved_commission_ids)

    async def test_partial_amount_allowed(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 5000
        )
        assert payout_id.startswith("pay_")

    async def test_empty_commission_set(
        self, db_session: AsyncSession, verified_seller_id: str
    ) -> None:
        with pytest.raises(InvalidCommissionSetException) as exc_info:
            await request(db_session, verified_seller_id, [], 5000)

        assert exc_info.value.details["reasons"] == [
            "At least one commission is required"
        ]

    async def test_commission_set_checked_before_amount(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        commission_ids = approved_commission_ids + ["com_missing"]

        with pytest.raises(InvalidCommissionSetException) as exc_info:
            await request(db_session, verified_seller_id, commission_ids, 1)

        assert exc_info.value.details["commission_ids"] == ["com_missing"]
        assert "Commission not found: com_missing" in exc_info.value.details["reasons"]

    async def test_duplicate_and_foreign_commissions(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        other = await seed_seller(session_factory)
        [foreign] = await seed_approved_commissions(session_factory, other.id, [4000])
        first = approved_commission_ids[0]

        with pytest.raises(InvalidCommissionSetException) as exc_info:
            await request(
                db_session, verified_seller_id, [first, first, foreign.id], 5000
            )

        reasons = exc_info.value.details["reasons"]
        assert f"Duplicate commission ids: {first}" in reasons
        assert (
            f"Commission {foreign.id} does not belong to seller {verified_seller_id}"
            in reasons
        )

    async def test_pending_commission_rejected(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
    ) -> None:
        async with db_session.begin():
            commission, _ = await CommissionLedger(db_session).record(
                order_id="ord_pending",
                line_item_id="li_1",
                seller_id=verified_seller_id,
                line_item_total_cents=5000,
                quantity=1,
                commission_rate="10",
            )
            commission_id = commission.id

        with pytest.raises(InvalidCommissionSetException) as exc_info:
            await request(db_session, verified_seller_id, [commission_id], 4500)

        assert exc_info.value.details["reasons"] == [
            f"Commission {commission_id} is not approved (status: pending)"
        ]

    async def test_amount_below_minimum(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        with pytest.raises(AmountOutOfRangeException) as exc_info:
            await request(db_session, verified_seller_id, approved_commission_ids, 999)

        assert exc_info.value.message == "Minimum payout amount is 10.00"

    async def test_amount_above_commission_total(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        with pytest.raises(AmountOutOfRangeException) as exc_info:
            await request(
                db_session, verified_seller_id, approved_commission_ids, 7201
            )

        assert exc_info.value.details["payable_cents"] == 7200

    async def test_unverified_seller_is_ineligible(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        seller = await seed_seller(
            session_factory, verification_status=VerificationStatus.PENDING
        )
        commissions = await seed_approved_commissions(session_factory, seller.id, [5000])

        with pytest.raises(IneligibleSellerException) as exc_info:
            await request(db_session, seller.id, [commissions[0].id], 4500)

        assert exc_info.value.details["reasons"] == [
            "Seller must be verified to request payouts"
        ]

    async def test_cooldown_between_requests(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        [extra] = await seed_approved_commissions(
            session_factory, verified_seller_id, [2000]
        )
        now = datetime.now(timezone.utc)
        await request(
            db_session,
            verified_seller_id,
            approved_commission_ids,
            7200,
            now=now - timedelta(days=2),
        )

        with pytest.raises(IneligibleSellerException) as exc_info:
            await request(db_session, verified_seller_id, [extra.id], 1800, now=now)

        assert exc_info.value.details["reasons"] == [
            "Must wait 5 more days before requesting another payout"
        ]

        payout_id = await request(
            db_session,
            verified_seller_id,
            [extra.id],
            1800,
            now=now + timedelta(days=5),
        )
        assert payout_id.startswith("pay_")


@pytest.mark.integration
class TestDoubleBooking:
    async def test_reserved_commission_rejected(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        first, second = approved_commission_ids
        await request(db_session, verified_seller_id, [first], 4500)

        with pytest.raises(CommissionAlreadyReservedException) as exc_info:
            await request(db_session, verified_seller_id, [first, second], 7200)

        assert exc_info.value.details["commission_ids"] == [first]

    @pytest.mark.concurrency
    async def test_concurrent_requests_only_one_wins(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        async def attempt() -> str:
            async with session_factory() as session, session.begin():
                payout = await PayoutOrchestrator(session).request_payout(
                    verified_seller_id, approved_commission_ids, 7200
                )
                return payout.id

        results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

        winners = [r for r in results if isinstance(r, str)]
        losers = [r for r in results if isinstance(r, CommissionAlreadyReservedException)]
        assert len(winners) == 1
        assert len(losers) == 1

        async with session_factory() as session, session.begin():
            items, total = await PayoutOrchestrator(session).search()
        assert total == 1
        assert items[0].id == winners[0]

    async def test_rejected_payout_releases_commissions(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )

        async with db_session.begin():
            payout = await PayoutOrchestrator(db_session).review(
                payout_id, ReviewDecision.REJECT, "admin_1", "Bank details mismatch"
            )
        assert payout.status == PayoutStatus.CANCELLED
        assert payout.reviewed_by == "admin_1"
        assert payout.cancelled_at is not None

        again = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        assert again != payout_id


@pytest.mark.integration
class TestPayoutLifecycle:
    async def test_review_moves_through_pending_review(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        orchestrator = PayoutOrchestrator(db_session)

        async with db_session.begin():
            payout = await orchestrator.review(
                payout_id, ReviewDecision.APPROVE, "admin_1", "Looks good"
            )
            assert payout.status == PayoutStatus.PENDING_REVIEW
            payout = await orchestrator.review(
                payout_id, ReviewDecision.APPROVE, "admin_2"
            )

        assert payout.status == PayoutStatus.APPROVED
        assert payout.approved_at is not None
        assert payout.reviewed_by == "admin_2"
        assert payout.admin_notes == "Looks good"

    async def test_reject_after_approval_not_allowed(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        async with db_session.begin():
            orchestrator = PayoutOrchestrator(db_session)
            await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")
            await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")

        with pytest.raises(InvalidTransitionException):
            async with db_session.begin():
                await PayoutOrchestrator(db_session).review(
                    payout_id, ReviewDecision.REJECT, "admin_1"
                )

    async def test_complete_marks_commissions_paid(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)

        async with db_session.begin():
            payout = await PayoutOrchestrator(db_session).complete(
                payout_id, "wire_001", {"bank": "test"}
            )

        assert payout.status == PayoutStatus.COMPLETED
        assert payout.completed_at is not None
        assert payout.payment_reference == "wire_001"
        assert payout.requires_reconciliation is False
        assert await load_commission_statuses(
            session_factory, approved_commission_ids
        ) == [CommissionStatus.PAID, CommissionStatus.PAID]

    async def test_complete_requires_processing(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )

        with pytest.raises(InvalidTransitionException):
            async with db_session.begin():
                await PayoutOrchestrator(db_session).complete(payout_id, "wire_001")

    async def test_complete_flags_reconciliation_and_pays_nothing(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        first, second = approved_commission_ids
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)
        async with db_session.begin():
            await CommissionLedger(db_session).dispute(second, "Chargeback")

        async with db_session.begin():
            payout = await PayoutOrchestrator(db_session).complete(
                payout_id, "wire_001"
            )

        stored = await load_payout(session_factory, payout_id)
        assert stored.status == PayoutStatus.PROCESSING
        assert stored.requires_reconciliation is True
        assert stored.failure_reason.startswith(f"Commission {second} could not")
        assert payout.completed_at is None
        assert await load_commission_statuses(
            session_factory, [first, second]
        ) == [CommissionStatus.APPROVED, CommissionStatus.DISPUTED]

    async def test_cancelled_commission_blocks_approval(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        first, second = approved_commission_ids
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        async with db_session.begin():
            await CommissionLedger(db_session).cancel(first, "Order cancelled")
            await PayoutOrchestrator(db_session).review(
                payout_id, ReviewDecision.APPROVE, "admin_1"
            )

        with pytest.raises(InvalidCommissionSetException) as exc_info:
            async with db_session.begin():
                await PayoutOrchestrator(db_session).review(
                    payout_id, ReviewDecision.APPROVE, "admin_1"
                )

        assert exc_info.value.details["commission_ids"] == [first]
        stored = await load_payout(session_factory, payout_id)
        assert stored.status == PayoutStatus.PENDING_REVIEW
        assert stored.approved_at is None

    async def test_disputed_commission_blocks_processing(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        second = approved_commission_ids[1]
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        async with db_session.begin():
            orchestrator = PayoutOrchestrator(db_session)
            await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")
            await orchestrator.review(payout_id, ReviewDecision.APPROVE, "admin_1")
        async with db_session.begin():
            await CommissionLedger(db_session).dispute(second, "Chargeback")

        with pytest.raises(InvalidCommissionSetException) as exc_info:
            async with db_session.begin():
                await PayoutOrchestrator(db_session).start_processing(payout_id)

        assert exc_info.value.details["commission_ids"] == [second]
        stored = await load_payout(session_factory, payout_id)
        assert stored.status == PayoutStatus.APPROVED
        assert stored.processing_at is None

    async def test_fail_and_retry(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)
        orchestrator = PayoutOrchestrator(db_session)

        async with db_session.begin():
            payout = await orchestrator.fail(payout_id, "Account closed")
        assert payout.status == PayoutStatus.FAILED
        assert payout.retry_count == 1
        assert payout.failure_reason == "Account closed"

        async with db_session.begin():
            payout = await orchestrator.retry(payout_id, "admin_1")
        assert payout.status == PayoutStatus.PROCESSING
        assert payout.failed_at is None
        assert payout.failure_reason is None
        assert payout.retry_count == 1

    async def test_retry_limit(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)
        async with db_session.begin():
            await PayoutOrchestrator(db_session).fail(payout_id, "Timeout")

        rules = Settings(payout_max_retries=1)
        with pytest.raises(RetryLimitExceededException) as exc_info:
            async with db_session.begin():
                await PayoutOrchestrator(db_session, rules=rules).retry(payout_id)

        assert exc_info.value.details == {
            "payout_id": payout_id,
            "retry_count": 1,
            "max_retries": 1,
        }

    async def test_cancel_failed_payout_releases_commissions(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)
        orchestrator = PayoutOrchestrator(db_session)
        async with db_session.begin():
            await orchestrator.fail(payout_id, "Account closed")

        async with db_session.begin():
            payout = await orchestrator.cancel(payout_id, "admin_1", "Seller request")
            reserved = await ReservationRepository(db_session).find_reserved(
                approved_commission_ids
            )

        assert payout.status == PayoutStatus.CANCELLED
        assert reserved == {}

    async def test_processing_payout_cannot_be_cancelled(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)

        with pytest.raises(InvalidTransitionException):
            async with db_session.begin():
                await PayoutOrchestrator(db_session).cancel(payout_id, "admin_1")


@pytest.mark.integration
class TestPayoutReporting:
    async def test_stats_and_summary(
        self,
        db_session: AsyncSession,
        verified_seller_id: str,
        approved_commission_ids: list[str],
    ) -> None:
        payout_id = await request(
            db_session, verified_seller_id, approved_commission_ids, 7200
        )
        await advance_to_processing(db_session, payout_id)
        async with db_session.begin():
            await PayoutOrchestrator(db_session).complete(payout_id, "wire_001")

        async with db_session.begin():
            orchestrator = PayoutOrchestrator(db_session)
            stats = await orchestrator.stats()
            summary = await orchestrator.seller_summary(verified_seller_id)

        assert stats.total.count == 1
        assert stats.completed.amount_cents == 7200
        assert stats.pending.count == 0
        assert summary.total_paid_cents == 7200
        assert summary.total_pending_cents == 0
        assert summary.payout_count == 1
