"""Allowed status transitions for commissions and payouts.

Services consult these tables before every status change; anything not listed
here raises InvalidTransitionException.
"""

from marketplace.core.enums import CommissionStatus, PayoutStatus

COMMISSION_TRANSITIONS: dict[CommissionStatus, frozenset[CommissionStatus]] = {
    CommissionStatus.PENDING: frozenset(
        {
            CommissionStatus.APPROVED,
            CommissionStatus.DISPUTED,
            CommissionStatus.CANCELLED,
        }
    ),
    CommissionStatus.APPROVED: frozenset(
        {
            CommissionStatus.PAID,
            CommissionStatus.DISPUTED,
            CommissionStatus.CANCELLED,
        }
    ),
    CommissionStatus.DISPUTED: frozenset(
        {CommissionStatus.APPROVED, CommissionStatus.CANCELLED}
    ),
    CommissionStatus.PAID: frozenset(),
    CommissionStatus.CANCELLED: frozenset(),
}

PAYOUT_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.REQUESTED: frozenset(
        {PayoutStatus.PENDING_REVIEW, PayoutStatus.CANCELLED}
    ),
    PayoutStatus.PENDING_REVIEW: frozenset(
        {PayoutStatus.APPROVED, PayoutStatus.CANCELLED}
    ),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PROCESSING}),
    PayoutStatus.PROCESSING: frozenset(
        {PayoutStatus.COMPLETED, PayoutStatus.FAILED}
    ),
    PayoutStatus.FAILED: frozenset({PayoutStatus.PROCESSING, PayoutStatus.CANCELLED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.CANCELLED: frozenset(),
}

TERMINAL_COMMISSION_STATUSES = frozenset(
    status for status, targets in COMMISSION_TRANSITIONS.items() if not targets
)
TERMINAL_PAYOUT_STATUSES = frozenset(
    status for status, targets in PAYOUT_TRANSITIONS.items() if not targets
)


def can_transition_commission(
    current: CommissionStatus, target: CommissionStatus
) -> bool:
    return CommissionStatus(target) in COMMISSION_TRANSITIONS.get(
        CommissionStatus(current), frozenset()
    )


def can_transition_payout(current: PayoutStatus, target: PayoutStatus) -> bool:
    return PayoutStatus(target) in PAYOUT_TRANSITIONS.get(
        PayoutStatus(current), frozenset()
    )
