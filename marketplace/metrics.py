from prometheus_client import Counter

commissions_total = Counter(
    "marketplace_commissions_total", "Total commissions recorded", ["status"]
)

commission_transitions_total = Counter(
    "marketplace_commission_transitions_total",
    "Commission status transitions",
    ["status"],
)

payouts_total = Counter(
    "marketplace_payouts_total", "Payout status transitions", ["status"]
)

payout_amount_cents_total = Counter(
    "marketplace_payout_amount_cents_total",
    "Payout amount moved into each status, in minor units",
    ["status"],
)

reservation_conflicts_total = Counter(
    "marketplace_reservation_conflicts_total",
    "Payout requests rejected because a commission was already reserved",
)

audit_failures_total = Counter(
    "marketplace_audit_failures_total", "Audit events that could not be stored"
)

rate_limited_total = Counter(
    "marketplace_rate_limited_total", "Requests rejected by the rate limiter", ["action"]
)
