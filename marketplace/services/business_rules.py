"""Marketplace policy: commission rates, payout eligibility, amount limits,
seller validation and risk scoring.

Everything here is a pure function of its arguments and the thresholds in
``Settings``; nothing touches the database.
"""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field

from marketplace.core.config import Settings, settings
from marketplace.core.enums import PaymentMethod, RiskLevel, VerificationStatus
from marketplace.schemas.sellers import RiskScore

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_BUSINESS_NAME_LENGTH = 3
MAX_BUSINESS_NAME_LENGTH = 255


class EligibilityResult(BaseModel):
    eligible: bool
    reasons: list[str] = Field(default_factory=list)


class AmountCheck(BaseModel):
    valid: bool
    reason: Optional[str] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_cents(amount_cents: int) -> str:
    return str(Decimal(amount_cents).scaleb(-2))


RATE_PRECISION = Decimal("0.01")


def to_rate(value: Any) -> Decimal:
    """Coerce a percentage to a two-place Decimal, rounding half-up.

    Rates are stored with two decimals, so the rate used for the arithmetic
    must be the one that ends up on the row. Raises ValueError on junk or NaN.
    """
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
        if not rate.is_finite():
            raise ValueError(f"Invalid commission rate: {value!r}")
        return rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid commission rate: {value!r}") from exc


def clamp_rate(rate: Decimal, rules: Settings = settings) -> Decimal:
    return min(max(rate, rules.min_commission_rate), rules.max_commission_rate)


def resolve_commission_rate(
    seller: Any, category_rate: Optional[Any] = None, rules: Settings = settings
) -> Decimal:
    """Seller override, then category override, then the global default."""
    seller_rate = getattr(seller, "commission_rate", None) if seller is not None else None
    if seller_rate is not None:
        return clamp_rate(to_rate(seller_rate), rules)
    if category_rate is not None:
        return clamp_rate(to_rate(category_rate), rules)
    return clamp_rate(rules.default_commission_rate, rules)


def calculate_commission(line_item_total_cents: int, rate: Decimal) -> tuple[int, int]:
    """Split a line item into (commission_amount_cents, seller_payout_cents).

    The platform's cut is rounded half-up to the minor unit and the seller
    gets the exact remainder, so the two parts always add back up to the
    line total.
    """
    commission = (Decimal(line_item_total_cents) * rate / Decimal(100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    commission_cents = int(commission)
    return commission_cents, line_item_total_cents - commission_cents


def check_payout_eligibility(
    seller: Any,
    last_payout_at: Optional[datetime],
    failed_payout_count: int,
    now: Optional[datetime] = None,
    rules: Settings = settings,
) -> EligibilityResult:
    """Collect every rule the seller currently violates."""
    reasons: list[str] = []
    now = _as_utc(now or datetime.now(timezone.utc))

    if seller.verification_status != VerificationStatus.VERIFIED:
        reasons.append("Seller must be verified to request payouts")

    if not seller.is_active:
        reasons.append("Seller account is not active")

    if last_payout_at is not None:
        days_since = (now - _as_utc(last_payout_at)).days
        if days_since < rules.payout_cooldown_days:
            reasons.append(
                f"Must wait {rules.payout_cooldown_days - days_since} more days "
                "before requesting another payout"
            )

    if failed_payout_count >= rules.max_failed_payouts:
        reasons.append(
            f"Seller account has too many failed payouts "
            f"({failed_payout_count}/{rules.max_failed_payouts})"
        )

    return EligibilityResult(eligible=not reasons, reasons=reasons)


def check_amount_range(amount_cents: int, rules: Settings = settings) -> AmountCheck:
    if amount_cents < rules.payout_min_amount_cents:
        return AmountCheck(
            valid=False,
            reason=f"Minimum payout amount is {format_cents(rules.payout_min_amount_cents)}",
        )
    if amount_cents > rules.payout_max_amount_cents:
        return AmountCheck(
            valid=False,
            reason=f"Maximum payout amount is {format_cents(rules.payout_max_amount_cents)}",
        )
    return AmountCheck(valid=True)


def validate_commission_rate(rate: Any, rules: Settings = settings) -> ValidationResult:
    try:
        raw = rate if isinstance(rate, Decimal) else Decimal(str(rate))
        value = to_rate(raw)
    except (InvalidOperation, ValueError):
        return ValidationResult(valid=False, errors=["Commission rate must be a number"])
    if value != raw:
        return ValidationResult(
            valid=False, errors=["Commission rate allows at most 2 decimal places"]
        )
    if value < rules.min_commission_rate or value > rules.max_commission_rate:
        return ValidationResult(
            valid=False,
            errors=[
                f"Commission rate must be between {rules.min_commission_rate} "
                f"and {rules.max_commission_rate}"
            ],
        )
    return ValidationResult(valid=True)


def validate_seller_registration(
    customer_id: Optional[str],
    business_name: Optional[str],
    business_email: Optional[str],
    payout_method: Optional[str] = None,
    commission_rate: Optional[Any] = None,
) -> ValidationResult:
    errors: list[str] = []

    if not customer_id:
        errors.append("customer_id is required")
    if not business_name:
        errors.append("business_name is required")
    if not business_email:
        errors.append("business_email is required")

    if business_name and not (
        MIN_BUSINESS_NAME_LENGTH <= len(business_name) <= MAX_BUSINESS_NAME_LENGTH
    ):
        errors.append(
            f"business_name must be between {MIN_BUSINESS_NAME_LENGTH} and "
            f"{MAX_BUSINESS_NAME_LENGTH} characters"
        )

    if business_email and not EMAIL_PATTERN.match(business_email):
        errors.append("Invalid business_email format")

    allowed = [method.value for method in PaymentMethod]
    if payout_method and payout_method not in allowed:
        errors.append(f"payout_method must be one of: {', '.join(allowed)}")

    if commission_rate is not None:
        errors.extend(validate_commission_rate(commission_rate).errors)

    return ValidationResult(valid=not errors, errors=errors)


def validate_seller_for_verification(seller: Any) -> ValidationResult:
    if seller is None:
        return ValidationResult(valid=False, errors=["Seller not found"])

    errors: list[str] = []
    if seller.verification_status != VerificationStatus.PENDING:
        status = getattr(seller.verification_status, "value", seller.verification_status)
        errors.append(f"Seller cannot be verified. Current status: {status}")
    if not seller.business_name:
        errors.append("Seller must have a business name")
    if not seller.business_email:
        errors.append("Seller must have a business email")
    if not seller.payout_method:
        errors.append("Seller must have a payout method configured")

    return ValidationResult(valid=not errors, errors=errors)


def calculate_risk_score(
    seller: Any, now: Optional[datetime] = None, rules: Settings = settings
) -> RiskScore:
    """0-100, higher is riskier."""
    flags: list[str] = []
    score = 0
    now = _as_utc(now or datetime.now(timezone.utc))

    suspension_count = getattr(seller, "suspension_count", 0) or 0
    if suspension_count > 0:
        score += 20
        flags.append(f"{suspension_count} previous suspensions")

    rating = getattr(seller, "average_rating", None)
    if rating is not None and rating < rules.risk_low_rating_threshold:
        score += 15
        flags.append(f"Low rating: {rating}")

    chargebacks = getattr(seller, "chargeback_count", 0) or 0
    if chargebacks >= rules.risk_chargeback_threshold:
        score += 25
        flags.append(f"High chargebacks: {chargebacks}")

    created_at = getattr(seller, "created_at", None)
    if created_at is not None and (now - _as_utc(created_at)).days < rules.risk_new_seller_days:
        score += 10
        flags.append("Very new seller")

    score = min(score, 100)
    if score < 30:
        level = RiskLevel.LOW
    elif score < 60:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.HIGH

    return RiskScore(score=score, level=level, flags=flags)
