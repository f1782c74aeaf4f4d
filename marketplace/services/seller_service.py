import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, settings
from marketplace.core.enums import AuditAction, VerificationStatus, enum_value
from marketplace.db.base import utcnow
from marketplace.db.models import Seller
from marketplace.db.repositories import PayoutRepository, SellerRepository
from marketplace.exceptions import (
    ConflictException,
    InvalidTransitionException,
    SellerNotFoundException,
    SellerValidationException,
)
from marketplace.schemas.sellers import SellerCreate, SellerEligibility
from marketplace.services.audit_recorder import AuditRecorder
from marketplace.services.business_rules import (
    calculate_risk_score,
    check_payout_eligibility,
    to_rate,
    validate_seller_for_verification,
    validate_seller_registration,
)
from marketplace.services.commission_ledger import CommissionLedger

logger = logging.getLogger(__name__)


class SellerService:
    def __init__(self, session: AsyncSession, rules: Settings = settings) -> None:
        self.session = session
        self.rules = rules
        self.seller_repo = SellerRepository(session)
        self.payout_repo = PayoutRepository(session)
        self.audit = AuditRecorder(session)

    async def get(self, seller_id: str) -> Seller:
        seller = await self.seller_repo.get_by_id(seller_id)
        if not seller:
            raise SellerNotFoundException(seller_id)
        return seller

    async def register(self, data: SellerCreate) -> Seller:
        validation = validate_seller_registration(
            customer_id=data.customer_id,
            business_name=data.business_name,
            business_email=data.business_email,
            payout_method=data.payout_method,
            commission_rate=data.commission_rate,
        )
        if not validation.valid:
            logger.warning(
                "Seller registration rejected customer_id=%s errors=%s",
                data.customer_id,
                validation.errors,
                extra={"customer_id": data.customer_id, "errors": validation.errors},
            )
            raise SellerValidationException(validation.errors)

        existing = await self.seller_repo.get_by_customer_id(data.customer_id)
        if existing:
            raise ConflictException(
                message="Seller already exists for this customer",
                error_code="SELLER_ALREADY_EXISTS",
                details={"customer_id": data.customer_id, "seller_id": existing.id},
            )

        seller = await self.seller_repo.create(
            customer_id=data.customer_id,
            business_name=data.business_name,
            business_email=data.business_email,
            business_phone=data.business_phone,
            payout_method=data.payout_method,
            commission_rate=to_rate(data.commission_rate)
            if data.commission_rate is not None
            else None,
            verification_status=VerificationStatus.PENDING,
            is_active=True,
            metadata_=data.metadata,
        )
        await self.audit.seller_action(
            seller,
            AuditAction.CREATED,
            user_id=data.customer_id,
            new_values={"status": VerificationStatus.PENDING.value},
            description="Seller registered, awaiting verification",
        )
        logger.info(
            "Seller registered seller_id=%s customer_id=%s",
            seller.id,
            seller.customer_id,
            extra={"seller_id": seller.id, "customer_id": seller.customer_id},
        )
        return seller

    async def _change_status(
        self,
        seller: Seller,
        target: VerificationStatus,
        action: AuditAction,
        admin_id: str,
        notes: Optional[str],
        **values,
    ) -> Seller:
        previous = enum_value(seller.verification_status)
        await self.seller_repo.update(
            seller, verification_status=target, verification_notes=notes, **values
        )
        await self.audit.seller_action(
            seller,
            action,
            user_id=admin_id,
            old_values={"status": previous},
            new_values={"status": target.value, "notes": notes},
            description=f"Seller {target.value}. Notes: {notes or 'None'}",
        )
        logger.info(
            "Seller status changed seller_id=%s from=%s to=%s",
            seller.id,
            previous,
            target.value,
            extra={"seller_id": seller.id, "status": target.value},
        )
        return seller

    async def verify(
        self, seller_id: str, admin_id: str, notes: Optional[str] = None
    ) -> Seller:
        seller = await self.seller_repo.get_by_id(seller_id)
        if seller is None:
            raise SellerNotFoundException(seller_id)
        validation = validate_seller_for_verification(seller)
        if not validation.valid:
            raise SellerValidationException(validation.errors, seller_id=seller_id)

        return await self._change_status(
            seller,
            VerificationStatus.VERIFIED,
            AuditAction.VERIFIED,
            admin_id,
            notes or "Approved by admin",
            verified_at=utcnow(),
        )

    async def reject(self, seller_id: str, admin_id: str, reason: str) -> Seller:
        seller = await self.get(seller_id)
        if seller.verification_status != VerificationStatus.PENDING:
            raise InvalidTransitionException(
                "seller",
                seller.id,
                enum_value(seller.verification_status),
                VerificationStatus.REJECTED.value,
            )
        return await self._change_status(
            seller,
            VerificationStatus.REJECTED,
            AuditAction.REJECTED,
            admin_id,
            reason,
        )

    async def suspend(self, seller_id: str, admin_id: str, reason: str) -> Seller:
        seller = await self.get(seller_id)
        if seller.verification_status not in (
            VerificationStatus.PENDING,
            VerificationStatus.VERIFIED,
        ):
            raise InvalidTransitionException(
                "seller",
                seller.id,
                enum_value(seller.verification_status),
                VerificationStatus.SUSPENDED.value,
            )
        return await self._change_status(
            seller,
            VerificationStatus.SUSPENDED,
            AuditAction.SUSPENDED,
            admin_id,
            reason,
            is_active=False,
            suspension_count=seller.suspension_count + 1,
        )

    async def reactivate(self, seller_id: str, admin_id: str) -> Seller:
        seller = await self.get(seller_id)
        if seller.verification_status != VerificationStatus.SUSPENDED:
            raise InvalidTransitionException(
                "seller",
                seller.id,
                enum_value(seller.verification_status),
                VerificationStatus.VERIFIED.value,
            )
        return await self._change_status(
            seller,
            VerificationStatus.VERIFIED,
            AuditAction.UPDATED,
            admin_id,
            "Reactivated by admin",
            is_active=True,
        )

    async def eligibility(self, seller_id: str) -> SellerEligibility:
        seller = await self.get(seller_id)
        last_payout_at = await self.payout_repo.get_last_requested_at(seller_id)
        failed_count = await self.payout_repo.count_failed(seller_id)
        result = check_payout_eligibility(
            seller, last_payout_at, failed_count, rules=self.rules
        )
        available = await CommissionLedger(self.session).available_for_payout(
            seller_id, self.rules.default_currency
        )

        return SellerEligibility(
            seller_id=seller_id,
            eligible=result.eligible,
            reasons=result.reasons,
            failed_payout_count=failed_count,
            last_payout_at=last_payout_at,
            available_for_payout_cents=available,
            risk=calculate_risk_score(seller, rules=self.rules),
        )
