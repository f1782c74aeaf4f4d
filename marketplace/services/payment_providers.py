import logging
from typing import Optional, Protocol
from uuid import uuid4

import httpx
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import Settings, settings
from marketplace.core.enums import enum_value
from marketplace.db.models import Payout
from marketplace.exceptions import ExternalProviderException
from marketplace.services.payout_orchestrator import PayoutOrchestrator

logger = logging.getLogger(__name__)


class ProviderResult(BaseModel):
    success: bool
    reference: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    error: Optional[str] = None


class PaymentProvider(Protocol):
    name: str

    async def submit(self, payout: Payout) -> ProviderResult: ...


class SandboxPaymentProvider:
    """Accepts every payout immediately. Default for local runs and tests."""

    name = "sandbox"

    async def submit(self, payout: Payout) -> ProviderResult:
        reference = f"sandbox_{uuid4().hex[:16]}"
        return ProviderResult(
            success=True, reference=reference, metadata={"provider": self.name}
        )


class HttpPaymentProvider:
    """POSTs the payout to a payment gateway.

    A 2xx answer completes the payout with the ``reference`` from the JSON
    body; any other status is a failed transfer. Transport errors raise
    ExternalProviderException.
    """

    name = "http"

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def submit(self, payout: Payout) -> ProviderResult:
        payload = {
            "payout_id": payout.id,
            "seller_id": payout.seller_id,
            "amount_cents": payout.amount_cents,
            "currency": payout.currency,
            "payment_method": enum_value(payout.payment_method)
            if payout.payment_method
            else None,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"Idempotency-Key": payout.id},
                )
        except httpx.TimeoutException:
            raise ExternalProviderException(self.name, "provider timeout") from None
        except httpx.HTTPError as exc:
            raise ExternalProviderException(
                self.name, f"Payment gateway unreachable: {exc}"
            ) from exc

        if response.is_success:
            body = response.json() if response.content else {}
            reference = body.get("reference") or body.get("id") or payout.id
            return ProviderResult(
                success=True,
                reference=str(reference),
                metadata={"provider": self.name, "status_code": response.status_code},
            )

        return ProviderResult(
            success=False,
            error=f"Payment gateway responded {response.status_code}: {response.text[:200]}",
            metadata={"provider": self.name, "status_code": response.status_code},
        )


def get_payment_provider(config: Settings = settings) -> PaymentProvider:
    if config.payment_provider == "http":
        if not config.payment_gateway_url:
            raise ExternalProviderException(
                "http", "payment_gateway_url must be set for the http provider"
            )
        return HttpPaymentProvider(
            config.payment_gateway_url, timeout=config.payment_gateway_timeout
        )
    return SandboxPaymentProvider()


async def submit_payout(
    payout_id: str,
    session_factory: async_sessionmaker[AsyncSession],
    provider: Optional[PaymentProvider] = None,
) -> None:
    """Background task: send a processing payout to the provider and apply the result.

    The provider is called between two short transactions so no database
    lock is held during network I/O.
    """
    try:
        provider = provider or get_payment_provider()
        logger.info(
            "Submitting payout to provider payout_id=%s provider=%s",
            payout_id,
            provider.name,
            extra={"payout_id": payout_id, "provider": provider.name},
        )

        async with session_factory() as session:
            async with session.begin():
                payout = await PayoutOrchestrator(session).get(payout_id)

        try:
            result = await provider.submit(payout)
        except ExternalProviderException as exc:
            result = ProviderResult(
                success=False, error=exc.message, metadata={"provider": provider.name}
            )

        async with session_factory() as session:
            async with session.begin():
                orchestrator = PayoutOrchestrator(session)
                if result.success:
                    payout = await orchestrator.complete(
                        payout_id, result.reference, result.metadata
                    )
                else:
                    payout = await orchestrator.fail(payout_id, result.error)

        logger.info(
            "Provider submission finished payout_id=%s status=%s",
            payout_id,
            enum_value(payout.status),
            extra={
                "payout_id": payout_id,
                "status": enum_value(payout.status),
                "requires_reconciliation": payout.requires_reconciliation,
            },
        )
    except Exception as e:
        logger.error(
            "Provider submission failed payout_id=%s: %s",
            payout_id,
            e,
            exc_info=True,
            extra={"payout_id": payout_id},
        )
