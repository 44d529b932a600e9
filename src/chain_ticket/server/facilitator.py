"""Settlement through an x402 facilitator (``/verify`` then ``/settle``)."""

import logging
from typing import Any, Dict, Optional

import httpx

from chain_ticket.x402.amounts import USDC_DECIMALS, to_minor_units
from chain_ticket.x402.errors import SettlementFailure
from chain_ticket.x402.types import (
    X402_VERSION,
    PaymentRequirements,
    SignedAuthorization,
)

from .collaborators import SettlementResult, SettlementService
from .remote import RemoteService

logger = logging.getLogger(__name__)

DEFAULT_FACILITATOR_URL = "https://x402.org/facilitator"


class FacilitatorSettlement(RemoteService, SettlementService):
    """Settles EIP-3009 authorizations via a facilitator.

    The facilitator checks the signature, enforces nonce uniqueness on-chain
    and submits ``transferWithAuthorization``.
    """

    error_class = SettlementFailure

    def __init__(
        self,
        facilitator_url: str = DEFAULT_FACILITATOR_URL,
        *,
        decimals: int = USDC_DECIMALS,
        timeout: float = 60,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(facilitator_url, timeout=timeout, http_client=http_client)
        self._decimals = decimals

    def _request_body(
        self,
        payment: SignedAuthorization,
        requirements: PaymentRequirements,
    ) -> Dict[str, Any]:
        # Facilitators expect the amount in atomic units.
        wire_requirements = requirements.model_dump(by_alias=True)
        wire_requirements["maxAmountRequired"] = str(
            to_minor_units(requirements.max_amount_required, self._decimals)
        )
        return {
            "x402Version": X402_VERSION,
            "paymentPayload": {
                "x402Version": X402_VERSION,
                "scheme": requirements.scheme,
                "network": requirements.network,
                "payload": payment.model_dump(by_alias=True),
            },
            "paymentRequirements": wire_requirements,
        }

    async def settle(
        self,
        payment: SignedAuthorization,
        requirements: PaymentRequirements,
    ) -> SettlementResult:
        body = self._request_body(payment, requirements)

        verified = await self._post("/verify", body)
        if not verified.get("isValid"):
            reason = verified.get("invalidReason") or "invalid payment"
            logger.info("Facilitator rejected payment: %s", reason)
            return SettlementResult(ok=False, reason=reason)

        settled = await self._post("/settle", body)
        if not settled.get("success"):
            reason = settled.get("errorReason") or "settlement failed"
            logger.info("Facilitator could not settle payment: %s", reason)
            return SettlementResult(ok=False, reason=reason)

        return SettlementResult(ok=True, transaction_hash=settled.get("transaction"))
