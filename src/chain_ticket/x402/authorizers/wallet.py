import asyncio
import logging
import uuid
from typing import Any, Dict, List

from ..authorization import AuthorizationBuilder
from ..authorizer import PaymentStatus, X402Authorization, X402Authorizer
from ..codec import encode_payment_header
from ..signer import SigningCapability, TypedDataSigner
from ..types import PaymentRequiredResponse, PaymentRequirements, SignedAuthorization

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("exact",)


class WalletAuthorizer(X402Authorizer):
    """Pays a 402 challenge by asking a wallet to sign an EIP-3009
    authorization bounded by the challenge's terms."""

    def __init__(
        self,
        payer_address: str,
        capability: SigningCapability,
        *,
        builder: AuthorizationBuilder | None = None,
        validity_seconds: int | None = None,
    ):
        self._payer_address = payer_address
        self._capability = capability
        self._builder = builder or AuthorizationBuilder()
        self._validity_seconds = validity_seconds

    def _select(
        self, accepts: List[PaymentRequirements]
    ) -> PaymentRequirements | None:
        for requirement in accepts:
            if requirement.scheme in SUPPORTED_SCHEMES:
                return requirement
        return None

    async def authorize(
        self,
        payment_required: PaymentRequiredResponse,
        context: Dict[str, Any] | None = None,
    ) -> X402Authorization | None:
        requirement = self._select(payment_required.accepts)
        if requirement is None:
            logger.info(
                "No supported payment scheme offered: %s",
                [r.scheme for r in payment_required.accepts],
            )
            return None

        message = self._builder.build(
            self._payer_address,
            requirement.pay_to,
            requirement.max_amount_required,
            self._validity_seconds,
            max_timeout_seconds=requirement.max_timeout_seconds,
        )
        signer = TypedDataSigner.for_requirements(requirement)
        # Wallet prompts block the calling thread.
        signature = await asyncio.to_thread(signer.sign, message, self._capability)

        payment = SignedAuthorization(authorization=message, signature=signature)
        header_value = encode_payment_header(
            payment,
            signer.domain["chainId"],
            network=requirement.network,
            scheme=requirement.scheme,
        )
        return X402Authorization(
            payment=payment,
            header_value=header_value,
            authorization_id=uuid.uuid4().hex,
            selected_requirement=requirement,
        )

    async def onStatus(
        self,
        status: PaymentStatus,
        authorization: X402Authorization,
        context: Dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "Payment %s for %s: %s",
            authorization.authorization_id,
            authorization.selected_requirement.resource,
            status.value,
        )
