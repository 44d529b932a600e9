"""Server side of the ticket purchase handshake.

Framework independent: :meth:`PurchaseHandshakeServer.handle` takes the
parsed request parts and returns a status code, JSON body and headers.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from x402.encoding import safe_base64_encode

from chain_ticket.x402.amounts import to_minor_units
from chain_ticket.x402.codec import decode_envelope
from chain_ticket.x402.config import PaymentConfig
from chain_ticket.x402.errors import (
    InvalidAmount,
    IssuanceFailure,
    MalformedPaymentHeader,
    PaymentRejected,
    PurchaseFailed,
    ResourceNotFound,
    SettlementFailure,
)
from chain_ticket.x402.types import (
    PaymentEnvelope,
    PaymentRequiredResponse,
    PaymentRequirements,
    PurchaseResult,
    TicketInfo,
)

from .collaborators import (
    IssuedTicket,
    Price,
    PricingLookup,
    SettlementResult,
    SettlementService,
    TicketIssuer,
)
from .nonces import SeenNonceCache

logger = logging.getLogger(__name__)

PAYMENT_RESPONSE_HEADER = "X-Payment-Response"

# Tolerated difference between client and server clocks.
CLOCK_SKEW_SECONDS = 60


@dataclass
class HandshakeResponse:
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


def _error(status_code: int, code: str, message: str | None = None) -> HandshakeResponse:
    body: Dict[str, Any] = {"success": False, "error": code}
    if message:
        body["message"] = message
    return HandshakeResponse(status_code=status_code, body=body)


class PurchaseHandshakeServer:
    """Challenges, verifies and fulfils ticket purchases.

    Usage::

        server = PurchaseHandshakeServer(
            PaymentConfig.for_network("base-sepolia", pay_to="0x..."),
            pricing=StaticPricing({"0xevent": "5.00"}),
            settlement=FacilitatorSettlement(),
            issuer=HttpTicketIssuer("https://mint.example.com"),
        )
        response = await server.handle("0xevent", buyer, request_header)
    """

    def __init__(
        self,
        config: PaymentConfig,
        *,
        pricing: PricingLookup,
        settlement: SettlementService,
        issuer: TicketIssuer,
        nonce_cache: SeenNonceCache | None = None,
        resource_url: str = "/purchase/{resource_id}",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._pricing = pricing
        self._settlement = settlement
        self._issuer = issuer
        self._nonce_cache = nonce_cache
        self._resource_url = resource_url
        self._clock = clock

    @property
    def config(self) -> PaymentConfig:
        return self._config

    def requirements_for(self, resource_id: str, price: Price) -> PaymentRequirements:
        """Fresh challenge terms for *resource_id*."""
        return PaymentRequirements(
            scheme=self._config.scheme,
            network=self._config.network,
            max_amount_required=str(price.amount_decimal),
            pay_to=self._config.pay_to,
            asset=self._config.asset,
            resource=self._resource_url.format(resource_id=resource_id),
            description=f"Ticket for event {resource_id}",
            max_timeout_seconds=self._config.max_timeout_seconds,
            extra={
                "name": self._config.token_name,
                "version": self._config.token_version,
            },
        )

    def _challenge(
        self, requirements: PaymentRequirements, error: str = ""
    ) -> HandshakeResponse:
        body = PaymentRequiredResponse(accepts=[requirements], error=error)
        return HandshakeResponse(
            status_code=402, body=body.model_dump(by_alias=True)
        )

    async def handle(
        self,
        resource_id: str,
        buyer_address: str | None,
        payment_header: str | None,
    ) -> HandshakeResponse:
        try:
            price = await self._pricing.price_of(resource_id)
        except ResourceNotFound as e:
            return _error(404, e.code, e.reason)
        try:
            to_minor_units(price.amount_decimal, self._config.decimals, allow_zero=True)
        except InvalidAmount as e:
            logger.error("Misconfigured price for %s: %s", resource_id, e.reason)
            return _error(500, e.code, e.reason)

        if not buyer_address:
            return _error(
                400,
                "BuyerAddressRequired",
                "Provide buyerAddress in the body or the x-buyer-address header",
            )

        if price.amount_decimal == 0:
            return await self._issue(resource_id, buyer_address, None)

        requirements = self.requirements_for(resource_id, price)
        if not payment_header:
            logger.info(
                "Payment required for %s: %s %s",
                resource_id,
                price.amount_decimal,
                price.currency,
            )
            return self._challenge(requirements)

        try:
            envelope = decode_envelope(payment_header)
        except MalformedPaymentHeader as e:
            logger.warning("Malformed payment header for %s: %s", resource_id, e.reason)
            return _error(400, e.code, e.reason)

        try:
            self._check(envelope, requirements)
        except PaymentRejected as e:
            logger.warning("Payment for %s rejected: %s", resource_id, e.reason)
            return self._challenge(
                self.requirements_for(resource_id, price), f"{e.code}: {e.reason}"
            )

        try:
            settlement = await self._settlement.settle(envelope.payload, requirements)
        except SettlementFailure as e:
            logger.error("Settlement unavailable for %s: %s", resource_id, e.reason)
            if self._nonce_cache is not None:
                authorization = envelope.payload.authorization
                self._nonce_cache.discard(authorization.from_, authorization.nonce)
            return _error(502, e.code, e.reason)

        if not settlement.ok:
            logger.warning(
                "Settlement refused payment for %s: %s", resource_id, settlement.reason
            )
            return self._challenge(
                self.requirements_for(resource_id, price),
                f"{SettlementFailure.code}: {settlement.reason}",
            )

        return await self._issue(resource_id, buyer_address, settlement, envelope)

    def _check(self, envelope: PaymentEnvelope, requirements: PaymentRequirements) -> None:
        """Reject shape and freshness mismatches before anything is settled."""
        authorization = envelope.payload.authorization
        now = int(self._clock())

        if envelope.scheme != requirements.scheme:
            raise PaymentRejected(f"unsupported scheme {envelope.scheme!r}")
        if envelope.chain_id != self._config.chain_id:
            raise PaymentRejected(
                f"wrong chain {envelope.chain_id}, expected {self._config.chain_id}"
            )
        if authorization.to.lower() != requirements.pay_to.lower():
            raise PaymentRejected("payee does not match payTo")

        required = to_minor_units(requirements.max_amount_required, self._config.decimals)
        if authorization.value < required:
            raise PaymentRejected(
                f"value {authorization.value} is below the required {required}"
            )
        if authorization.valid_before <= now:
            raise PaymentRejected("authorization expired")
        if authorization.valid_after > now + CLOCK_SKEW_SECONDS:
            raise PaymentRejected("authorization not yet valid")
        if (
            authorization.valid_before
            > now + requirements.max_timeout_seconds + CLOCK_SKEW_SECONDS
        ):
            raise PaymentRejected("validity window exceeds maxTimeoutSeconds")

        if self._nonce_cache is not None and not self._nonce_cache.add(
            authorization.from_, authorization.nonce
        ):
            raise PaymentRejected("nonce already used")

    async def _issue(
        self,
        resource_id: str,
        buyer_address: str,
        settlement: SettlementResult | None,
        envelope: PaymentEnvelope | None = None,
    ) -> HandshakeResponse:
        payment_tx = settlement.transaction_hash if settlement else None
        try:
            ticket = await self._issuer.issue(buyer_address, resource_id, payment_tx)
        except Exception as e:
            reason = str(e)
            if settlement is not None:
                # Paid but not issued: needs manual reconciliation, never retried.
                logger.error(
                    "Ticket issuance failed after settlement: resource=%s buyer=%s "
                    "payer=%s nonce=%s payment_tx=%s reason=%s",
                    resource_id,
                    buyer_address,
                    envelope.payload.authorization.from_ if envelope else None,
                    envelope.payload.authorization.nonce if envelope else None,
                    payment_tx,
                    reason,
                    exc_info=True,
                )
                response = _error(500, IssuanceFailure.code, reason)
                if payment_tx:
                    response.body["paymentTransactionHash"] = payment_tx
                return response

            logger.error(
                "Free ticket issuance failed: resource=%s buyer=%s reason=%s",
                resource_id,
                buyer_address,
                reason,
                exc_info=True,
            )
            return _error(500, PurchaseFailed.code, reason)

        logger.info(
            "Issued ticket %s for %s to %s", ticket.ticket_address, resource_id, buyer_address
        )
        return self._fulfilled(resource_id, buyer_address, ticket, settlement, envelope)

    def _fulfilled(
        self,
        resource_id: str,
        buyer_address: str,
        ticket: IssuedTicket,
        settlement: SettlementResult | None,
        envelope: PaymentEnvelope | None,
    ) -> HandshakeResponse:
        result = PurchaseResult(
            success=True,
            ticket=TicketInfo(
                address=ticket.ticket_address,
                qr_hash=ticket.qr_hash,
                resource_id=resource_id,
                owner=buyer_address,
            ),
            transaction_hash=ticket.transaction_hash,
            payment_transaction_hash=settlement.transaction_hash if settlement else None,
        )
        headers: Dict[str, str] = {}
        if settlement is not None and envelope is not None:
            headers[PAYMENT_RESPONSE_HEADER] = safe_base64_encode(
                json.dumps(
                    {
                        "success": True,
                        "transaction": settlement.transaction_hash,
                        "network": envelope.network,
                        "payer": envelope.payload.authorization.from_,
                    }
                )
            )
        return HandshakeResponse(status_code=200, body=result.to_wire(), headers=headers)
