"""End-to-end purchase handshake: PurchaseClient against the FastAPI app."""

from typing import Any, Dict

import httpx
import pytest
from chain_ticket import PurchaseClient, user_message
from chain_ticket.server.app import create_app
from chain_ticket.server.collaborators import (
    IssuedTicket,
    SettlementResult,
    SettlementService,
    TicketIssuer,
)
from chain_ticket.server.handshake import PurchaseHandshakeServer
from chain_ticket.server.pricing import StaticPricing
from chain_ticket.x402.authorization import AuthorizationBuilder
from chain_ticket.x402.config import PaymentConfig
from chain_ticket.x402.signer import (
    AccountSigningCapability,
    TypedDataSigner,
    recover_signer,
)
from chain_ticket.x402.types import PaymentRequirements, SignedAuthorization

NOW = 1_700_000_000
TEST_PRIVATE_KEY = "0x" + "ab" * 32
WALLET = AccountSigningCapability.from_key(TEST_PRIVATE_KEY)
PAY_TO = "0x1234567890123456789012345678901234567890"
CONFIG = PaymentConfig.for_network("base-sepolia", PAY_TO)
EVENT = "0xevent"


class RecordingSettlement(SettlementService):
    def __init__(self, result: SettlementResult) -> None:
        self._result = result
        self.payments: list[SignedAuthorization] = []

    async def settle(
        self, payment: SignedAuthorization, requirements: PaymentRequirements
    ) -> SettlementResult:
        self.payments.append(payment)
        return self._result


class MintingIssuer(TicketIssuer):
    def __init__(self) -> None:
        self.issued: list[tuple[str, str, str | None]] = []

    async def issue(
        self,
        buyer_address: str,
        resource_id: str,
        payment_reference: str | None = None,
    ) -> IssuedTicket:
        self.issued.append((buyer_address, resource_id, payment_reference))
        return IssuedTicket(
            ticket_address="0xticket", qr_hash="cd" * 32, transaction_hash="0xmint"
        )


class CountingTransport(httpx.AsyncBaseTransport):
    """Counts requests on their way to the wrapped transport."""

    def __init__(self, wrapped: httpx.AsyncBaseTransport) -> None:
        self._wrapped = wrapped
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self._wrapped.handle_async_request(request)

    async def aclose(self) -> None:
        await self._wrapped.aclose()


class DecliningWallet:
    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        raise RuntimeError("User rejected the request")


def _setup(
    settlement: RecordingSettlement, issuer: MintingIssuer
) -> tuple[PurchaseClient, CountingTransport]:
    pricing = StaticPricing({EVENT: "5.00", "0xfree": "0"})
    handshake = PurchaseHandshakeServer(
        CONFIG,
        pricing=pricing,
        settlement=settlement,
        issuer=issuer,
        clock=lambda: NOW,
    )
    app = create_app(handshake, pricing)
    transport = CountingTransport(httpx.ASGITransport(app=app))
    client = PurchaseClient(
        "http://tickets.test",
        transport=transport,
        builder=AuthorizationBuilder(clock=lambda: NOW),
    )
    return client, transport


@pytest.mark.asyncio
class TestPurchaseFlow:
    async def test_paid_ticket(self) -> None:
        settlement = RecordingSettlement(
            SettlementResult(ok=True, transaction_hash="0xpay")
        )
        issuer = MintingIssuer()
        client, transport = _setup(settlement, issuer)

        async with client:
            result = await client.purchase(f"/purchase/{EVENT}", WALLET.address, WALLET)

        assert result.success, result
        assert result.ticket is not None
        assert result.ticket.qr_hash == "cd" * 32
        assert result.ticket.owner == WALLET.address
        assert result.transaction_hash == "0xmint"
        assert result.payment_transaction_hash == "0xpay"
        assert len(transport.requests) == 2

        (payment,) = settlement.payments
        assert payment.authorization.value == 5_000_000
        assert payment.authorization.to == PAY_TO
        assert payment.authorization.valid_before == NOW + 300

        typed_data = TypedDataSigner.from_config(CONFIG).typed_data(
            payment.authorization
        )
        assert recover_signer(typed_data, payment.signature) == WALLET.address
        assert issuer.issued == [(WALLET.address, EVENT, "0xpay")]

    async def test_signing_rejected(self) -> None:
        settlement = RecordingSettlement(SettlementResult(ok=True))
        issuer = MintingIssuer()
        client, transport = _setup(settlement, issuer)

        async with client:
            result = await client.purchase(
                f"/purchase/{EVENT}", WALLET.address, DecliningWallet()
            )

        assert not result.success
        assert result.error == "SigningRejected"
        assert user_message(result.error) == "Payment was cancelled in your wallet."
        assert len(transport.requests) == 1
        assert settlement.payments == []
        assert issuer.issued == []

    async def test_used_nonce_is_not_retried(self) -> None:
        settlement = RecordingSettlement(
            SettlementResult(ok=False, reason="nonce already used")
        )
        issuer = MintingIssuer()
        client, transport = _setup(settlement, issuer)

        async with client:
            result = await client.purchase(f"/purchase/{EVENT}", WALLET.address, WALLET)

        assert not result.success
        assert result.error == "PaymentRejected"
        assert result.message is not None
        assert "nonce already used" in result.message
        assert len(transport.requests) == 2
        assert len(settlement.payments) == 1
        assert issuer.issued == []

    async def test_free_ticket(self) -> None:
        settlement = RecordingSettlement(SettlementResult(ok=True))
        issuer = MintingIssuer()
        client, transport = _setup(settlement, issuer)

        async with client:
            result = await client.purchase("/purchase/0xfree", WALLET.address, WALLET)

        assert result.success
        assert result.payment_transaction_hash is None
        assert len(transport.requests) == 1
        assert settlement.payments == []

    async def test_unknown_event(self) -> None:
        client, transport = _setup(
            RecordingSettlement(SettlementResult(ok=True)), MintingIssuer()
        )

        async with client:
            result = await client.purchase("/purchase/0xnope", WALLET.address, WALLET)

        assert result.error == "ResourceNotFound"
        assert user_message(result.error) == "This event could not be found."
