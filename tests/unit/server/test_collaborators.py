"""Unit tests for the default pricing, settlement and issuance collaborators."""

import hashlib
import json
from decimal import Decimal
from typing import Any, Callable, Dict

import httpx
import pytest
from chain_ticket.server.facilitator import FacilitatorSettlement
from chain_ticket.server.issuance import HttpTicketIssuer, compute_qr_hash
from chain_ticket.server.pricing import StaticPricing
from chain_ticket.x402.errors import (
    InvalidAmount,
    IssuanceFailure,
    ResourceNotFound,
    SettlementFailure,
)
from chain_ticket.x402.types import (
    AuthorizationMessage,
    PaymentRequirements,
    SignedAuthorization,
)

REQUIREMENTS = PaymentRequirements(
    network="base-sepolia",
    max_amount_required="5.00",
    resource="/purchase/0xevent",
    pay_to="0x1234567890123456789012345678901234567890",
    max_timeout_seconds=300,
    asset="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    extra={"name": "USDC", "version": "2"},
)

PAYMENT = SignedAuthorization(
    signature="0x" + "ab" * 65,
    authorization=AuthorizationMessage(
        **{
            "from": "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
            "to": "0x1234567890123456789012345678901234567890",
            "value": "5000000",
            "validAfter": "0",
            "validBefore": "1700000300",
            "nonce": "0x" + "0f" * 32,
        }
    ),
)


class Recorder:
    """httpx.MockTransport handler answering by path, recording requests."""

    def __init__(
        self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]]
    ) -> None:
        self._routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._routes[request.url.path](request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _json(status: int, body: Any) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body)


@pytest.mark.asyncio
class TestStaticPricing:
    async def test_price_of(self) -> None:
        pricing = StaticPricing({"0xevent": "5.00", "0xfree": "0"})

        price = await pricing.price_of("0xevent")

        assert price.amount_decimal == Decimal("5.00")
        assert price.currency == "USDC"
        assert (await pricing.price_of("0xfree")).amount_decimal == 0

    async def test_unknown_resource(self) -> None:
        with pytest.raises(ResourceNotFound):
            await StaticPricing({}).price_of("0xevent")

    async def test_negative_price_is_rejected(self) -> None:
        with pytest.raises(InvalidAmount):
            StaticPricing({"0xevent": "-1"})


@pytest.mark.asyncio
class TestFacilitatorSettlement:
    async def test_verify_then_settle(self) -> None:
        recorder = Recorder(
            {
                "/facilitator/verify": _json(200, {"isValid": True}),
                "/facilitator/settle": _json(
                    200, {"success": True, "transaction": "0xpay"}
                ),
            }
        )
        settlement = FacilitatorSettlement(
            "https://x402.example.com/facilitator", http_client=recorder.client()
        )

        result = await settlement.settle(PAYMENT, REQUIREMENTS)

        assert result.ok
        assert result.transaction_hash == "0xpay"
        assert [r.url.path for r in recorder.requests] == [
            "/facilitator/verify",
            "/facilitator/settle",
        ]
        body = json.loads(recorder.requests[0].content)
        assert body["x402Version"] == 1
        assert body["paymentRequirements"]["maxAmountRequired"] == "5000000"
        assert body["paymentRequirements"]["payTo"] == REQUIREMENTS.pay_to
        assert body["paymentPayload"]["network"] == "base-sepolia"
        assert body["paymentPayload"]["payload"]["authorization"]["value"] == "5000000"
        assert body["paymentPayload"]["payload"]["signature"] == PAYMENT.signature

    async def test_invalid_payment_is_not_settled(self) -> None:
        recorder = Recorder(
            {
                "/verify": _json(
                    200, {"isValid": False, "invalidReason": "invalid_signature"}
                ),
            }
        )
        settlement = FacilitatorSettlement(
            "https://x402.example.com", http_client=recorder.client()
        )

        result = await settlement.settle(PAYMENT, REQUIREMENTS)

        assert not result.ok
        assert result.reason == "invalid_signature"
        assert len(recorder.requests) == 1

    async def test_settle_refusal(self) -> None:
        recorder = Recorder(
            {
                "/verify": _json(200, {"isValid": True}),
                "/settle": _json(
                    200, {"success": False, "errorReason": "nonce already used"}
                ),
            }
        )
        settlement = FacilitatorSettlement(
            "https://x402.example.com", http_client=recorder.client()
        )

        result = await settlement.settle(PAYMENT, REQUIREMENTS)

        assert not result.ok
        assert result.reason == "nonce already used"

    async def test_http_error_raises(self) -> None:
        recorder = Recorder({"/verify": _json(500, {"error": "boom"})})
        settlement = FacilitatorSettlement(
            "https://x402.example.com", http_client=recorder.client()
        )

        with pytest.raises(SettlementFailure, match="HTTP 500"):
            await settlement.settle(PAYMENT, REQUIREMENTS)

    async def test_unreachable_raises(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        recorder = Recorder({"/verify": refuse})
        settlement = FacilitatorSettlement(
            "https://x402.example.com", http_client=recorder.client()
        )

        with pytest.raises(SettlementFailure, match="connection refused"):
            await settlement.settle(PAYMENT, REQUIREMENTS)

    async def test_timeout_raises(self) -> None:
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out")

        recorder = Recorder({"/verify": slow})
        settlement = FacilitatorSettlement(
            "https://x402.example.com", timeout=5, http_client=recorder.client()
        )

        with pytest.raises(SettlementFailure, match="timeout after 5s"):
            await settlement.settle(PAYMENT, REQUIREMENTS)


def test_compute_qr_hash() -> None:
    expected = hashlib.sha256(b"0xevent-0xbuyer-0xpay-1700000000000").hexdigest()
    assert compute_qr_hash("0xevent", "0xbuyer", "0xpay", 1_700_000_000_000) == expected


@pytest.mark.asyncio
class TestHttpTicketIssuer:
    async def test_issue(self) -> None:
        recorder = Recorder(
            {
                "/mint": _json(
                    200, {"ticketAddress": "0xticket", "transactionHash": "0xmint"}
                )
            }
        )
        issuer = HttpTicketIssuer(
            "https://mint.example.com/",
            http_client=recorder.client(),
            clock=lambda: 1_700_000_000,
        )

        ticket = await issuer.issue("0xbuyer", "0xevent", "0xpay")

        assert ticket.ticket_address == "0xticket"
        assert ticket.transaction_hash == "0xmint"
        assert ticket.qr_hash == compute_qr_hash(
            "0xevent", "0xbuyer", "0xpay", 1_700_000_000_000
        )
        assert json.loads(recorder.requests[0].content) == {
            "eventAddress": "0xevent",
            "buyer": "0xbuyer",
            "qrHash": ticket.qr_hash,
        }

    async def test_free_ticket_reference(self) -> None:
        recorder = Recorder({"/mint": _json(200, {"ticketAddress": "0xticket"})})
        issuer = HttpTicketIssuer(
            "https://mint.example.com",
            http_client=recorder.client(),
            clock=lambda: 1_700_000_000,
        )

        ticket = await issuer.issue("0xbuyer", "0xevent")

        assert ticket.qr_hash == compute_qr_hash(
            "0xevent", "0xbuyer", "free", 1_700_000_000_000
        )
        assert ticket.transaction_hash is None

    async def test_mint_failure_raises(self) -> None:
        recorder = Recorder({"/mint": _json(500, {"error": "reverted"})})
        issuer = HttpTicketIssuer(
            "https://mint.example.com", http_client=recorder.client()
        )

        with pytest.raises(IssuanceFailure, match="reverted"):
            await issuer.issue("0xbuyer", "0xevent", "0xpay")

    async def test_close_releases_client(self) -> None:
        recorder = Recorder({})
        client = recorder.client()

        async with HttpTicketIssuer("https://mint.example.com", http_client=client):
            pass

        assert client.is_closed
