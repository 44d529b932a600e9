"""Client side of the ticket purchase handshake."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Dict, Self

import httpx
from pydantic import ValidationError

from chain_ticket.x402.authorization import AuthorizationBuilder
from chain_ticket.x402.authorizers.wallet import WalletAuthorizer
from chain_ticket.x402.errors import (
    ChainTicketError,
    PaymentRejected,
    RequestFailed,
)
from chain_ticket.x402.http.transport import X402HttpTransport
from chain_ticket.x402.signer import SigningCapability
from chain_ticket.x402.types import PurchaseResult

logger = logging.getLogger(__name__)

BUYER_HEADER = "x-buyer-address"
DEFAULT_TIMEOUT = 30.0


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class PurchaseClient:
    """Buys tickets from a Chain Ticket server, paying 402 challenges.

    Usage::

        async with PurchaseClient("https://tickets.example.com") as client:
            result = await client.purchase(
                "/purchase/0xevent", wallet.address, wallet
            )
            if not result.success:
                print(user_message(result.error))

    ``purchase`` never raises for handshake failures; they come back as
    ``PurchaseResult(success=False, error=<code>)``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        builder: AuthorizationBuilder | None = None,
        validity_seconds: int | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = httpx.URL(base_url.rstrip("/") + "/")
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._builder = builder or AuthorizationBuilder()
        self._validity_seconds = validity_seconds
        self._timeout = httpx.Timeout(timeout)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self._transport.aclose()

    async def purchase(
        self,
        resource_path: str,
        buyer_address: str,
        signing_capability: SigningCapability,
    ) -> PurchaseResult:
        """Run the handshake for *resource_path* on behalf of *buyer_address*.

        The first request carries no payment. On a 402 the challenge is
        signed by *signing_capability* and the request is retried exactly
        once. A free resource completes in a single round trip.
        """
        authorizer = WalletAuthorizer(
            buyer_address,
            signing_capability,
            builder=self._builder,
            validity_seconds=self._validity_seconds,
        )
        transport = X402HttpTransport(wrapped=self._transport, authorizer=authorizer)
        request = httpx.Request(
            "POST",
            self._base_url.join(resource_path.lstrip("/")),
            headers={BUYER_HEADER: buyer_address},
            json={"buyerAddress": buyer_address},
            extensions={"timeout": self._timeout.as_dict()},
        )

        try:
            response = await transport.handle_async_request(request)
            await response.aread()
        except ChainTicketError as e:
            logger.info("Purchase of %s failed: %s", resource_path, e.code)
            return PurchaseResult.failure(e.code, e.reason)
        except ValueError as e:
            # Challenge terms we cannot build a payment for.
            logger.warning("Unusable payment challenge for %s: %s", resource_path, e)
            return PurchaseResult.failure(PaymentRejected.code, str(e))
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", request.url, e)
            return PurchaseResult.failure(RequestFailed.code, str(e))

        return self._to_result(response)

    def _to_result(self, response: httpx.Response) -> PurchaseResult:
        body = _error_body(response)

        if response.is_success:
            try:
                return PurchaseResult.model_validate(body)
            except ValidationError:
                logger.warning(
                    "Purchase succeeded with an unexpected body: %s",
                    response.text[:200],
                )
                return PurchaseResult(success=True, message=response.text[:200])

        if response.status_code == 402:
            return PurchaseResult.failure(
                PaymentRejected.code, body.get("error") or "Payment required"
            )

        error = body.get("error")
        if isinstance(error, str) and error:
            return PurchaseResult(
                success=False,
                error=error,
                message=body.get("message"),
                payment_transaction_hash=body.get("paymentTransactionHash"),
            )
        return PurchaseResult.failure(
            RequestFailed.code,
            f"HTTP {response.status_code} {response.reason_phrase}",
        )
