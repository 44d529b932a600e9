"""httpx async transport with automatic x402 payment handling."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from chain_ticket.x402.authorizer import (
    PaymentStatus,
    X402Authorization,
    X402Authorizer,
)
from chain_ticket.x402.codec import PAYMENT_HEADER
from chain_ticket.x402.errors import PaymentTimeout
from chain_ticket.x402.types import PaymentRequiredResponse

logger = logging.getLogger(__name__)


def _has_payment_response(response: httpx.Response) -> bool:
    """Check whether the response carries an x402 payment-response header."""
    return response.headers.get("x-payment-response") is not None


def _parse_payment_required(body: bytes) -> PaymentRequiredResponse | None:
    try:
        payment_required = PaymentRequiredResponse.model_validate(json.loads(body))
    except (ValueError, ValidationError):
        return None
    if not payment_required.accepts:
        return None
    return payment_required


class X402HttpTransport(httpx.AsyncBaseTransport):
    """httpx transport that intercepts 402 responses and pays them.

    On a 402 carrying x402 requirements the authorizer is asked for a signed
    payment, and the original request is resent once with the ``X-Payment``
    header. A 402 on that retry is returned as-is, never retried again.

    Authorizing and retrying together must finish within the challenge's
    ``maxTimeoutSeconds``, otherwise :class:`PaymentTimeout` is raised.
    Errors raised by the authorizer (e.g. ``SigningRejected``) propagate to
    the caller without any retry being sent.

    Example::

        transport = X402HttpTransport(
            wrapped=httpx.AsyncHTTPTransport(),
            authorizer=WalletAuthorizer(buyer, wallet),
        )
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post("https://tickets.example.com/purchase/evt")
    """

    _RETRY_KEY = "_x402_is_retry"

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        authorizer: X402Authorizer,
    ) -> None:
        self._wrapped = wrapped
        self._authorizer = authorizer

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response = await self._wrapped.handle_async_request(request)

        if response.status_code != 402:
            return response

        # Already paid once; never pay twice for the same request.
        if request.extensions.get(self._RETRY_KEY):
            return response

        # Read and close the 402 response to release the connection.
        await response.aread()
        body = response.content
        await response.aclose()

        payment_required = _parse_payment_required(body)
        if payment_required is None:
            logger.debug(
                "402 response body is not a valid x402 payload, passing through"
            )
            return httpx.Response(
                status_code=402, headers=response.headers, content=body
            )

        timeout = min(r.max_timeout_seconds for r in payment_required.accepts)
        try:
            return await asyncio.wait_for(
                self._pay_and_retry(request, response, body, payment_required),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise PaymentTimeout(
                f"Payment for {request.url} not completed within {timeout}s"
            )

    async def _pay_and_retry(
        self,
        request: httpx.Request,
        response: httpx.Response,
        body: bytes,
        payment_required: PaymentRequiredResponse,
    ) -> httpx.Response:
        context = self._context(request)
        authorization = await self._authorizer.authorize(payment_required, context)
        if authorization is None:
            return httpx.Response(
                status_code=402, headers=response.headers, content=body
            )

        await self._notify(PaymentStatus.PAYMENT_SUBMITTED, authorization, context)
        retry_response = await self._retry(
            request, PAYMENT_HEADER, authorization.header_value
        )
        await self._notify(self._status_of(retry_response), authorization, context)
        return retry_response

    def _context(self, request: httpx.Request) -> dict[str, Any]:
        return {
            "method": "http",
            "params": {"resource": str(request.url)},
        }

    def _status_of(self, response: httpx.Response) -> PaymentStatus:
        if response.status_code == 402:
            return PaymentStatus.PAYMENT_REJECTED
        if response.is_success or _has_payment_response(response):
            return PaymentStatus.PAYMENT_COMPLETED
        return PaymentStatus.PAYMENT_FAILED

    async def _notify(
        self,
        status: PaymentStatus,
        authorization: X402Authorization,
        context: dict[str, Any],
    ) -> None:
        try:
            await self._authorizer.onStatus(status, authorization, context)
        except Exception as e:
            logger.error('authorizer.onStatus failed with "%s"', e)

    async def _retry(
        self,
        original: httpx.Request,
        header_name: str,
        header_value: str,
    ) -> httpx.Response:
        headers = httpx.Headers(original.headers)
        headers[header_name] = header_value
        retry_request = httpx.Request(
            method=original.method,
            url=original.url,
            headers=headers,
            content=original.content,
            extensions={**dict(original.extensions), self._RETRY_KEY: True},
        )
        return await self._wrapped.handle_async_request(retry_request)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
