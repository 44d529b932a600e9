"""Simplified factory for creating an httpx client with x402 payment handling."""

from __future__ import annotations

from typing import Any

import httpx

from chain_ticket.x402.authorizers.wallet import WalletAuthorizer
from chain_ticket.x402.signer import SigningCapability

from .transport import X402HttpTransport


def create_payment_http_client(
    *,
    payer_address: str,
    signing_capability: SigningCapability,
    wrapped: httpx.AsyncBaseTransport | None = None,
    validity_seconds: int | None = None,
    **httpx_kwargs: Any,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` that pays 402 challenges.

    The returned client intercepts 402 responses, has *signing_capability*
    sign an EIP-3009 authorization for the challenged amount, and retries
    once with the ``X-Payment`` header.

    Args:
        payer_address: Address the payment is drawn from (0x...).
        signing_capability: Wallet-like object implementing
            ``sign_typed_data``.
        wrapped: Transport to send requests through (defaults to
            ``httpx.AsyncHTTPTransport()``).
        validity_seconds: Authorization lifetime; capped at the challenge's
            ``maxTimeoutSeconds``.
        **httpx_kwargs: Extra keyword arguments forwarded to
            ``httpx.AsyncClient`` (e.g. ``base_url``, ``timeout``).

    Example::

        async with create_payment_http_client(
            payer_address=wallet.address,
            signing_capability=wallet,
            base_url="https://tickets.example.com",
        ) as client:
            resp = await client.post("/purchase/0xevent")
    """
    authorizer = WalletAuthorizer(
        payer_address,
        signing_capability,
        validity_seconds=validity_seconds,
    )
    transport = X402HttpTransport(
        wrapped=wrapped or httpx.AsyncHTTPTransport(),
        authorizer=authorizer,
    )
    return httpx.AsyncClient(transport=transport, **httpx_kwargs)
