"""Server settings, read from the environment at the process entry point."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping

from fastapi import FastAPI

from chain_ticket.x402.config import DEFAULT_MAX_TIMEOUT_SECONDS, PaymentConfig

from .app import create_app
from .facilitator import DEFAULT_FACILITATOR_URL, FacilitatorSettlement
from .handshake import PurchaseHandshakeServer
from .issuance import HttpTicketIssuer
from .nonces import SeenNonceCache
from .pricing import StaticPricing


def _require(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise RuntimeError(f"{name} is required")
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class ServerSettings:
    pay_to: str
    ticket_issuer_url: str
    network: str = "base-sepolia"
    asset: str | None = None
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    facilitator_url: str = DEFAULT_FACILITATOR_URL
    prices: Dict[str, str] = field(default_factory=dict)
    nonce_cache_ttl_seconds: int = 0
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ServerSettings:
        env = os.environ if env is None else env

        raw_prices = env.get("TICKET_PRICES") or "{}"
        try:
            prices = json.loads(raw_prices)
        except json.JSONDecodeError:
            raise RuntimeError("TICKET_PRICES must be a JSON object")
        if not isinstance(prices, dict):
            raise RuntimeError("TICKET_PRICES must be a JSON object")

        return cls(
            pay_to=_require(env, "PAYMENT_RECEIVER_ADDRESS"),
            ticket_issuer_url=_require(env, "TICKET_ISSUER_URL"),
            network=env.get("PAYMENT_NETWORK") or "base-sepolia",
            asset=env.get("PAYMENT_ASSET") or None,
            max_timeout_seconds=_int(
                env, "PAYMENT_MAX_TIMEOUT_SECONDS", DEFAULT_MAX_TIMEOUT_SECONDS
            ),
            facilitator_url=env.get("FACILITATOR_URL") or DEFAULT_FACILITATOR_URL,
            prices={str(k): str(v) for k, v in prices.items()},
            nonce_cache_ttl_seconds=_int(env, "NONCE_CACHE_TTL_SECONDS", 0),
            host=env.get("HOST") or "0.0.0.0",
            port=_int(env, "PORT", 3001),
        )

    def payment_config(self) -> PaymentConfig:
        return PaymentConfig.for_network(
            self.network,
            self.pay_to,
            self.asset,
            max_timeout_seconds=self.max_timeout_seconds,
        )


def build_app(settings: ServerSettings) -> FastAPI:
    """Wire the default collaborators into an application."""
    config = settings.payment_config()
    pricing = StaticPricing(settings.prices)
    nonce_cache = (
        SeenNonceCache(settings.nonce_cache_ttl_seconds)
        if settings.nonce_cache_ttl_seconds > 0
        else None
    )
    handshake = PurchaseHandshakeServer(
        config,
        pricing=pricing,
        settlement=FacilitatorSettlement(
            settings.facilitator_url, decimals=config.decimals
        ),
        issuer=HttpTicketIssuer(settings.ticket_issuer_url),
        nonce_cache=nonce_cache,
    )
    return create_app(handshake, pricing)
