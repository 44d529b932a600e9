from .app import create_app
from .collaborators import (
    IssuedTicket,
    Price,
    PricingLookup,
    SettlementResult,
    SettlementService,
    TicketIssuer,
)
from .facilitator import FacilitatorSettlement
from .handshake import HandshakeResponse, PurchaseHandshakeServer
from .issuance import HttpTicketIssuer
from .nonces import SeenNonceCache
from .pricing import StaticPricing
from .settings import ServerSettings, build_app

__all__ = [
    "FacilitatorSettlement",
    "HandshakeResponse",
    "HttpTicketIssuer",
    "IssuedTicket",
    "Price",
    "PricingLookup",
    "PurchaseHandshakeServer",
    "SeenNonceCache",
    "ServerSettings",
    "SettlementResult",
    "SettlementService",
    "StaticPricing",
    "TicketIssuer",
    "build_app",
    "create_app",
]
