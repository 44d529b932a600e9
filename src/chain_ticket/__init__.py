"""
Chain Ticket - pay-per-request ticket purchases over x402.

Quick start (buyer):
    from chain_ticket import PurchaseClient, user_message
    from chain_ticket.x402 import AccountSigningCapability

    wallet = AccountSigningCapability.from_key("0x...")

    async with PurchaseClient("https://tickets.example.com") as client:
        result = await client.purchase("/purchase/0xevent", wallet.address, wallet)
        if not result.success:
            print(user_message(result.error))

Quick start (server):
    from chain_ticket.server import ServerSettings, build_app

    app = build_app(ServerSettings.from_env())
"""

from chain_ticket.client import PurchaseClient
from chain_ticket.x402 import PurchaseResult, user_message

__version__ = "0.1.0"

__all__ = [
    "PurchaseClient",
    "PurchaseResult",
    "user_message",
]
