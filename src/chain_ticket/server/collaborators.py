"""Interfaces of the external systems the purchase handshake depends on."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from chain_ticket.x402.types import PaymentRequirements, SignedAuthorization


@dataclass(frozen=True)
class Price:
    """Ticket price in human units of *currency*."""

    amount_decimal: Decimal
    currency: str = "USDC"


@dataclass(frozen=True)
class SettlementResult:
    ok: bool
    reason: str | None = None
    transaction_hash: str | None = None


@dataclass(frozen=True)
class IssuedTicket:
    ticket_address: str | None
    qr_hash: str
    transaction_hash: str | None


class PricingLookup(ABC):
    @abstractmethod
    async def price_of(self, resource_id: str) -> Price:
        """Return the price of *resource_id*.

        Raises:
            ResourceNotFound: if the resource is unknown.
        """


class SettlementService(ABC):
    """Verifies signatures and moves funds; owns nonce replay protection."""

    @abstractmethod
    async def settle(
        self,
        payment: SignedAuthorization,
        requirements: PaymentRequirements,
    ) -> SettlementResult:
        """Settle *payment* against *requirements*.

        Returns ``ok=False`` for invalid, expired or duplicate authorizations.

        Raises:
            SettlementFailure: if the settlement system could not be reached.
        """


class TicketIssuer(ABC):
    @abstractmethod
    async def issue(
        self,
        buyer_address: str,
        resource_id: str,
        payment_reference: str | None = None,
    ) -> IssuedTicket:
        """Mint a ticket for *buyer_address*.

        Raises:
            IssuanceFailure: if the ticket could not be issued.
        """
