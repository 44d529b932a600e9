"""Ticket minting through a remote issuance service."""

import hashlib
import logging
import time
from typing import Callable, Optional

import httpx

from chain_ticket.x402.errors import IssuanceFailure

from .collaborators import IssuedTicket, TicketIssuer
from .remote import RemoteService

logger = logging.getLogger(__name__)


def compute_qr_hash(
    resource_id: str, buyer_address: str, payment_reference: str, millis: int
) -> str:
    """Unique per-ticket hash encoded in the ticket's QR code."""
    seed = f"{resource_id}-{buyer_address}-{payment_reference}-{millis}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


class HttpTicketIssuer(RemoteService, TicketIssuer):
    """Asks the minting service to mint a ticket object for the buyer.

    Expects ``POST {url}/mint`` to answer with
    ``{"ticketAddress": ..., "transactionHash": ...}``.
    """

    error_class = IssuanceFailure

    def __init__(
        self,
        issuer_url: str,
        *,
        timeout: float = 60,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(issuer_url, timeout=timeout, http_client=http_client)
        self._clock = clock

    async def issue(
        self,
        buyer_address: str,
        resource_id: str,
        payment_reference: str | None = None,
    ) -> IssuedTicket:
        qr_hash = compute_qr_hash(
            resource_id,
            buyer_address,
            payment_reference or "free",
            int(self._clock() * 1000),
        )
        minted = await self._post(
            "/mint",
            {
                "eventAddress": resource_id,
                "buyer": buyer_address,
                "qrHash": qr_hash,
            },
        )
        logger.info(
            "Minted ticket %s for %s", minted.get("ticketAddress"), buyer_address
        )
        return IssuedTicket(
            ticket_address=minted.get("ticketAddress"),
            qr_hash=qr_hash,
            transaction_hash=minted.get("transactionHash"),
        )
