from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, NamedTuple

from .types import PaymentRequiredResponse, PaymentRequirements, SignedAuthorization


class PaymentStatus(str, Enum):
    PAYMENT_SUBMITTED = "payment-submitted"
    PAYMENT_COMPLETED = "payment-completed"
    PAYMENT_REJECTED = "payment-rejected"
    PAYMENT_FAILED = "payment-failed"


class X402Authorization(NamedTuple):
    """Result of payment authorization: the signed payment, its encoded
    header value and the requirement it pays for."""

    payment: SignedAuthorization
    header_value: str
    authorization_id: str
    selected_requirement: PaymentRequirements


class X402Authorizer(ABC):
    @abstractmethod
    async def authorize(
        self,
        payment_required: PaymentRequiredResponse,
        context: Dict[str, Any] | None = None,
    ) -> X402Authorization | None:
        """Authorize a payment, or return ``None`` to decline."""

    @abstractmethod
    async def onStatus(
        self,
        status: PaymentStatus,
        authorization: X402Authorization,
        context: Dict[str, Any] | None = None,
    ) -> None:
        """Handle payment status updates."""
