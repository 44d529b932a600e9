"""Error taxonomy for the ticket purchase handshake.

Each error carries a stable ``code`` that is what travels over the wire and
what ends up in ``PurchaseResult.error``.
"""

from typing import Dict


class ChainTicketError(Exception):
    """Base class for all handshake errors."""

    code = "ChainTicketError"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.code)
        self.reason = reason


class InvalidAmount(ChainTicketError):
    code = "InvalidAmount"


class SigningRejected(ChainTicketError):
    """The signing capability declined or failed to produce a signature."""

    code = "SigningRejected"


class MalformedPaymentHeader(ChainTicketError):
    code = "MalformedPaymentHeader"


class PaymentRejected(ChainTicketError):
    """Payment was refused (payee/value/expiry mismatch or a second 402)."""

    code = "PaymentRejected"


class PaymentTimeout(ChainTicketError):
    code = "Timeout"


class SettlementFailure(ChainTicketError):
    code = "SettlementFailure"


class IssuanceFailure(ChainTicketError):
    """Ticket issuance failed after the payment was settled.

    Money has moved without a ticket being issued. This is reported, never
    retried automatically.
    """

    code = "IssuanceFailure"


class PurchaseFailed(ChainTicketError):
    """The purchase failed before any payment was taken."""

    code = "PurchaseFailed"


class ResourceNotFound(ChainTicketError):
    code = "ResourceNotFound"


class RequestFailed(ChainTicketError):
    """The ticket service could not be reached or answered unexpectedly."""

    code = "RequestFailed"


_USER_MESSAGES: Dict[str, str] = {
    SigningRejected.code: "Payment was cancelled in your wallet.",
    PaymentRejected.code: "Payment was declined.",
    InvalidAmount.code: "Payment was declined: invalid ticket price.",
    MalformedPaymentHeader.code: "Payment was declined: invalid payment data.",
    SettlementFailure.code: "Payment was declined by the payment network.",
    PaymentTimeout.code: "Payment expired before it was completed. Please try again.",
    IssuanceFailure.code: (
        "Your payment went through but the ticket could not be issued. "
        "Please contact support with your payment reference."
    ),
    PurchaseFailed.code: "The ticket could not be issued. You have not been charged.",
    ResourceNotFound.code: "This event could not be found.",
    RequestFailed.code: "The ticket service could not be reached.",
}


def user_message(code: str | None) -> str:
    """Map an error code to the text shown to the buyer."""
    if code is None:
        return ""
    return _USER_MESSAGES.get(code, "Purchase failed.")
