from .authorization import AuthorizationBuilder
from .authorizer import PaymentStatus, X402Authorization, X402Authorizer
from .codec import decode_payment_header, encode_payment_header
from .config import PaymentConfig
from .errors import (
    ChainTicketError,
    InvalidAmount,
    IssuanceFailure,
    MalformedPaymentHeader,
    PaymentRejected,
    PaymentTimeout,
    PurchaseFailed,
    RequestFailed,
    ResourceNotFound,
    SettlementFailure,
    SigningRejected,
    user_message,
)
from .signer import AccountSigningCapability, SigningCapability, TypedDataSigner
from .types import (
    AuthorizationMessage,
    PaymentRequiredResponse,
    PaymentRequirements,
    PurchaseResult,
    SignedAuthorization,
    TicketInfo,
)

__all__ = [
    "AccountSigningCapability",
    "AuthorizationBuilder",
    "AuthorizationMessage",
    "ChainTicketError",
    "InvalidAmount",
    "IssuanceFailure",
    "MalformedPaymentHeader",
    "PaymentConfig",
    "PaymentRejected",
    "PaymentRequiredResponse",
    "PaymentRequirements",
    "PaymentStatus",
    "PaymentTimeout",
    "PurchaseFailed",
    "PurchaseResult",
    "RequestFailed",
    "ResourceNotFound",
    "SettlementFailure",
    "SignedAuthorization",
    "SigningCapability",
    "SigningRejected",
    "TicketInfo",
    "TypedDataSigner",
    "X402Authorization",
    "X402Authorizer",
    "decode_payment_header",
    "encode_payment_header",
    "user_message",
]
