"""Wire types for the x402 ticket purchase handshake.

All models serialize with camelCase aliases; always dump with
``by_alias=True``.
"""

import re
from typing import Any, Dict, List, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

X402_VERSION = 1

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")
_NONCE_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class PaymentRequirements(BaseModel):
    """Terms of a 402 challenge. Created fresh for every challenge."""

    scheme: str = "exact"
    network: str
    # Human-readable decimal price in asset units, e.g. "5.00".
    max_amount_required: str = Field(alias="maxAmountRequired")
    pay_to: str = Field(alias="payTo")
    asset: str
    resource: str
    description: str = ""
    mime_type: str = Field(default="application/json", alias="mimeType")
    max_timeout_seconds: int = Field(alias="maxTimeoutSeconds", gt=0)
    extra: Dict[str, Any] | None = None

    model_config = ConfigDict(validate_by_name=True, frozen=True)


class PaymentRequiredResponse(BaseModel):
    """Body of a 402 response."""

    x402_version: int = Field(default=X402_VERSION, alias="x402Version")
    accepts: List[PaymentRequirements]
    error: str = ""

    model_config = ConfigDict(validate_by_name=True)


class AuthorizationMessage(BaseModel):
    """EIP-3009 ``TransferWithAuthorization`` message fields."""

    from_: str = Field(alias="from")
    to: str
    value: int = Field(gt=0)
    valid_after: int = Field(alias="validAfter", ge=0)
    valid_before: int = Field(alias="validBefore", gt=0)
    nonce: str

    model_config = ConfigDict(validate_by_name=True, frozen=True)

    @field_validator("nonce")
    @classmethod
    def _check_nonce(cls, value: str) -> str:
        if not _NONCE_RE.match(value):
            raise ValueError("nonce must be 32 bytes of 0x-prefixed hex")
        return value.lower()

    @model_validator(mode="after")
    def _check_window(self) -> "AuthorizationMessage":
        if self.valid_after >= self.valid_before:
            raise ValueError("validAfter must be earlier than validBefore")
        return self

    @field_serializer("value", "valid_after", "valid_before")
    def _as_decimal_string(self, value: int) -> str:
        return str(value)


class SignedAuthorization(BaseModel):
    authorization: AuthorizationMessage
    signature: str

    model_config = ConfigDict(frozen=True)

    @field_validator("signature")
    @classmethod
    def _check_signature(cls, value: str) -> str:
        if not _HEX_RE.match(value) or len(value) <= 2:
            raise ValueError("signature must be 0x-prefixed hex")
        return value


class PaymentEnvelope(BaseModel):
    """Versioned content of the ``X-Payment`` header.

    Unknown versions and unknown fields are rejected so that future formats
    fail loudly instead of being half-understood.
    """

    x402_version: Literal[1] = Field(default=X402_VERSION, alias="x402Version")
    scheme: str = "exact"
    network: str
    chain_id: int = Field(alias="chainId", gt=0)
    payload: SignedAuthorization

    model_config = ConfigDict(validate_by_name=True, frozen=True, extra="forbid")


class TicketInfo(BaseModel):
    address: str | None = None
    qr_hash: str = Field(alias="qrHash")
    resource_id: str | None = Field(default=None, alias="resourceId")
    owner: str | None = None

    model_config = ConfigDict(validate_by_name=True)


class PurchaseResult(BaseModel):
    """Terminal outcome of a purchase, returned to the caller."""

    success: bool
    ticket: TicketInfo | None = None
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    payment_transaction_hash: str | None = Field(
        default=None, alias="paymentTransactionHash"
    )
    error: str | None = None
    message: str | None = None

    model_config = ConfigDict(validate_by_name=True)

    @classmethod
    def failure(cls, code: str, message: str | None = None) -> "PurchaseResult":
        return cls(success=False, error=code, message=message)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
