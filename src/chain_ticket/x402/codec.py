"""Base64 codec for the ``X-Payment`` header."""

from __future__ import annotations

import base64
import binascii
import json

from pydantic import ValidationError
from x402.encoding import safe_base64_encode

from .errors import MalformedPaymentHeader
from .types import PaymentEnvelope, SignedAuthorization

PAYMENT_HEADER = "x-payment"

# Generous upper bound; a v1 envelope is well under 1 KiB.
MAX_HEADER_BYTES = 16384


def _canonical_json(envelope: PaymentEnvelope) -> str:
    return json.dumps(
        envelope.model_dump(by_alias=True),
        separators=(",", ":"),
        sort_keys=True,
    )


def encode_envelope(envelope: PaymentEnvelope) -> str:
    return safe_base64_encode(_canonical_json(envelope))


def encode_payment_header(
    signed: SignedAuthorization,
    chain_id: int,
    *,
    network: str | None = None,
    scheme: str = "exact",
) -> str:
    """Encode a signed authorization as an ``X-Payment`` header value."""
    envelope = PaymentEnvelope(
        scheme=scheme,
        network=network or f"eip155:{chain_id}",
        chain_id=chain_id,
        payload=signed,
    )
    return encode_envelope(envelope)


def decode_envelope(header_value: str) -> PaymentEnvelope:
    """Decode and validate a header value.

    Raises:
        MalformedPaymentHeader: on anything that is not a well-formed v1
            envelope.
    """
    if not header_value or len(header_value) > MAX_HEADER_BYTES:
        raise MalformedPaymentHeader("Payment header is empty or too large")
    try:
        raw = base64.b64decode(header_value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPaymentHeader(f"Payment header is not base64: {e}") from e
    try:
        decoded = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPaymentHeader(f"Payment header is not JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise MalformedPaymentHeader("Payment header must be a JSON object")
    try:
        return PaymentEnvelope.model_validate(decoded)
    except ValidationError as e:
        raise MalformedPaymentHeader(
            f"Payment header does not match the v1 schema: {e.error_count()} error(s)"
        ) from e


def decode_payment_header(header_value: str) -> tuple[SignedAuthorization, int]:
    envelope = decode_envelope(header_value)
    return envelope.payload, envelope.chain_id
