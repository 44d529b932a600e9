"""Builds EIP-3009 ``TransferWithAuthorization`` messages."""

from __future__ import annotations

import secrets
import time
from decimal import Decimal
from typing import Callable

from eth_utils import is_address, to_checksum_address
from pydantic import ValidationError

from .amounts import USDC_DECIMALS, to_minor_units
from .config import DEFAULT_VALIDITY_SECONDS, PaymentConfig
from .types import AuthorizationMessage

NONCE_BYTES = 32


def generate_nonce() -> str:
    return "0x" + secrets.token_hex(NONCE_BYTES)


class AuthorizationBuilder:
    """Turns a payer, payee, decimal amount and time window into a message.

    Example::

        builder = AuthorizationBuilder()
        message = builder.build(
            "0xPayer...", "0xPayee...", "5.00", max_timeout_seconds=300
        )
        assert message.value == 5_000_000
    """

    def __init__(
        self,
        *,
        decimals: int = USDC_DECIMALS,
        default_validity_seconds: int = DEFAULT_VALIDITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._decimals = decimals
        self._default_validity_seconds = default_validity_seconds
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: PaymentConfig, *, clock: Callable[[], float] = time.time
    ) -> AuthorizationBuilder:
        return cls(
            decimals=config.decimals,
            default_validity_seconds=config.max_timeout_seconds,
            clock=clock,
        )

    def build(
        self,
        from_address: str,
        to_address: str,
        amount_decimal: str | Decimal,
        validity_seconds: int | None = None,
        *,
        max_timeout_seconds: int | None = None,
        valid_after: int = 0,
    ) -> AuthorizationMessage:
        """Build a fresh authorization with a random 32-byte nonce.

        *validity_seconds* is capped at *max_timeout_seconds* when the caller
        has a bound from a 402 challenge; without either the builder's
        default applies.
        """
        value = to_minor_units(amount_decimal, self._decimals)

        if validity_seconds is None:
            validity_seconds = max_timeout_seconds or self._default_validity_seconds
        if max_timeout_seconds is not None:
            validity_seconds = min(validity_seconds, max_timeout_seconds)
        if validity_seconds <= 0:
            raise ValueError(f"validity_seconds must be > 0, got {validity_seconds}")

        for label, address in (("payer", from_address), ("payee", to_address)):
            if not is_address(address):
                raise ValueError(f"Invalid {label} address: {address}")

        valid_before = int(self._clock()) + validity_seconds
        try:
            return AuthorizationMessage(
                from_=to_checksum_address(from_address),
                to=to_checksum_address(to_address),
                value=value,
                valid_after=valid_after,
                valid_before=valid_before,
                nonce=generate_nonce(),
            )
        except ValidationError as e:
            # value is already validated, so this is the time window
            raise ValueError(f"Invalid authorization window: {e}") from e
