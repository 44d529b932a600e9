"""Exact conversion between decimal prices and asset minor units."""

from decimal import (
    Context,
    Decimal,
    DecimalException,
    Inexact,
    InvalidOperation,
    Overflow,
    Rounded,
    localcontext,
)

from .errors import InvalidAmount

USDC_DECIMALS = 6
MAX_UINT256 = 2**256 - 1

# Wide enough for any uint256 value; rounding of any kind raises.
_EXACT = Context(prec=80, traps=[InvalidOperation, Inexact, Overflow, Rounded])


def parse_decimal(amount: str | Decimal | int) -> Decimal:
    """Parse a human-readable amount without going through ``float``."""
    if isinstance(amount, bool) or isinstance(amount, float):
        raise InvalidAmount(f"Amount must be a decimal string, got {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmount(f"Amount is not numeric: {amount!r}")
    if not value.is_finite():
        raise InvalidAmount(f"Amount is not finite: {amount!r}")
    return value


def _scale(value: Decimal, exponent: int) -> Decimal:
    with localcontext(_EXACT):
        return value.scaleb(exponent)


def to_minor_units(
    amount: str | Decimal | int,
    decimals: int = USDC_DECIMALS,
    *,
    allow_zero: bool = False,
) -> int:
    """Convert ``"5.00"`` to ``5000000`` for a 6-decimal asset.

    Amounts with more precision than the asset supports are rejected rather
    than rounded, as are amounts that do not fit in a uint256.
    """
    value = parse_decimal(amount)
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmount(f"Amount must be positive, got {amount!r}")

    try:
        scaled = _scale(value, decimals)
    except DecimalException:
        raise InvalidAmount(f"Amount {amount!r} cannot be represented exactly")
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(
            f"Amount {amount!r} has more than {decimals} decimal places"
        )
    minor = int(scaled)
    if minor > MAX_UINT256:
        raise InvalidAmount(f"Amount {amount!r} exceeds the uint256 range")
    return minor


def from_minor_units(value: int | str, decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert ``5000000`` back to ``Decimal("5.000000")``."""
    try:
        minor = int(value)
    except (TypeError, ValueError):
        raise InvalidAmount(f"Minor-unit value is not an integer: {value!r}")
    if minor < 0 or minor > MAX_UINT256:
        raise InvalidAmount(f"Minor-unit value is out of range: {value!r}")
    try:
        return _scale(Decimal(minor), -decimals)
    except DecimalException:
        raise InvalidAmount(f"Minor-unit value {value!r} cannot be scaled exactly")
