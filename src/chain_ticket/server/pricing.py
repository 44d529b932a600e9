from decimal import Decimal
from typing import Dict, Mapping

from chain_ticket.x402.amounts import parse_decimal
from chain_ticket.x402.errors import InvalidAmount, ResourceNotFound

from .collaborators import Price, PricingLookup


class StaticPricing(PricingLookup):
    """Fixed price list keyed by resource id. A price of 0 means free."""

    def __init__(
        self, prices: Mapping[str, str | Decimal], currency: str = "USDC"
    ) -> None:
        self._currency = currency
        self._prices: Dict[str, Decimal] = {}
        for resource_id, amount in prices.items():
            value = parse_decimal(amount)
            if value < 0:
                raise InvalidAmount(f"Negative price for {resource_id}: {amount}")
            self._prices[resource_id] = value

    async def price_of(self, resource_id: str) -> Price:
        try:
            amount = self._prices[resource_id]
        except KeyError:
            raise ResourceNotFound(f"Unknown resource: {resource_id}")
        return Price(amount_decimal=amount, currency=self._currency)
