"""Payment configuration passed explicitly to the builder and the server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from x402.chains import NETWORK_TO_ID, get_token_name, get_token_version

from .amounts import USDC_DECIMALS

DEFAULT_MAX_TIMEOUT_SECONDS = 300
DEFAULT_VALIDITY_SECONDS = 3600

# USDC deployments by chain id.
USDC_ADDRESSES: Dict[str, str] = {
    "8453": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    "84532": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}


def _parse_caip2_chain_id(network: str) -> str:
    """``"eip155:8453"`` → ``"8453"``, anything else passes through."""
    if ":" in network:
        return network.split(":")[1]
    return network


def chain_id_for_network(network: str) -> int:
    """Resolve ``"base-sepolia"``, ``"eip155:84532"`` or ``"84532"`` to 84532."""
    chain_id = NETWORK_TO_ID.get(network) or _parse_caip2_chain_id(network)
    if not chain_id.isdigit():
        raise ValueError(f"Unknown network: {network}")
    return int(chain_id)


@dataclass(frozen=True)
class PaymentConfig:
    """Where payments go and which asset contract they are signed against.

    ``token_name``/``token_version`` must match the deployed asset contract's
    EIP-712 domain or signatures will be rejected at settlement.
    """

    pay_to: str
    asset: str
    network: str
    chain_id: int
    token_name: str
    token_version: str
    decimals: int = USDC_DECIMALS
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    scheme: str = "exact"

    def __post_init__(self) -> None:
        if self.max_timeout_seconds <= 0:
            raise ValueError("max_timeout_seconds must be > 0")

    @classmethod
    def for_network(
        cls,
        network: str,
        pay_to: str,
        asset: str | None = None,
        *,
        max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS,
    ) -> PaymentConfig:
        """Build a config for USDC (or *asset*) using x402's token tables."""
        chain_id = chain_id_for_network(network)
        if asset is None:
            asset = USDC_ADDRESSES.get(str(chain_id))
            if asset is None:
                raise ValueError(f"No default asset for chain ID: {chain_id}")
        return cls(
            pay_to=pay_to,
            asset=asset,
            network=network,
            chain_id=chain_id,
            token_name=get_token_name(str(chain_id), asset),
            token_version=get_token_version(str(chain_id), asset),
            max_timeout_seconds=max_timeout_seconds,
        )

    def eip712_domain(self) -> Dict[str, Any]:
        return {
            "name": self.token_name,
            "version": self.token_version,
            "chainId": self.chain_id,
            "verifyingContract": self.asset,
        }
