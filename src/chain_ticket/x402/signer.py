"""EIP-712 typed-data signing of payment authorizations.

Cryptography is left to the signing capability (a wallet). This module only
shapes the domain/types/message triple so that it matches the asset
contract's EIP-3009 schema.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_utils import to_hex
from x402.chains import get_token_name, get_token_version

from .config import PaymentConfig, chain_id_for_network
from .errors import SigningRejected
from .types import AuthorizationMessage, PaymentRequirements

logger = logging.getLogger(__name__)

PRIMARY_TYPE = "TransferWithAuthorization"

TRANSFER_WITH_AUTHORIZATION_TYPES: Dict[str, List[Dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    PRIMARY_TYPE: [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


@runtime_checkable
class SigningCapability(Protocol):
    """Anything that can sign EIP-712 typed data (usually a wallet).

    Implementations return a 0x-prefixed signature, or raise to decline.
    """

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str: ...


def build_typed_data(
    message: AuthorizationMessage, domain: Dict[str, Any]
) -> Dict[str, Any]:
    """Assemble the ``eth_signTypedData_v4`` payload for *message*."""
    return {
        "types": TRANSFER_WITH_AUTHORIZATION_TYPES,
        "primaryType": PRIMARY_TYPE,
        "domain": domain,
        "message": message.model_dump(by_alias=True),
    }


def domain_for_requirements(requirements: PaymentRequirements) -> Dict[str, Any]:
    """EIP-712 domain of the asset named in a 402 challenge."""
    chain_id = chain_id_for_network(requirements.network)
    extra = requirements.extra or {}
    name = extra.get("name") or get_token_name(str(chain_id), requirements.asset)
    version = extra.get("version") or get_token_version(
        str(chain_id), requirements.asset
    )
    return {
        "name": name,
        "version": version,
        "chainId": chain_id,
        "verifyingContract": requirements.asset,
    }


def _to_signable(typed_data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce JSON-style values (decimal strings, hex) into the Python types
    eth_account's encoder expects."""
    fields = typed_data["types"][typed_data["primaryType"]]
    message = dict(typed_data["message"])
    for field in fields:
        name, type_ = field["name"], field["type"]
        value = message.get(name)
        if type_.startswith("uint") and isinstance(value, str):
            message[name] = int(value)
        elif type_ == "bytes32" and isinstance(value, str):
            message[name] = bytes.fromhex(value.removeprefix("0x"))
    domain = dict(typed_data["domain"])
    domain["chainId"] = int(domain["chainId"])
    return {**typed_data, "domain": domain, "message": message}


def recover_signer(typed_data: Dict[str, Any], signature: str) -> str:
    """Return the checksum address that produced *signature*."""
    signable = encode_typed_data(full_message=_to_signable(typed_data))
    return Account.recover_message(signable, signature=signature)


class TypedDataSigner:
    """Signs authorization messages against one asset's EIP-712 domain.

    There is no retry: signing is a single interactive step and the caller
    decides whether to try again.
    """

    def __init__(self, domain: Dict[str, Any]) -> None:
        self._domain = domain

    @classmethod
    def from_config(cls, config: PaymentConfig) -> TypedDataSigner:
        return cls(config.eip712_domain())

    @classmethod
    def for_requirements(cls, requirements: PaymentRequirements) -> TypedDataSigner:
        return cls(domain_for_requirements(requirements))

    @property
    def domain(self) -> Dict[str, Any]:
        return self._domain

    def typed_data(self, message: AuthorizationMessage) -> Dict[str, Any]:
        return build_typed_data(message, self._domain)

    def sign(
        self, message: AuthorizationMessage, capability: SigningCapability
    ) -> str:
        typed_data = self.typed_data(message)
        try:
            signature = capability.sign_typed_data(typed_data)
        except SigningRejected:
            raise
        except Exception as e:
            logger.info("Signing capability declined: %s", e)
            raise SigningRejected(str(e) or type(e).__name__) from e

        if not signature:
            raise SigningRejected("Signing capability returned no signature")
        if not signature.startswith("0x"):
            signature = "0x" + signature
        return signature


class AccountSigningCapability:
    """Signing capability backed by a local ``eth_account`` key.

    Stands in for an interactive wallet in scripts and tests.
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> AccountSigningCapability:
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        signable = encode_typed_data(full_message=_to_signable(typed_data))
        signed = self._account.sign_message(signable)
        return to_hex(signed.signature)
