"""Unit tests for AuthorizationBuilder."""

import pytest
from chain_ticket.x402.authorization import AuthorizationBuilder, generate_nonce
from chain_ticket.x402.config import PaymentConfig
from chain_ticket.x402.errors import InvalidAmount
from eth_utils import to_checksum_address

NOW = 1_700_000_000
PAYER = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
PAYEE = "0x1234567890123456789012345678901234567890"


def _builder(**kwargs: int) -> AuthorizationBuilder:
    return AuthorizationBuilder(clock=lambda: NOW, **kwargs)


class TestAuthorizationBuilder:
    def test_build_fills_value_and_window(self) -> None:
        message = _builder().build(PAYER, PAYEE, "5.00", max_timeout_seconds=300)

        assert message.value == 5_000_000
        assert message.valid_after == 0
        assert message.valid_before == NOW + 300
        assert message.from_.lower() == PAYER
        assert message.to.lower() == PAYEE

    def test_addresses_are_checksummed(self) -> None:
        message = _builder().build(PAYER, PAYEE, "1")
        assert message.from_ == to_checksum_address(PAYER)
        assert message.to == "0x1234567890123456789012345678901234567890"

    def test_validity_is_capped_at_max_timeout(self) -> None:
        message = _builder().build(
            PAYER, PAYEE, "5.00", validity_seconds=3600, max_timeout_seconds=60
        )
        assert message.valid_before == NOW + 60

    def test_default_validity_without_bound(self) -> None:
        message = _builder(default_validity_seconds=120).build(PAYER, PAYEE, "1")
        assert message.valid_before == NOW + 120

    def test_explicit_validity_within_bound(self) -> None:
        message = _builder().build(
            PAYER, PAYEE, "1", validity_seconds=30, max_timeout_seconds=300
        )
        assert message.valid_before == NOW + 30

    def test_nonces_are_fresh(self) -> None:
        builder = _builder()
        nonces = {builder.build(PAYER, PAYEE, "1").nonce for _ in range(20)}
        assert len(nonces) == 20
        for nonce in nonces:
            assert nonce.startswith("0x")
            assert len(nonce) == 66

    def test_invalid_amount(self) -> None:
        with pytest.raises(InvalidAmount):
            _builder().build(PAYER, PAYEE, "0")
        with pytest.raises(InvalidAmount):
            _builder().build(PAYER, PAYEE, "1.0000001")

    def test_invalid_address(self) -> None:
        with pytest.raises(ValueError, match="payee"):
            _builder().build(PAYER, "0x1234", "1")
        with pytest.raises(ValueError, match="payer"):
            _builder().build("not-an-address", PAYEE, "1")

    def test_non_positive_validity(self) -> None:
        with pytest.raises(ValueError, match="validity_seconds"):
            _builder().build(PAYER, PAYEE, "1", validity_seconds=0)

    def test_valid_after_must_precede_valid_before(self) -> None:
        with pytest.raises(ValueError, match="window"):
            _builder().build(PAYER, PAYEE, "1", 10, valid_after=NOW + 10)

    def test_from_config(self) -> None:
        config = PaymentConfig.for_network(
            "base-sepolia", PAYEE, max_timeout_seconds=90
        )
        message = AuthorizationBuilder.from_config(config, clock=lambda: NOW).build(
            PAYER, PAYEE, "2"
        )
        assert message.valid_before == NOW + 90
        assert message.value == 2_000_000


def test_generate_nonce_is_32_bytes() -> None:
    nonce = generate_nonce()
    assert len(bytes.fromhex(nonce[2:])) == 32
