"""
test_receipt_token.py - Unit tests for ReceiptToken

Tests:
- Pool binding (admin-gated, one-time)
- Mint and burn restricted to the bound pool
- Balance queries for unknown holders
"""

import pytest

from lending import (
    WAD, AdminCapability, ReceiptToken,
    InvalidAmount, InsufficientFunds, StateError, Unauthorized,
)


@pytest.fixture
def token_admin():
    return AdminCapability("deployer")


@pytest.fixture
def a_weth(assets, token_admin):
    token = ReceiptToken(assets, "aWETH", "Pool WETH", "WETH", token_admin)
    token.set_lending_pool(token_admin, "pool")
    assets.register_wallet("pool")
    return token


class TestBinding:
    """Tests for set_lending_pool."""

    def test_registers_unit(self, assets, a_weth):
        assert "aWETH" in assets.units

    def test_wrong_admin_cannot_bind(self, assets, token_admin, other_admin):
        token = ReceiptToken(assets, "aDAI", "Pool DAI", "DAI", token_admin)
        with pytest.raises(Unauthorized):
            token.set_lending_pool(other_admin, "pool")
        assert token.lending_pool is None

    def test_rebinding_same_pool_allowed(self, a_weth, token_admin):
        a_weth.set_lending_pool(token_admin, "pool")
        assert a_weth.lending_pool == "pool"

    def test_rebinding_other_pool_rejected(self, a_weth, token_admin):
        with pytest.raises(StateError):
            a_weth.set_lending_pool(token_admin, "other_pool")


class TestMintBurn:
    """Only the bound pool may mint and burn."""

    def test_pool_mints_to_new_holder(self, assets, a_weth):
        a_weth.mint("pool", "dave", 2 * WAD)
        assert assets.is_registered("dave")
        assert a_weth.balance_of("dave") == 2 * WAD
        assert a_weth.total_supply() == 2 * WAD

    def test_pool_burns(self, a_weth):
        a_weth.mint("pool", "alice", 2 * WAD)
        a_weth.burn("pool", "alice", WAD)
        assert a_weth.balance_of("alice") == WAD

    def test_other_caller_cannot_mint(self, a_weth):
        with pytest.raises(Unauthorized):
            a_weth.mint("alice", "alice", WAD)

    def test_other_caller_cannot_burn(self, a_weth):
        a_weth.mint("pool", "alice", WAD)
        with pytest.raises(Unauthorized):
            a_weth.burn("bob", "alice", WAD)

    def test_unbound_token_cannot_mint(self, assets, token_admin):
        token = ReceiptToken(assets, "aDAI", "Pool DAI", "DAI", token_admin)
        with pytest.raises(Unauthorized):
            token.mint("pool", "alice", WAD)

    def test_non_positive_amounts_rejected(self, a_weth):
        with pytest.raises(InvalidAmount):
            a_weth.mint("pool", "alice", 0)
        with pytest.raises(InvalidAmount):
            a_weth.burn("pool", "alice", -1)

    def test_burn_beyond_balance(self, a_weth):
        a_weth.mint("pool", "alice", WAD)
        with pytest.raises(InsufficientFunds):
            a_weth.burn("pool", "alice", 2 * WAD)

    def test_balance_of_unknown_holder(self, a_weth):
        assert a_weth.balance_of("stranger") == 0
