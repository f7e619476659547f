"""
conftest.py - Shared pytest fixtures for lending tests

Provides common fixtures used across unit and functional tests:
- A deployed two-reserve pool (WETH at $2000, DAI at $1)
- Pools missing their oracle or rate model
- Standalone asset ledgers and oracles
- Pools in well-known states (supplied, borrowed, underwater)
"""

import pytest
from datetime import datetime

from lending import WAD, AdminCapability, AssetLedger, AssetUnit, to_wad

from tests.pool_builder import (
    DAI, WETH, build_pool, supply, fund,
)


# =============================================================================
# DEPLOYMENTS
# =============================================================================

@pytest.fixture
def deployment():
    """Pool with WETH and DAI reserves, oracle and default rate model set."""
    return build_pool()


@pytest.fixture
def pool(deployment):
    return deployment.pool


@pytest.fixture
def admin(deployment):
    return deployment.admin


@pytest.fixture
def no_oracle_deployment():
    return build_pool(with_oracle=False)


@pytest.fixture
def no_rate_model_deployment():
    return build_pool(with_rate_model=False)


# =============================================================================
# POOLS IN KNOWN STATES
# =============================================================================

@pytest.fixture
def supplied(deployment):
    """alice has 100 WETH collateral and no debt."""
    supply(deployment, "alice", WETH, 100 * WAD)
    return deployment


@pytest.fixture
def borrowed(supplied):
    """alice has 100 WETH collateral and 50 WETH debt (HF 1.5)."""
    supplied.pool.borrow("alice", WETH, 50 * WAD)
    return supplied


@pytest.fixture
def underwater(deployment):
    """
    alice: 100 WETH collateral, 120,000 DAI debt, WETH dropped to $1000.
    bob supplied the DAI. carol holds 100,000 DAI approved for liquidations.
    """
    supply(deployment, "bob", DAI, 200_000 * WAD)
    supply(deployment, "alice", WETH, 100 * WAD)
    deployment.pool.borrow("alice", DAI, 120_000 * WAD)
    deployment.oracle.set_price(deployment.admin, WETH, to_wad(1000))
    fund(deployment, "carol", DAI, 100_000 * WAD)
    return deployment


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def assets():
    """Asset ledger with WETH and DAI and two empty wallets."""
    ledger = AssetLedger("test")
    ledger.register_unit(AssetUnit(WETH, "Wrapped Ether"))
    ledger.register_unit(AssetUnit(DAI, "Dai Stablecoin"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def other_admin():
    return AdminCapability("mallory")


@pytest.fixture
def later():
    return datetime(2026, 1, 1)
