"""
test_lending_scenarios.py - End-to-end lending scenarios

WETH at $2000 (ltv 70%, threshold 75%), DAI at $1 (ltv 80%, threshold 85%),
5% liquidation bonus and 50% close factor on both.

Scenarios:
    A  Supply only: account data of a collateral-only user
    B  Same-asset borrow: health factor 1.5
    C  Borrow beyond LTV rejected, nothing changes
    D  Withdraw that would break health rejected, nothing changes
    E  Price drop, partial liquidation with bonus
    -  LTV boundary: borrowing exactly to capacity
    -  Interest lifecycle: supply, borrow, accrue, repay with interest, exit
    -  Debt growth alone makes a position liquidatable
"""

import pytest
from datetime import timedelta

from lending import (
    WAD, MAX_HEALTH_FACTOR, to_wad,
    ExceedsLtv, HealthFactorTooLow, InvalidAmount, LiquidationEvent,
)

from tests.pool_builder import (
    DAI, WETH, START, approve, build_pool, capture_state, fund, supply,
)


# ============================================================================
# SCENARIOS A-E
# ============================================================================

class TestScenarioA:
    """Supply 100 WETH, no debt."""

    def test_account_data(self, supplied):
        data = supplied.pool.get_user_account_data("alice")
        assert data.total_collateral_value == 200_000 * WAD
        assert data.total_debt_value == 0
        assert data.available_borrow_capacity == 140_000 * WAD
        assert data.weighted_liquidation_threshold == to_wad("0.75")
        assert data.current_ltv == 0
        assert data.health_factor == MAX_HEALTH_FACTOR


class TestScenarioB:
    """Supply 100 WETH, borrow 50 WETH."""

    def test_health_factor(self, borrowed):
        assert borrowed.pool.get_health_factor("alice") == to_wad("1.5")

    def test_account_data(self, borrowed):
        data = borrowed.pool.get_user_account_data("alice")
        assert data.total_debt_value == 100_000 * WAD
        assert data.available_borrow_capacity == 40_000 * WAD
        assert data.current_ltv == to_wad("0.5")


class TestScenarioC:
    """Borrowing another 40 WETH pushes debt to 180,000 against 140,000 capacity."""

    def test_rejected_without_side_effects(self, borrowed):
        before = capture_state(borrowed)
        with pytest.raises(ExceedsLtv):
            borrowed.pool.borrow("alice", WETH, 40 * WAD)
        assert capture_state(borrowed) == before
        assert borrowed.pool.get_health_factor("alice") == to_wad("1.5")


class TestScenarioD:
    """Withdrawing 40 WETH would leave HF 60 * 2000 * 0.75 / 100,000 = 0.9."""

    def test_rejected_without_side_effects(self, borrowed):
        before = capture_state(borrowed)
        with pytest.raises(HealthFactorTooLow):
            borrowed.pool.withdraw("alice", WETH, 40 * WAD)
        assert capture_state(borrowed) == before
        assert borrowed.pool.get_position("alice", WETH).collateral == 100 * WAD
        assert borrowed.assets.get_balance("alice", WETH) == 50 * WAD


class TestScenarioE:
    """
    alice: 100 WETH collateral, 120,000 DAI debt. WETH falls to $1000.
    HF = 100,000 * 0.75 / 120,000 = 0.625. carol repays 20,000 DAI.
    """

    def test_underwater(self, underwater):
        assert underwater.pool.get_health_factor("alice") == to_wad("0.625")

    def test_partial_liquidation(self, underwater):
        pool = underwater.pool
        plan = pool.liquidate("carol", "alice", DAI, WETH, 20_000 * WAD)

        assert plan.actual_repay == 20_000 * WAD
        assert plan.seize == 21 * WAD
        assert plan.health_factor_before == to_wad("0.625")

        assert pool.get_user_debt("alice", DAI) == 100_000 * WAD
        assert pool.get_position("alice", WETH).collateral == 79 * WAD
        assert underwater.tokens[WETH].balance_of("alice") == 79 * WAD

        assert underwater.assets.get_balance("carol", WETH) == 21 * WAD
        assert underwater.assets.get_balance("carol", DAI) == 80_000 * WAD

        assert pool.get_reserve(DAI).total_liquidity == 100_000 * WAD
        assert pool.get_reserve(DAI).total_borrowed == 100_000 * WAD
        assert pool.get_reserve(WETH).total_liquidity == 79 * WAD

        assert pool.event_log[-1] == LiquidationEvent(
            liquidator="carol",
            borrower="alice",
            debt_asset=DAI,
            collateral_asset=WETH,
            actual_repay=20_000 * WAD,
            seized=21 * WAD,
        )

    def test_health_improves_after_liquidation(self, underwater):
        underwater.pool.liquidate("carol", "alice", DAI, WETH, 20_000 * WAD)
        # 79 * 1000 * 0.75 / 100,000
        assert underwater.pool.get_health_factor("alice") == to_wad("0.5925")

    def test_close_factor_caps_repayment(self, underwater):
        plan = underwater.pool.liquidate("carol", "alice", DAI, WETH, 100_000 * WAD)
        assert plan.actual_repay == 60_000 * WAD
        assert plan.seize == 63 * WAD
        assert underwater.assets.get_balance("carol", DAI) == 40_000 * WAD

    def test_repeated_liquidation(self, underwater):
        underwater.pool.liquidate("carol", "alice", DAI, WETH, 20_000 * WAD)
        underwater.pool.liquidate("carol", "alice", DAI, WETH, 20_000 * WAD)
        assert underwater.pool.get_position("alice", WETH).collateral == 58 * WAD
        assert underwater.pool.get_user_debt("alice", DAI) == 80_000 * WAD

    def test_ledger_balances(self, underwater):
        underwater.pool.liquidate("carol", "alice", DAI, WETH, 20_000 * WAD)
        assert underwater.assets.verify_double_entry()['valid']


# ============================================================================
# LTV BOUNDARY
# ============================================================================

class TestLtvBoundary:
    """Debt value equal to capacity is allowed; one base unit more is not."""

    def test_borrow_exactly_to_capacity(self, supplied):
        supplied.pool.borrow("alice", WETH, 70 * WAD)
        data = supplied.pool.get_user_account_data("alice")
        assert data.total_debt_value == data.borrow_capacity
        assert data.available_borrow_capacity == 0
        assert data.health_factor >= WAD

    def test_one_unit_over_capacity(self, supplied):
        with pytest.raises(ExceedsLtv):
            supplied.pool.borrow("alice", WETH, 70 * WAD + 1)

    def test_incremental_borrow_to_capacity(self, supplied):
        supplied.pool.borrow("alice", WETH, 50 * WAD)
        supplied.pool.borrow("alice", WETH, 20 * WAD)
        with pytest.raises(ExceedsLtv):
            supplied.pool.borrow("alice", WETH, 1)


# ============================================================================
# ROUND TRIP
# ============================================================================

class TestRoundTrip:

    def test_deposit_then_withdraw(self, deployment):
        fund(deployment, "alice", WETH, 37 * WAD)
        deployment.pool.deposit("alice", WETH, 37 * WAD)
        deployment.pool.withdraw("alice", WETH, 37 * WAD)

        assert deployment.assets.get_balance("alice", WETH) == 37 * WAD
        assert deployment.pool.get_reserve(WETH).total_liquidity == 0
        assert deployment.tokens[WETH].balance_of("alice") == 0
        assert deployment.tokens[WETH].total_supply() == 0


# ============================================================================
# INTEREST OVER TIME
# ============================================================================

class TestInterestLifecycle:
    """Borrowers pay interest accrued through the borrow index."""

    @pytest.fixture
    def loan(self, deployment):
        supply(deployment, "bob", DAI, 200_000 * WAD)
        supply(deployment, "alice", WETH, 100 * WAD)
        deployment.pool.borrow("alice", DAI, 100_000 * WAD)
        return deployment

    def test_debt_grows_with_index(self, loan):
        loan.pool.advance_time(START + timedelta(days=30))
        fund(loan, "alice", DAI, 10_000 * WAD)
        approve(loan, "alice", DAI, 100_000 * WAD)

        repaid = loan.pool.repay("alice", DAI, 110_000 * WAD)

        reserve = loan.pool.get_reserve(DAI)
        assert reserve.borrow_index > WAD
        assert reserve.liquidity_index == reserve.borrow_index
        assert repaid == 100_000 * reserve.borrow_index
        assert repaid > 100_000 * WAD
        assert reserve.total_borrowed == 0
        assert loan.pool.get_user_debt("alice", DAI) == 0

    def test_full_exit(self, loan):
        loan.pool.advance_time(START + timedelta(days=365))
        fund(loan, "alice", DAI, 200_000 * WAD)
        approve(loan, "alice", DAI, 100_000 * WAD)
        loan.pool.repay("alice", DAI, 300_000 * WAD)

        loan.pool.withdraw("alice", WETH, 100 * WAD)
        loan.pool.withdraw("bob", DAI, 200_000 * WAD)

        assert loan.assets.get_balance("alice", WETH) == 100 * WAD
        assert loan.assets.get_balance("bob", DAI) == 200_000 * WAD
        assert loan.pool.get_health_factor("alice") == MAX_HEALTH_FACTOR

    def test_accrual_is_lazy(self, loan):
        """Reads between operations see the last accrued index."""
        loan.pool.advance_time(START + timedelta(days=30))
        assert loan.pool.get_user_debt("alice", DAI) == 100_000 * WAD
        assert loan.pool.get_reserve(DAI).last_accrual_timestamp == START

    def test_repayment_below_one_scaled_unit_rejected(self, loan):
        """Once the index passes 1, a 1-unit repayment cannot reduce scaled debt."""
        loan.pool.advance_time(START + timedelta(days=30))
        approve(loan, "alice", DAI, 1)
        before = capture_state(loan)

        with pytest.raises(InvalidAmount):
            loan.pool.repay("alice", DAI, 1)

        assert capture_state(loan) == before


class TestDebtGrowthLiquidation:
    """Interest alone can push a position below a health factor of 1."""

    def test_liquidation_accrues_before_checking(self):
        d = build_pool()
        supply(d, "bob", DAI, 200_000 * WAD)
        supply(d, "alice", WETH, 100 * WAD)
        d.pool.borrow("alice", DAI, 140_000 * WAD)
        assert d.pool.get_health_factor("alice") > WAD

        d.pool.advance_time(START + timedelta(days=30))
        # Stale read: index not yet accrued.
        assert d.pool.get_health_factor("alice") > WAD

        fund(d, "carol", DAI, 10_000 * WAD)
        plan = d.pool.liquidate("carol", "alice", DAI, WETH, 10_000 * WAD)

        assert plan.health_factor_before < WAD
        assert plan.actual_repay == 10_000 * WAD
        assert plan.seize == to_wad("5.25")
        assert d.pool.get_reserve(DAI).last_accrual_timestamp == START + timedelta(days=30)
