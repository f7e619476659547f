"""
Atomicity Conformance Tests

INVARIANT: Pool operations are all-or-nothing.

    ∀ operation op:
        op succeeds ⟹ reserves, positions, balances and events all change
        op raises   ⟹ none of them change

Every pool call snapshots its state on entry and restores it on error.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from lending import WAD, LendingError

from tests.pool_builder import DAI, WETH, build_pool, capture_state, fund, supply


def borrowed_pool():
    """alice: 100 WETH collateral, 50 WETH debt. bob: 100,000 DAI supplied."""
    d = build_pool()
    supply(d, "alice", WETH, 100 * WAD)
    supply(d, "bob", DAI, 100_000 * WAD)
    d.pool.borrow("alice", WETH, 50 * WAD)
    return d


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.integers(min_value=1, max_value=200 * WAD))
    @settings(max_examples=100, deadline=None)
    def test_withdraw_all_or_nothing(self, amount):
        """
        PROPERTY: A withdrawal either applies fully or leaves no trace.
        """
        d = borrowed_pool()
        before = capture_state(d)
        try:
            d.pool.withdraw("alice", WETH, amount)
        except LendingError:
            assert capture_state(d) == before
        else:
            assert d.pool.get_position("alice", WETH).collateral == 100 * WAD - amount
            assert d.assets.get_balance("alice", WETH) == 50 * WAD + amount

    @given(
        st.sampled_from([WETH, DAI]),
        st.integers(min_value=1, max_value=200_000 * WAD),
    )
    @settings(max_examples=100, deadline=None)
    def test_borrow_all_or_nothing(self, asset, amount):
        """
        PROPERTY: A borrow either applies fully or leaves no trace.
        """
        d = borrowed_pool()
        before = capture_state(d)
        debt_before = d.pool.get_user_debt("alice", asset)
        try:
            d.pool.borrow("alice", asset, amount)
        except LendingError:
            assert capture_state(d) == before
        else:
            assert d.pool.get_user_debt("alice", asset) == debt_before + amount
            assert d.pool.get_health_factor("alice") >= WAD

    @given(
        st.integers(min_value=1, max_value=100 * WAD),
        st.integers(min_value=0, max_value=100 * WAD),
    )
    @settings(max_examples=100, deadline=None)
    def test_repay_all_or_nothing(self, amount, allowance):
        """
        PROPERTY: A repayment with too little allowance changes nothing.
        """
        d = borrowed_pool()
        d.assets.approve("alice", d.pool.identity, WETH, allowance)
        before = capture_state(d)
        try:
            repaid = d.pool.repay("alice", WETH, amount)
        except LendingError:
            assert capture_state(d) == before
        else:
            assert repaid == min(amount, 50 * WAD)
            assert repaid <= allowance

    @given(st.integers(min_value=1, max_value=200_000 * WAD))
    @settings(max_examples=50, deadline=None)
    def test_liquidation_all_or_nothing(self, repay_amount):
        """
        PROPERTY: A liquidation with too little allowance changes nothing.
        """
        d = build_pool()
        supply(d, "bob", DAI, 200_000 * WAD)
        supply(d, "alice", WETH, 100 * WAD)
        d.pool.borrow("alice", DAI, 120_000 * WAD)
        d.oracle.set_price(d.admin, WETH, 1000 * WAD)
        fund(d, "carol", DAI, 30_000 * WAD)

        before = capture_state(d)
        try:
            plan = d.pool.liquidate("carol", "alice", DAI, WETH, repay_amount)
        except LendingError:
            assert capture_state(d) == before
        else:
            assert plan.actual_repay <= 30_000 * WAD
            assert d.assets.get_balance("carol", WETH) == plan.seize
