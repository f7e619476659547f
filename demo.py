#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Lending Pool Step by Step

Walks through deploying a two-asset lending pool and running it through a
full credit cycle. Each step builds on the previous one. Press Enter to
advance.

WHAT YOU'LL LEARN:
  1-2:  Deployment     - Assets, oracle, rate model, receipt tokens, reserves
  3-5:  Credit         - Supplying collateral, borrowing, rejected operations
  6:    Interest       - Index accrual over time, repaying with interest
  7-8:  Liquidation    - A price drop, partial liquidation with bonus
  9:    Conservation   - Double-entry check and the event log

Run:
    python demo.py             # Interactive mode (press Enter for each step)
    python demo.py --quick     # Run all steps without pausing
    python demo.py --verbose   # Also show the pool's log output
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import sys

from lending import (
    WAD, MAX_HEALTH_FACTOR, from_wad, to_wad,
    AdminCapability, AssetLedger, AssetUnit, InterestRateModel,
    LendingPool, PriceOracle, ReceiptToken,
    ExceedsLtv, HealthFactorTooLow,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices (USD)
    weth_price: str = "2000"
    dai_price: str = "1"
    crashed_weth_price: str = "1200"

    # Amounts (whole tokens)
    bob_dai_supply: int = 200_000
    alice_weth_supply: int = 10
    alice_dai_borrow: int = 12_000
    alice_extra_borrow: int = 5_000
    alice_risky_withdraw: int = 5
    alice_repay: int = 1_000
    carol_repay: int = 4_000

    days_elapsed: int = 90


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv
VERBOSE = "--verbose" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fmt(value: int) -> str:
    """Format a WAD amount for display."""
    return f"{from_wad(value):,.4f}"


def fmt_hf(value: int) -> str:
    return "max (no debt)" if value == MAX_HEALTH_FACTOR else fmt(value)


def show_account(pool: LendingPool, user: str):
    data = pool.get_user_account_data(user)
    print(f"{user}:")
    print(f"  Collateral value:    ${fmt(data.total_collateral_value)}")
    print(f"  Debt value:          ${fmt(data.total_debt_value)}")
    print(f"  Can still borrow:    ${fmt(data.available_borrow_capacity)}")
    print(f"  Liq. threshold:      {fmt(data.weighted_liquidation_threshold)}")
    print(f"  Current LTV:         {fmt(data.current_ltv)}")
    print(f"  Health factor:       {fmt_hf(data.health_factor)}")


def fund(assets: AssetLedger, pool: LendingPool, user: str, asset: str, amount: int):
    """Give user tokens and approve the pool to pull them."""
    assets.register_wallet(user)
    assets.issue(asset, user, amount)
    current = assets.allowance(user, pool.identity, asset)
    assets.approve(user, pool.identity, asset, current + amount)


# ============================================================================
# PHASE 1: DEPLOYMENT (Steps 1-2)
# ============================================================================

def step_01_deploy():
    """Deploy assets, oracle, rate model, receipt token and pool."""
    step_header(1, "Deploying the Protocol",
        "See every collaborator the pool needs and how they are wired.")

    print("""
    A lending pool never holds prices or rates itself. It is wired to:

    - an ASSET LEDGER    holding every token balance (WETH, DAI, receipts)
    - a PRICE ORACLE     quoting each asset in USD (WAD fixed point)
    - a RATE MODEL       turning utilization into an annual borrow rate
    - RECEIPT TOKENS     minted to suppliers, one per reserve

    Admin actions need the AdminCapability the component was built with.
    """)

    wait_for_enter()

    admin = AdminCapability("deployer")

    print('>>> assets.register_unit(AssetUnit("WETH", "Wrapped Ether"))')
    assets = AssetLedger("demo")
    assets.register_unit(AssetUnit("WETH", "Wrapped Ether", 18))
    assets.register_unit(AssetUnit("DAI", "Dai Stablecoin", 18))

    print(">>> oracle = PriceOracle(admin)")
    oracle = PriceOracle(admin)

    print('>>> rate_model = InterestRateModel.from_percentages("0.02", "0.10", "1.0", "0.8")')
    rate_model = InterestRateModel.from_percentages("0.02", "0.10", "1.0", "0.8")

    print('>>> a_eth = ReceiptToken(assets, "aETH", "aETH", "WETH", admin)')
    a_eth = ReceiptToken(assets, "aETH", "aETH", "WETH", admin)

    print(">>> pool = LendingPool(assets, admin)")
    pool = LendingPool(assets, admin, initial_time=CONFIG.start_time)

    section_header("Wiring")
    pool.set_oracle(admin, oracle)
    pool.set_rate_model(admin, rate_model)
    a_eth.set_lending_pool(admin, pool.identity)
    print("pool.set_oracle, pool.set_rate_model, a_eth.set_lending_pool: done")

    section_header("WETH Reserve")
    reserve = pool.init_reserve(
        admin, "WETH", a_eth,
        ltv=to_wad("0.75"),
        liquidation_threshold=to_wad("0.80"),
        liquidation_bonus=to_wad("0.05"),
        close_factor=to_wad("0.50"),
    )
    print(f"LTV:                   {fmt(reserve.ltv)}")
    print(f"Liquidation threshold: {fmt(reserve.liquidation_threshold)}")
    print(f"Liquidation bonus:     {fmt(reserve.liquidation_bonus)}")
    print(f"Close factor:          {fmt(reserve.close_factor)}")

    oracle.set_price(admin, "WETH", to_wad(CONFIG.weth_price))
    oracle.set_price(admin, "DAI", to_wad(CONFIG.dai_price))

    section_header("Setup complete")
    print(f"Pool identity:  {pool.identity}")
    print(f"Receipt token:  {a_eth}")
    print(f"Oracle:         {oracle}")

    return admin, assets, oracle, pool


def step_02_add_dai_market(admin: AdminCapability, assets: AssetLedger, pool: LendingPool):
    """Open a second reserve so collateral and debt can differ."""
    step_header(2, "Adding a DAI Market",
        "A second reserve lets users borrow one asset against another.")

    print("""
    Borrowing WETH against WETH never becomes unhealthy from a price move:
    collateral and debt move together. Liquidations need two assets.
    """)

    wait_for_enter()

    a_dai = ReceiptToken(assets, "aDAI", "aDAI", "DAI", admin)
    a_dai.set_lending_pool(admin, pool.identity)
    pool.init_reserve(
        admin, "DAI", a_dai,
        ltv=to_wad("0.80"),
        liquidation_threshold=to_wad("0.85"),
        liquidation_bonus=to_wad("0.05"),
        close_factor=to_wad("0.50"),
    )
    print(f"Active reserves: {pool.reserves.assets()}")
    return pool


# ============================================================================
# PHASE 2: CREDIT (Steps 3-5)
# ============================================================================

def step_03_supply(assets: AssetLedger, pool: LendingPool):
    """Suppliers deposit and receive receipt tokens."""
    step_header(3, "Supplying Collateral",
        "Deposits move tokens into the pool and mint receipt tokens.")

    wait_for_enter()

    bob_dai = CONFIG.bob_dai_supply * WAD
    alice_weth = CONFIG.alice_weth_supply * WAD

    fund(assets, pool, "bob", "DAI", bob_dai)
    print(f'>>> pool.deposit("bob", "DAI", {CONFIG.bob_dai_supply:,} * WAD)')
    pool.deposit("bob", "DAI", bob_dai)

    fund(assets, pool, "alice", "WETH", alice_weth)
    print(f'>>> pool.deposit("alice", "WETH", {CONFIG.alice_weth_supply} * WAD)')
    pool.deposit("alice", "WETH", alice_weth)

    section_header("Balances")
    print(f"bob aDAI:    {fmt(assets.get_balance('bob', 'aDAI'))}")
    print(f"alice aETH:  {fmt(assets.get_balance('alice', 'aETH'))}")
    print(f"pool DAI:    {fmt(assets.get_balance(pool.identity, 'DAI'))}")
    print(f"pool WETH:   {fmt(assets.get_balance(pool.identity, 'WETH'))}")

    section_header("Account Data")
    show_account(pool, "alice")
    return pool


def step_04_borrow(assets: AssetLedger, pool: LendingPool):
    """Borrow DAI against WETH."""
    step_header(4, "Borrowing",
        "Borrowing is gated by LTV capacity and the health factor.")

    print("""
    health factor = collateral value * liquidation threshold / debt value

    Below 1.0 the position can be liquidated.
    """)

    wait_for_enter()

    amount = CONFIG.alice_dai_borrow * WAD
    print(f'>>> pool.borrow("alice", "DAI", {CONFIG.alice_dai_borrow:,} * WAD)')
    pool.borrow("alice", "DAI", amount)

    section_header("Account Data")
    show_account(pool, "alice")
    print(f"\nalice DAI wallet: {fmt(assets.get_balance('alice', 'DAI'))}")
    return pool


def step_05_rejections(assets: AssetLedger, pool: LendingPool):
    """Operations that would over-extend the account fail atomically."""
    step_header(5, "Rejected Operations",
        "Failed operations raise and leave no trace.")

    wait_for_enter()

    before = pool.get_user_account_data("alice")

    section_header("Borrowing past capacity")
    try:
        pool.borrow("alice", "DAI", CONFIG.alice_extra_borrow * WAD)
    except ExceedsLtv as e:
        print(f"ExceedsLtv: {e}")

    section_header("Withdrawing needed collateral")
    try:
        pool.withdraw("alice", "WETH", CONFIG.alice_risky_withdraw * WAD)
    except HealthFactorTooLow as e:
        print(f"HealthFactorTooLow: {e}")

    after = pool.get_user_account_data("alice")
    print(f"\nAccount unchanged: {before == after}")
    return pool


# ============================================================================
# PHASE 3: INTEREST (Step 6)
# ============================================================================

def step_06_interest(assets: AssetLedger, pool: LendingPool):
    """Advance time and let interest accrue."""
    step_header(6, "Interest Over Time",
        "Debt grows through the borrow index, applied lazily on each operation.")

    print("""
    Positions store SCALED debt: debt / borrow_index at borrow time.
    Interest only moves the index, so no position is touched when it accrues.
    """)

    wait_for_enter()

    pool.advance_time(CONFIG.start_time + timedelta(days=CONFIG.days_elapsed))
    print(f">>> pool.advance_time(+{CONFIG.days_elapsed} days)")
    print(f"alice DAI debt (last accrued): {fmt(pool.get_user_debt('alice', 'DAI'))}")

    amount = CONFIG.alice_repay * WAD
    assets.approve("alice", pool.identity, "DAI", amount)
    print(f'\n>>> pool.repay("alice", "DAI", {CONFIG.alice_repay:,} * WAD)')
    repaid = pool.repay("alice", "DAI", amount)

    reserve = pool.get_reserve("DAI")
    section_header("After accrual")
    print(f"Repaid:           {fmt(repaid)}")
    print(f"Borrow index:     {fmt(reserve.borrow_index)}")
    print(f"Liquidity index:  {fmt(reserve.liquidity_index)}")
    print(f"alice DAI debt:   {fmt(pool.get_user_debt('alice', 'DAI'))}")
    return pool


# ============================================================================
# PHASE 4: LIQUIDATION (Steps 7-8)
# ============================================================================

def step_07_price_drop(admin: AdminCapability, oracle: PriceOracle, pool: LendingPool):
    """WETH falls and alice's position becomes liquidatable."""
    step_header(7, "Price Drop",
        "A collateral price drop pushes the health factor below 1.")

    wait_for_enter()

    oracle.set_price(admin, "WETH", to_wad(CONFIG.crashed_weth_price))
    print(f'>>> oracle.set_price(admin, "WETH", to_wad("{CONFIG.crashed_weth_price}"))')
    show_account(pool, "alice")
    return pool


def step_08_liquidation(assets: AssetLedger, pool: LendingPool):
    """carol repays part of alice's debt and takes WETH at a bonus."""
    step_header(8, "Liquidation",
        "A third party repays debt and seizes collateral plus a bonus.")

    print("""
    repay  = min(requested, debt * close_factor)
    seize  = repay * debt_price * (1 + bonus) / collateral_price
    """)

    wait_for_enter()

    amount = CONFIG.carol_repay * WAD
    fund(assets, pool, "carol", "DAI", amount)
    print(f'>>> pool.liquidate("carol", "alice", "DAI", "WETH", {CONFIG.carol_repay:,} * WAD)')
    plan = pool.liquidate("carol", "alice", "DAI", "WETH", amount)

    section_header("Result")
    print(f"HF before:        {fmt(plan.health_factor_before)}")
    print(f"DAI repaid:       {fmt(plan.actual_repay)}")
    print(f"WETH seized:      {fmt(plan.seize)}")
    print(f"carol WETH:       {fmt(assets.get_balance('carol', 'WETH'))}")
    print()
    show_account(pool, "alice")
    return pool


# ============================================================================
# PHASE 5: CONSERVATION (Step 9)
# ============================================================================

def step_09_conservation(assets: AssetLedger, pool: LendingPool):
    """Check the books and replay the event log."""
    step_header(9, "Conservation",
        "Every token nets to zero across wallets; every operation left an event.")

    wait_for_enter()

    result = assets.verify_double_entry()
    print(f"Double entry valid: {result['valid']}")

    section_header("Event Log")
    for i, event in enumerate(pool.event_log, 1):
        print(f"{i:>3}. {event}")
    return pool


def main():
    """Run the complete tutorial."""
    if VERBOSE:
        logging.basicConfig(level=logging.INFO, format="  [%(name)s] %(message)s")

    print("=" * 70)
    print("       LENDING POOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    admin, assets, oracle, pool = step_01_deploy()
    wait_for_enter()

    step_02_add_dai_market(admin, assets, pool)
    wait_for_enter()

    step_03_supply(assets, pool)
    wait_for_enter()

    step_04_borrow(assets, pool)
    wait_for_enter()

    step_05_rejections(assets, pool)
    wait_for_enter()

    step_06_interest(assets, pool)
    wait_for_enter()

    step_07_price_drop(admin, oracle, pool)
    wait_for_enter()

    step_08_liquidation(assets, pool)
    wait_for_enter()

    step_09_conservation(assets, pool)

    print(f"\n{'='*70}")
    print("Tutorial complete.")
    print(f"{'='*70}")


if __name__ == "__main__":
    main()
