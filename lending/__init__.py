"""
lending - Collateralized Lending Ledger

Reserves, per-user collateral and scaled debt, index-based interest accrual,
LTV-gated borrowing, and partial liquidation of unhealthy positions.

Usage:
    from lending import (
        LendingPool, AssetLedger, AssetUnit, ReceiptToken, PriceOracle,
        AdminCapability, DEFAULT_RATE_MODEL, WAD, to_wad,
    )

    admin = AdminCapability("deployer")
    assets = AssetLedger("main")
    assets.register_unit(AssetUnit("WETH", "Wrapped Ether"))
    pool = LendingPool(assets, admin)

    oracle = PriceOracle(admin)
    oracle.set_price(admin, "WETH", to_wad(2000))
    pool.set_oracle(admin, oracle)
    pool.set_rate_model(admin, DEFAULT_RATE_MODEL)

    a_weth = ReceiptToken(assets, "aWETH", "Pool WETH", "WETH", admin)
    a_weth.set_lending_pool(admin, pool.identity)
    pool.init_reserve(admin, "WETH", a_weth, to_wad("0.75"), to_wad("0.80"),
                      to_wad("0.05"), to_wad("0.5"))

    assets.register_wallet("alice")
    assets.issue("WETH", "alice", 10 * WAD)
    assets.approve("alice", pool.identity, "WETH", 10 * WAD)
    pool.deposit("alice", "WETH", 10 * WAD)
    pool.borrow("alice", "WETH", 5 * WAD)
    pool.get_health_factor("alice")   # 1.6 * WAD
"""

# Core types
from .core import (
    WAD,
    SECONDS_PER_YEAR,
    MAX_HEALTH_FACTOR,
    SYSTEM_WALLET,
    DEFAULT_POOL_ID,
    Index,
    ScaledAmount,
    wad_mul,
    wad_div,
    to_scaled,
    from_scaled,
    to_wad,
    from_wad,
    AdminCapability,
    Move,
    # Events
    ReserveInitializedEvent,
    DepositEvent,
    WithdrawEvent,
    BorrowEvent,
    RepayEvent,
    LiquidationEvent,
    # Exceptions
    LendingError,
    ValidationError, InvalidAmount, ReserveNotActive, InvalidConfig,
    CapacityError, InsufficientLiquidity, InsufficientCollateral,
    RiskError, HealthFactorTooLow, ExceedsLtv, NotLiquidatable,
    AuthorizationError, Unauthorized, SelfLiquidation,
    OracleError, OracleUnavailable, AssetNotSupported,
    StateError, AlreadyActive, NoDebt, ReentrantCall, RateModelUnavailable,
    LedgerError, InsufficientFunds, InsufficientAllowance,
    UnitNotRegistered, WalletNotRegistered,
)

# Collaborators
from .asset_ledger import AssetLedger, AssetUnit, LedgerSnapshot
from .receipt_token import ReceiptToken
from .price_oracle import PriceSource, PriceOracle
from .rate_model import RateModel, InterestRateModel, DEFAULT_RATE_MODEL

# Engine
from .reserve import Reserve, ReserveConfig, ReserveRegistry
from .accrual import AccrualResult, InterestAccrualEngine, calculate_accrual, elapsed_seconds
from .positions import UserPosition, PositionLedger, EMPTY_POSITION
from .risk import AssetExposure, AccountData, RiskEngine, calculate_account_data
from .liquidation import (
    LiquidationAmounts,
    LiquidationPlan,
    LiquidationEngine,
    calculate_liquidation_amounts,
)

# Orchestrator
from .pool import LendingPool

__all__ = [
    # Core
    'WAD', 'SECONDS_PER_YEAR', 'MAX_HEALTH_FACTOR', 'SYSTEM_WALLET', 'DEFAULT_POOL_ID',
    'Index', 'ScaledAmount', 'wad_mul', 'wad_div', 'to_scaled', 'from_scaled',
    'to_wad', 'from_wad', 'AdminCapability', 'Move',
    # Events
    'ReserveInitializedEvent', 'DepositEvent', 'WithdrawEvent', 'BorrowEvent',
    'RepayEvent', 'LiquidationEvent',
    # Exceptions
    'LendingError',
    'ValidationError', 'InvalidAmount', 'ReserveNotActive', 'InvalidConfig',
    'CapacityError', 'InsufficientLiquidity', 'InsufficientCollateral',
    'RiskError', 'HealthFactorTooLow', 'ExceedsLtv', 'NotLiquidatable',
    'AuthorizationError', 'Unauthorized', 'SelfLiquidation',
    'OracleError', 'OracleUnavailable', 'AssetNotSupported',
    'StateError', 'AlreadyActive', 'NoDebt', 'ReentrantCall', 'RateModelUnavailable',
    'LedgerError', 'InsufficientFunds', 'InsufficientAllowance',
    'UnitNotRegistered', 'WalletNotRegistered',
    # Collaborators
    'AssetLedger', 'AssetUnit', 'LedgerSnapshot', 'ReceiptToken',
    'PriceSource', 'PriceOracle',
    'RateModel', 'InterestRateModel', 'DEFAULT_RATE_MODEL',
    # Engine
    'Reserve', 'ReserveConfig', 'ReserveRegistry',
    'AccrualResult', 'InterestAccrualEngine', 'calculate_accrual', 'elapsed_seconds',
    'UserPosition', 'PositionLedger', 'EMPTY_POSITION',
    'AssetExposure', 'AccountData', 'RiskEngine', 'calculate_account_data',
    'LiquidationAmounts', 'LiquidationPlan', 'LiquidationEngine',
    'calculate_liquidation_amounts',
    # Orchestrator
    'LendingPool',
]

__version__ = '1.0.0'
