"""
pool.py - Lending Pool Orchestrator

The LendingPool is the public entry point of the lending ledger. It is the
only object callers mutate state through, and every state-changing call is
a single atomic transaction:

    accrue -> tentative ledger mutation -> risk check -> external effects

Key responsibilities:
    - Holds the reserve table, the position ledger and the engines
    - Guards every state-changing call with a non-reentrant flag
    - Snapshots all owned state (and the asset ledger) on entry and restores
      it if anything raises, so a failed call leaves no trace
    - Emits an event record for every committed operation
    - Tracks logical time (advance_time) for interest accrual
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterator, List, Optional
import logging

from .accrual import InterestAccrualEngine
from .asset_ledger import AssetLedger
from .core import (
    WAD, DEFAULT_POOL_ID, to_scaled, wad_mul,
    AdminCapability, require_admin,
    AlreadyActive,
    LendingError, InvalidAmount, InvalidConfig, InsufficientCollateral, InsufficientLiquidity,
    HealthFactorTooLow, ExceedsLtv, NoDebt, ReentrantCall,
    OracleUnavailable, RateModelUnavailable,
    ReserveInitializedEvent, DepositEvent, WithdrawEvent, BorrowEvent,
    RepayEvent, LiquidationEvent,
)
from .liquidation import LiquidationEngine, LiquidationPlan
from .positions import PositionLedger, UserPosition
from .price_oracle import PriceSource
from .rate_model import RateModel
from .receipt_token import ReceiptToken
from .reserve import Reserve, ReserveConfig, ReserveRegistry
from .risk import AccountData, RiskEngine

logger = logging.getLogger(__name__)


class LendingPool:
    """
    Collateralized lending over one or more reserves.

    Thread Safety:
        Not thread-safe. Operations are strictly serialized; the reentrancy
        flag only protects against callbacks from collaborators.

    Example:
        admin = AdminCapability("deployer")
        assets = AssetLedger()
        pool = LendingPool(assets, admin, initial_time=datetime(2025, 1, 1))
        pool.set_oracle(admin, oracle)
        pool.set_rate_model(admin, DEFAULT_RATE_MODEL)
        pool.init_reserve(admin, "WETH", a_weth, ltv=to_wad("0.75"), ...)

        assets.approve("alice", pool.identity, "WETH", 10 * WAD)
        pool.deposit("alice", "WETH", 10 * WAD)
    """

    def __init__(
        self,
        assets: AssetLedger,
        admin: AdminCapability,
        identity: str = DEFAULT_POOL_ID,
        initial_time: Optional[datetime] = None,
    ):
        self.assets = assets
        self.identity = assets.register_wallet(identity)
        self._admin = admin
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._locked = False

        self.oracle: Optional[PriceSource] = None
        self.rate_model: Optional[RateModel] = None

        self.reserves = ReserveRegistry()
        self.positions = PositionLedger()
        self.accrual = InterestAccrualEngine(self.reserves, lambda: self.rate_model)
        self.risk = RiskEngine(self.reserves, self.positions, lambda: self.oracle)
        self.liquidations = LiquidationEngine(
            self.reserves, self.positions, self.risk, self.accrual, lambda: self.oracle
        )
        self.event_log: List[object] = []

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the pool."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the pool's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._current_time}")
        self._current_time = new_time

    # ========================================================================
    # ADMIN (capability-gated)
    # ========================================================================

    def set_oracle(self, admin: AdminCapability, oracle: PriceSource) -> None:
        with self._atomic("set_oracle"):
            require_admin(admin, self._admin, "set_oracle")
            self.oracle = oracle
        logger.info("Oracle set to %r", oracle)

    def set_rate_model(self, admin: AdminCapability, rate_model: RateModel) -> None:
        with self._atomic("set_rate_model"):
            require_admin(admin, self._admin, "set_rate_model")
            self.rate_model = rate_model
        logger.info("Rate model set to %r", rate_model)

    def init_reserve(
        self,
        admin: AdminCapability,
        asset: str,
        receipt_token: ReceiptToken,
        ltv: int,
        liquidation_threshold: int,
        liquidation_bonus: int,
        close_factor: int,
    ) -> Reserve:
        """
        Activate a reserve for asset. One-way: reserves are never deactivated.

        Raises:
            Unauthorized: If admin is not the pool's capability
            AlreadyActive: If asset already has an active reserve
            InvalidConfig: If ltv > liquidation_threshold or the receipt token
                does not share this pool's asset ledger
        """
        with self._atomic("init_reserve"):
            require_admin(admin, self._admin, "init_reserve")
            if self.reserves.is_active(asset):
                raise AlreadyActive(f"Reserve {asset} already active")
            if receipt_token.ledger is not self.assets:
                raise InvalidConfig(f"{receipt_token.symbol} lives in a different asset ledger")
            if asset not in self.assets.units:
                raise InvalidConfig(f"Asset {asset} not registered in the asset ledger")
            config = ReserveConfig(
                ltv=ltv,
                liquidation_threshold=liquidation_threshold,
                liquidation_bonus=liquidation_bonus,
                close_factor=close_factor,
            )
            reserve = self.reserves.init_reserve(asset, receipt_token, config, self._current_time)
            self._emit(ReserveInitializedEvent(asset=asset, receipt_token=receipt_token.symbol))
        return reserve

    # ========================================================================
    # PUBLIC OPERATIONS
    # ========================================================================

    def deposit(self, user: str, asset: str, amount: int) -> None:
        """
        Supply amount of asset as collateral and receive receipt tokens.

        The user must have approved the pool for amount beforehand.
        """
        with self._atomic("deposit"):
            self._require_positive(amount)
            self.reserves.get(asset)
            reserve = self.accrual.accrue(asset, self._current_time)

            self.assets.transfer_from(self.identity, asset, user, self.identity, amount)
            self.positions.record_deposit(user, asset, amount)
            self.reserves.update(replace(reserve, total_liquidity=reserve.total_liquidity + amount))

            shares = to_scaled(amount, reserve.liquidity_index)
            if shares == 0:
                raise InvalidAmount(f"Deposit of {amount} {asset} mints zero receipt tokens")
            reserve.receipt_token.mint(self.identity, user, shares)
            self._emit(DepositEvent(user=user, asset=asset, amount=amount))

    def withdraw(self, user: str, asset: str, amount: int) -> None:
        """
        Take back amount of deposited collateral.

        Raises:
            InsufficientCollateral: If amount exceeds the user's collateral
            InsufficientLiquidity: If the reserve cannot release amount
            HealthFactorTooLow: If the remaining position would be liquidatable
        """
        with self._atomic("withdraw"):
            self._require_positive(amount)
            self.reserves.get(asset)
            collateral = self.positions.get_position(user, asset).collateral
            if amount > collateral:
                raise InsufficientCollateral(
                    f"{user} has {collateral} {asset} collateral, cannot withdraw {amount}"
                )
            reserve = self.accrual.accrue(asset, self._current_time)
            if amount > reserve.total_liquidity:
                raise InsufficientLiquidity(
                    f"Reserve {asset} holds {reserve.total_liquidity}, cannot release {amount}"
                )

            self.positions.record_withdraw(user, asset, amount)
            self.reserves.update(replace(reserve, total_liquidity=reserve.total_liquidity - amount))
            self._require_healthy(user)

            self._burn_shares(reserve, user, amount)
            self.assets.transfer(asset, self.identity, user, amount)
            self._emit(WithdrawEvent(user=user, asset=asset, amount=amount))

    def borrow(self, user: str, asset: str, amount: int) -> None:
        """
        Borrow amount of asset against the user's collateral.

        Two gates apply: the aggregate LTV capacity before the debt is
        added, and the health factor after it is added.

        Raises:
            OracleUnavailable, RateModelUnavailable: If collaborators are unset
            InsufficientLiquidity: If the reserve cannot lend amount
            ExceedsLtv: If total debt value would exceed borrowing capacity
            HealthFactorTooLow: If the resulting position would be liquidatable
        """
        with self._atomic("borrow"):
            self._require_positive(amount)
            self.reserves.get(asset)
            if self.oracle is None:
                raise OracleUnavailable("Price oracle not set")
            if self.rate_model is None:
                raise RateModelUnavailable("Interest rate model not set")
            reserve = self.accrual.accrue(asset, self._current_time)
            if amount > reserve.total_liquidity:
                raise InsufficientLiquidity(
                    f"Reserve {asset} holds {reserve.total_liquidity}, cannot lend {amount}"
                )

            account = self.risk.aggregate(user)
            new_debt_value = wad_mul(amount, self.oracle.get_price(asset))
            if account.total_debt_value + new_debt_value > account.borrow_capacity:
                raise ExceedsLtv(
                    f"{user} debt value {account.total_debt_value + new_debt_value} "
                    f"exceeds borrow capacity {account.borrow_capacity}"
                )

            self.positions.record_borrow(user, asset, amount, reserve.borrow_index)
            self._require_healthy(user)

            self.reserves.update(replace(
                reserve,
                total_liquidity=reserve.total_liquidity - amount,
                total_borrowed=reserve.total_borrowed + amount,
            ))
            self.assets.transfer(asset, self.identity, user, amount)
            self._emit(BorrowEvent(user=user, asset=asset, amount=amount))

    def repay(self, user: str, asset: str, amount: int) -> int:
        """
        Repay up to amount of the user's asset debt.

        Returns:
            The amount actually applied (capped at the outstanding debt)

        Raises:
            NoDebt: If the user owes nothing in asset
        """
        with self._atomic("repay"):
            self._require_positive(amount)
            self.reserves.get(asset)
            if self.positions.get_position(user, asset).scaled_debt == 0:
                raise NoDebt(f"{user} has no {asset} debt")
            reserve = self.accrual.accrue(asset, self._current_time)

            debt = self.positions.get_debt(user, asset, reserve.borrow_index)
            capped = min(amount, debt)
            if capped == 0:
                raise InvalidAmount(f"{user} {asset} debt rounds to zero")
            self.assets.transfer_from(self.identity, asset, user, self.identity, capped)
            repaid = self.positions.record_repay(user, asset, capped, reserve.borrow_index)

            self.reserves.update(replace(
                reserve,
                total_liquidity=reserve.total_liquidity + repaid,
                total_borrowed=max(0, reserve.total_borrowed - repaid),
            ))
            self._emit(RepayEvent(user=user, asset=asset, amount=repaid))
        return repaid

    def liquidate(
        self,
        liquidator: str,
        borrower: str,
        debt_asset: str,
        collateral_asset: str,
        repay_amount: int,
    ) -> LiquidationPlan:
        """
        Repay part of an unhealthy borrower's debt and seize collateral.

        The liquidator must have approved the pool for the debt asset.
        See LiquidationEngine.liquidate for the rules and errors.
        """
        with self._atomic("liquidate"):
            plan = self.liquidations.liquidate(
                borrower, debt_asset, collateral_asset, liquidator, repay_amount, self._current_time
            )
            self._burn_shares(self.reserves.get(collateral_asset), borrower, plan.seize)
            self.assets.transfer_from(
                self.identity, debt_asset, liquidator, self.identity, plan.actual_repay
            )
            if plan.seize > 0:
                self.assets.transfer(collateral_asset, self.identity, liquidator, plan.seize)
            self._emit(LiquidationEvent(
                liquidator=liquidator,
                borrower=borrower,
                debt_asset=debt_asset,
                collateral_asset=collateral_asset,
                actual_repay=plan.actual_repay,
                seized=plan.seize,
            ))
        return plan

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    def get_user_account_data(self, user: str) -> AccountData:
        return self.risk.aggregate(user)

    def get_health_factor(self, user: str) -> int:
        return self.risk.health_factor(user)

    def get_reserve(self, asset: str) -> Reserve:
        return self.reserves.get(asset)

    def get_position(self, user: str, asset: str) -> UserPosition:
        return self.positions.get_position(user, asset)

    def get_user_debt(self, user: str, asset: str) -> int:
        """Actual debt at the last accrued index."""
        reserve = self.reserves.get(asset)
        return self.positions.get_debt(user, asset, reserve.borrow_index)

    # ========================================================================
    # HELPERS
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        """
        Run a block as one all-or-nothing transaction.

        Acquires the reentrancy flag for the whole block and releases it on
        every exit path. On any exception, all pool state and the asset
        ledger are restored to their values at entry before re-raising.
        """
        if self._locked:
            raise ReentrantCall(f"Reentrant call to {operation}")
        self._locked = True
        reserves = self.reserves.snapshot()
        positions = self.positions.snapshot()
        assets = self.assets.snapshot()
        oracle, rate_model = self.oracle, self.rate_model
        log_length = len(self.event_log)
        try:
            yield
        except Exception as e:
            self.reserves.restore(reserves)
            self.positions.restore(positions)
            self.assets.restore(assets)
            self.oracle, self.rate_model = oracle, rate_model
            del self.event_log[log_length:]
            if isinstance(e, LendingError):
                logger.warning("%s rejected: %s: %s", operation, type(e).__name__, e)
            raise
        finally:
            self._locked = False

    def _burn_shares(self, reserve: Reserve, user: str, amount: int) -> None:
        """
        Burn the receipt tokens worth amount, capped at the user's balance.

        Called after the position is updated. Once the user's collateral in
        the asset is gone, every remaining share is burned with it.
        """
        token = reserve.receipt_token
        balance = token.balance_of(user)
        if self.positions.get_position(user, reserve.asset).collateral == 0:
            shares = balance
        else:
            shares = min(to_scaled(amount, reserve.liquidity_index), balance)
        if shares > 0:
            token.burn(self.identity, user, shares)

    def _require_healthy(self, user: str) -> None:
        health_factor = self.risk.health_factor(user)
        if health_factor < WAD:
            raise HealthFactorTooLow(f"{user} health factor {health_factor} below 1")

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount(f"Amount must be positive, got {amount}")

    def _emit(self, event: object) -> None:
        self.event_log.append(event)
        logger.info("%r", event)
