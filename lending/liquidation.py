"""
liquidation.py - Partial Liquidation of Unhealthy Positions

A liquidator repays part of a borrower's debt in one asset and receives the
borrower's collateral in another asset, plus a bonus.

Key Formulas (all WAD, truncating):
    actual_repay = min(requested, debt * close_factor, debt)
    seize        = actual_repay * debt_price * (1 + liquidation_bonus) / collateral_price

The health check that makes a position liquidatable is aggregate across all
of the borrower's assets. The debt and collateral reserves chosen by the
liquidator may be any pair in which the borrower holds debt and collateral.

There is no partial-seizure fallback: if the borrower lacks the collateral
for the computed seizure, the liquidation fails.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional
import logging

from .accrual import InterestAccrualEngine
from .core import (
    WAD, wad_div, wad_mul,
    InvalidAmount, InsufficientCollateral, InsufficientLiquidity, NoDebt, NotLiquidatable,
    OracleUnavailable, SelfLiquidation,
)
from .positions import PositionLedger
from .price_oracle import PriceSource
from .reserve import ReserveRegistry
from .risk import RiskEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiquidationAmounts:
    actual_repay: int
    seize: int


@dataclass(frozen=True, slots=True)
class LiquidationPlan:
    """
    Result of a committed liquidation, handed to the pool for the external
    burn and transfers.
    """
    liquidator: str
    borrower: str
    debt_asset: str
    collateral_asset: str
    actual_repay: int
    seize: int
    health_factor_before: int


def calculate_liquidation_amounts(
    debt: int,
    close_factor: int,
    requested: int,
    debt_price: int,
    collateral_price: int,
    liquidation_bonus: int,
) -> LiquidationAmounts:
    """
    Bound the repayment and size the seizure.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        debt: Borrower's actual debt in the debt asset
        close_factor: Maximum fraction of debt repayable at once (WAD)
        requested: Liquidator's requested repayment
        debt_price: Price of the debt asset (WAD)
        collateral_price: Price of the collateral asset (WAD)
        liquidation_bonus: Premium on seized collateral (WAD)

    Returns:
        LiquidationAmounts(actual_repay, seize)
    """
    actual_repay = min(requested, wad_mul(debt, close_factor), debt)
    repay_value = wad_mul(actual_repay, debt_price)
    seize_value = wad_mul(repay_value, WAD + liquidation_bonus)
    seize = wad_div(seize_value, collateral_price)
    return LiquidationAmounts(actual_repay=actual_repay, seize=seize)


class LiquidationEngine:
    """
    Validates and applies liquidations to the reserve and position tables.

    External effects (receipt-token burn, asset transfers) are left to the
    caller, which receives a LiquidationPlan describing them.
    """

    def __init__(
        self,
        registry: ReserveRegistry,
        positions: PositionLedger,
        risk: RiskEngine,
        accrual: InterestAccrualEngine,
        oracle: Callable[[], Optional[PriceSource]],
    ):
        self.registry = registry
        self.positions = positions
        self.risk = risk
        self.accrual = accrual
        self._oracle = oracle

    def liquidate(
        self,
        borrower: str,
        debt_asset: str,
        collateral_asset: str,
        liquidator: str,
        repay_amount: int,
        now: datetime,
    ) -> LiquidationPlan:
        """
        Repay part of borrower's debt_asset debt and seize collateral_asset.

        Raises:
            InvalidAmount: If repay_amount is not positive or rounds to zero
            NotLiquidatable: If the borrower's health factor is at least 1
            SelfLiquidation: If liquidator is the borrower
            NoDebt: If the borrower owes nothing in debt_asset
            InsufficientCollateral: If the seizure exceeds the collateral held
        """
        if repay_amount <= 0:
            raise InvalidAmount(f"Repay amount must be positive, got {repay_amount}")

        self.accrual.accrue(debt_asset, now)
        self.accrual.accrue(collateral_asset, now)

        health_factor = self.risk.health_factor(borrower)
        if health_factor >= WAD:
            raise NotLiquidatable(f"{borrower} health factor {health_factor} is not below 1")
        if liquidator == borrower:
            raise SelfLiquidation(f"{borrower} cannot liquidate their own position")

        debt_reserve = self.registry.get(debt_asset)
        collateral_reserve = self.registry.get(collateral_asset)

        debt = self.positions.get_debt(borrower, debt_asset, debt_reserve.borrow_index)
        if debt == 0:
            raise NoDebt(f"{borrower} has no {debt_asset} debt")

        oracle = self._oracle()
        if oracle is None:
            raise OracleUnavailable("Price oracle not set")
        amounts = calculate_liquidation_amounts(
            debt=debt,
            close_factor=debt_reserve.close_factor,
            requested=repay_amount,
            debt_price=oracle.get_price(debt_asset),
            collateral_price=oracle.get_price(collateral_asset),
            liquidation_bonus=collateral_reserve.liquidation_bonus,
        )
        if amounts.actual_repay == 0:
            raise InvalidAmount(f"Repayment of {debt_asset} debt {debt} rounds to zero")

        available = self.positions.get_position(borrower, collateral_asset).collateral
        if amounts.seize > available:
            raise InsufficientCollateral(
                f"Seizure of {amounts.seize} {collateral_asset} exceeds {borrower}'s {available}"
            )

        self.positions.record_repay(borrower, debt_asset, amounts.actual_repay, debt_reserve.borrow_index)
        self.positions.record_seizure(borrower, collateral_asset, amounts.seize)

        self.registry.update(replace(
            debt_reserve,
            total_liquidity=debt_reserve.total_liquidity + amounts.actual_repay,
            total_borrowed=max(0, debt_reserve.total_borrowed - amounts.actual_repay),
        ))
        # Re-read: debt and collateral may be the same reserve.
        collateral_reserve = self.registry.get(collateral_asset)
        if amounts.seize > collateral_reserve.total_liquidity:
            raise InsufficientLiquidity(
                f"Reserve {collateral_asset} holds {collateral_reserve.total_liquidity}, cannot release {amounts.seize}"
            )
        self.registry.update(replace(
            collateral_reserve,
            total_liquidity=collateral_reserve.total_liquidity - amounts.seize,
        ))

        logger.debug(
            "Liquidation of %s: repay %d %s, seize %d %s (hf %d)",
            borrower, amounts.actual_repay, debt_asset, amounts.seize, collateral_asset, health_factor,
        )
        return LiquidationPlan(
            liquidator=liquidator,
            borrower=borrower,
            debt_asset=debt_asset,
            collateral_asset=collateral_asset,
            actual_repay=amounts.actual_repay,
            seize=amounts.seize,
            health_factor_before=health_factor,
        )
