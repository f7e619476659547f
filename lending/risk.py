"""
risk.py - Account Aggregation and Health Factor

Aggregates a user's positions across every touched asset into the figures
the pool uses to accept or reject an operation.

ARCHITECTURE:
    AssetExposure          frozen per-asset input (balances, price, params)
    calculate_account_data pure aggregation over exposures
    RiskEngine.aggregate   loads exposures from the ledgers, then calculates

Key Formulas (all WAD, truncating):
    collateral_value_i   = collateral_i * price_i
    borrow_capacity      = sum(collateral_value_i * ltv_i)
    threshold_acc        = sum(collateral_value_i * liquidation_threshold_i)
    weighted_threshold   = threshold_acc / total_collateral_value
    available_capacity   = max(0, borrow_capacity - total_debt_value)
    current_ltv          = total_debt_value / total_collateral_value
    health_factor        = total_collateral_value * weighted_threshold / total_debt_value
                           (MAX_HEALTH_FACTOR when total_debt_value == 0)

Valuation policy: an asset whose price reads as zero contributes nothing
to collateral or debt. This differs from PriceOracle.get_price(), which
raises for a zero price.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .core import (
    WAD, MAX_HEALTH_FACTOR, wad_div, wad_mul,
    OracleUnavailable,
)
from .positions import PositionLedger
from .price_oracle import PriceSource
from .reserve import ReserveRegistry


@dataclass(frozen=True, slots=True)
class AssetExposure:
    """
    One asset's contribution inputs for a single user.
    """
    asset: str
    collateral: int
    collateral_enabled: bool
    debt: int
    price: int
    ltv: int
    liquidation_threshold: int


@dataclass(frozen=True, slots=True)
class AccountData:
    """
    Aggregated risk figures for a user. All values WAD.
    """
    total_collateral_value: int
    total_debt_value: int
    available_borrow_capacity: int
    weighted_liquidation_threshold: int
    current_ltv: int
    health_factor: int
    borrow_capacity: int = 0

    @property
    def is_liquidatable(self) -> bool:
        return self.health_factor < WAD

    def as_tuple(self):
        """The six public figures in their conventional order."""
        return (
            self.total_collateral_value,
            self.total_debt_value,
            self.available_borrow_capacity,
            self.weighted_liquidation_threshold,
            self.current_ltv,
            self.health_factor,
        )


def calculate_account_data(exposures: Iterable[AssetExposure]) -> AccountData:
    """
    Aggregate exposures into AccountData.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Exposures are summed in the order given; callers pass them in
    membership order so truncation is reproducible.
    """
    total_collateral = 0
    total_debt = 0
    borrow_capacity = 0
    threshold_acc = 0

    for e in exposures:
        if e.price == 0:
            continue
        if e.collateral > 0 and e.collateral_enabled:
            value = wad_mul(e.collateral, e.price)
            total_collateral += value
            borrow_capacity += wad_mul(value, e.ltv)
            threshold_acc += wad_mul(value, e.liquidation_threshold)
        if e.debt > 0:
            total_debt += wad_mul(e.debt, e.price)

    if total_collateral > 0:
        weighted_threshold = wad_div(threshold_acc, total_collateral)
        current_ltv = wad_div(total_debt, total_collateral)
    else:
        weighted_threshold = 0
        current_ltv = 0

    if total_debt == 0:
        health_factor = MAX_HEALTH_FACTOR
    else:
        health_factor = wad_div(wad_mul(total_collateral, weighted_threshold), total_debt)

    return AccountData(
        total_collateral_value=total_collateral,
        total_debt_value=total_debt,
        available_borrow_capacity=max(0, borrow_capacity - total_debt),
        weighted_liquidation_threshold=weighted_threshold,
        current_ltv=current_ltv,
        health_factor=health_factor,
        borrow_capacity=borrow_capacity,
    )


class RiskEngine:
    """
    Read-only view that turns ledger state into AccountData.
    """

    def __init__(
        self,
        registry: ReserveRegistry,
        positions: PositionLedger,
        oracle: Callable[[], Optional[PriceSource]],
    ):
        self.registry = registry
        self.positions = positions
        self._oracle = oracle

    def load_exposures(self, user: str) -> List[AssetExposure]:
        """
        Build the exposures of every live position of user.

        Raises:
            OracleUnavailable: If a position needs a price and no oracle is set
        """
        exposures = []
        for asset in self.positions.user_assets(user):
            position = self.positions.get_position(user, asset)
            counts_as_collateral = position.collateral > 0 and position.collateral_enabled
            if not counts_as_collateral and position.scaled_debt == 0:
                continue
            oracle = self._oracle()
            if oracle is None:
                raise OracleUnavailable("Price oracle not set")
            reserve = self.registry.get(asset)
            exposures.append(AssetExposure(
                asset=asset,
                collateral=position.collateral,
                collateral_enabled=position.collateral_enabled,
                debt=position.debt(reserve.borrow_index),
                price=oracle.raw_price(asset),
                ltv=reserve.ltv,
                liquidation_threshold=reserve.liquidation_threshold,
            ))
        return exposures

    def aggregate(self, user: str) -> AccountData:
        return calculate_account_data(self.load_exposures(user))

    def health_factor(self, user: str) -> int:
        return self.aggregate(user).health_factor
