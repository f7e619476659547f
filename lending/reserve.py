"""
reserve.py - Reserve Configuration and Registry

A reserve is the pool of one supported asset. Its configuration (risk
parameters) is fixed at initialization; its aggregate state (liquidity,
borrows, indices, accrual watermark) changes on every operation.

Reserves are frozen dataclasses. Mutation means building a new record with
dataclasses.replace() and storing it with ReserveRegistry.update().

Lifecycle:
    Uninitialized -> Active    (one-way, via init_reserve)
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

from .core import (
    WAD, Index, Numeric, to_wad,
    AlreadyActive, InvalidConfig, ReserveNotActive,
)
from .receipt_token import ReceiptToken


@dataclass(frozen=True, slots=True)
class ReserveConfig:
    """
    Risk parameters of a reserve, all WAD fractions.

    Attributes:
        ltv: Fraction of collateral value that may be borrowed against.
        liquidation_threshold: Fraction of collateral value below which the
            position becomes liquidatable. Always >= ltv.
        liquidation_bonus: Premium paid to liquidators on seized collateral.
        close_factor: Maximum fraction of a debt one liquidation may repay.
    """
    ltv: int
    liquidation_threshold: int
    liquidation_bonus: int
    close_factor: int

    def __post_init__(self):
        if min(self.ltv, self.liquidation_threshold, self.liquidation_bonus, self.close_factor) < 0:
            raise InvalidConfig("Reserve parameters must be non-negative")
        if self.ltv > self.liquidation_threshold:
            raise InvalidConfig(
                f"ltv {self.ltv} exceeds liquidation threshold {self.liquidation_threshold}"
            )
        if self.liquidation_threshold > WAD:
            raise InvalidConfig(f"Liquidation threshold {self.liquidation_threshold} exceeds 1.0")
        if not 0 < self.close_factor <= WAD:
            raise InvalidConfig(f"Close factor must be in (0, 1], got {self.close_factor}")

    @classmethod
    def from_percentages(
        cls,
        ltv: Numeric,
        liquidation_threshold: Numeric,
        liquidation_bonus: Numeric,
        close_factor: Numeric,
    ) -> ReserveConfig:
        """Build from human fractions, e.g. from_percentages("0.75", "0.80", "0.05", "0.5")."""
        return cls(
            ltv=to_wad(ltv),
            liquidation_threshold=to_wad(liquidation_threshold),
            liquidation_bonus=to_wad(liquidation_bonus),
            close_factor=to_wad(close_factor),
        )


@dataclass(frozen=True, slots=True)
class Reserve:
    """
    Immutable snapshot of a reserve's configuration and aggregate state.
    """
    asset: str
    receipt_token: ReceiptToken
    ltv: int
    liquidation_threshold: int
    liquidation_bonus: int
    close_factor: int
    last_accrual_timestamp: datetime
    total_liquidity: int = 0
    total_borrowed: int = 0
    liquidity_index: Index = Index(WAD)
    borrow_index: Index = Index(WAD)
    active: bool = True


class ReserveRegistry:
    """
    Table of reserves keyed by asset.

    Lookups are explicit: get() raises for unknown assets instead of
    returning a default-zero reserve.
    """

    def __init__(self):
        self._reserves: Dict[str, Reserve] = {}

    def init_reserve(
        self,
        asset: str,
        receipt_token: ReceiptToken,
        config: ReserveConfig,
        now: datetime,
    ) -> Reserve:
        """
        Create and activate the reserve for asset.

        Raises:
            AlreadyActive: If the asset already has an active reserve
            InvalidConfig: If the receipt token wraps a different asset
        """
        existing = self._reserves.get(asset)
        if existing is not None and existing.active:
            raise AlreadyActive(f"Reserve {asset} already active")
        if receipt_token.underlying != asset:
            raise InvalidConfig(
                f"Receipt token {receipt_token.symbol} wraps {receipt_token.underlying}, not {asset}"
            )
        reserve = Reserve(
            asset=asset,
            receipt_token=receipt_token,
            ltv=config.ltv,
            liquidation_threshold=config.liquidation_threshold,
            liquidation_bonus=config.liquidation_bonus,
            close_factor=config.close_factor,
            last_accrual_timestamp=now,
        )
        self._reserves[asset] = reserve
        return reserve

    def get(self, asset: str) -> Reserve:
        """
        Return the active reserve for asset.

        Raises:
            ReserveNotActive: If no reserve was initialized for asset
        """
        reserve = self._reserves.get(asset)
        if reserve is None or not reserve.active:
            raise ReserveNotActive(f"Reserve {asset} not active")
        return reserve

    def is_active(self, asset: str) -> bool:
        reserve = self._reserves.get(asset)
        return reserve is not None and reserve.active

    def update(self, reserve: Reserve) -> None:
        """Replace the stored record for reserve.asset."""
        if reserve.asset not in self._reserves:
            raise ReserveNotActive(f"Reserve {reserve.asset} not initialized")
        self._reserves[reserve.asset] = reserve

    def assets(self) -> List[str]:
        """Assets in initialization order."""
        return list(self._reserves)

    def snapshot(self) -> Dict[str, Reserve]:
        return dict(self._reserves)

    def restore(self, snapshot: Dict[str, Reserve]) -> None:
        self._reserves = dict(snapshot)

    def __contains__(self, asset: str) -> bool:
        return asset in self._reserves

    def __len__(self) -> int:
        return len(self._reserves)
