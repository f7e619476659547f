"""
positions.py - Per-User Collateral and Scaled Debt

Each (user, asset) pair a user has touched has one UserPosition:
    collateral          real units deposited and credited to the user
    scaled_debt         debt in borrow-index units
    collateral_enabled  whether collateral counts toward borrowing power

Actual debt is derived, never stored:
    debt = scaled_debt * borrow_index / WAD

Membership is an append-only list of touched assets per user plus an
existence flag per (user, asset). An asset is appended at most once; when a
position returns to zero its flag is cleared but the list entry stays.
Aggregation walks the list in insertion order and skips cleared entries.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple

from .core import (
    Index, ScaledAmount, from_scaled, to_scaled,
    InsufficientCollateral, InvalidAmount,
)


@dataclass(frozen=True, slots=True)
class UserPosition:
    collateral: int = 0
    scaled_debt: ScaledAmount = ScaledAmount(0)
    collateral_enabled: bool = False

    def debt(self, borrow_index: Index) -> int:
        return from_scaled(self.scaled_debt, borrow_index)

    @property
    def is_empty(self) -> bool:
        return self.collateral == 0 and self.scaled_debt == 0


EMPTY_POSITION = UserPosition()


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    positions: Dict[Tuple[str, str], UserPosition]
    membership: Dict[str, Tuple[str, ...]]
    flags: Dict[Tuple[str, str], bool]


class PositionLedger:
    """
    Table of UserPositions keyed by (user, asset) with membership tracking.
    """

    def __init__(self):
        self._positions: Dict[Tuple[str, str], UserPosition] = {}
        self._membership: Dict[str, List[str]] = {}
        self._flags: Dict[Tuple[str, str], bool] = {}

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def get_position(self, user: str, asset: str) -> UserPosition:
        """Return the position, or an empty one if the pair was never touched."""
        return self._positions.get((user, asset), EMPTY_POSITION)

    def get_debt(self, user: str, asset: str, borrow_index: Index) -> int:
        return self.get_position(user, asset).debt(borrow_index)

    def membership(self, user: str) -> List[str]:
        """Every asset the user ever touched, in first-touch order."""
        return list(self._membership.get(user, ()))

    def is_member(self, user: str, asset: str) -> bool:
        return self._flags.get((user, asset), False)

    def user_assets(self, user: str) -> List[str]:
        """Assets with a live position, in first-touch order."""
        return [a for a in self._membership.get(user, ()) if self._flags.get((user, a), False)]

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def record_deposit(self, user: str, asset: str, amount: int) -> UserPosition:
        position = self.get_position(user, asset)
        updated = replace(position, collateral=position.collateral + amount, collateral_enabled=True)
        self._positions[(user, asset)] = updated
        self._ensure_member(user, asset)
        return updated

    def record_withdraw(self, user: str, asset: str, amount: int) -> UserPosition:
        """
        Debit collateral.

        Raises:
            InsufficientCollateral: If amount exceeds the user's collateral
        """
        position = self.get_position(user, asset)
        if amount > position.collateral:
            raise InsufficientCollateral(
                f"{user} has {position.collateral} {asset} collateral, cannot remove {amount}"
            )
        updated = replace(position, collateral=position.collateral - amount)
        self._store(user, asset, updated)
        return updated

    def record_seizure(self, user: str, asset: str, amount: int) -> UserPosition:
        """Debit collateral taken by a liquidator; same rules as a withdrawal."""
        return self.record_withdraw(user, asset, amount)

    def record_borrow(self, user: str, asset: str, amount: int, borrow_index: Index) -> ScaledAmount:
        """Add amount of debt at the current index; returns the scaled amount added."""
        scaled = to_scaled(amount, borrow_index)
        position = self.get_position(user, asset)
        self._positions[(user, asset)] = replace(
            position, scaled_debt=ScaledAmount(position.scaled_debt + scaled)
        )
        self._ensure_member(user, asset)
        return scaled

    def record_repay(self, user: str, asset: str, amount: int, borrow_index: Index) -> int:
        """
        Reduce debt by up to amount.

        The repayment is capped at the actual debt. Repaying the whole debt
        clears the scaled balance outright, rounding residue included. A
        partial repayment subtracts its scaled equivalent, clamped at zero.

        Returns:
            The amount actually applied

        Raises:
            InvalidAmount: If a partial repayment scales to zero
        """
        position = self.get_position(user, asset)
        debt = position.debt(borrow_index)
        repaid = min(amount, debt)
        if repaid == debt:
            remaining = 0
        else:
            scaled_repaid = to_scaled(repaid, borrow_index)
            if scaled_repaid == 0:
                raise InvalidAmount(f"Repayment of {repaid} {asset} reduces zero scaled debt")
            remaining = max(0, position.scaled_debt - scaled_repaid)
        updated = replace(position, scaled_debt=ScaledAmount(remaining))
        self._store(user, asset, updated)
        return repaid

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> PositionSnapshot:
        return PositionSnapshot(
            positions=dict(self._positions),
            membership={u: tuple(assets) for u, assets in self._membership.items()},
            flags=dict(self._flags),
        )

    def restore(self, snapshot: PositionSnapshot) -> None:
        self._positions = dict(snapshot.positions)
        self._membership = {u: list(assets) for u, assets in snapshot.membership.items()}
        self._flags = dict(snapshot.flags)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _ensure_member(self, user: str, asset: str) -> None:
        # A flag entry exists once the asset has been appended, live or not.
        if (user, asset) not in self._flags:
            self._membership.setdefault(user, []).append(asset)
        self._flags[(user, asset)] = True

    def _store(self, user: str, asset: str, position: UserPosition) -> None:
        self._positions[(user, asset)] = position
        if position.is_empty:
            self._flags[(user, asset)] = False
