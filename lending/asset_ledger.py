"""
asset_ledger.py - Fungible Asset Balances and Allowances

The AssetLedger holds the balances of every asset the pool moves: the
underlying assets being deposited and borrowed, and the receipt-token units
minted to depositors. It is the transfer collaborator of the lending pool.

Key responsibilities:
    - Executes batches of Moves atomically (all moves succeed or all fail)
    - Enforces non-negative balances for every wallet except SYSTEM_WALLET
    - Tracks ERC20-style allowances for transfer_from
    - Logs every executed batch for audit
    - Provides snapshot/restore so a failed pool operation can undo transfers
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Set, Tuple
import copy
import logging

from .core import (
    Move, SYSTEM_WALLET,
    LedgerError, InsufficientFunds, InsufficientAllowance,
    UnitNotRegistered, WalletNotRegistered,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssetUnit:
    """
    Definition of a fungible asset held in the ledger.

    Attributes:
        symbol: Short identifier (e.g. "WETH", "aWETH").
        name: Human-readable name.
        decimals: Display precision; amounts are always integers in base units.
    """
    symbol: str
    name: str
    decimals: int = 18


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Opaque copy of an AssetLedger's mutable state."""
    balances: Dict[str, Dict[str, int]]
    allowances: Dict[Tuple[str, str, str], int]
    wallets: Set[str]
    units: Dict[str, AssetUnit]
    log_length: int


class AssetLedger:
    """
    Multi-asset balance ledger with allowances.

    Thread Safety:
        Not thread-safe. The lending pool serializes all access.

    Example:
        assets = AssetLedger("main")
        assets.register_unit(AssetUnit("WETH", "Wrapped Ether"))
        assets.register_wallet("alice")
        assets.issue("WETH", "alice", 10 * WAD)
        assets.transfer("WETH", "alice", "bob", WAD)
    """

    def __init__(self, name: str = "assets"):
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.units: Dict[str, AssetUnit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Tuple[Move, ...]] = []

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = {}

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Return the balance of a unit in a wallet (0 if never credited).

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        self._require_wallet(wallet_id)
        self._require_unit(unit_symbol)
        return self.balances[wallet_id].get(unit_symbol, 0)

    def allowance(self, owner: str, spender: str, unit_symbol: str) -> int:
        return self.allowances.get((owner, spender, unit_symbol), 0)

    def total_supply(self, unit_symbol: str) -> int:
        """
        Total of a unit held outside SYSTEM_WALLET.

        Wallets are sorted before summation for a deterministic order.
        """
        self._require_unit(unit_symbol)
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that every unit sums to zero across all wallets.

        SYSTEM_WALLET goes negative by exactly the amount issued, so the
        sum over all wallets including it is always zero.

        Returns:
            Dict with 'valid' (bool) and 'discrepancies' (unit -> net sum)
        """
        discrepancies = {}
        for unit_symbol in sorted(self.units):
            net = sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))
            if net != 0:
                discrepancies[unit_symbol] = net
        return {'valid': not discrepancies, 'discrepancies': discrepancies}

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_unit(self, unit: AssetUnit) -> None:
        """
        Register a new asset.

        Raises:
            ValueError: If the symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        logger.debug("Registered unit %s (%s)", unit.symbol, unit.name)

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a wallet. Registering an existing wallet is a no-op.

        Pools, users and liquidators all need a wallet before they can
        hold balances.
        """
        if wallet_id not in self.registered_wallets:
            self.registered_wallets.add(wallet_id)
            self.balances[wallet_id] = {}
        return wallet_id

    # ========================================================================
    # TRANSFERS (Mutating)
    # ========================================================================

    def issue(self, unit_symbol: str, wallet_id: str, quantity: int) -> None:
        """Create quantity of a unit in wallet_id, funded by SYSTEM_WALLET."""
        self.execute([Move(quantity, unit_symbol, SYSTEM_WALLET, wallet_id, "issue")])

    def redeem(self, unit_symbol: str, wallet_id: str, quantity: int) -> None:
        """Destroy quantity of a unit held by wallet_id."""
        self.execute([Move(quantity, unit_symbol, wallet_id, SYSTEM_WALLET, "redeem")])

    def approve(self, owner: str, spender: str, unit_symbol: str, quantity: int) -> None:
        """Set spender's allowance over owner's unit_symbol balance."""
        self._require_wallet(owner)
        self._require_wallet(spender)
        self._require_unit(unit_symbol)
        if quantity < 0:
            raise ValueError(f"Allowance must be non-negative, got {quantity}")
        self.allowances[(owner, spender, unit_symbol)] = quantity

    def transfer(self, unit_symbol: str, source: str, dest: str, quantity: int) -> None:
        self.execute([Move(quantity, unit_symbol, source, dest, "transfer")])

    def transfer_from(
        self,
        spender: str,
        unit_symbol: str,
        source: str,
        dest: str,
        quantity: int,
    ) -> None:
        """
        Move quantity from source to dest on behalf of spender.

        Consumes allowance; the allowance is untouched if the move fails.

        Raises:
            InsufficientAllowance: If spender's allowance is below quantity
            InsufficientFunds: If source's balance is below quantity
        """
        key = (source, spender, unit_symbol)
        current = self.allowances.get(key, 0)
        if quantity > current:
            raise InsufficientAllowance(
                f"{spender} allowance over {source} {unit_symbol}: {current} < {quantity}"
            )
        self.execute([Move(quantity, unit_symbol, source, dest, "transfer_from")])
        self.allowances[key] = current - quantity

    def execute(self, moves: List[Move]) -> None:
        """
        Apply a batch of moves atomically.

        All moves are validated against registration and balance constraints
        before any balance is touched.

        Raises:
            UnitNotRegistered, WalletNotRegistered, InsufficientFunds
        """
        moves = tuple(moves)
        if not moves:
            return

        for move in moves:
            self._require_unit(move.unit_symbol)
            self._require_wallet(move.source)
            self._require_wallet(move.dest)

        net: Dict[Tuple[str, str], int] = {}
        for move in moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet].get(unit_sym, 0) + delta
            if proposed < 0:
                raise InsufficientFunds(
                    f"{wallet} {unit_sym}: balance {self.balances[wallet].get(unit_sym, 0)} "
                    f"short of {-delta}"
                )

        for (wallet, unit_sym), delta in net.items():
            self.balances[wallet][unit_sym] = self.balances[wallet].get(unit_sym, 0) + delta

        self.transaction_log.append(moves)
        logger.debug("%s applied %s", self.name, moves)

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Capture all mutable state for a later restore()."""
        return LedgerSnapshot(
            balances=copy.deepcopy(self.balances),
            allowances=dict(self.allowances),
            wallets=set(self.registered_wallets),
            units=dict(self.units),
            log_length=len(self.transaction_log),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """Roll the ledger back to a snapshot taken earlier."""
        if snapshot.log_length > len(self.transaction_log):
            raise LedgerError("Cannot restore a snapshot newer than the ledger")
        self.balances = copy.deepcopy(snapshot.balances)
        self.allowances = dict(snapshot.allowances)
        self.registered_wallets = set(snapshot.wallets)
        self.units = dict(snapshot.units)
        del self.transaction_log[snapshot.log_length:]

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _require_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")

    def _require_unit(self, unit_symbol: str) -> None:
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
