"""
receipt_token.py - Pool Share Tokens

A ReceiptToken represents a depositor's share of one reserve. Its balances
live as a unit inside the pool's AssetLedger, so the pool's snapshot/restore
covers minted and burned shares along with every other transfer.

Only the bound lending pool may mint or burn. Binding is an admin action,
done once after the pool is created.
"""

from __future__ import annotations
from typing import Optional
import logging

from .asset_ledger import AssetLedger, AssetUnit
from .core import AdminCapability, Unauthorized, InvalidAmount, StateError, require_admin

logger = logging.getLogger(__name__)


class ReceiptToken:
    """
    Mint/burn-only share ledger for a single reserve.

    Example:
        admin = AdminCapability("deployer")
        a_weth = ReceiptToken(assets, "aWETH", "Aave WETH", "WETH", admin)
        a_weth.set_lending_pool(admin, pool.identity)
    """

    def __init__(
        self,
        ledger: AssetLedger,
        symbol: str,
        name: str,
        underlying: str,
        admin: AdminCapability,
        decimals: int = 18,
    ):
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.underlying = underlying
        self._admin = admin
        self.lending_pool: Optional[str] = None
        ledger.register_unit(AssetUnit(symbol, name, decimals))

    def set_lending_pool(self, admin: AdminCapability, pool_id: str) -> None:
        """Bind the pool identity allowed to mint and burn."""
        require_admin(admin, self._admin, "set_lending_pool")
        if self.lending_pool is not None and self.lending_pool != pool_id:
            raise StateError(f"{self.symbol} already bound to {self.lending_pool}")
        self.lending_pool = pool_id

    def mint(self, caller: str, user: str, amount: int) -> None:
        self._require_pool(caller)
        if amount <= 0:
            raise InvalidAmount(f"Mint amount must be positive, got {amount}")
        self.ledger.register_wallet(user)
        self.ledger.issue(self.symbol, user, amount)
        logger.debug("Minted %d %s to %s", amount, self.symbol, user)

    def burn(self, caller: str, user: str, amount: int) -> None:
        self._require_pool(caller)
        if amount <= 0:
            raise InvalidAmount(f"Burn amount must be positive, got {amount}")
        self.ledger.redeem(self.symbol, user, amount)
        logger.debug("Burned %d %s from %s", amount, self.symbol, user)

    def balance_of(self, user: str) -> int:
        if not self.ledger.is_registered(user):
            return 0
        return self.ledger.get_balance(user, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def _require_pool(self, caller: str) -> None:
        if self.lending_pool is None or caller != self.lending_pool:
            raise Unauthorized(f"{caller} may not mint or burn {self.symbol}")

    def __repr__(self) -> str:
        return f"ReceiptToken({self.symbol}, underlying={self.underlying})"
