"""
price_oracle.py - Price Feed for Reserve Valuation

Provides the price collaborator the risk and liquidation engines consume.

Classes:
- PriceSource: Protocol defining the interface the pool depends on
- PriceOracle: Admin-set key -> price store

All prices are WAD-scaled values of one WAD of the asset, denominated in a
common base currency (typically USD).

Two read paths exist on purpose:
- get_price() is strict and raises AssetNotSupported for unset or zero prices.
- raw_price() returns whatever is stored, 0 for never-set assets; the risk
  engine uses it and treats 0 as "no contribution".
"""

from __future__ import annotations
from typing import Dict, Optional, Protocol, runtime_checkable
import logging

from .core import AdminCapability, AssetNotSupported, InvalidAmount, require_admin

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceSource(Protocol):
    """Protocol for price feeds consumed by the lending pool."""

    def get_price(self, asset: str) -> int:
        """Return the price of asset; raise AssetNotSupported if unset or zero."""
        ...

    def raw_price(self, asset: str) -> int:
        """Return the stored price of asset, 0 if never set."""
        ...


class PriceOracle:
    """
    Price store with owner-set values.

    Example:
        admin = AdminCapability("deployer")
        oracle = PriceOracle(admin)
        oracle.set_price(admin, "WETH", to_wad(2000))
    """

    def __init__(self, admin: AdminCapability, prices: Optional[Dict[str, int]] = None):
        self._admin = admin
        self.prices: Dict[str, int] = dict(prices or {})

    def set_price(self, admin: AdminCapability, asset: str, price: int) -> None:
        """Set the price of an asset. Zero is allowed and reads as unsupported."""
        require_admin(admin, self._admin, "set_price")
        if price < 0:
            raise InvalidAmount(f"Price must be non-negative, got {price}")
        self.prices[asset] = price
        logger.info("Price of %s set to %d", asset, price)

    def get_price(self, asset: str) -> int:
        price = self.prices.get(asset, 0)
        if price == 0:
            raise AssetNotSupported(f"No price for {asset}")
        return price

    def raw_price(self, asset: str) -> int:
        return self.prices.get(asset, 0)

    def __repr__(self):
        return f"PriceOracle({len(self.prices)} prices)"
