"""
rate_model.py - Utilization-Based Borrow Rate Curve

The borrow rate is a pure, piecewise-linear function of utilization with a
single kink:

    utilization = total_borrowed / total_liquidity
    rate = base + utilization * slope1 / kink                      (u <= kink)
    rate = base + slope1 + (u - kink) * slope2 / (1 - kink)        (u >  kink)

All values are WAD fixed point; rates are annual.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .core import WAD, InvalidConfig, Numeric, to_wad, wad_div, wad_mul


@runtime_checkable
class RateModel(Protocol):
    """Protocol for borrow-rate collaborators."""

    def get_borrow_rate(self, total_borrowed: int, total_liquidity: int) -> int:
        ...


@dataclass(frozen=True, slots=True)
class InterestRateModel:
    """
    Kinked utilization curve.

    Attributes:
        base_rate: Annual rate at zero utilization.
        slope1: Rate added between zero and kink utilization.
        slope2: Rate added between kink and full utilization.
        kink: Optimal utilization where the slope changes (0 < kink < WAD).
    """
    base_rate: int
    slope1: int
    slope2: int
    kink: int

    def __post_init__(self):
        if min(self.base_rate, self.slope1, self.slope2) < 0:
            raise InvalidConfig("Rate model parameters must be non-negative")
        if not 0 < self.kink < WAD:
            raise InvalidConfig(f"Kink must be strictly between 0 and WAD, got {self.kink}")

    @classmethod
    def from_percentages(cls, base_rate: Numeric, slope1: Numeric, slope2: Numeric, kink: Numeric) -> InterestRateModel:
        """Build from human fractions, e.g. from_percentages("0.02", "0.10", "1.0", "0.8")."""
        return cls(
            base_rate=to_wad(base_rate),
            slope1=to_wad(slope1),
            slope2=to_wad(slope2),
            kink=to_wad(kink),
        )

    def get_utilization(self, total_borrowed: int, total_liquidity: int) -> int:
        if total_liquidity == 0:
            return 0
        return wad_div(total_borrowed, total_liquidity)

    def get_borrow_rate(self, total_borrowed: int, total_liquidity: int) -> int:
        if total_liquidity == 0:
            return self.base_rate
        utilization = self.get_utilization(total_borrowed, total_liquidity)
        if utilization <= self.kink:
            return self.base_rate + wad_div(wad_mul(utilization, self.slope1), self.kink)
        excess = utilization - self.kink
        return (
            self.base_rate
            + self.slope1
            + wad_div(wad_mul(excess, self.slope2), WAD - self.kink)
        )


# Default deployment curve: 2% base, 10% slope1, 100% slope2, 80% kink.
DEFAULT_RATE_MODEL = InterestRateModel.from_percentages("0.02", "0.10", "1.0", "0.8")
