"""
accrual.py - Interest Accrual on Reserve Indices

Interest is tracked by two indices per reserve. A borrower's actual debt is
scaled_debt * borrow_index, so advancing the index charges every borrower at
once without touching individual positions.

Key Formulas (all WAD, truncating):
    rate_per_period  = borrow_rate * elapsed_seconds / SECONDS_PER_YEAR
    borrow_index    += borrow_index * rate_per_period
    liquidity_index += liquidity_index * rate_per_period
    interest         = total_borrowed * rate_per_period
    total_borrowed  += interest
    total_liquidity += interest

Compounding is applied on the current index each call, a linear
approximation that converges to continuous compounding as calls get more
frequent. Suppliers earn the same rate borrowers pay (no reserve factor).
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from .core import SECONDS_PER_YEAR, Index, RateModelUnavailable, wad_mul
from .rate_model import RateModel
from .reserve import Reserve, ReserveRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccrualResult:
    """Outcome of one accrual step."""
    reserve: Reserve
    elapsed_seconds: int
    rate_per_period: int
    interest_accrued: int


def elapsed_seconds(last: datetime, now: datetime) -> int:
    """Whole seconds between two timestamps, never negative."""
    return max(0, (now - last) // timedelta(seconds=1))


def calculate_accrual(reserve: Reserve, borrow_rate: int, elapsed: int) -> AccrualResult:
    """
    Advance a reserve's indices and totals by elapsed seconds at borrow_rate.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        reserve: Reserve before accrual
        borrow_rate: Annual borrow rate (WAD)
        elapsed: Seconds since reserve.last_accrual_timestamp

    Returns:
        AccrualResult with the updated reserve
    """
    rate_per_period = borrow_rate * elapsed // SECONDS_PER_YEAR
    interest = wad_mul(reserve.total_borrowed, rate_per_period)
    updated = replace(
        reserve,
        borrow_index=Index(reserve.borrow_index + wad_mul(reserve.borrow_index, rate_per_period)),
        liquidity_index=Index(reserve.liquidity_index + wad_mul(reserve.liquidity_index, rate_per_period)),
        total_borrowed=reserve.total_borrowed + interest,
        total_liquidity=reserve.total_liquidity + interest,
        last_accrual_timestamp=reserve.last_accrual_timestamp + timedelta(seconds=elapsed),
    )
    return AccrualResult(
        reserve=updated,
        elapsed_seconds=elapsed,
        rate_per_period=rate_per_period,
        interest_accrued=interest,
    )


class InterestAccrualEngine:
    """
    Applies calculate_accrual() to reserves in a registry.

    The rate model is looked up through a callable so the pool can swap it
    with set_rate_model() without rebuilding the engine.
    """

    def __init__(self, registry: ReserveRegistry, rate_model: Callable[[], Optional[RateModel]]):
        self.registry = registry
        self._rate_model = rate_model

    def accrue(self, asset: str, now: datetime) -> Reserve:
        """
        Bring a reserve's interest up to the last whole second before now.

        No-op when no whole second has elapsed since the last accrual.

        Raises:
            ReserveNotActive: If asset has no reserve
            RateModelUnavailable: If interest is due and no rate model is set
        """
        reserve = self.registry.get(asset)
        elapsed = elapsed_seconds(reserve.last_accrual_timestamp, now)
        if elapsed == 0:
            return reserve

        rate_model = self._rate_model()
        if rate_model is None:
            raise RateModelUnavailable("Interest rate model not set")
        borrow_rate = rate_model.get_borrow_rate(reserve.total_borrowed, reserve.total_liquidity)

        result = calculate_accrual(reserve, borrow_rate, elapsed)
        self.registry.update(result.reserve)
        logger.debug(
            "Accrued %s: %ds at rate %d, interest %d, borrow_index %d, liquidity_index %d",
            asset, elapsed, borrow_rate, result.interest_accrued,
            result.reserve.borrow_index, result.reserve.liquidity_index,
        )
        return result.reserve
