"""
Core types and pure functions for the lending ledger.

This module provides the foundational pieces every other module builds on:
1. Constants: the WAD fixed-point unit, time and sentinel constants
2. Fixed-point arithmetic: wad_mul, wad_div, to_scaled, from_scaled
3. Semantic types: Index and ScaledAmount (kept distinct from plain amounts)
4. Exceptions: LendingError and the domain-specific error families
5. Capabilities: AdminCapability for privileged calls
6. Immutable records: Move and the event records emitted by the pool

All amounts, prices and ratios are Python ints in WAD fixed point.
Every division truncates toward zero. Values are never rounded to nearest,
so derived quantities are biased slightly downward; callers rely on that bias.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, Context, ROUND_DOWN, localcontext
from typing import NewType, Optional, Union
import itertools


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal is only used at the human boundary (config fractions, display).
# Conversions run inside this local context so the global context is untouched.
#
#   - prec=80: enough digits for any uint256-sized WAD value
#   - rounding=ROUND_DOWN: matches the truncating integer arithmetic
#
_LENDING_DECIMAL_CONTEXT = Context(prec=80, rounding=ROUND_DOWN)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point unit: the integer representing 1.0.
WAD = 10 ** 18

# Interest rates are annual; accrual converts them per elapsed second.
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Health factor reported for positions without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Reserved wallet for issuance and redemption in the asset ledger.
# The system wallet is exempt from balance validation.
SYSTEM_WALLET = "system"

# Wallet identity of a pool when none is given.
DEFAULT_POOL_ID = "lending_pool"


# ============================================================================
# SEMANTIC TYPES
# ============================================================================

# A WAD ratio that converts scaled amounts to actual amounts (WAD == 1.0).
Index = NewType("Index", int)

# An amount expressed in index-scaled units; unaffected by accrual.
ScaledAmount = NewType("ScaledAmount", int)

Numeric = Union[int, str, Decimal]


# ============================================================================
# FIXED-POINT ARITHMETIC
# ============================================================================

def wad_mul(a: int, b: int) -> int:
    """Multiply two WAD values, truncating."""
    return a * b // WAD


def wad_div(a: int, b: int) -> int:
    """
    Divide two WAD values, truncating.

    Raises:
        ZeroDivisionError: if b is zero
    """
    if b == 0:
        raise ZeroDivisionError("wad_div by zero")
    return a * WAD // b


def to_scaled(amount: int, index: Index) -> ScaledAmount:
    """
    Convert an actual amount to index-scaled units: amount * WAD / index.

    Truncates, so the scaled amount never over-represents the actual one.

    Raises:
        ValueError: if index is not positive
    """
    if index <= 0:
        raise ValueError(f"Index must be positive, got {index}")
    return ScaledAmount(amount * WAD // index)


def from_scaled(scaled: ScaledAmount, index: Index) -> int:
    """
    Convert index-scaled units back to an actual amount: scaled * index / WAD.

    Raises:
        ValueError: if index is not positive
    """
    if index <= 0:
        raise ValueError(f"Index must be positive, got {index}")
    return scaled * index // WAD


def to_wad(value: Numeric) -> int:
    """
    Convert a human number (e.g. "0.75", Decimal("2000"), 3) to WAD.

    Strings and Decimals are converted exactly, truncating any digits
    below 1e-18. Floats are rejected to avoid binary rounding surprises.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Use str or Decimal for fractional values, got {type(value).__name__}")
    if isinstance(value, int):
        return value * WAD
    with localcontext(_LENDING_DECIMAL_CONTEXT):
        d = Decimal(value)
        if d.is_nan() or d.is_infinite():
            raise ValueError(f"Value must be finite, got {value!r}")
        return int((d * WAD).to_integral_value(rounding=ROUND_DOWN))


def from_wad(value: int) -> Decimal:
    """Convert a WAD integer to a Decimal for display."""
    with localcontext(_LENDING_DECIMAL_CONTEXT):
        return Decimal(value) / Decimal(WAD)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending-related errors."""
    pass


class ValidationError(LendingError):
    """Malformed input: non-positive amounts, inactive reserves, bad config."""
    pass


class InvalidAmount(ValidationError):
    pass


class ReserveNotActive(ValidationError):
    pass


class InvalidConfig(ValidationError):
    pass


class CapacityError(LendingError):
    """Not enough liquidity in a reserve or collateral in a position."""
    pass


class InsufficientLiquidity(CapacityError):
    pass


class InsufficientCollateral(CapacityError):
    pass


class RiskError(LendingError):
    """An operation would leave a position outside its risk limits."""
    pass


class HealthFactorTooLow(RiskError):
    pass


class ExceedsLtv(RiskError):
    pass


class NotLiquidatable(RiskError):
    pass


class AuthorizationError(LendingError):
    """Caller lacks the capability for the requested operation."""
    pass


class Unauthorized(AuthorizationError):
    pass


class SelfLiquidation(AuthorizationError):
    pass


class OracleError(LendingError):
    """Price data missing when it is required."""
    pass


class OracleUnavailable(OracleError):
    pass


class AssetNotSupported(OracleError):
    pass


class StateError(LendingError):
    """Operation not allowed in the current state."""
    pass


class AlreadyActive(StateError):
    pass


class NoDebt(StateError):
    pass


class ReentrantCall(StateError):
    pass


class RateModelUnavailable(StateError):
    pass


class LedgerError(LendingError):
    """Base exception for asset-ledger failures (transfers, registration)."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would take a wallet balance below zero."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when transfer_from exceeds the spender's allowance."""
    pass


class UnitNotRegistered(LedgerError):
    pass


class WalletNotRegistered(LedgerError):
    pass


# ============================================================================
# CAPABILITIES
# ============================================================================

_capability_ids = itertools.count(1)


@dataclass(frozen=True, slots=True, eq=False)
class AdminCapability:
    """
    Unforgeable token granting admin rights over one component.

    Components keep the capability they were created with and compare the
    presented one by identity, so an equal-looking copy is not accepted.
    """
    holder: str
    serial: int = field(default_factory=lambda: next(_capability_ids))

    def __repr__(self) -> str:
        return f"AdminCapability({self.holder}#{self.serial})"


def require_admin(presented: Optional[AdminCapability], expected: AdminCapability, action: str) -> None:
    """Raise Unauthorized unless presented is the expected capability."""
    if presented is not expected:
        raise Unauthorized(f"{action} requires the admin capability of {expected.holder}")


# ============================================================================
# IMMUTABLE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets in the asset ledger.

    Attributes:
        quantity: Amount to transfer (positive int).
        unit_symbol: Asset being transferred (e.g. "WETH", "aWETH").
        source: Wallet debited.
        dest: Wallet credited.
        reason: Short tag describing why the move happened.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    reason: str

    def __post_init__(self):
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.source or not self.dest:
            raise ValueError("Move source and dest cannot be empty")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class ReserveInitializedEvent:
    asset: str
    receipt_token: str


@dataclass(frozen=True, slots=True)
class DepositEvent:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class WithdrawEvent:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class BorrowEvent:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class RepayEvent:
    """Repayment record; amount is what was actually applied."""
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class LiquidationEvent:
    liquidator: str
    borrower: str
    debt_asset: str
    collateral_asset: str
    actual_repay: int
    seized: int
