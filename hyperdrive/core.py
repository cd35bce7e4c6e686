"""
Core types and validation helpers for the Hyperdrive pool.

This module provides the foundational pieces every other module builds on:
1. Decimal context configuration shared by all pool arithmetic
2. Constants: default fees, durations, reserve floors
3. Exceptions: HyperdriveError and the pool failure taxonomy
4. Immutable records: PoolConfig, Checkpoint, LongPosition, ShortPosition, Funds
5. Audit records: OperationKind, Operation
6. Validation functions for fees, durations and liquidity amounts

Nothing in this module mutates pool state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Pool arithmetic must be deterministic and never touch binary floats.
# The global context is configured once at import time.
#
# Context parameters:
#   - prec=50: at least 18 fractional digits for any reserve below 1e30
#   - rounding=ROUND_HALF_EVEN: Banker's rounding (unbiased)
#
_HYPERDRIVE_DECIMAL_CONTEXT = getcontext()
_HYPERDRIVE_DECIMAL_CONTEXT.prec = 50
_HYPERDRIVE_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

ZERO = Decimal("0")
ONE = Decimal("1")

# Tolerance for comparisons of values that went through a division.
EPSILON = Decimal("0.000001")

# Fees are fractions of the traded amount.
MAX_FEE = Decimal("1")

DEFAULT_NEW_BOND_FEE = Decimal("0.01")
DEFAULT_MATURED_BOND_FEE = Decimal("0.005")
DEFAULT_GOVERNANCE_FEE = Decimal("0.1")
DEFAULT_ZOMBIE_GOVERNANCE_FEE = Decimal("0.1")

# Share reserves may never drop below this floor after a committed operation.
DEFAULT_MIN_SHARE_RESERVES = Decimal("1000")

# Smallest capital amount accepted by add_liquidity.
MIN_LIQUIDITY = Decimal("1")

# Durations are integer seconds.
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY
DEFAULT_CHECKPOINT_DURATION = 604800        # 7 days
DEFAULT_POSITION_DURATION = 31536000        # 365 days
MAX_POSITION_DURATION = 315360000           # 10 * 365 days

# Position kinds (strings, matching the unit-type convention).
POSITION_KIND_LONG = "LONG"
POSITION_KIND_SHORT = "SHORT"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class HyperdriveError(Exception):
    """Base exception for all pool errors."""
    pass


class InvalidParameter(HyperdriveError, ValueError):
    """Raised for out-of-range fees, durations, prices or amounts."""
    pass


class ResourceMismatch(HyperdriveError):
    """Raised when supplied funds or a position handle belong to another asset or kind."""
    pass


class InsufficientLiquidity(HyperdriveError):
    """Raised when a trade would drain reserves or the pool cannot quote it."""
    pass


class InsufficientCollateral(HyperdriveError):
    """Raised when a short is opened with less capital than the required deposit."""
    pass


class InsufficientBalance(HyperdriveError):
    """Raised when a redemption or withdrawal exceeds the available balance."""
    pass


class NotInitialized(HyperdriveError):
    """Raised when an operation runs before create_pool."""
    pass


class AlreadyInitialized(HyperdriveError):
    """Raised when create_pool or the genesis checkpoint is applied twice."""
    pass


class CheckpointNotFound(HyperdriveError):
    """Raised when a checkpoint id is not present in the ledger."""
    pass


class Unauthorized(HyperdriveError):
    """Raised when a caller fails the access-control check."""
    pass


# ============================================================================
# DECIMAL COERCION
# ============================================================================

def to_decimal(value: Any, name: str = "value") -> Decimal:
    """
    Convert a numeric input to a finite Decimal.

    Floats go through str() so their shortest repr is used rather than the
    binary expansion. Booleans are rejected even though they are ints.

    Raises:
        InvalidParameter: If the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be numeric, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except ArithmeticError as exc:
            raise InvalidParameter(f"{name} is not a number: {value!r}") from exc
    else:
        raise InvalidParameter(f"{name} must be numeric, got {type(value).__name__}")
    if result.is_nan() or result.is_infinite():
        raise InvalidParameter(f"{name} must be finite, got {result}")
    return result


# ============================================================================
# VALIDATION
# ============================================================================

def validate_fee(fee: Any, name: str) -> Decimal:
    """Return fee as a Decimal, or raise InvalidParameter if it is outside [0, 1]."""
    value = to_decimal(fee, name)
    if value < ZERO or value > MAX_FEE:
        raise InvalidParameter(f"{name} must be between 0 and {MAX_FEE}, got {value}")
    return value


def validate_durations(checkpoint_duration: int, position_duration: int) -> None:
    """
    Validate a checkpoint/position duration pair.

    Rules:
        - both are positive integers
        - checkpoint_duration <= position_duration <= MAX_POSITION_DURATION
        - position_duration is a whole number of checkpoints, with one
          exception: a term of whole days on checkpoints of whole weeks may
          run past its last full checkpoint by the leftover days (365 days on
          weekly checkpoints is 52 checkpoints plus one day). Every other
          non-multiple, e.g. 3 days on 2-day checkpoints, is rejected.

    Raises:
        InvalidParameter: If any rule is violated.
    """
    for name, value in (("checkpoint_duration", checkpoint_duration),
                        ("position_duration", position_duration)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidParameter(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise InvalidParameter(f"{name} must be positive, got {value}")
    if position_duration < checkpoint_duration:
        raise InvalidParameter(
            f"position_duration {position_duration} is shorter than "
            f"checkpoint_duration {checkpoint_duration}"
        )
    if position_duration > MAX_POSITION_DURATION:
        raise InvalidParameter(
            f"position_duration {position_duration} exceeds maximum {MAX_POSITION_DURATION}"
        )
    remainder = position_duration % checkpoint_duration
    calendar_term = (
        checkpoint_duration % SECONDS_PER_WEEK == 0
        and position_duration % SECONDS_PER_DAY == 0
    )
    if remainder != 0 and not calendar_term:
        raise InvalidParameter(
            f"position_duration {position_duration} is not a multiple of "
            f"checkpoint_duration {checkpoint_duration}"
        )


def validate_liquidity_amount(amount: Decimal, min_amount: Decimal) -> None:
    """Raise InvalidParameter unless amount >= min_amount."""
    if amount < min_amount:
        raise InvalidParameter(f"Liquidity amount {amount} is below minimum {min_amount}")


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolConfig:
    """
    Immutable pool parameters, validated on construction.

    Attributes:
        checkpoint_duration: Width of a checkpoint bucket in seconds.
        position_duration: Term of every position in seconds.
        new_bond_fee: Fee rate on the not-yet-matured part of a trade.
        matured_bond_fee: Fee rate on the matured part of a trade.
        governance_fee: Fraction of every trading fee routed to governance.
        zombie_governance_fee: Fraction of zombie interest routed to governance.
        min_share_reserves: Floor for share reserves; positive, so z > 0 always holds.

    Numeric fields accept int/str/Decimal and are stored as Decimal.
    """
    checkpoint_duration: int = DEFAULT_CHECKPOINT_DURATION
    position_duration: int = DEFAULT_POSITION_DURATION
    new_bond_fee: Decimal = DEFAULT_NEW_BOND_FEE
    matured_bond_fee: Decimal = DEFAULT_MATURED_BOND_FEE
    governance_fee: Decimal = DEFAULT_GOVERNANCE_FEE
    zombie_governance_fee: Decimal = DEFAULT_ZOMBIE_GOVERNANCE_FEE
    min_share_reserves: Decimal = DEFAULT_MIN_SHARE_RESERVES

    def __post_init__(self):
        validate_durations(self.checkpoint_duration, self.position_duration)
        for name in ("new_bond_fee", "matured_bond_fee", "governance_fee", "zombie_governance_fee"):
            object.__setattr__(self, name, validate_fee(getattr(self, name), name))
        min_reserves = to_decimal(self.min_share_reserves, "min_share_reserves")
        if min_reserves <= ZERO:
            raise InvalidParameter(f"min_share_reserves must be positive, got {min_reserves}")
        object.__setattr__(self, "min_share_reserves", min_reserves)

    @property
    def checkpoints_per_term(self) -> int:
        """Number of full checkpoint buckets in one position term."""
        return self.position_duration // self.checkpoint_duration


# ============================================================================
# LEDGER RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Checkpoint:
    """
    Aggregate statistics for one checkpoint bucket.

    Checkpoints are replaced, never mutated in place: every update produces a
    new record via dataclasses.replace().

    Attributes:
        start_time: Bucket start; also the checkpoint id.
        share_price_at_mint: Share price when the bucket was minted.
        long_positions: Outstanding long face value opened in this bucket.
        short_positions: Outstanding short face value opened in this bucket.
        avg_long_maturity: Face-weighted average long maturity.
        avg_short_maturity: Face-weighted average short maturity.
        is_minted: True once the bucket exists.
    """
    start_time: int
    share_price_at_mint: Decimal
    long_positions: Decimal = ZERO
    short_positions: Decimal = ZERO
    avg_long_maturity: Decimal = ZERO
    avg_short_maturity: Decimal = ZERO
    is_minted: bool = True

    @property
    def net_exposure(self) -> Decimal:
        """Long face value not offset by shorts in this bucket (never negative)."""
        return max(self.long_positions - self.short_positions, ZERO)

    @property
    def is_empty(self) -> bool:
        return self.long_positions <= ZERO and self.short_positions <= ZERO


@dataclass(frozen=True, slots=True)
class LongPosition:
    """
    An open long: the holder receives face_value at maturity.

    Attributes:
        face_value: Bond face value owed to the holder (must be positive).
        checkpoint: Id of the checkpoint the position was opened under.
        open_time: Time the position was opened.
        maturity_time: checkpoint + position_duration.
    """
    face_value: Decimal
    checkpoint: int
    open_time: int
    maturity_time: int

    def __post_init__(self):
        _validate_position(self.face_value, self.checkpoint, self.open_time, self.maturity_time)

    @property
    def kind(self) -> str:
        return POSITION_KIND_LONG


@dataclass(frozen=True, slots=True)
class ShortPosition:
    """
    An open short: the holder owes face_value at maturity against posted collateral.

    initial_share_price is recorded so the yield earned on collateral can be
    settled at close.
    """
    face_value: Decimal
    checkpoint: int
    open_time: int
    maturity_time: int
    initial_share_price: Decimal

    def __post_init__(self):
        _validate_position(self.face_value, self.checkpoint, self.open_time, self.maturity_time)
        if not isinstance(self.initial_share_price, Decimal) or self.initial_share_price <= ZERO:
            raise InvalidParameter(
                f"initial_share_price must be a positive Decimal, got {self.initial_share_price!r}"
            )

    @property
    def kind(self) -> str:
        return POSITION_KIND_SHORT


def _validate_position(face_value: Decimal, checkpoint: int, open_time: int, maturity_time: int) -> None:
    if not isinstance(face_value, Decimal):
        raise InvalidParameter(f"face_value must be Decimal, got {type(face_value).__name__}")
    if face_value.is_nan() or face_value.is_infinite() or face_value <= ZERO:
        raise InvalidParameter(f"face_value must be positive, got {face_value}")
    if maturity_time <= checkpoint:
        raise InvalidParameter(
            f"maturity_time {maturity_time} must be after checkpoint {checkpoint}"
        )
    if open_time < checkpoint:
        raise InvalidParameter(f"open_time {open_time} precedes checkpoint {checkpoint}")


@dataclass(frozen=True, slots=True)
class Funds:
    """
    A typed amount of a named asset moving into or out of the pool.

    Attributes:
        asset: Asset name (the pool's base asset, or one of its LP,
            withdrawal or ready-withdrawal share assets).
        amount: Finite, non-negative Decimal.
    """
    asset: str
    amount: Decimal

    def __post_init__(self):
        if not self.asset or not self.asset.strip():
            raise InvalidParameter("Funds asset cannot be empty")
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if self.amount < ZERO:
            raise InvalidParameter(f"Funds amount must be non-negative, got {self.amount}")

    def __repr__(self) -> str:
        return f"Funds({self.amount} {self.asset})"


# ============================================================================
# AUDIT RECORDS
# ============================================================================

class OperationKind(Enum):
    """Kind of a committed pool operation, recorded in the operation log."""
    CREATE_POOL = "create_pool"
    OPEN_LONG = "open_long"
    CLOSE_LONG = "close_long"
    OPEN_SHORT = "open_short"
    CLOSE_SHORT = "close_short"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"
    DISTRIBUTE_IDLE = "distribute_excess_idle_liquidity"
    REDEEM_WITHDRAWAL = "redeem_withdrawal_shares"
    UPDATE_SHARE_PRICE = "update_share_price"
    COLLECT_ZOMBIE = "collect_zombie_interest"
    WITHDRAW_GOVERNANCE = "withdraw_governance_fees"
    CHECKPOINT = "checkpoint"


def _freeze_details(details: Optional[Dict[str, Any]]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a details dict to a tuple of (key, value) pairs sorted by key."""
    if not details:
        return ()
    return tuple(sorted(details.items()))


@dataclass(frozen=True, slots=True)
class Operation:
    """
    An immutable record of one committed pool operation.

    Attributes:
        op_id: Unique id, op:{pool}:{sequence:012d}:{timestamp}.
        pool_name: Name of the pool that committed the operation.
        sequence_number: Monotonic within the pool.
        kind: What was done.
        timestamp: Clock reading the operation ran under.
        details: Frozen (key, value) pairs describing amounts and handles.
    """
    op_id: str
    pool_name: str
    sequence_number: int
    kind: OperationKind
    timestamp: int
    details: Tuple[Tuple[str, Any], ...] = field(default=())

    @property
    def detail_map(self) -> Dict[str, Any]:
        return dict(self.details)

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Operation: ' + self.op_id)}│",
            f"├{bar}┤",
            f"│{pad('   kind           : ' + self.kind.value)}│",
            f"│{pad('   pool           : ' + self.pool_name)}│",
            f"│{pad('   timestamp      : ' + str(self.timestamp))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
        ]
        if self.details:
            lines.append(f"├{bar}┤")
            for key, value in self.details:
                lines.append(f"│{pad(f'   {key:<15}: {value}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
