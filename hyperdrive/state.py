"""
state.py - The pool state aggregate

PoolState is the single mutable aggregate a pool owns. The position and
liquidity services receive it by reference and mutate it; they never keep a
copy. PoolSnapshot is the read-only view handed to callers.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .core import ZERO, ONE, PoolConfig, Checkpoint
from .checkpoints import CheckpointLedger
from .curves import calculate_effective_share_reserves, calculate_spot_rate


@dataclass(slots=True)
class PoolState:
    """
    Reserves, share price and checkpoint ledger of one pool.

    Attributes:
        config: Immutable pool parameters.
        share_reserves: z, in shares.
        bond_reserves: y, in bond face value.
        zeta_adjustment: ζ, subtracted from z to get the curve's reserves.
        share_price: c, externally supplied; strictly positive.
        zombie_share_reserves: Shares held off-curve, accruing yield.
        zombie_base_reserves: Base value of the zombie shares when last marked.
        checkpoints: The checkpoint ledger (owns the current-checkpoint pointer).
    """
    config: PoolConfig
    share_reserves: Decimal = ZERO
    bond_reserves: Decimal = ZERO
    zeta_adjustment: Decimal = ZERO
    share_price: Decimal = ONE
    zombie_share_reserves: Decimal = ZERO
    zombie_base_reserves: Decimal = ZERO
    checkpoints: CheckpointLedger = field(default=None)

    def __post_init__(self):
        if self.checkpoints is None:
            self.checkpoints = CheckpointLedger(
                self.config.checkpoint_duration, self.config.position_duration
            )

    @property
    def effective_share_reserves(self) -> Decimal:
        """z − ζ, recomputed on every read."""
        return calculate_effective_share_reserves(self.share_reserves, self.zeta_adjustment)

    @property
    def spot_rate(self) -> Decimal:
        return calculate_spot_rate(self.effective_share_reserves, self.bond_reserves, self.share_price)

    @property
    def current_checkpoint(self) -> Optional[int]:
        return self.checkpoints.current_checkpoint

    def copy(self) -> PoolState:
        """Independent deep copy, used to roll back a failed operation."""
        return copy.deepcopy(self)

    def restore(self, other: PoolState) -> None:
        """Overwrite every field with the values held by other."""
        for name in PoolState.__slots__:
            setattr(self, name, getattr(other, name))


@dataclass(frozen=True, slots=True)
class PoolSnapshot:
    """Read-only aggregation of a pool's reserves and derived quantities."""
    share_reserves: Decimal
    bond_reserves: Decimal
    zeta_adjustment: Decimal
    effective_share_reserves: Decimal
    share_price: Decimal
    spot_rate: Decimal
    lp_shares: Decimal
    withdrawal_shares: Decimal
    ready_withdrawal_shares: Decimal
    zombie_share_reserves: Decimal
    zombie_base_reserves: Decimal
    current_checkpoint: int
    checkpoint: Checkpoint
    solvency_requirement: Decimal
    idle_liquidity: Decimal
    lp_present_value: Decimal
