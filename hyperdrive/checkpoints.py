"""
checkpoints.py - Time-bucketed position ledger

Positions are grouped by the checkpoint (time bucket) they were opened in.
Each bucket keeps the outstanding long and short face value and their
face-weighted average maturity; the pool's solvency requirement is computed
from the buckets inside the last position_duration.

Checkpoint state machine per id:  absent -> minted
A minted checkpoint only has its aggregate fields replaced.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from .core import (
    ZERO,
    Checkpoint,
    AlreadyInitialized, CheckpointNotFound, InvalidParameter, NotInitialized,
    validate_durations,
)


def calculate_current_checkpoint(current_time: int, checkpoint_duration: int) -> int:
    """Start of the bucket containing current_time."""
    if checkpoint_duration <= 0:
        raise InvalidParameter(f"checkpoint_duration must be positive, got {checkpoint_duration}")
    return current_time - (current_time % checkpoint_duration)


class CheckpointLedger:
    """
    Ordered mapping checkpoint id -> Checkpoint with a current-checkpoint pointer.

    Ids are inserted in strictly increasing order, so dict insertion order is
    id order. Buckets that fall out of the solvency window are pruned once
    they hold no outstanding positions; a bucket with live positions is kept
    however old it is, so every live position's checkpoint always resolves.

    Example:
        ledger = CheckpointLedger(checkpoint_duration=604800, position_duration=31536000)
        ledger.initialize_first_checkpoint(now=0, share_price=Decimal("1"))
        ledger.update_checkpoint_long_opened(0, Decimal("100"), maturity_time=31536000)
        ledger.calculate_solvency_requirement()   # Decimal("100")
    """

    def __init__(self, checkpoint_duration: int, position_duration: int):
        validate_durations(checkpoint_duration, position_duration)
        self.checkpoint_duration = checkpoint_duration
        self.position_duration = position_duration
        self._checkpoints: Dict[int, Checkpoint] = {}
        self.current_checkpoint: Optional[int] = None

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        return self.current_checkpoint is not None

    def get(self, checkpoint_id: int) -> Checkpoint:
        """
        Return the checkpoint with the given id.

        Raises:
            CheckpointNotFound: If the id was never minted or has been pruned.
        """
        try:
            return self._checkpoints[checkpoint_id]
        except KeyError:
            raise CheckpointNotFound(f"Checkpoint {checkpoint_id} not found") from None

    def current(self) -> Checkpoint:
        if self.current_checkpoint is None:
            raise NotInitialized("Checkpoint ledger has no genesis checkpoint")
        return self._checkpoints[self.current_checkpoint]

    def ids(self) -> List[int]:
        return list(self._checkpoints)

    def items(self) -> Iterator[Tuple[int, Checkpoint]]:
        return iter(self._checkpoints.items())

    def __contains__(self, checkpoint_id: object) -> bool:
        return checkpoint_id in self._checkpoints

    def __len__(self) -> int:
        return len(self._checkpoints)

    def __repr__(self) -> str:
        return (f"CheckpointLedger({len(self._checkpoints)} checkpoints, "
                f"current={self.current_checkpoint})")

    # ========================================================================
    # MINTING
    # ========================================================================

    def initialize_first_checkpoint(self, now: int, share_price: Decimal) -> int:
        """
        Seed the genesis checkpoint in the bucket containing now.

        Called exactly once, at pool creation.

        Returns:
            The genesis checkpoint id.

        Raises:
            AlreadyInitialized: If a genesis checkpoint already exists.
        """
        if self.is_initialized:
            raise AlreadyInitialized(
                f"Genesis checkpoint already set at {self.current_checkpoint}"
            )
        checkpoint_id = calculate_current_checkpoint(now, self.checkpoint_duration)
        self._checkpoints[checkpoint_id] = Checkpoint(start_time=checkpoint_id, share_price_at_mint=share_price)
        self.current_checkpoint = checkpoint_id
        return checkpoint_id

    def update_checkpoint_if_needed(self, now: int, share_price: Decimal) -> int:
        """
        Mint the checkpoint for now if its bucket is past the current one.

        This is the only path that creates checkpoints after genesis. The new
        checkpoint records the current share price and zeroed aggregates.

        Returns:
            The (possibly new) current checkpoint id.
        """
        if self.current_checkpoint is None:
            raise NotInitialized("Checkpoint ledger has no genesis checkpoint")
        checkpoint_id = calculate_current_checkpoint(now, self.checkpoint_duration)
        if checkpoint_id > self.current_checkpoint:
            self._checkpoints[checkpoint_id] = Checkpoint(start_time=checkpoint_id, share_price_at_mint=share_price)
            self.current_checkpoint = checkpoint_id
            self.prune()
        return self.current_checkpoint

    def prune(self) -> List[int]:
        """
        Drop empty buckets older than one position_duration before the current one.

        Returns:
            Ids removed, oldest first.
        """
        if self.current_checkpoint is None:
            return []
        horizon = self.current_checkpoint - self.position_duration
        removed = [
            checkpoint_id for checkpoint_id, checkpoint in self._checkpoints.items()
            if checkpoint_id <= horizon and checkpoint.is_empty
        ]
        for checkpoint_id in removed:
            del self._checkpoints[checkpoint_id]
        return removed

    # ========================================================================
    # AGGREGATE UPDATES
    # ========================================================================

    def update_checkpoint_long_opened(self, checkpoint_id: int, face_value: Decimal, maturity_time: int) -> Checkpoint:
        checkpoint = self.get(checkpoint_id)
        total, average = _add_weighted(
            checkpoint.long_positions, checkpoint.avg_long_maturity, face_value, maturity_time
        )
        updated = replace(checkpoint, long_positions=total, avg_long_maturity=average)
        self._checkpoints[checkpoint_id] = updated
        return updated

    def update_checkpoint_short_opened(self, checkpoint_id: int, face_value: Decimal, maturity_time: int) -> Checkpoint:
        checkpoint = self.get(checkpoint_id)
        total, average = _add_weighted(
            checkpoint.short_positions, checkpoint.avg_short_maturity, face_value, maturity_time
        )
        updated = replace(checkpoint, short_positions=total, avg_short_maturity=average)
        self._checkpoints[checkpoint_id] = updated
        return updated

    def update_checkpoint_long_closed(self, checkpoint_id: int, face_value: Decimal, time_remaining: Decimal) -> Checkpoint:
        """
        Remove a closed long from its bucket.

        The average maturity is not re-weighted: it is set to the closing
        position's time remaining, or 0 once the bucket holds no longs.
        """
        checkpoint = self.get(checkpoint_id)
        total = checkpoint.long_positions - face_value
        average = time_remaining if total > ZERO else ZERO
        updated = replace(checkpoint, long_positions=total, avg_long_maturity=average)
        self._checkpoints[checkpoint_id] = updated
        return updated

    def update_checkpoint_short_closed(self, checkpoint_id: int, face_value: Decimal, time_remaining: Decimal) -> Checkpoint:
        """Remove a closed short from its bucket (same averaging rule as longs)."""
        checkpoint = self.get(checkpoint_id)
        total = checkpoint.short_positions - face_value
        average = time_remaining if total > ZERO else ZERO
        updated = replace(checkpoint, short_positions=total, avg_short_maturity=average)
        self._checkpoints[checkpoint_id] = updated
        return updated

    # ========================================================================
    # SOLVENCY
    # ========================================================================

    def calculate_solvency_requirement(self) -> Decimal:
        """
        Face value the pool must cover if every open long matures unhedged.

        Walks back from the current checkpoint in checkpoint_duration steps
        over one position_duration (a partial trailing bucket included),
        summing max(long − short, 0) per bucket. Missing buckets contribute
        nothing.
        """
        if self.current_checkpoint is None:
            return ZERO
        requirement = ZERO
        window = -(-self.position_duration // self.checkpoint_duration)
        for i in range(window):
            checkpoint_id = self.current_checkpoint - i * self.checkpoint_duration
            if checkpoint_id < 0:
                break
            checkpoint = self._checkpoints.get(checkpoint_id)
            if checkpoint is not None:
                requirement += checkpoint.net_exposure
        return requirement


def _add_weighted(old_total: Decimal, old_average: Decimal, face_value: Decimal, maturity_time: int) -> Tuple[Decimal, Decimal]:
    new_total = old_total + face_value
    if new_total <= ZERO:
        return new_total, old_average
    average = (old_average * old_total + Decimal(maturity_time) * face_value) / new_total
    return new_total, average
