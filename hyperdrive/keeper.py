"""
keeper.py - Scheduled pool maintenance

Drives a pool through time on the host's schedule. Execution order each step():
1. Advance the clock
2. Feed the share price from the yield source (if it changed)
3. Mint the checkpoint for the new time
4. Sweep idle liquidity into ready withdrawal shares (if any are outstanding)
5. Collect zombie interest (if enabled)

The pool's operation log is the audit trail; step() returns the operations it
committed.
"""

from __future__ import annotations
from typing import Iterable, List, Optional

from .core import Operation, NotInitialized, ZERO
from .pool import HyperdrivePool
from .yield_source import SharePriceSource


class PoolKeeper:
    """
    Periodic maintenance for one pool.

    The pool's clock must support advance_to() (ManualClock does); a host
    with its own clock calls the pool's maintenance operations directly.

    Example:
        keeper = PoolKeeper(pool, TimeSeriesSharePriceSource.from_rate(0, YEAR, WEEK, Decimal("0.05")))
        keeper.run(range(0, YEAR + 1, WEEK))
    """

    def __init__(
        self,
        pool: HyperdrivePool,
        share_price_source: Optional[SharePriceSource] = None,
        collect_zombie_interest: bool = False,
    ):
        self.pool = pool
        self.share_price_source = share_price_source
        self.collect_zombie_interest = collect_zombie_interest
        self.verbose = pool.verbose

    def step(self, timestamp: int) -> List[Operation]:
        """
        Advance to timestamp and run every maintenance task once.

        Returns:
            Operations committed during the step.
        """
        if not self.pool.is_initialized:
            raise NotInitialized(f"Pool {self.pool.name} has not been created")
        self.pool.clock.advance_to(timestamp)
        start = len(self.pool.operation_log)

        if self.share_price_source is not None:
            price = self.share_price_source.get_share_price(timestamp)
            if price is not None and price != self.pool.state.share_price:
                self.pool.update_share_price(price)

        self.pool.checkpoint()

        snapshot = self.pool.get_pool_state()
        if snapshot.withdrawal_shares - snapshot.ready_withdrawal_shares > ZERO:
            ready = self.pool.distribute_excess_idle_liquidity()
            if self.verbose and ready > ZERO:
                print(f"[KEEPER] {ready} withdrawal shares ready at {timestamp}")

        if self.collect_zombie_interest:
            self.pool.collect_zombie_interest()

        return self.pool.operation_log[start:]

    def run(self, timestamps: Iterable[int]) -> List[Operation]:
        """Step through timestamps in order; returns every committed operation."""
        operations: List[Operation] = []
        for timestamp in timestamps:
            operations.extend(self.step(timestamp))
        return operations
