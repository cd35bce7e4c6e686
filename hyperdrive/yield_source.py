"""
yield_source.py - Share-price feeds for the pool

The only thing the pool takes from its yield source is the price of one
share in base. These classes supply that price at a point in time.

Classes:
- SharePriceSource: Protocol defining the feed interface
- StaticSharePriceSource: A single price, updated by hand
- TimeSeriesSharePriceSource: Time-varying prices with historical data
"""

from __future__ import annotations
from bisect import bisect_right
from decimal import Decimal
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from .core import ONE, InvalidParameter, to_decimal


SECONDS_PER_YEAR = 31536000


@runtime_checkable
class SharePriceSource(Protocol):
    """Provides the share price at a given time, or None if unknown."""

    def get_share_price(self, timestamp: int) -> Optional[Decimal]:
        ...


class StaticSharePriceSource:
    """Share price that ignores the timestamp."""

    def __init__(self, price: Decimal = ONE):
        self.price = _positive_price(price)

    def get_share_price(self, timestamp: int) -> Optional[Decimal]:
        return self.price

    def update_price(self, price: Decimal) -> None:
        self.price = _positive_price(price)

    def __repr__(self):
        return f"StaticSharePriceSource({self.price})"


class TimeSeriesSharePriceSource:
    """
    Share price observations over time.

    Uses the most recent observation at or before the requested time.

    Examples:
        # Incremental
        source = TimeSeriesSharePriceSource()
        source.add_price(0, Decimal("1"))
        source.add_price(604800, Decimal("1.001"))

        # Batch
        source = TimeSeriesSharePriceSource([(0, Decimal("1")), (604800, Decimal("1.001"))])
    """

    def __init__(self, price_path: Optional[List[Tuple[int, Decimal]]] = None):
        self.history: List[Tuple[int, Decimal]] = []
        if price_path:
            self.history = sorted(
                ((timestamp, _positive_price(price)) for timestamp, price in price_path),
                key=lambda x: x[0],
            )

    @classmethod
    def from_rate(
        cls,
        start_time: int,
        end_time: int,
        step: int,
        annual_rate: Decimal,
        initial_price: Decimal = ONE,
    ) -> TimeSeriesSharePriceSource:
        """
        Build a path accruing simple interest at annual_rate.

        c(t) = initial_price · (1 + annual_rate · (t − start_time) / year)
        """
        if step <= 0:
            raise InvalidParameter(f"step must be positive, got {step}")
        rate = to_decimal(annual_rate, "annual_rate")
        base = _positive_price(initial_price)
        path = []
        for timestamp in range(start_time, end_time + 1, step):
            elapsed = Decimal(timestamp - start_time) / Decimal(SECONDS_PER_YEAR)
            path.append((timestamp, base * (ONE + rate * elapsed)))
        return cls(path)

    def add_price(self, timestamp: int, price: Decimal) -> None:
        self.history.append((timestamp, _positive_price(price)))
        self.history.sort(key=lambda x: x[0])

    def get_share_price(self, timestamp: int) -> Optional[Decimal]:
        """
        Price at or before timestamp, or None if the series starts later.

        Uses binary search for O(log n) lookup.
        """
        if not self.history:
            return None
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        return self.history[idx - 1][1]

    def get_all_timestamps(self) -> List[int]:
        return [ts for ts, _ in self.history]

    def __repr__(self):
        return f"TimeSeriesSharePriceSource({len(self.history)} observations)"


def _positive_price(price) -> Decimal:
    value = to_decimal(price, "share price")
    if value <= 0:
        raise InvalidParameter(f"Share price must be positive, got {value}")
    return value
