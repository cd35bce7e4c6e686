"""
test_yield_source.py - Tests for share-price sources
"""

import pytest
from decimal import Decimal

from hyperdrive import (
    SharePriceSource, StaticSharePriceSource, TimeSeriesSharePriceSource,
    InvalidParameter,
)


class TestStaticSharePriceSource:

    def test_ignores_timestamp(self):
        source = StaticSharePriceSource(Decimal("1.02"))
        assert source.get_share_price(0) == Decimal("1.02")
        assert source.get_share_price(10 ** 9) == Decimal("1.02")

    def test_update_price(self):
        source = StaticSharePriceSource()
        source.update_price("1.1")
        assert source.get_share_price(0) == Decimal("1.1")

    def test_rejects_non_positive(self):
        with pytest.raises(InvalidParameter, match="must be positive"):
            StaticSharePriceSource(Decimal("0"))

    def test_is_share_price_source(self):
        assert isinstance(StaticSharePriceSource(), SharePriceSource)


class TestTimeSeriesSharePriceSource:

    def test_latest_observation_at_or_before(self):
        source = TimeSeriesSharePriceSource([(100, Decimal("1.01")), (0, Decimal("1"))])
        assert source.get_share_price(0) == Decimal("1")
        assert source.get_share_price(99) == Decimal("1")
        assert source.get_share_price(100) == Decimal("1.01")
        assert source.get_share_price(500) == Decimal("1.01")

    def test_before_first_observation(self):
        source = TimeSeriesSharePriceSource([(100, Decimal("1"))])
        assert source.get_share_price(50) is None

    def test_empty_series(self):
        assert TimeSeriesSharePriceSource().get_share_price(0) is None

    def test_add_price_keeps_order(self):
        source = TimeSeriesSharePriceSource()
        source.add_price(200, Decimal("1.2"))
        source.add_price(100, Decimal("1.1"))
        assert source.get_all_timestamps() == [100, 200]
        assert source.get_share_price(150) == Decimal("1.1")

    def test_from_rate_accrues_simple_interest(self):
        year = 31536000
        source = TimeSeriesSharePriceSource.from_rate(0, year, year // 2, Decimal("0.05"))
        assert source.get_all_timestamps() == [0, year // 2, year]
        assert source.get_share_price(0) == Decimal("1")
        assert source.get_share_price(year // 2) == Decimal("1.025")
        assert source.get_share_price(year) == Decimal("1.05")

    def test_from_rate_rejects_bad_step(self):
        with pytest.raises(InvalidParameter, match="step"):
            TimeSeriesSharePriceSource.from_rate(0, 100, 0, Decimal("0.05"))

    def test_rejects_non_positive_observation(self):
        with pytest.raises(InvalidParameter):
            TimeSeriesSharePriceSource([(0, Decimal("-1"))])
