"""
test_curves.py - Unit tests for the pricing functions

Tests:
- Trading invariant in both directions, degenerate reserves
- Maturity pricing and the blended position impact
- Fees: worked example, linearity, governance split
- Long face value, short deposit, LP present value
- Spot rate, time remaining, zombie interest
- validate_trading_parameters error taxonomy
"""

import pytest
from decimal import Decimal

from hyperdrive import (
    trading_invariant_delta_z,
    trading_invariant_delta_z_in,
    maturity_pricing_delta_z,
    position_impact_delta_z,
    calculate_position_fees,
    split_fee,
    calculate_lp_present_value,
    calculate_long_face_value,
    calculate_short_deposit,
    calculate_effective_share_reserves,
    calculate_spot_rate,
    calculate_time_remaining,
    validate_trading_parameters,
    collect_zombie_interest,
    InvalidParameter,
    InsufficientLiquidity,
)


TOLERANCE = Decimal("1e-30")


def D(value) -> Decimal:
    return Decimal(str(value))


class TestTradingInvariant:
    """Constant-product pricing with bonds taken out of the pool."""

    def test_worked_example(self):
        """z=100000, y=95000, Δy=1000 prices at roughly 1063.83 shares."""
        delta_z = trading_invariant_delta_z(D(1000), D(100000), D(95000))
        assert abs(delta_z - D("1063.83")) < D("0.01")
        assert delta_z.quantize(D("0.0001")) == D("1063.8298")

    def test_invariant_is_preserved(self):
        z, y, dy = D(100000), D(95000), D(1000)
        delta_z = trading_invariant_delta_z(dy, z, y)
        assert abs(z * y - (z + delta_z) * (y - dy)) < D("1e-20")

    def test_empty_pool_prices_one_to_one(self):
        assert trading_invariant_delta_z(D(500), D(0), D(1000)) == D(500)
        assert trading_invariant_delta_z(D(500), D(1000), D(0)) == D(500)

    def test_draining_bonds_returns_zero(self):
        """A trade taking every bond cannot be quoted."""
        assert trading_invariant_delta_z(D(95000), D(100000), D(95000)) == D(0)
        assert trading_invariant_delta_z(D(96000), D(100000), D(95000)) == D(0)


class TestTradingInvariantBondsIn:
    """Constant-product pricing with bonds flowing into the pool."""

    def test_invariant_is_preserved(self):
        z, y, dy = D(100000), D(105000), D(1000)
        delta_z = trading_invariant_delta_z_in(dy, z, y)
        assert abs(z * y - (z - delta_z) * (y + dy)) < D("1e-20")

    def test_selling_bonds_pays_less_than_buying_them(self):
        z, y, dy = D(100000), D(105000), D(1000)
        assert trading_invariant_delta_z_in(dy, z, y) < trading_invariant_delta_z(dy, z, y)

    def test_reverses_a_purchase_exactly(self):
        """Selling back the bonds a purchase took returns the shares paid."""
        z, y, dy = D(100000), D(105000), D(1000)
        paid = trading_invariant_delta_z(dy, z, y)
        received = trading_invariant_delta_z_in(dy, z + paid, y - dy)
        assert abs(paid - received) < TOLERANCE * 1000

    def test_empty_pool_prices_one_to_one(self):
        assert trading_invariant_delta_z_in(D(7), D(0), D(0)) == D(7)


class TestMaturityPricing:

    def test_divides_by_share_price(self):
        assert maturity_pricing_delta_z(D(1000), D("1.25")) == D(800)

    def test_non_positive_share_price_returns_zero(self):
        assert maturity_pricing_delta_z(D(1000), D(0)) == D(0)
        assert maturity_pricing_delta_z(D(1000), D(-1)) == D(0)


class TestPositionImpact:
    """Blend of curve and maturity pricing by time remaining."""

    def test_full_term_equals_trading_invariant(self):
        z, y, c, dy = D(100000), D(95000), D("1.1"), D(1000)
        assert position_impact_delta_z(dy, z, y, D(1), c) == trading_invariant_delta_z(dy, z, y)

    def test_matured_equals_maturity_pricing(self):
        z, y, c, dy = D(100000), D(95000), D("1.1"), D(1000)
        assert position_impact_delta_z(dy, z, y, D(0), c) == maturity_pricing_delta_z(dy, c)

    def test_full_term_bonds_in_equals_reverse_invariant(self):
        z, y, c, dy = D(100000), D(95000), D(1), D(1000)
        impact = position_impact_delta_z(dy, z, y, D(1), c, bonds_in=True)
        assert impact == trading_invariant_delta_z_in(dy, z, y)

    def test_halfway_blends_both_curves(self):
        z, y, c, dy = D(100000), D(95000), D(2), D(1000)
        expected = trading_invariant_delta_z(D(500), z, y) + maturity_pricing_delta_z(D(500), c)
        assert position_impact_delta_z(dy, z, y, D("0.5"), c) == expected


class TestPositionFees:
    """Fee schedule and governance split."""

    def test_worked_example(self):
        """Δy=5000 at tr=1, spot 0, ϕ_new=0.01 charges 50; governance 5, LP 45."""
        fee_new, fee_matured = calculate_position_fees(D(5000), D(1), D(0), D("0.01"), D("0.005"))
        assert fee_new == D(50)
        assert fee_matured == D(0)

        governance, lp_fee = split_fee(fee_new, D("0.1"))
        assert governance == D(5)
        assert lp_fee == D(45)

    def test_matured_fee_on_expired_portion(self):
        fee_new, fee_matured = calculate_position_fees(D(1000), D("0.25"), D(0), D("0.01"), D("0.005"))
        assert fee_new == D("2.5")
        assert fee_matured == D("3.75")

    def test_fees_are_linear_in_face_value(self):
        args = (D("0.4"), D("-0.3"), D("0.01"), D("0.005"))
        single = calculate_position_fees(D(1234), *args)
        double = calculate_position_fees(D(2468), *args)
        assert double[0] == 2 * single[0]
        assert double[1] == 2 * single[1]

    def test_spot_rate_scales_new_bond_fee(self):
        fee_at_zero, _ = calculate_position_fees(D(1000), D(1), D(0), D("0.01"), D(0))
        fee_at_discount, _ = calculate_position_fees(D(1000), D(1), D("-0.5"), D("0.01"), D(0))
        assert fee_at_discount == fee_at_zero * D("1.5")

    def test_split_fee_sums_to_total(self):
        governance, lp_fee = split_fee(D("17.3"), D("0.25"))
        assert governance + lp_fee == D("17.3")


class TestValuation:

    def test_lp_present_value(self):
        assert calculate_lp_present_value(D(1000), D(500), D(2), D(1250)) == D(2)

    def test_lp_present_value_without_supply_is_one(self):
        assert calculate_lp_present_value(D(1000), D(500), D(2), D(0)) == D(1)

    def test_long_face_value_inverts_trading_invariant(self):
        z, y, dy = D(100000), D(105000), D(1000)
        shares = trading_invariant_delta_z(dy, z, y)
        assert abs(calculate_long_face_value(shares, z, y) - dy) < D("1e-30")

    def test_long_face_value_on_empty_pool(self):
        assert calculate_long_face_value(D(100), D(0), D(0)) == D(100)

    def test_short_deposit_is_face_less_sale_proceeds(self):
        z, y, c, face = D(100000), D(105000), D("1.05"), D(1000)
        sale = trading_invariant_delta_z_in(face, z, y)
        assert calculate_short_deposit(face, z, y, c, D(1)) == face * c - sale * c

    def test_short_deposit_positive_when_bonds_trade_below_face(self):
        assert calculate_short_deposit(D(1000), D(100000), D(105000), D(1), D(1)) > D(0)


class TestDerivedQuantities:

    def test_effective_share_reserves(self):
        assert calculate_effective_share_reserves(D(1000), D(150)) == D(850)

    def test_spot_rate_formula(self):
        rate = calculate_spot_rate(D(100000), D(100000), D(1))
        assert rate == D("-0.5")

    def test_spot_rate_zero_for_empty_operands(self):
        assert calculate_spot_rate(D(0), D(100), D(1)) == D(0)
        assert calculate_spot_rate(D(100), D(0), D(1)) == D(0)
        assert calculate_spot_rate(D(-5), D(100), D(1)) == D(0)


class TestTimeRemaining:

    def test_at_open_is_one(self):
        assert calculate_time_remaining(100, 100, 200) == D(1)

    def test_halfway(self):
        assert calculate_time_remaining(150, 100, 200) == D("0.5")

    def test_matured_is_zero(self):
        assert calculate_time_remaining(200, 100, 200) == D(0)
        assert calculate_time_remaining(500, 100, 200) == D(0)

    def test_inconsistent_timestamps_are_zero(self):
        assert calculate_time_remaining(50, 200, 200) == D(0)
        assert calculate_time_remaining(50, 300, 200) == D(0)

    def test_before_open_is_clamped(self):
        assert calculate_time_remaining(0, 100, 200) == D(1)


class TestValidateTradingParameters:

    def test_valid_trade_passes(self):
        validate_trading_parameters(D(1000), D(1000), D(999))

    def test_non_positive_bond_amount(self):
        with pytest.raises(InvalidParameter, match="must be positive"):
            validate_trading_parameters(D(1000), D(1000), D(0))

    def test_non_positive_reserves(self):
        with pytest.raises(InsufficientLiquidity, match="Effective share reserves"):
            validate_trading_parameters(D(0), D(1000), D(10))
        with pytest.raises(InsufficientLiquidity, match="Bond reserves"):
            validate_trading_parameters(D(1000), D(0), D(10))

    def test_trade_taking_every_bond(self):
        with pytest.raises(InsufficientLiquidity, match="Cannot trade"):
            validate_trading_parameters(D(1000), D(1000), D(1000))


class TestZombieInterest:

    def test_interest_split_and_remark(self):
        interest, governance, lp, shares = collect_zombie_interest(D(100), D(100), D("1.1"), D("0.1"))
        assert interest == D(10)
        assert governance == D(1)
        assert lp == D(9)
        assert abs(shares * D("1.1") - D(100)) < TOLERANCE

    def test_no_interest_leaves_reserves_alone(self):
        result = collect_zombie_interest(D(100), D(100), D(1), D("0.1"))
        assert result == (D(0), D(0), D(0), D(100))
