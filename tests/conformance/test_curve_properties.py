"""
Curve Conformance Tests

INVARIANT: Trades along the curve preserve z·y.

    ∀ z, y > 0, 0 < Δy < y:
        (z + I(Δy)) · (y − Δy) = z · y          (bonds out)
        (z − I_in(Δy)) · (y + Δy) = z · y       (bonds in)

INVARIANT: The blended impact is continuous at the term boundaries.

    H(Δy, tr = 1) = I(Δy)
    H(Δy, tr = 0) = Δy / c

INVARIANT: Fees are linear in face value.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from hyperdrive import (
    trading_invariant_delta_z, trading_invariant_delta_z_in,
    position_impact_delta_z, calculate_position_fees, split_fee,
    calculate_long_face_value,
)


TOLERANCE = Decimal("1e-30")


def reserves():
    return st.integers(min_value=1000, max_value=10_000_000).map(Decimal)


def fractions():
    """Values in (0, 1) with four decimal places."""
    return st.integers(min_value=1, max_value=9999).map(lambda n: Decimal(n) / Decimal(10000))


def share_prices():
    return st.integers(min_value=5000, max_value=30000).map(lambda n: Decimal(n) / Decimal(10000))


def close(a: Decimal, b: Decimal, scale: Decimal = Decimal(1)) -> bool:
    return abs(a - b) <= TOLERANCE * max(scale, Decimal(1))


class TestTradingInvariantProperties:

    @given(reserves(), reserves(), fractions())
    @settings(max_examples=200)
    def test_bonds_out_preserves_k(self, z, y, fraction):
        delta_y = y * fraction
        delta_z = trading_invariant_delta_z(delta_y, z, y)
        assert delta_z > 0
        assert close((z + delta_z) * (y - delta_y), z * y, z * y)

    @given(reserves(), reserves(), fractions())
    @settings(max_examples=200)
    def test_bonds_in_preserves_k(self, z, y, fraction):
        delta_y = y * fraction
        delta_z = trading_invariant_delta_z_in(delta_y, z, y)
        assert 0 < delta_z < z
        assert close((z - delta_z) * (y + delta_y), z * y, z * y)

    @given(reserves(), reserves(), fractions())
    @settings(max_examples=100)
    def test_buying_costs_more_than_selling_returns(self, z, y, fraction):
        """
        PROPERTY: Taking Δy bonds out costs more shares than putting Δy in pays.
        """
        delta_y = y * fraction
        assert trading_invariant_delta_z(delta_y, z, y) > trading_invariant_delta_z_in(delta_y, z, y)

    @given(reserves(), reserves(), fractions())
    @settings(max_examples=100)
    def test_long_face_value_inverts_invariant(self, z, y, fraction):
        delta_y = y * fraction
        delta_z = trading_invariant_delta_z(delta_y, z, y)
        assert close(calculate_long_face_value(delta_z, z, y), delta_y, y)


class TestBoundaryContinuity:

    @given(reserves(), reserves(), fractions(), share_prices(), st.booleans())
    @settings(max_examples=100)
    def test_full_term_is_pure_curve(self, z, y, fraction, c, bonds_in):
        delta_y = y * fraction
        expected = (
            trading_invariant_delta_z_in(delta_y, z, y) if bonds_in
            else trading_invariant_delta_z(delta_y, z, y)
        )
        assert position_impact_delta_z(delta_y, z, y, Decimal(1), c, bonds_in=bonds_in) == expected

    @given(reserves(), reserves(), fractions(), share_prices(), st.booleans())
    @settings(max_examples=100)
    def test_matured_is_linear(self, z, y, fraction, c, bonds_in):
        delta_y = y * fraction
        assert position_impact_delta_z(delta_y, z, y, Decimal(0), c, bonds_in=bonds_in) == delta_y / c


class TestFeeLinearity:

    @given(reserves(), reserves(), fractions(), fractions())
    @settings(max_examples=100)
    def test_fees_additive_in_face_value(self, a, b, tr, spot_rate):
        whole = calculate_position_fees(a + b, tr, spot_rate, Decimal("0.01"), Decimal("0.005"))
        first = calculate_position_fees(a, tr, spot_rate, Decimal("0.01"), Decimal("0.005"))
        second = calculate_position_fees(b, tr, spot_rate, Decimal("0.01"), Decimal("0.005"))
        assert close(whole[0], first[0] + second[0], a + b)
        assert close(whole[1], first[1] + second[1], a + b)

    @given(reserves(), fractions())
    @settings(max_examples=100)
    def test_split_preserves_total(self, total, governance_fee):
        governance, lp = split_fee(total, governance_fee)
        assert governance >= 0
        assert lp >= 0
        assert close(governance + lp, total, total)
