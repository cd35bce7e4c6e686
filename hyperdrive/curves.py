"""
curves.py - Pure pricing functions for the Hyperdrive curve

The pool prices a position of face value Δy by blending two curves:
    - a constant-product trading invariant z·y = k for the part of the
      position that has not matured yet (Δy·tr)
    - linear maturity pricing Δy/c for the part that has (Δy·(1 − tr))

Every function here is pure: Decimal in, Decimal out, no pool state.

Notation:
    z   share reserves (or effective share reserves z − ζ)
    y   bond reserves
    c   share price
    tr  time remaining, in [0, 1]
"""

from __future__ import annotations
from decimal import Decimal
from typing import Tuple

from .core import (
    ZERO, ONE,
    InvalidParameter, InsufficientLiquidity,
)


# ============================================================================
# TRADING INVARIANT AND MATURITY PRICING
# ============================================================================

def trading_invariant_delta_z(delta_y: Decimal, z: Decimal, y: Decimal) -> Decimal:
    """
    Shares paid into the pool to take delta_y bonds out along z·y = k.

    Solves z·y = (z + Δz)·(y − Δy) for Δz.

    Degenerate cases:
        - z <= 0 or y <= 0: empty pool, priced 1:1 (returns delta_y)
        - y − Δy <= 0: the trade would drain the bond side; returns 0, which
          callers must treat as a failed quote
    """
    if z <= ZERO or y <= ZERO:
        return delta_y
    new_y = y - delta_y
    if new_y <= ZERO:
        return ZERO
    return (z * y) / new_y - z


def trading_invariant_delta_z_in(delta_y: Decimal, z: Decimal, y: Decimal) -> Decimal:
    """
    Shares paid out of the pool for delta_y bonds put in along z·y = k.

    Solves z·y = (z − Δz)·(y + Δy) for Δz. Empty pools price 1:1.
    """
    if z <= ZERO or y <= ZERO:
        return delta_y
    return z - (z * y) / (y + delta_y)


def maturity_pricing_delta_z(delta_y: Decimal, share_price: Decimal) -> Decimal:
    """Shares worth delta_y of face value at maturity: Δy / c (0 if c <= 0)."""
    if share_price <= ZERO:
        return ZERO
    return delta_y / share_price


def position_impact_delta_z(
    delta_y: Decimal,
    z: Decimal,
    y: Decimal,
    time_remaining: Decimal,
    share_price: Decimal,
    bonds_in: bool = False,
) -> Decimal:
    """
    Blended share impact H(Δy) = I(Δy·tr) + M(Δy·(1 − tr)).

    Args:
        delta_y: Face value of the position
        z: Effective share reserves
        y: Bond reserves
        time_remaining: Fraction of the term left, in [0, 1]
        share_price: Current share price
        bonds_in: Price the curve portion with bonds flowing into the pool
            (closing a long, opening a short) instead of out of it

    Returns:
        Total change in share reserves (a magnitude).

    A quote whose curve portion comes back 0 for a non-zero trade is a drained
    pool; the matured portion alone does not make it valid.
    """
    new_bonds = delta_y * time_remaining
    matured_bonds = delta_y * (ONE - time_remaining)

    impact_new = ZERO
    if new_bonds > ZERO:
        if bonds_in:
            impact_new = trading_invariant_delta_z_in(new_bonds, z, y)
        else:
            impact_new = trading_invariant_delta_z(new_bonds, z, y)

    impact_matured = ZERO
    if matured_bonds > ZERO:
        impact_matured = maturity_pricing_delta_z(matured_bonds, share_price)

    return impact_new + impact_matured


# ============================================================================
# FEES AND VALUATION
# ============================================================================

def calculate_position_fees(
    delta_y: Decimal,
    time_remaining: Decimal,
    spot_rate: Decimal,
    new_bond_fee: Decimal,
    matured_bond_fee: Decimal,
) -> Tuple[Decimal, Decimal]:
    """
    Fees on a trade of face value delta_y.

    Returns:
        (fee_new, fee_matured) where
            fee_new     = ϕ_new · (1 − spot_rate) · Δy · tr
            fee_matured = ϕ_matured · Δy · (1 − tr)
    """
    fee_new = new_bond_fee * (ONE - spot_rate) * delta_y * time_remaining
    fee_matured = matured_bond_fee * delta_y * (ONE - time_remaining)
    return fee_new, fee_matured


def split_fee(total_fee: Decimal, governance_fee: Decimal) -> Tuple[Decimal, Decimal]:
    """Split a fee into (governance_amount, lp_fee)."""
    governance_amount = total_fee * governance_fee
    return governance_amount, total_fee - governance_amount


def calculate_lp_present_value(
    share_reserves: Decimal,
    bond_reserves: Decimal,
    share_price: Decimal,
    lp_supply: Decimal,
) -> Decimal:
    """Value per LP share, (z·c + y) / lp_supply; 1 before any LP shares exist."""
    if lp_supply <= ZERO:
        return ONE
    return (share_reserves * share_price + bond_reserves) / lp_supply


def calculate_long_face_value(
    share_amount: Decimal,
    effective_share_reserves: Decimal,
    bond_reserves: Decimal,
) -> Decimal:
    """
    Bonds received for share_amount shares paid in.

    Inverse of the trading invariant: Δy = y − (z·y)/(z + Δz).
    Empty pools price 1:1.
    """
    if effective_share_reserves <= ZERO or bond_reserves <= ZERO:
        return share_amount
    k = effective_share_reserves * bond_reserves
    return bond_reserves - k / (effective_share_reserves + share_amount)


def calculate_short_deposit(
    face_value: Decimal,
    effective_share_reserves: Decimal,
    bond_reserves: Decimal,
    share_price: Decimal,
    time_remaining: Decimal,
) -> Decimal:
    """
    Collateral, in base, required to short face_value bonds.

    The short sells face_value bonds to the pool; the trader posts the face
    value less the sale proceeds: face·c − H(face)·c.
    """
    delta_z = position_impact_delta_z(
        face_value,
        effective_share_reserves,
        bond_reserves,
        time_remaining,
        share_price,
        bonds_in=True,
    )
    return face_value * share_price - delta_z * share_price


# ============================================================================
# DERIVED POOL QUANTITIES
# ============================================================================

def calculate_effective_share_reserves(share_reserves: Decimal, zeta_adjustment: Decimal) -> Decimal:
    return share_reserves - zeta_adjustment


def calculate_spot_rate(
    effective_share_reserves: Decimal,
    bond_reserves: Decimal,
    share_price: Decimal,
) -> Decimal:
    """
    Spot rate r = z_eff·c / (z_eff·c + y) − 1.

    Returns 0 when the share value or bond reserves are non-positive.
    """
    share_value = effective_share_reserves * share_price
    if share_value <= ZERO or bond_reserves <= ZERO:
        return ZERO
    return share_value / (share_value + bond_reserves) - ONE


def calculate_time_remaining(current_time: int, open_time: int, maturity_time: int) -> Decimal:
    """
    Fraction of a position's term still to run.

    Returns 0 once matured, or when the position's own timestamps are
    inconsistent (open_time >= maturity_time). Result is clamped to [0, 1].
    """
    if current_time >= maturity_time or open_time >= maturity_time:
        return ZERO
    total = Decimal(maturity_time - open_time)
    elapsed = Decimal(max(current_time - open_time, 0))
    remaining = (total - elapsed) / total
    return min(max(remaining, ZERO), ONE)


def validate_trading_parameters(
    effective_share_reserves: Decimal,
    bond_reserves: Decimal,
    delta_y: Decimal,
) -> None:
    """
    Reject a quote that the curve cannot price.

    Raises:
        InvalidParameter: If delta_y is not positive.
        InsufficientLiquidity: If either reserve is non-positive, or the
            trade would take at least every bond in the pool.
    """
    if delta_y <= ZERO:
        raise InvalidParameter(f"Bond amount must be positive, got {delta_y}")
    if effective_share_reserves <= ZERO:
        raise InsufficientLiquidity(
            f"Effective share reserves must be positive, got {effective_share_reserves}"
        )
    if bond_reserves <= ZERO:
        raise InsufficientLiquidity(f"Bond reserves must be positive, got {bond_reserves}")
    if delta_y >= bond_reserves:
        raise InsufficientLiquidity(
            f"Cannot trade {delta_y} bonds against reserves of {bond_reserves}"
        )


# ============================================================================
# ZOMBIE INTEREST
# ============================================================================

def collect_zombie_interest(
    zombie_share_reserves: Decimal,
    zombie_base_reserves: Decimal,
    share_price: Decimal,
    zombie_governance_fee: Decimal,
) -> Tuple[Decimal, Decimal, Decimal, Decimal]:
    """
    Interest accrued on zombie reserves since they were last marked.

    Returns:
        (interest, governance_portion, lp_portion, new_zombie_share_reserves).
        When no interest has accrued the share reserves come back unchanged
        and every other element is 0.
    """
    interest = share_price * zombie_share_reserves - zombie_base_reserves
    if interest <= ZERO:
        return ZERO, ZERO, ZERO, zombie_share_reserves
    governance_portion = interest * zombie_governance_fee
    lp_portion = interest - governance_portion
    new_zombie_shares = zombie_base_reserves / share_price
    return interest, governance_portion, lp_portion, new_zombie_shares
