"""
positions.py - Long and short position lifecycle

Each function operates on a PoolState passed by reference and follows the
same order:
    1. mint the current checkpoint if its bucket has started
    2. quote the trade with the curve functions
    3. validate the quote (raising before any reserve is touched)
    4. mutate reserves and the checkpoint ledger

The returned outcome records carry everything the pool needs to settle with
custody: payouts in base, and the governance share of the fee.

Position state machine:  open -> closed  (closes consume the full face value)
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from .core import (
    ZERO, ONE,
    LongPosition, ShortPosition,
    InvalidParameter, InsufficientLiquidity, InsufficientCollateral,
)
from .curves import (
    calculate_long_face_value,
    calculate_position_fees,
    calculate_short_deposit,
    calculate_spot_rate,
    calculate_time_remaining,
    maturity_pricing_delta_z,
    position_impact_delta_z,
    split_fee,
    validate_trading_parameters,
)
from .state import PoolState


# ============================================================================
# OUTCOMES
# ============================================================================

@dataclass(frozen=True, slots=True)
class LongOpened:
    """
    Result of opening a long.

    Attributes:
        position: The new position (face value already net of the LP fee).
        share_amount: Shares the capital bought.
        quoted_face_value: Bonds quoted by the curve before fees.
        total_fee: Fee charged, in bond face value.
        governance_fee: Governance share of total_fee.
        lp_fee: LP share of total_fee, retained in the reserves.
    """
    position: LongPosition
    share_amount: Decimal
    quoted_face_value: Decimal
    total_fee: Decimal
    governance_fee: Decimal
    lp_fee: Decimal


@dataclass(frozen=True, slots=True)
class LongClosed:
    position: LongPosition
    time_remaining: Decimal
    delta_z: Decimal
    proceeds: Decimal
    total_fee: Decimal
    governance_fee: Decimal
    lp_fee: Decimal


@dataclass(frozen=True, slots=True)
class ShortOpened:
    """
    Result of opening a short.

    Attributes:
        position: The new position.
        deposit: Capital retained by the pool (collateral plus LP fee).
        change: Supplied capital beyond the deposit, returned to the caller.
        delta_z: Shares the bonds sold for.
    """
    position: ShortPosition
    deposit: Decimal
    change: Decimal
    delta_z: Decimal
    total_fee: Decimal
    governance_fee: Decimal
    lp_fee: Decimal


@dataclass(frozen=True, slots=True)
class ShortClosed:
    position: ShortPosition
    time_remaining: Decimal
    delta_z: Decimal
    proceeds: Decimal
    total_fee: Decimal
    governance_fee: Decimal
    lp_fee: Decimal


# ============================================================================
# LONGS
# ============================================================================

def open_long(state: PoolState, base_amount: Decimal, now: int) -> LongOpened:
    """
    Buy bonds with base_amount of capital.

    The new-bond fee is charged on the quoted face value at tr = 1. Its LP
    part is kept by crediting the opener fewer bonds; its governance part is
    reported for the pool to route to the governance sink.

    Raises:
        InvalidParameter: If base_amount is not positive, or fees consume the
            whole quote.
        InsufficientLiquidity: If the bond reserves cannot cover the trade.
    """
    if base_amount <= ZERO:
        raise InvalidParameter(f"Long capital must be positive, got {base_amount}")
    config = state.config
    share_price = state.share_price

    checkpoint_id = state.checkpoints.update_checkpoint_if_needed(now, share_price)
    maturity_time = checkpoint_id + config.position_duration

    share_amount = base_amount / share_price
    effective_shares = state.effective_share_reserves
    bond_reserves = state.bond_reserves
    face_value = calculate_long_face_value(share_amount, effective_shares, bond_reserves)
    spot_rate = calculate_spot_rate(effective_shares, bond_reserves, share_price)
    fee_new, _ = calculate_position_fees(face_value, ONE, spot_rate, config.new_bond_fee, ZERO)
    governance_amount, lp_fee = split_fee(fee_new, config.governance_fee)
    adjusted_face_value = face_value - lp_fee

    if adjusted_face_value <= ZERO:
        raise InvalidParameter(
            f"Fees {lp_fee} consume the quoted face value {face_value}"
        )
    new_bond_reserves = bond_reserves - adjusted_face_value
    if new_bond_reserves <= ZERO:
        raise InsufficientLiquidity(
            f"Long of {adjusted_face_value} bonds exceeds bond reserves {bond_reserves}"
        )

    state.share_reserves += share_amount
    state.bond_reserves = new_bond_reserves
    state.checkpoints.update_checkpoint_long_opened(checkpoint_id, adjusted_face_value, maturity_time)

    position = LongPosition(
        face_value=adjusted_face_value,
        checkpoint=checkpoint_id,
        open_time=now,
        maturity_time=maturity_time,
    )
    return LongOpened(
        position=position,
        share_amount=share_amount,
        quoted_face_value=face_value,
        total_fee=fee_new,
        governance_fee=governance_amount,
        lp_fee=lp_fee,
    )


def close_long(state: PoolState, position: LongPosition, now: int) -> LongClosed:
    """
    Sell a long's bonds back to the pool.

    The unmatured part trades on the curve and returns to bond reserves; the
    matured part is redeemed at face value and leaves the curve, with ζ
    absorbing its share impact net of the LP share of the matured fee.

    Raises:
        InsufficientLiquidity: If paying out would take share reserves below
            min_share_reserves.
    """
    config = state.config
    share_price = state.share_price
    state.checkpoints.update_checkpoint_if_needed(now, share_price)

    time_remaining = calculate_time_remaining(now, position.open_time, position.maturity_time)
    face_value = position.face_value
    effective_shares = state.effective_share_reserves
    bond_reserves = state.bond_reserves

    delta_z = position_impact_delta_z(
        face_value, effective_shares, bond_reserves, time_remaining, share_price, bonds_in=True
    )
    spot_rate = calculate_spot_rate(effective_shares, bond_reserves, share_price)
    fee_new, fee_matured = calculate_position_fees(
        face_value, time_remaining, spot_rate, config.new_bond_fee, config.matured_bond_fee
    )
    total_fee = fee_new + fee_matured
    governance_amount, lp_fee = split_fee(total_fee, config.governance_fee)
    proceeds = max(delta_z * share_price - lp_fee, ZERO)

    new_share_reserves = state.share_reserves - delta_z
    if new_share_reserves < config.min_share_reserves:
        raise InsufficientLiquidity(
            f"Closing long needs {delta_z} shares; reserves {state.share_reserves} "
            f"would fall below minimum {config.min_share_reserves}"
        )

    matured_impact = maturity_pricing_delta_z(face_value * (ONE - time_remaining), share_price)
    retained_matured_fee = fee_matured * (ONE - config.governance_fee) / share_price

    state.share_reserves = new_share_reserves
    state.bond_reserves += face_value * time_remaining
    state.zeta_adjustment -= matured_impact - retained_matured_fee
    state.checkpoints.update_checkpoint_long_closed(position.checkpoint, face_value, time_remaining)

    return LongClosed(
        position=position,
        time_remaining=time_remaining,
        delta_z=delta_z,
        proceeds=proceeds,
        total_fee=total_fee,
        governance_fee=governance_amount,
        lp_fee=lp_fee,
    )


# ============================================================================
# SHORTS
# ============================================================================

def open_short(state: PoolState, base_amount: Decimal, face_value: Decimal, now: int) -> ShortOpened:
    """
    Short face_value bonds, posting collateral out of base_amount.

    The required deposit is the face value less the bonds' sale proceeds,
    plus the LP share of the new-bond fee. Capital beyond that is returned as
    change.

    Raises:
        InvalidParameter: If face_value is not positive or base_amount is negative.
        InsufficientLiquidity: If the pool prices bonds above face value, or
            the sale would take share reserves below min_share_reserves.
        InsufficientCollateral: If base_amount is below the required deposit.
    """
    if face_value <= ZERO:
        raise InvalidParameter(f"Short face value must be positive, got {face_value}")
    if base_amount < ZERO:
        raise InvalidParameter(f"Short capital must be non-negative, got {base_amount}")
    config = state.config
    share_price = state.share_price

    checkpoint_id = state.checkpoints.update_checkpoint_if_needed(now, share_price)
    maturity_time = checkpoint_id + config.position_duration

    effective_shares = state.effective_share_reserves
    bond_reserves = state.bond_reserves
    deposit_required = calculate_short_deposit(
        face_value, effective_shares, bond_reserves, share_price, ONE
    )
    spot_rate = calculate_spot_rate(effective_shares, bond_reserves, share_price)
    fee_new, _ = calculate_position_fees(face_value, ONE, spot_rate, config.new_bond_fee, ZERO)
    governance_amount, lp_fee = split_fee(fee_new, config.governance_fee)
    total_deposit = deposit_required + lp_fee

    if total_deposit < ZERO:
        raise InsufficientLiquidity(
            f"Pool prices bonds above face value (deposit {total_deposit}); cannot short"
        )
    if base_amount < total_deposit:
        raise InsufficientCollateral(
            f"Short of {face_value} requires {total_deposit}, got {base_amount}"
        )

    delta_z = position_impact_delta_z(
        face_value, effective_shares, bond_reserves, ONE, share_price, bonds_in=True
    )
    new_share_reserves = state.share_reserves - (delta_z - lp_fee / share_price)
    if new_share_reserves < config.min_share_reserves:
        raise InsufficientLiquidity(
            f"Short sale of {delta_z} shares would take reserves below minimum "
            f"{config.min_share_reserves}"
        )

    state.share_reserves = new_share_reserves
    state.bond_reserves += face_value
    state.checkpoints.update_checkpoint_short_opened(checkpoint_id, face_value, maturity_time)

    position = ShortPosition(
        face_value=face_value,
        checkpoint=checkpoint_id,
        open_time=now,
        maturity_time=maturity_time,
        initial_share_price=share_price,
    )
    return ShortOpened(
        position=position,
        deposit=total_deposit,
        change=base_amount - total_deposit,
        delta_z=delta_z,
        total_fee=fee_new,
        governance_fee=governance_amount,
        lp_fee=lp_fee,
    )


def close_short(state: PoolState, position: ShortPosition, now: int) -> ShortClosed:
    """
    Buy back a short's bonds and settle its collateral.

    proceeds = face·(c / c0) − Δz·c − lp_fee, floored at zero: the holder
    keeps the yield earned on collateral and cannot lose more than posted.

    Raises:
        InsufficientLiquidity: If the buy-back would drain the bond reserves.
    """
    config = state.config
    share_price = state.share_price
    state.checkpoints.update_checkpoint_if_needed(now, share_price)

    time_remaining = calculate_time_remaining(now, position.open_time, position.maturity_time)
    face_value = position.face_value
    effective_shares = state.effective_share_reserves
    bond_reserves = state.bond_reserves

    curve_bonds = face_value * time_remaining
    if curve_bonds > ZERO:
        validate_trading_parameters(effective_shares, bond_reserves, curve_bonds)

    delta_z = position_impact_delta_z(
        face_value, effective_shares, bond_reserves, time_remaining, share_price
    )
    spot_rate = calculate_spot_rate(effective_shares, bond_reserves, share_price)
    fee_new, fee_matured = calculate_position_fees(
        face_value, time_remaining, spot_rate, config.new_bond_fee, config.matured_bond_fee
    )
    total_fee = fee_new + fee_matured
    governance_amount, lp_fee = split_fee(total_fee, config.governance_fee)

    share_price_ratio = share_price / position.initial_share_price
    proceeds = max(face_value * share_price_ratio - delta_z * share_price - lp_fee, ZERO)

    matured_impact = maturity_pricing_delta_z(face_value * (ONE - time_remaining), share_price)
    retained_matured_fee = fee_matured * (ONE - config.governance_fee) / share_price

    state.share_reserves += delta_z
    state.bond_reserves -= curve_bonds
    state.zeta_adjustment += matured_impact + retained_matured_fee
    state.checkpoints.update_checkpoint_short_closed(position.checkpoint, face_value, time_remaining)

    return ShortClosed(
        position=position,
        time_remaining=time_remaining,
        delta_z=delta_z,
        proceeds=proceeds,
        total_fee=total_fee,
        governance_fee=governance_amount,
        lp_fee=lp_fee,
    )
