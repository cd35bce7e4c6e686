"""
liquidity.py - LP liquidity, withdrawal shares and the share-price feed

LP ownership is tracked by the pool's token collaborator; functions here take
the relevant supplies as arguments and report what to mint or burn. All
amounts of withdrawal shares are denominated in pool shares: one ready
withdrawal share redeems for one share, i.e. c of base.

Liquidity that cannot be paid out on removal (because it backs open
positions) is issued as withdrawal shares. The idle-liquidity sweep later
marks some of them ready by taking the matching shares off the curve.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from .core import (
    ZERO, MIN_LIQUIDITY,
    InvalidParameter, InsufficientBalance,
    validate_liquidity_amount,
)
from .curves import calculate_lp_present_value, collect_zombie_interest as _zombie_interest
from .state import PoolState


# ============================================================================
# OUTCOMES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolSeeded:
    """
    Result of seeding a new pool.

    Attributes:
        share_amount: Shares bought by the initial capital (all go to z).
        lp_minted: LP shares owed to the creator.
        lp_locked: LP shares kept by the pool to back min_share_reserves.
        checkpoint_id: Genesis checkpoint id.
    """
    share_amount: Decimal
    lp_minted: Decimal
    lp_locked: Decimal
    checkpoint_id: int


@dataclass(frozen=True, slots=True)
class LiquidityAdded:
    share_amount: Decimal
    lp_minted: Decimal
    lp_present_value: Decimal


@dataclass(frozen=True, slots=True)
class LiquidityRemoved:
    """
    Result of burning LP shares.

    Attributes:
        lp_amount: LP shares burned.
        lp_present_value: Value per LP share used for the payout.
        total_value: lp_amount · lp_present_value, in base.
        immediate_payout: Base paid out now.
        withdrawal_shares: Shares owed later for the unpaid remainder.
    """
    lp_amount: Decimal
    lp_present_value: Decimal
    total_value: Decimal
    immediate_payout: Decimal
    withdrawal_shares: Decimal


@dataclass(frozen=True, slots=True)
class IdleLiquidityDistributed:
    idle_liquidity: Decimal
    ready_shares: Decimal

    @property
    def is_empty(self) -> bool:
        return self.ready_shares <= ZERO


@dataclass(frozen=True, slots=True)
class WithdrawalRedeemed:
    requested: Decimal
    redeemed: Decimal
    payout: Decimal
    change: Decimal


@dataclass(frozen=True, slots=True)
class ZombieInterestCollected:
    interest: Decimal
    governance_portion: Decimal
    lp_portion: Decimal
    zombie_share_reserves: Decimal


# ============================================================================
# POOL SEEDING
# ============================================================================

def seed_pool(
    state: PoolState,
    base_amount: Decimal,
    share_price: Decimal,
    bond_reserves: Decimal,
    now: int,
) -> PoolSeeded:
    """
    Put the initial capital on the curve and mint the genesis checkpoint.

    LP shares are minted 1:1 with shares; min_share_reserves of them stay
    with the pool so the floor is never owned by a withdrawing LP.

    Raises:
        InvalidParameter: If the share price is not positive, the bond
            reserves are negative, or the capital does not buy more than
            min_share_reserves shares.
    """
    if share_price <= ZERO:
        raise InvalidParameter(f"Share price must be positive, got {share_price}")
    if bond_reserves < ZERO:
        raise InvalidParameter(f"Initial bond reserves must be non-negative, got {bond_reserves}")
    min_reserves = state.config.min_share_reserves
    share_amount = base_amount / share_price
    if share_amount <= min_reserves:
        raise InvalidParameter(
            f"Initial liquidity of {share_amount} shares must exceed minimum share reserves {min_reserves}"
        )

    state.share_price = share_price
    state.share_reserves = share_amount
    state.bond_reserves = bond_reserves
    checkpoint_id = state.checkpoints.initialize_first_checkpoint(now, share_price)

    return PoolSeeded(
        share_amount=share_amount,
        lp_minted=share_amount - min_reserves,
        lp_locked=min_reserves,
        checkpoint_id=checkpoint_id,
    )


# ============================================================================
# ADD / REMOVE
# ============================================================================

def add_liquidity(state: PoolState, base_amount: Decimal, lp_supply: Decimal) -> LiquidityAdded:
    """
    Add capital to the share reserves.

    LP shares minted = capital / lp_present_value once LP shares exist, or 1:1
    with shares for the first deposit.
    """
    validate_liquidity_amount(base_amount, MIN_LIQUIDITY)
    share_price = state.share_price
    share_amount = base_amount / share_price
    present_value = calculate_lp_present_value(
        state.share_reserves, state.bond_reserves, share_price, lp_supply
    )
    if lp_supply <= ZERO:
        lp_minted = share_amount
    else:
        lp_minted = share_amount * share_price / present_value

    state.share_reserves += share_amount
    return LiquidityAdded(share_amount=share_amount, lp_minted=lp_minted, lp_present_value=present_value)


def remove_liquidity(state: PoolState, lp_amount: Decimal, lp_supply: Decimal) -> LiquidityRemoved:
    """
    Burn LP shares for their present value.

    Only share reserves above both the floor and the solvency requirement can
    leave immediately; the rest of the value owed is issued as withdrawal
    shares.

    Raises:
        InvalidParameter: If lp_amount is not positive.
        InsufficientBalance: If lp_amount exceeds the LP supply.
    """
    if lp_amount <= ZERO:
        raise InvalidParameter(f"LP amount must be positive, got {lp_amount}")
    if lp_amount > lp_supply:
        raise InsufficientBalance(f"LP amount {lp_amount} exceeds LP supply {lp_supply}")

    share_price = state.share_price
    present_value = calculate_lp_present_value(
        state.share_reserves, state.bond_reserves, share_price, lp_supply
    )
    total_value = lp_amount * present_value
    available_value = _free_shares(state) * share_price
    immediate = min(total_value, available_value)
    shortfall = total_value - immediate

    if immediate > ZERO:
        state.share_reserves -= immediate / share_price

    return LiquidityRemoved(
        lp_amount=lp_amount,
        lp_present_value=present_value,
        total_value=total_value,
        immediate_payout=immediate,
        withdrawal_shares=shortfall / share_price,
    )


# ============================================================================
# IDLE LIQUIDITY
# ============================================================================

def _free_shares(state: PoolState) -> Decimal:
    """Shares above the reserve floor and the solvency requirement."""
    solvency = state.checkpoints.calculate_solvency_requirement()
    free = state.share_reserves - state.config.min_share_reserves - solvency / state.share_price
    return max(free, ZERO)


def calculate_idle_liquidity(state: PoolState) -> Decimal:
    """
    Base value of share reserves in excess of both the floor and the solvency
    requirement. Never more than (z − min_share_reserves)·c.
    """
    return _free_shares(state) * state.share_price


def distribute_excess_idle_liquidity(
    state: PoolState,
    withdrawal_shares: Decimal,
    ready_withdrawal_shares: Decimal,
    lp_supply: Decimal,
) -> IdleLiquidityDistributed:
    """
    Mark outstanding withdrawal shares ready using idle liquidity.

    outstanding = withdrawal_shares − ready_withdrawal_shares
    max_ready   = (idle / c) · outstanding / lp_present_value
    ready       = min(max_ready, outstanding, idle / c)

    The ready shares leave z; ζ and y are scaled by the same ratio so the
    spot rate is unchanged. Nothing happens when there is no idle liquidity
    or nothing outstanding.
    """
    idle = calculate_idle_liquidity(state)
    outstanding = withdrawal_shares - ready_withdrawal_shares
    if outstanding <= ZERO or idle <= ZERO:
        return IdleLiquidityDistributed(idle_liquidity=ZERO, ready_shares=ZERO)

    share_price = state.share_price
    idle_shares = idle / share_price
    present_value = calculate_lp_present_value(
        state.share_reserves, state.bond_reserves, share_price, lp_supply
    )
    max_ready = idle_shares * outstanding / present_value
    ready = min(max_ready, outstanding, idle_shares)
    if ready <= ZERO:
        return IdleLiquidityDistributed(idle_liquidity=ZERO, ready_shares=ZERO)

    old_share_reserves = state.share_reserves
    state.share_reserves = old_share_reserves - ready
    ratio = state.share_reserves / old_share_reserves
    state.zeta_adjustment *= ratio
    state.bond_reserves *= ratio

    return IdleLiquidityDistributed(idle_liquidity=idle, ready_shares=ready)


def redeem_withdrawal_shares(
    state: PoolState,
    requested: Decimal,
    ready_withdrawal_shares: Decimal,
) -> WithdrawalRedeemed:
    """
    Redeem up to requested withdrawal shares against the ready supply.

    payout = min(requested, ready) · c. Unredeemed shares come back as change.

    Raises:
        InvalidParameter: If requested is not positive.
        InsufficientBalance: If no withdrawal shares are ready.
    """
    if requested <= ZERO:
        raise InvalidParameter(f"Withdrawal shares to redeem must be positive, got {requested}")
    if ready_withdrawal_shares <= ZERO:
        raise InsufficientBalance("No withdrawal shares are ready for redemption")
    redeemed = min(requested, ready_withdrawal_shares)
    return WithdrawalRedeemed(
        requested=requested,
        redeemed=redeemed,
        payout=redeemed * state.share_price,
        change=requested - redeemed,
    )


# ============================================================================
# SHARE PRICE AND ZOMBIE INTEREST
# ============================================================================

def update_share_price(state: PoolState, new_share_price: Decimal) -> Decimal:
    """Set the share price from the yield source. Returns the previous price."""
    if new_share_price <= ZERO:
        raise InvalidParameter(f"Share price must be positive, got {new_share_price}")
    previous = state.share_price
    state.share_price = new_share_price
    return previous


def collect_zombie_interest(state: PoolState) -> ZombieInterestCollected:
    """
    Mark zombie reserves to the current share price.

    The interest's LP portion returns to the share reserves; the governance
    portion is reported for the pool to route. Zombie shares shrink to what
    the zombie base reserves are worth at the current price.
    """
    interest, governance_portion, lp_portion, new_zombie_shares = _zombie_interest(
        state.zombie_share_reserves,
        state.zombie_base_reserves,
        state.share_price,
        state.config.zombie_governance_fee,
    )
    if interest > ZERO:
        state.zombie_share_reserves = new_zombie_shares
        state.share_reserves += lp_portion / state.share_price
    return ZombieInterestCollected(
        interest=interest,
        governance_portion=governance_portion,
        lp_portion=lp_portion,
        zombie_share_reserves=state.zombie_share_reserves,
    )
