"""
hyperdrive - Fixed-rate lending pool

A pricing and accounting core for a Hyperdrive-style AMM: a constant-product
curve blended with linear maturity pricing, a checkpoint ledger for solvency,
and the long/short/liquidity lifecycle on top.

Usage:
    from decimal import Decimal
    from hyperdrive import HyperdrivePool, PoolConfig, Funds, ManualClock

    clock = ManualClock(0)
    pool = HyperdrivePool("hd", base_asset="USDC", clock=clock)
    lp = pool.create_pool(
        PoolConfig(),
        Funds("USDC", Decimal("100000")),
        initial_bond_reserves=Decimal("105000"),
    )

    handle = pool.open_long(Funds("USDC", Decimal("1000")))
    clock.advance_by(604800)
    proceeds = pool.close_long(handle)
"""

# Core types
from .core import (
    PoolConfig,
    Checkpoint,
    LongPosition,
    ShortPosition,
    Funds,
    Operation,
    OperationKind,
    HyperdriveError,
    InvalidParameter,
    ResourceMismatch,
    InsufficientLiquidity,
    InsufficientCollateral,
    InsufficientBalance,
    NotInitialized,
    AlreadyInitialized,
    CheckpointNotFound,
    Unauthorized,
    to_decimal,
    validate_fee,
    validate_durations,
    validate_liquidity_amount,
    ZERO,
    ONE,
    EPSILON,
    MIN_LIQUIDITY,
    DEFAULT_MIN_SHARE_RESERVES,
    DEFAULT_NEW_BOND_FEE,
    DEFAULT_MATURED_BOND_FEE,
    DEFAULT_GOVERNANCE_FEE,
    DEFAULT_ZOMBIE_GOVERNANCE_FEE,
    DEFAULT_CHECKPOINT_DURATION,
    DEFAULT_POSITION_DURATION,
    MAX_POSITION_DURATION,
    SECONDS_PER_DAY,
    SECONDS_PER_WEEK,
    POSITION_KIND_LONG,
    POSITION_KIND_SHORT,
)

# Curve
from .curves import (
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
)

# Checkpoints and state
from .checkpoints import CheckpointLedger, calculate_current_checkpoint
from .state import PoolState, PoolSnapshot

# Lifecycle services
from .positions import (
    open_long,
    close_long,
    open_short,
    close_short,
    LongOpened,
    LongClosed,
    ShortOpened,
    ShortClosed,
)
from .liquidity import (
    seed_pool,
    add_liquidity,
    remove_liquidity,
    calculate_idle_liquidity,
    distribute_excess_idle_liquidity,
    redeem_withdrawal_shares,
    update_share_price,
    PoolSeeded,
    LiquidityAdded,
    LiquidityRemoved,
    IdleLiquidityDistributed,
    WithdrawalRedeemed,
    ZombieInterestCollected,
)

# Collaborators
from .interfaces import (
    Custody,
    OwnershipTokens,
    Clock,
    AccessControl,
    Vault,
    TokenRegistry,
    ManualClock,
    StaticAccessControl,
)

# Pool, keeper, share prices
from .pool import HyperdrivePool
from .keeper import PoolKeeper
from .yield_source import (
    SharePriceSource,
    StaticSharePriceSource,
    TimeSeriesSharePriceSource,
)

__all__ = [
    # Core
    'PoolConfig', 'Checkpoint', 'LongPosition', 'ShortPosition', 'Funds',
    'Operation', 'OperationKind',
    'HyperdriveError', 'InvalidParameter', 'ResourceMismatch',
    'InsufficientLiquidity', 'InsufficientCollateral', 'InsufficientBalance',
    'NotInitialized', 'AlreadyInitialized', 'CheckpointNotFound', 'Unauthorized',
    'to_decimal', 'validate_fee', 'validate_durations', 'validate_liquidity_amount',
    'ZERO', 'ONE', 'EPSILON', 'MIN_LIQUIDITY',
    'DEFAULT_MIN_SHARE_RESERVES', 'DEFAULT_NEW_BOND_FEE', 'DEFAULT_MATURED_BOND_FEE',
    'DEFAULT_GOVERNANCE_FEE', 'DEFAULT_ZOMBIE_GOVERNANCE_FEE',
    'DEFAULT_CHECKPOINT_DURATION', 'DEFAULT_POSITION_DURATION', 'MAX_POSITION_DURATION', 'SECONDS_PER_DAY', 'SECONDS_PER_WEEK',
    'POSITION_KIND_LONG', 'POSITION_KIND_SHORT',
    # Curve
    'trading_invariant_delta_z', 'trading_invariant_delta_z_in',
    'maturity_pricing_delta_z', 'position_impact_delta_z',
    'calculate_position_fees', 'split_fee', 'calculate_lp_present_value',
    'calculate_long_face_value', 'calculate_short_deposit',
    'calculate_effective_share_reserves', 'calculate_spot_rate',
    'calculate_time_remaining', 'validate_trading_parameters', 'collect_zombie_interest',
    # Checkpoints and state
    'CheckpointLedger', 'calculate_current_checkpoint', 'PoolState', 'PoolSnapshot',
    # Lifecycle
    'open_long', 'close_long', 'open_short', 'close_short',
    'LongOpened', 'LongClosed', 'ShortOpened', 'ShortClosed',
    'seed_pool', 'add_liquidity', 'remove_liquidity', 'calculate_idle_liquidity',
    'distribute_excess_idle_liquidity', 'redeem_withdrawal_shares', 'update_share_price',
    'PoolSeeded', 'LiquidityAdded', 'LiquidityRemoved', 'IdleLiquidityDistributed',
    'WithdrawalRedeemed', 'ZombieInterestCollected',
    # Collaborators
    'Custody', 'OwnershipTokens', 'Clock', 'AccessControl',
    'Vault', 'TokenRegistry', 'ManualClock', 'StaticAccessControl',
    # Pool and keeper
    'HyperdrivePool', 'PoolKeeper',
    'SharePriceSource', 'StaticSharePriceSource', 'TimeSeriesSharePriceSource',
]
