"""
pool.py - The Hyperdrive pool

HyperdrivePool is the only object that mutates a pool. It owns one
PoolState, wires the position and liquidity services to the external
collaborators, and makes every public operation atomic.

Key responsibilities:
    - Validates inputs (assets, handles, initialization) before any service runs
    - Runs each operation against the state with snapshot/restore on failure
    - Settles with custody and ownership tokens only after every check passed
    - Appends each committed operation to the operation log (audit trail)
    - Answers read-only queries (the pool state facade)

Units:
    Capital and payouts are in base. Custody balances are in shares of the
    yield-bearing asset; governance fees are routed as fee / share_price
    shares.
"""

from __future__ import annotations
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple

from .core import (
    ZERO, ONE,
    PoolConfig, Checkpoint, Funds, LongPosition, ShortPosition,
    Operation, OperationKind, _freeze_details,
    AlreadyInitialized, InsufficientBalance, NotInitialized,
    ResourceMismatch, Unauthorized,
    to_decimal,
)
from .curves import calculate_lp_present_value
from .interfaces import (
    AccessControl, Clock, Custody, OwnershipTokens,
    ManualClock, StaticAccessControl, TokenRegistry, Vault,
)
from .state import PoolState, PoolSnapshot
from . import liquidity
from . import positions


class HyperdrivePool:
    """
    A fixed-rate lending pool blending a constant-product curve with maturity pricing.

    Thread Safety:
        Not thread-safe. Calls into one pool must be serialized by the host.

    Example:
        clock = ManualClock(0)
        pool = HyperdrivePool("hd", base_asset="USDC", clock=clock, verbose=False)
        lp = pool.create_pool(
            PoolConfig(),
            Funds("USDC", Decimal("100000")),
            initial_bond_reserves=Decimal("105000"),
        )
        handle = pool.open_long(Funds("USDC", Decimal("1000")))
        clock.advance_by(86400)
        payout = pool.close_long(handle)
    """

    def __init__(
        self,
        name: str,
        base_asset: str = "BASE",
        clock: Optional[Clock] = None,
        custody: Optional[Custody] = None,
        governance_custody: Optional[Custody] = None,
        tokens: Optional[OwnershipTokens] = None,
        access_control: Optional[AccessControl] = None,
        verbose: bool = True,
    ):
        """
        Create an uninitialized pool.

        Args:
            name: Pool identifier, also the prefix of its asset names
            base_asset: Asset accepted as capital and paid out
            clock: Time source (default: ManualClock at 0)
            custody: Holds the pool's shares (default: in-memory Vault)
            governance_custody: Governance fee sink (default: in-memory Vault)
            tokens: Position and claim issuer (default: TokenRegistry)
            access_control: Governance check (default: nobody is governance)
            verbose: Print each applied or rejected operation (default: True)
        """
        if not name or not name.strip():
            raise ValueError("Pool name cannot be empty")
        self.name = name
        self.base_asset = base_asset
        self.clock: Clock = clock or ManualClock()
        self.custody: Custody = custody or Vault(f"{name}/CUSTODY")
        self.governance_custody: Custody = governance_custody or Vault(f"{name}/GOVERNANCE")
        self.tokens: OwnershipTokens = tokens or TokenRegistry()
        self.access_control: AccessControl = access_control or StaticAccessControl()
        self.verbose = verbose

        self.state: Optional[PoolState] = None
        self.operation_log: List[Operation] = []
        self._next_sequence: int = 0

        self.lp_asset = f"{name}/ACTIVE_LP"
        self.withdrawal_asset = f"{name}/WITHDRAWAL"
        self.ready_withdrawal_asset = f"{name}/READY_WITHDRAWAL"
        self.long_kind = f"{name}/LONG"
        self.short_kind = f"{name}/SHORT"

    # ========================================================================
    # POOL CREATION
    # ========================================================================

    def create_pool(
        self,
        config: PoolConfig,
        initial_liquidity: Funds,
        initial_bond_reserves: Decimal = ZERO,
        initial_share_price: Decimal = ONE,
    ) -> Funds:
        """
        Seed the pool with its first liquidity.

        Args:
            config: Validated pool parameters
            initial_liquidity: Base capital; must buy more than min_share_reserves shares
            initial_bond_reserves: Starting y (0 leaves the curve to be seeded by shorts)
            initial_share_price: Starting c

        Returns:
            LP shares for the creator (total minted less the locked minimum).

        Raises:
            AlreadyInitialized: If create_pool already succeeded.
            ResourceMismatch: If the capital is not the base asset.
            InvalidParameter: For invalid prices, reserves or too little capital.
        """
        if self.state is not None:
            raise AlreadyInitialized(f"Pool {self.name} is already initialized")
        self._check_asset(initial_liquidity, self.base_asset)
        bond_reserves = to_decimal(initial_bond_reserves, "initial_bond_reserves")
        share_price = to_decimal(initial_share_price, "initial_share_price")
        now = self.clock.current_time()

        state = PoolState(config=config)
        with self._atomic(OperationKind.CREATE_POOL, state):
            seeded = liquidity.seed_pool(state, initial_liquidity.amount, share_price, bond_reserves, now)

            self.custody.deposit(seeded.share_amount)
            self.tokens.mint_fungible(self.lp_asset, seeded.share_amount)
            self.state = state
            self._commit(
                OperationKind.CREATE_POOL, now,
                capital=initial_liquidity.amount,
                shares=seeded.share_amount,
                bond_reserves=bond_reserves,
                lp_minted=seeded.lp_minted,
                lp_locked=seeded.lp_locked,
                checkpoint=seeded.checkpoint_id,
            )
        return Funds(self.lp_asset, seeded.lp_minted)

    @property
    def is_initialized(self) -> bool:
        return self.state is not None

    # ========================================================================
    # POSITIONS (Mutating)
    # ========================================================================

    def open_long(self, capital: Funds) -> str:
        """
        Open a long with base capital.

        Returns:
            Handle of the new long position.
        """
        state = self._require_state()
        self._check_asset(capital, self.base_asset)
        now = self.clock.current_time()

        with self._atomic(OperationKind.OPEN_LONG, state):
            outcome = positions.open_long(state, capital.amount, now)
            governance_shares = outcome.governance_fee / state.share_price
            self._check_custody(outflow=governance_shares, inflow=outcome.share_amount)

            self.custody.deposit(outcome.share_amount)
            self._route_governance(governance_shares)
            handle = self.tokens.mint_position(self.long_kind, outcome.position)
            self._commit(
                OperationKind.OPEN_LONG, now,
                handle=handle,
                capital=capital.amount,
                face_value=outcome.position.face_value,
                maturity=outcome.position.maturity_time,
                fee=outcome.total_fee,
                governance_fee=outcome.governance_fee,
            )
        return handle

    def close_long(self, handle: str) -> Funds:
        """
        Close a long in full.

        Returns:
            Base proceeds.
        """
        state = self._require_state()
        position = self._load_position(handle, self.long_kind, LongPosition)
        now = self.clock.current_time()

        with self._atomic(OperationKind.CLOSE_LONG, state):
            outcome = positions.close_long(state, position, now)
            payout_shares = outcome.proceeds / state.share_price
            governance_shares = outcome.governance_fee / state.share_price
            self._check_custody(outflow=payout_shares + governance_shares)

            self.tokens.burn(handle)
            self.custody.withdraw(payout_shares)
            self._route_governance(governance_shares)
            self._commit(
                OperationKind.CLOSE_LONG, now,
                handle=handle,
                face_value=position.face_value,
                time_remaining=outcome.time_remaining,
                proceeds=outcome.proceeds,
                fee=outcome.total_fee,
                governance_fee=outcome.governance_fee,
            )
        return Funds(self.base_asset, outcome.proceeds)

    def open_short(self, capital: Funds, face_value: Decimal) -> Tuple[str, Funds]:
        """
        Open a short of face_value bonds, posting collateral from capital.

        Returns:
            (handle of the new short position, unused capital)
        """
        state = self._require_state()
        self._check_asset(capital, self.base_asset)
        face_value = to_decimal(face_value, "face_value")
        now = self.clock.current_time()

        with self._atomic(OperationKind.OPEN_SHORT, state):
            outcome = positions.open_short(state, capital.amount, face_value, now)
            deposit_shares = outcome.deposit / state.share_price
            governance_shares = outcome.governance_fee / state.share_price
            self._check_custody(outflow=governance_shares, inflow=deposit_shares)

            self.custody.deposit(deposit_shares)
            self._route_governance(governance_shares)
            handle = self.tokens.mint_position(self.short_kind, outcome.position)
            self._commit(
                OperationKind.OPEN_SHORT, now,
                handle=handle,
                face_value=face_value,
                deposit=outcome.deposit,
                change=outcome.change,
                maturity=outcome.position.maturity_time,
                fee=outcome.total_fee,
                governance_fee=outcome.governance_fee,
            )
        return handle, Funds(self.base_asset, outcome.change)

    def close_short(self, handle: str) -> Funds:
        """
        Close a short in full.

        Returns:
            Base proceeds (never negative).
        """
        state = self._require_state()
        position = self._load_position(handle, self.short_kind, ShortPosition)
        now = self.clock.current_time()

        with self._atomic(OperationKind.CLOSE_SHORT, state):
            outcome = positions.close_short(state, position, now)
            payout_shares = outcome.proceeds / state.share_price
            governance_shares = outcome.governance_fee / state.share_price
            self._check_custody(outflow=payout_shares + governance_shares)

            self.tokens.burn(handle)
            self.custody.withdraw(payout_shares)
            self._route_governance(governance_shares)
            self._commit(
                OperationKind.CLOSE_SHORT, now,
                handle=handle,
                face_value=position.face_value,
                time_remaining=outcome.time_remaining,
                proceeds=outcome.proceeds,
                fee=outcome.total_fee,
                governance_fee=outcome.governance_fee,
            )
        return Funds(self.base_asset, outcome.proceeds)

    # ========================================================================
    # LIQUIDITY (Mutating)
    # ========================================================================

    def add_liquidity(self, capital: Funds) -> Funds:
        """Add base capital; returns the LP shares minted."""
        state = self._require_state()
        self._check_asset(capital, self.base_asset)
        now = self.clock.current_time()

        with self._atomic(OperationKind.ADD_LIQUIDITY, state):
            outcome = liquidity.add_liquidity(state, capital.amount, self._lp_supply())

            self.custody.deposit(outcome.share_amount)
            self.tokens.mint_fungible(self.lp_asset, outcome.lp_minted)
            self._commit(
                OperationKind.ADD_LIQUIDITY, now,
                capital=capital.amount,
                shares=outcome.share_amount,
                lp_minted=outcome.lp_minted,
                lp_present_value=outcome.lp_present_value,
            )
        return Funds(self.lp_asset, outcome.lp_minted)

    def remove_liquidity(self, lp_shares: Funds) -> Tuple[Funds, Funds]:
        """
        Burn LP shares.

        Returns:
            (base paid now, withdrawal shares for the remainder)
        """
        state = self._require_state()
        self._check_asset(lp_shares, self.lp_asset)
        now = self.clock.current_time()

        with self._atomic(OperationKind.REMOVE_LIQUIDITY, state):
            outcome = liquidity.remove_liquidity(state, lp_shares.amount, self._lp_supply())
            payout_shares = outcome.immediate_payout / state.share_price
            self._check_custody(outflow=payout_shares)

            self.tokens.burn_fungible(self.lp_asset, outcome.lp_amount)
            self.custody.withdraw(payout_shares)
            if outcome.withdrawal_shares > ZERO:
                self.tokens.mint_fungible(self.withdrawal_asset, outcome.withdrawal_shares)
            self._commit(
                OperationKind.REMOVE_LIQUIDITY, now,
                lp_burned=outcome.lp_amount,
                lp_present_value=outcome.lp_present_value,
                payout=outcome.immediate_payout,
                withdrawal_shares=outcome.withdrawal_shares,
            )
        return (
            Funds(self.base_asset, outcome.immediate_payout),
            Funds(self.withdrawal_asset, outcome.withdrawal_shares),
        )

    def distribute_excess_idle_liquidity(self) -> Decimal:
        """
        Mark outstanding withdrawal shares ready using idle liquidity.

        Returns:
            Withdrawal shares newly made ready (0 if nothing could be swept;
            nothing is logged in that case).
        """
        state = self._require_state()
        now = self.clock.current_time()

        with self._atomic(OperationKind.DISTRIBUTE_IDLE, state):
            outcome = liquidity.distribute_excess_idle_liquidity(
                state,
                self.tokens.total_supply(self.withdrawal_asset),
                self.tokens.total_supply(self.ready_withdrawal_asset),
                self._lp_supply(),
            )
            if outcome.is_empty:
                return ZERO
            self.tokens.mint_fungible(self.ready_withdrawal_asset, outcome.ready_shares)
            self._commit(
                OperationKind.DISTRIBUTE_IDLE, now,
                idle_liquidity=outcome.idle_liquidity,
                ready_shares=outcome.ready_shares,
            )
        return outcome.ready_shares

    def redeem_withdrawal_shares(self, withdrawal_shares: Funds) -> Tuple[Funds, Funds]:
        """
        Redeem withdrawal shares against the ready supply.

        Returns:
            (base payout, unredeemed withdrawal shares)

        Raises:
            InsufficientBalance: If none are ready, or more are presented than exist.
        """
        state = self._require_state()
        self._check_asset(withdrawal_shares, self.withdrawal_asset)
        supply = self.tokens.total_supply(self.withdrawal_asset)
        if withdrawal_shares.amount > supply:
            raise InsufficientBalance(
                f"Presented {withdrawal_shares.amount} withdrawal shares; supply is {supply}"
            )
        now = self.clock.current_time()

        with self._atomic(OperationKind.REDEEM_WITHDRAWAL, state):
            outcome = liquidity.redeem_withdrawal_shares(
                state,
                withdrawal_shares.amount,
                self.tokens.total_supply(self.ready_withdrawal_asset),
            )
            self._check_custody(outflow=outcome.redeemed)

            self.tokens.burn_fungible(self.withdrawal_asset, outcome.redeemed)
            self.tokens.burn_fungible(self.ready_withdrawal_asset, outcome.redeemed)
            self.custody.withdraw(outcome.redeemed)
            self._commit(
                OperationKind.REDEEM_WITHDRAWAL, now,
                requested=outcome.requested,
                redeemed=outcome.redeemed,
                payout=outcome.payout,
            )
        return (
            Funds(self.base_asset, outcome.payout),
            Funds(self.withdrawal_asset, outcome.change),
        )

    # ========================================================================
    # MAINTENANCE (Mutating)
    # ========================================================================

    def update_share_price(self, new_share_price: Decimal) -> None:
        """Feed a new share price from the yield source."""
        state = self._require_state()
        price = to_decimal(new_share_price, "share price")
        now = self.clock.current_time()

        with self._atomic(OperationKind.UPDATE_SHARE_PRICE, state):
            previous = liquidity.update_share_price(state, price)
            self._commit(OperationKind.UPDATE_SHARE_PRICE, now, previous=previous, share_price=price)

    def checkpoint(self) -> int:
        """
        Mint the checkpoint for the current time if its bucket has started.

        Returns:
            The current checkpoint id.
        """
        state = self._require_state()
        now = self.clock.current_time()

        with self._atomic(OperationKind.CHECKPOINT, state):
            previous = state.current_checkpoint
            current = state.checkpoints.update_checkpoint_if_needed(now, state.share_price)
            if current != previous:
                self._commit(
                    OperationKind.CHECKPOINT, now,
                    checkpoint=current,
                    share_price=state.share_price,
                )
        return current

    def collect_zombie_interest(self) -> liquidity.ZombieInterestCollected:
        """Collect interest accrued on zombie reserves; routes the governance portion."""
        state = self._require_state()
        now = self.clock.current_time()

        with self._atomic(OperationKind.COLLECT_ZOMBIE, state):
            outcome = liquidity.collect_zombie_interest(state)
            if outcome.interest <= ZERO:
                return outcome
            governance_shares = outcome.governance_portion / state.share_price
            self._check_custody(outflow=governance_shares)

            self._route_governance(governance_shares)
            self._commit(
                OperationKind.COLLECT_ZOMBIE, now,
                interest=outcome.interest,
                governance_portion=outcome.governance_portion,
                lp_portion=outcome.lp_portion,
            )
        return outcome

    def withdraw_governance_fees(self, caller: str) -> Funds:
        """
        Pay out every governance fee collected so far.

        Raises:
            Unauthorized: If caller is not governance.
        """
        state = self._require_state()
        if not self.access_control.is_governance(caller):
            if self.verbose:
                print(f"✗ REJECTED: {OperationKind.WITHDRAW_GOVERNANCE.value}: {caller} is not governance")
            raise Unauthorized(f"{caller} is not authorized to withdraw governance fees")
        now = self.clock.current_time()

        with self._atomic(OperationKind.WITHDRAW_GOVERNANCE, state):
            shares = self.governance_custody.take_all()
            amount = shares * state.share_price
            self._commit(
                OperationKind.WITHDRAW_GOVERNANCE, now,
                caller=caller,
                shares=shares,
                amount=amount,
            )
        return Funds(self.base_asset, amount)

    # ========================================================================
    # QUERIES (pool state facade)
    # ========================================================================

    def get_pool_state(self) -> PoolSnapshot:
        state = self._require_state()
        lp_supply = self._lp_supply()
        return PoolSnapshot(
            share_reserves=state.share_reserves,
            bond_reserves=state.bond_reserves,
            zeta_adjustment=state.zeta_adjustment,
            effective_share_reserves=state.effective_share_reserves,
            share_price=state.share_price,
            spot_rate=state.spot_rate,
            lp_shares=lp_supply,
            withdrawal_shares=self.tokens.total_supply(self.withdrawal_asset),
            ready_withdrawal_shares=self.tokens.total_supply(self.ready_withdrawal_asset),
            zombie_share_reserves=state.zombie_share_reserves,
            zombie_base_reserves=state.zombie_base_reserves,
            current_checkpoint=state.current_checkpoint,
            checkpoint=state.checkpoints.current(),
            solvency_requirement=state.checkpoints.calculate_solvency_requirement(),
            idle_liquidity=liquidity.calculate_idle_liquidity(state),
            lp_present_value=calculate_lp_present_value(
                state.share_reserves, state.bond_reserves, state.share_price, lp_supply
            ),
        )

    def effective_share_reserves(self) -> Decimal:
        return self._require_state().effective_share_reserves

    def get_spot_rate(self) -> Decimal:
        return self._require_state().spot_rate

    def get_checkpoint(self, checkpoint_id: int) -> Checkpoint:
        return self._require_state().checkpoints.get(checkpoint_id)

    def solvency_requirement(self) -> Decimal:
        return self._require_state().checkpoints.calculate_solvency_requirement()

    def idle_liquidity(self) -> Decimal:
        return liquidity.calculate_idle_liquidity(self._require_state())

    def lp_present_value(self) -> Decimal:
        state = self._require_state()
        return calculate_lp_present_value(
            state.share_reserves, state.bond_reserves, state.share_price, self._lp_supply()
        )

    def get_position(self, handle: str) -> Any:
        """Return the LongPosition or ShortPosition behind a live handle."""
        self._require_state()
        _, data = self.tokens.get_position(handle)
        return data

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_state(self) -> PoolState:
        if self.state is None:
            raise NotInitialized(f"Pool {self.name} has not been created")
        return self.state

    def _check_asset(self, funds: Funds, expected: str) -> None:
        if not isinstance(funds, Funds):
            raise ResourceMismatch(f"Expected Funds of {expected}, got {type(funds).__name__}")
        if funds.asset != expected:
            raise ResourceMismatch(f"Expected {expected}, got {funds.asset}")

    def _load_position(self, handle: str, kind: str, record_type: type) -> Any:
        position_kind, data = self.tokens.get_position(handle)
        if position_kind != kind or not isinstance(data, record_type):
            raise ResourceMismatch(f"Handle {handle} is a {position_kind}, expected {kind}")
        return data

    def _lp_supply(self) -> Decimal:
        return self.tokens.total_supply(self.lp_asset)

    def _check_custody(self, outflow: Decimal, inflow: Decimal = ZERO) -> None:
        available = self.custody.balance + inflow
        if outflow > available:
            raise InsufficientBalance(
                f"Custody holds {available} shares, operation needs {outflow}"
            )

    def _route_governance(self, shares: Decimal) -> None:
        if shares > ZERO:
            self.custody.withdraw(shares)
            self.governance_custody.deposit(shares)

    @contextmanager
    def _atomic(self, kind: OperationKind, state: PoolState) -> Iterator[None]:
        """
        Restore state if the body raises.

        Collaborators are only touched after the services and custody checks
        have passed, so restoring the owned state is enough to undo a failure.
        """
        snapshot = state.copy()
        try:
            yield
        except Exception as exc:
            state.restore(snapshot)
            if self.verbose:
                print(f"✗ REJECTED: {kind.value}: {exc}")
            raise

    def _generate_op_id(self, sequence: int, timestamp: int) -> str:
        """Format: op:{pool_name}:{sequence:012d}:{timestamp}"""
        return f"op:{self.name}:{sequence:012d}:{timestamp}"

    def _commit(self, kind: OperationKind, timestamp: int, **details: Any) -> Operation:
        sequence = self._next_sequence
        self._next_sequence += 1
        operation = Operation(
            op_id=self._generate_op_id(sequence, timestamp),
            pool_name=self.name,
            sequence_number=sequence,
            kind=kind,
            timestamp=timestamp,
            details=_freeze_details(details),
        )
        self.operation_log.append(operation)
        if self.verbose:
            self._print_op_result(operation)
        return operation

    def _print_op_result(self, operation: Operation) -> None:
        """Print the operation box with an APPLIED line in place of its footer."""
        lines = repr(operation).split("\n")
        w = 100
        bar = "─" * w
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{' ✓ APPLIED'.ljust(w)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def __repr__(self) -> str:
        status = "initialized" if self.state is not None else "uninitialized"
        return f"HyperdrivePool({self.name}, {status}, {len(self.operation_log)} operations)"
