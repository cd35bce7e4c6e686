"""
interfaces.py - Collaborator interfaces and in-memory implementations

The pool core never holds value, issues tokens, reads a wall clock or decides
who is authorized. It talks to the surrounding system through four
capability protocols:

    Custody          holds the pool's yield-bearing asset (in shares)
    OwnershipTokens  issues position handles and fungible claims
    Clock            supplies the current time
    AccessControl    answers whether a caller may act as governance

Each protocol has a small in-memory implementation, enough to run a pool
stand-alone and in tests.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Protocol, Set, Tuple, runtime_checkable

from .core import (
    ZERO,
    InvalidParameter, InsufficientBalance, ResourceMismatch,
)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class Custody(Protocol):
    """Holds fungible value on the pool's behalf."""

    @property
    def balance(self) -> Decimal:
        ...

    def deposit(self, amount: Decimal) -> str:
        """Accept amount and return an opaque receipt."""
        ...

    def withdraw(self, amount: Decimal) -> Decimal:
        """Release amount; callers check the balance first."""
        ...

    def take_all(self) -> Decimal:
        """Release the entire balance."""
        ...


@runtime_checkable
class OwnershipTokens(Protocol):
    """Issues position handles and fungible LP / withdrawal claims."""

    def mint_position(self, kind: str, data: Any) -> str:
        ...

    def get_position(self, handle: str) -> Tuple[str, Any]:
        """Return (kind, data) for a live handle."""
        ...

    def burn(self, handle: str) -> None:
        ...

    def mint_fungible(self, asset: str, amount: Decimal) -> None:
        ...

    def burn_fungible(self, asset: str, amount: Decimal) -> None:
        ...

    def total_supply(self, asset: str) -> Decimal:
        ...


@runtime_checkable
class Clock(Protocol):
    def current_time(self) -> int:
        ...


@runtime_checkable
class AccessControl(Protocol):
    def is_governance(self, caller: str) -> bool:
        ...


# ============================================================================
# IN-MEMORY IMPLEMENTATIONS
# ============================================================================

class Vault:
    """
    Single-asset balance with deposit receipts.

    Example:
        vault = Vault("pool/CUSTODY")
        vault.deposit(Decimal("100"))   # 'pool/CUSTODY:deposit:000001'
        vault.withdraw(Decimal("40"))   # Decimal('40')
        vault.balance                   # Decimal('60')
    """

    def __init__(self, name: str, balance: Decimal = ZERO):
        self.name = name
        self._balance = balance
        self._deposits = 0

    @property
    def balance(self) -> Decimal:
        return self._balance

    def deposit(self, amount: Decimal) -> str:
        if amount < ZERO:
            raise InvalidParameter(f"Deposit amount must be non-negative, got {amount}")
        self._balance += amount
        self._deposits += 1
        return f"{self.name}:deposit:{self._deposits:06d}"

    def withdraw(self, amount: Decimal) -> Decimal:
        """
        Release amount from the vault.

        Raises:
            InvalidParameter: If amount is negative.
            InsufficientBalance: If amount exceeds the balance.
        """
        if amount < ZERO:
            raise InvalidParameter(f"Withdrawal amount must be non-negative, got {amount}")
        if amount > self._balance:
            raise InsufficientBalance(
                f"{self.name} holds {self._balance}, cannot withdraw {amount}"
            )
        self._balance -= amount
        return amount

    def take_all(self) -> Decimal:
        amount = self._balance
        self._balance = ZERO
        return amount

    def __repr__(self) -> str:
        return f"Vault({self.name}, balance={self._balance})"


class TokenRegistry:
    """
    Arena of position records plus fungible supplies.

    Minting a position inserts its record under a fresh handle
    "{kind}#{n}"; burning removes it. Handles are generated from a per-kind
    counter, so the same sequence of mints always yields the same handles.
    """

    def __init__(self):
        self._positions: Dict[str, Tuple[str, Any]] = {}
        self._counters: Dict[str, int] = {}
        self._supplies: Dict[str, Decimal] = {}

    # Positions

    def mint_position(self, kind: str, data: Any) -> str:
        count = self._counters.get(kind, 0) + 1
        self._counters[kind] = count
        handle = f"{kind}#{count}"
        self._positions[handle] = (kind, data)
        return handle

    def get_position(self, handle: str) -> Tuple[str, Any]:
        """
        Return (kind, data) for a live handle.

        Raises:
            ResourceMismatch: If the handle was never minted or has been burned.
        """
        try:
            return self._positions[handle]
        except KeyError:
            raise ResourceMismatch(f"Unknown position handle: {handle}") from None

    def burn(self, handle: str) -> None:
        if handle not in self._positions:
            raise ResourceMismatch(f"Unknown position handle: {handle}")
        del self._positions[handle]

    def live_handles(self, kind: Optional[str] = None) -> Set[str]:
        return {h for h, (k, _) in self._positions.items() if kind is None or k == kind}

    # Fungible claims

    def mint_fungible(self, asset: str, amount: Decimal) -> None:
        if amount < ZERO:
            raise InvalidParameter(f"Mint amount must be non-negative, got {amount}")
        self._supplies[asset] = self._supplies.get(asset, ZERO) + amount

    def burn_fungible(self, asset: str, amount: Decimal) -> None:
        if amount < ZERO:
            raise InvalidParameter(f"Burn amount must be non-negative, got {amount}")
        supply = self._supplies.get(asset, ZERO)
        if amount > supply:
            raise InsufficientBalance(f"Cannot burn {amount} {asset}; supply is {supply}")
        self._supplies[asset] = supply - amount

    def total_supply(self, asset: str) -> Decimal:
        return self._supplies.get(asset, ZERO)

    def __repr__(self) -> str:
        return f"TokenRegistry({len(self._positions)} positions, {len(self._supplies)} assets)"


class ManualClock:
    """Integer clock advanced explicitly. Time can only move forward."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise InvalidParameter(f"Clock cannot start before 0, got {start}")
        self._now = start

    def current_time(self) -> int:
        return self._now

    def advance_to(self, new_time: int) -> None:
        """
        Raises:
            ValueError: If new_time is before the current time.
        """
        if new_time < self._now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._now}")
        self._now = new_time

    def advance_by(self, seconds: int) -> None:
        self.advance_to(self._now + seconds)

    def __repr__(self) -> str:
        return f"ManualClock({self._now})"


class StaticAccessControl:
    """Fixed set of governance callers."""

    def __init__(self, governance: Iterable[str] = ()):
        self.governance: Set[str] = set(governance)

    def is_governance(self, caller: str) -> bool:
        return caller in self.governance
