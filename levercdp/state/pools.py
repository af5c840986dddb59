"""
Pool accounting for collateral and debt backing positions.

- `ActivePool` holds the collateral of active positions and tracks their total
  debt liability.
- `DefaultPool` holds redistributed collateral/debt that has not yet been
  applied to individual positions.
- `GasPool` is the account holding the gas-compensation reserve of every open
  position.

Collateral is held as real token balances; `coll` mirrors the pool's own view so
that unsolicited transfers into the pool address do not change accounting.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.cdp.interfaces import CollateralPool, TokenInterface
from .balances import Address


class ActivePool(CollateralPool):
    def __init__(self, *, address: Address, collateral_token: TokenInterface) -> None:
        self.address = address
        self._coll_token = collateral_token
        self._coll = 0
        self._debt = 0

    def get_collateral(self) -> int:
        return self._coll

    def get_debt(self) -> int:
        return self._debt

    def deposit_collateral(self, account: Address, amount: int) -> None:
        """Pull `amount` of collateral from `account` into the pool."""
        if amount < 0:
            raise ValueError(f"amount must be non-negative: {amount}")
        self._coll_token.transfer(account, self.address, amount)
        self._coll += amount

    def withdraw_collateral(self, account: Address, amount: int) -> None:
        """Send `amount` of collateral from the pool to `account`."""
        if amount < 0:
            raise ValueError(f"amount must be non-negative: {amount}")
        if amount > self._coll:
            raise ValueError(f"Insufficient pool collateral: {amount} > {self._coll}")
        self._coll -= amount
        self._coll_token.transfer(self.address, account, amount)

    def receive_collateral(self, amount: int) -> None:
        """Account for collateral already transferred in by another pool."""
        if amount < 0:
            raise ValueError(f"amount must be non-negative: {amount}")
        self._coll += amount

    def increase_debt_liability(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount must be non-negative: {amount}")
        self._debt += amount

    def decrease_debt_liability(self, amount: int) -> None:
        if amount < 0 or amount > self._debt:
            raise ValueError(f"invalid debt decrease {amount} (pool debt {self._debt})")
        self._debt -= amount

    def snapshot(self) -> tuple[int, int]:
        return self._coll, self._debt

    def restore(self, snap: tuple[int, int]) -> None:
        self._coll, self._debt = snap

    def __repr__(self) -> str:
        return f"ActivePool(coll={self._coll}, debt={self._debt})"


class DefaultPool:
    def __init__(self, *, address: Address, collateral_token: TokenInterface) -> None:
        self.address = address
        self._coll_token = collateral_token
        self._coll = 0
        self._debt = 0

    def get_collateral(self) -> int:
        return self._coll

    def get_debt(self) -> int:
        return self._debt

    def receive_redistribution(self, coll: int, debt: int) -> None:
        """Account for redistributed collateral (already held by this pool) and debt."""
        if coll < 0 or debt < 0:
            raise ValueError("redistribution amounts must be non-negative")
        if self._coll_token.balance_of(self.address) < self._coll + coll:
            raise ValueError("default pool does not hold the redistributed collateral")
        self._coll += coll
        self._debt += debt

    def send_to_active_pool(self, active_pool: ActivePool, coll: int, debt: int) -> None:
        if coll > self._coll or debt > self._debt:
            raise ValueError(
                f"default pool cannot release coll={coll} debt={debt} (holds {self._coll}, {self._debt})"
            )
        self._coll -= coll
        self._debt -= debt
        self._coll_token.transfer(self.address, active_pool.address, coll)
        active_pool.receive_collateral(coll)
        active_pool.increase_debt_liability(debt)

    def snapshot(self) -> tuple[int, int]:
        return self._coll, self._debt

    def restore(self, snap: tuple[int, int]) -> None:
        self._coll, self._debt = snap


@dataclass(frozen=True)
class GasPool:
    address: Address
