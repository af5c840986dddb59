"""
Position ledger: per-account collateral, debt, stake and status.

Pending rewards are redistributed collateral/debt owed to a position but not yet
folded into it. They are held by the `DefaultPool` and moved to the
`ActivePool` when applied.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Tuple

from ..core.cdp.fees import BaseRateState
from ..core.cdp.interfaces import PositionLedgerInterface
from ..core.cdp.types import Position, PositionStatus
from .balances import Address
from .pools import ActivePool, DefaultPool


class PositionLedger(PositionLedgerInterface):
    def __init__(self, *, active_pool: ActivePool, default_pool: DefaultPool) -> None:
        self._active_pool = active_pool
        self._default_pool = default_pool
        self._positions: Dict[Address, Position] = {}
        self._owners: List[Address] = []
        self._pending: Dict[Address, Tuple[int, int]] = {}
        self._total_stakes = 0
        # Set by liquidation bookkeeping; zero means stake == collateral.
        self.total_stakes_snapshot = 0
        self.total_collateral_snapshot = 0
        self._base_rate = BaseRateState()

    # -- reads ---------------------------------------------------------------

    def _get(self, account: Address) -> Position:
        p = self._positions.get(account)
        if p is None:
            p = Position()
            self._positions[account] = p
        return p

    def get_position(self, account: Address) -> Position:
        """Copy of the stored record (a fresh default for unknown accounts)."""
        return replace(self._positions.get(account, Position()))

    def get_status(self, account: Address) -> PositionStatus:
        return self._positions.get(account, Position()).status

    def get_collateral(self, account: Address) -> int:
        return self._positions.get(account, Position()).coll

    def get_debt(self, account: Address) -> int:
        return self._positions.get(account, Position()).debt

    def get_stake(self, account: Address) -> int:
        return self._positions.get(account, Position()).stake

    def get_total_stakes(self) -> int:
        return self._total_stakes

    def get_owners(self) -> List[Address]:
        return list(self._owners)

    def get_pending_rewards(self, account: Address) -> Tuple[int, int]:
        """(pending_coll, pending_debt)."""
        return self._pending.get(account, (0, 0))

    def has_pending_rewards(self, account: Address) -> bool:
        return self.get_pending_rewards(account) != (0, 0)

    def get_entire_debt_and_coll(self, account: Address) -> Tuple[int, int, int, int]:
        pending_coll, pending_debt = self.get_pending_rewards(account)
        return (
            self.get_debt(account) + pending_debt,
            self.get_collateral(account) + pending_coll,
            pending_debt,
            pending_coll,
        )

    # -- collateral / debt ---------------------------------------------------

    def increase_collateral(self, account: Address, amount: int) -> int:
        p = self._get(account)
        p.coll += amount
        return p.coll

    def decrease_collateral(self, account: Address, amount: int) -> int:
        p = self._get(account)
        if amount > p.coll:
            raise ValueError(f"collateral underflow for {account}: {amount} > {p.coll}")
        p.coll -= amount
        return p.coll

    def increase_debt(self, account: Address, amount: int) -> int:
        p = self._get(account)
        p.debt += amount
        return p.debt

    def decrease_debt(self, account: Address, amount: int) -> int:
        p = self._get(account)
        if amount > p.debt:
            raise ValueError(f"debt underflow for {account}: {amount} > {p.debt}")
        p.debt -= amount
        return p.debt

    def set_status(self, account: Address, status: PositionStatus) -> None:
        self._get(account).status = status

    # -- stakes --------------------------------------------------------------

    def _compute_new_stake(self, coll: int) -> int:
        if self.total_collateral_snapshot == 0:
            return coll
        return coll * self.total_stakes_snapshot // self.total_collateral_snapshot

    def update_stake(self, account: Address) -> int:
        p = self._get(account)
        new_stake = self._compute_new_stake(p.coll)
        self._total_stakes += new_stake - p.stake
        p.stake = new_stake
        return new_stake

    def remove_stake(self, account: Address) -> None:
        p = self._get(account)
        self._total_stakes -= p.stake
        p.stake = 0

    # -- pending rewards -----------------------------------------------------

    def record_pending_rewards(self, account: Address, coll: int, debt: int) -> None:
        """Credit redistributed value to an account; the default pool must already hold `coll`."""
        self._default_pool.receive_redistribution(coll, debt)
        prev_coll, prev_debt = self.get_pending_rewards(account)
        self._pending[account] = (prev_coll + coll, prev_debt + debt)

    def apply_pending_rewards(self, account: Address) -> None:
        if self.get_status(account) is not PositionStatus.ACTIVE:
            return
        coll, debt = self._pending.pop(account, (0, 0))
        if coll == 0 and debt == 0:
            return
        p = self._get(account)
        p.coll += coll
        p.debt += debt
        self._default_pool.send_to_active_pool(self._active_pool, coll, debt)

    def update_reward_snapshots(self, account: Address) -> None:
        self._pending.pop(account, None)

    # -- lifecycle -----------------------------------------------------------

    def add_owner(self, account: Address) -> int:
        self._owners.append(account)
        index = len(self._owners) - 1
        self._get(account).array_index = index
        return index

    def close_position(self, account: Address, status: PositionStatus = PositionStatus.CLOSED_BY_OWNER) -> None:
        if status is PositionStatus.ACTIVE or status is PositionStatus.NONEXISTENT:
            raise ValueError(f"invalid closing status: {status.value}")
        p = self._get(account)
        p.status = status
        p.coll = 0
        p.debt = 0
        self._pending.pop(account, None)
        self._remove_owner(account, p.array_index)

    def _remove_owner(self, account: Address, index: int) -> None:
        if index >= len(self._owners) or self._owners[index] != account:
            raise ValueError(f"owner index mismatch for {account}")
        last = self._owners.pop()
        if last != account:
            self._owners[index] = last
            self._positions[last].array_index = index

    # -- fee engine state ----------------------------------------------------

    def get_base_rate_state(self) -> BaseRateState:
        return self._base_rate

    def set_base_rate_state(self, state: BaseRateState) -> None:
        self._base_rate = state

    # -- rollback ------------------------------------------------------------

    def snapshot(self) -> tuple:
        return (
            {k: replace(v) for k, v in self._positions.items()},
            list(self._owners),
            dict(self._pending),
            self._total_stakes,
            self.total_stakes_snapshot,
            self.total_collateral_snapshot,
            self._base_rate,
        )

    def restore(self, snap: tuple) -> None:
        (
            positions,
            owners,
            pending,
            self._total_stakes,
            self.total_stakes_snapshot,
            self.total_collateral_snapshot,
            self._base_rate,
        ) = snap
        self._positions = {k: replace(v) for k, v in positions.items()}
        self._owners = list(owners)
        self._pending = dict(pending)
