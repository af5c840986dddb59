"""Observations emitted by borrower operations and the leverage orchestrator.

Observations are not core state; they are the externally visible record of a
successful operation. They are appended to an `EventLog`, which participates in
transaction rollback like every other mutable collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .types import Address, Event, Operation


@dataclass(frozen=True)
class Observation:
    """One emitted event. Fields not relevant to ``event`` stay at their defaults."""

    event: Event
    account: Address
    index: int = 0
    debt: int = 0
    coll: int = 0
    stake: int = 0
    operation: Operation | None = None
    fee: int = 0


def position_created(account: Address, index: int) -> Observation:
    return Observation(event=Event.POSITION_CREATED, account=account, index=index)


def position_updated(account: Address, debt: int, coll: int, stake: int, operation: Operation) -> Observation:
    return Observation(
        event=Event.POSITION_UPDATED,
        account=account,
        debt=debt,
        coll=coll,
        stake=stake,
        operation=operation,
    )


def borrowing_fee_paid(account: Address, fee: int) -> Observation:
    return Observation(event=Event.BORROWING_FEE_PAID, account=account, fee=fee)


def leverage_adjusted(account: Address, debt: int, coll: int, fee: int) -> Observation:
    return Observation(event=Event.LEVERAGE_ADJUSTED, account=account, debt=debt, coll=coll, fee=fee)


class EventLog:
    """Append-only observation sink."""

    def __init__(self) -> None:
        self._entries: list[Observation] = []

    def emit(self, obs: Observation) -> None:
        self._entries.append(obs)

    def entries(self, event: Event | None = None) -> list[Observation]:
        if event is None:
            return list(self._entries)
        return [e for e in self._entries if e.event == event]

    def __iter__(self) -> Iterator[Observation]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> int:
        return len(self._entries)

    def restore(self, snap: int) -> None:
        del self._entries[snap:]
