"""Post-state invariant checkers.

Each function returns True when the invariant holds; `check_position()` returns
the list of violated invariant ids (empty = all pass). Guards should make every
violation unreachable, so the engine treats a non-empty list as an accounting
defect.
"""

from __future__ import annotations

from typing import Callable

from .math import compute_cr
from .params import ProtocolParams
from .types import Position, PositionStatus


def inv_non_negative(p: Position, price: int, params: ProtocolParams) -> bool:
    return p.coll >= 0 and p.debt >= 0 and p.stake >= 0


def inv_min_debt_when_active(p: Position, price: int, params: ProtocolParams) -> bool:
    if p.status is not PositionStatus.ACTIVE:
        return True
    return p.debt >= params.min_net_debt + params.gas_compensation


def inv_icr_above_mcr_when_active(p: Position, price: int, params: ProtocolParams) -> bool:
    if p.status is not PositionStatus.ACTIVE:
        return True
    return compute_cr(p.coll, p.debt, price) >= params.mcr


def inv_zeroed_when_closed(p: Position, price: int, params: ProtocolParams) -> bool:
    if p.status is PositionStatus.ACTIVE:
        return True
    return p.coll == 0 and p.debt == 0 and p.stake == 0


_INVARIANTS: dict[str, Callable[[Position, int, ProtocolParams], bool]] = {
    "non_negative": inv_non_negative,
    "min_debt_when_active": inv_min_debt_when_active,
    "icr_above_mcr_when_active": inv_icr_above_mcr_when_active,
    "zeroed_when_closed": inv_zeroed_when_closed,
}


def check_position(p: Position, price: int, params: ProtocolParams) -> list[str]:
    """Return the ids of all violated invariants."""
    return [name for name, fn in _INVARIANTS.items() if not fn(p, price, params)]
