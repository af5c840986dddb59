"""
Positions ordered by nominal collateral ratio (NICR), highest first.

Hints are best-effort: when (hint_high, hint_low) bracket a valid slot the
insert uses it directly, otherwise it falls back to a binary search. Results do
not depend on the hints.
"""

from __future__ import annotations

from bisect import bisect_right
from typing import Dict, List, Optional, Tuple

from ..core.cdp.interfaces import OrderingStructure
from .balances import Address


class SortedPositions(OrderingStructure):
    def __init__(self, max_size: Optional[int] = None) -> None:
        if max_size is not None and max_size <= 0:
            raise ValueError(f"max_size must be positive: {max_size}")
        self.max_size = max_size
        # Parallel lists; `_keys` holds -nicr so the list is ascending for bisect.
        self._keys: List[int] = []
        self._accounts: List[Address] = []
        self._nicr: Dict[Address, int] = {}

    def size(self) -> int:
        return len(self._accounts)

    def is_empty(self) -> bool:
        return not self._accounts

    def contains(self, account: Address) -> bool:
        return account in self._nicr

    def get_nicr(self, account: Address) -> int:
        if account not in self._nicr:
            raise ValueError(f"unknown account: {account}")
        return self._nicr[account]

    def get_first(self) -> Optional[Address]:
        return self._accounts[0] if self._accounts else None

    def get_last(self) -> Optional[Address]:
        return self._accounts[-1] if self._accounts else None

    def accounts(self) -> List[Address]:
        return list(self._accounts)

    def valid_insert_position(self, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> bool:
        """True when inserting between `hint_high` and `hint_low` keeps the order."""
        if hint_high is None and hint_low is None:
            return self.is_empty()
        if any(h is not None and h not in self._nicr for h in (hint_high, hint_low)):
            return False
        if hint_high is None:
            return hint_low == self.get_first() and nicr >= self._nicr[hint_low]
        if hint_low is None:
            return hint_high == self.get_last() and nicr <= self._nicr[hint_high]
        hi = self._accounts.index(hint_high)
        return (
            hi + 1 < len(self._accounts)
            and self._accounts[hi + 1] == hint_low
            and self._nicr[hint_high] >= nicr >= self._nicr[hint_low]
        )

    def find_insert_position(
        self,
        nicr: int,
        hint_high: Optional[Address] = None,
        hint_low: Optional[Address] = None,
    ) -> Tuple[Optional[Address], Optional[Address]]:
        """(high neighbour, low neighbour) for a new entry with `nicr`."""
        idx = self._slot(nicr, hint_high, hint_low)
        high = self._accounts[idx - 1] if idx > 0 else None
        low = self._accounts[idx] if idx < len(self._accounts) else None
        return high, low

    def _slot(self, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> int:
        if self.valid_insert_position(nicr, hint_high, hint_low):
            if hint_low is not None:
                return self._accounts.index(hint_low)
            return len(self._accounts)
        return bisect_right(self._keys, -nicr)

    def insert(self, account: Address, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> None:
        if self.contains(account):
            raise ValueError(f"list already contains {account}")
        if nicr <= 0:
            raise ValueError(f"nicr must be positive: {nicr}")
        if self.max_size is not None and self.size() >= self.max_size:
            raise ValueError("list is full")
        idx = self._slot(nicr, hint_high, hint_low)
        self._keys.insert(idx, -nicr)
        self._accounts.insert(idx, account)
        self._nicr[account] = nicr

    def remove(self, account: Address) -> None:
        if not self.contains(account):
            raise ValueError(f"list does not contain {account}")
        idx = self._accounts.index(account)
        del self._keys[idx]
        del self._accounts[idx]
        del self._nicr[account]

    def re_insert(self, account: Address, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> None:
        if not self.contains(account):
            raise ValueError(f"list does not contain {account}")
        if nicr <= 0:
            raise ValueError(f"nicr must be positive: {nicr}")
        self.remove(account)
        self.insert(account, nicr, hint_high, hint_low)

    def snapshot(self) -> tuple:
        return list(self._keys), list(self._accounts), dict(self._nicr)

    def restore(self, snap: tuple) -> None:
        keys, accounts, nicr = snap
        self._keys = list(keys)
        self._accounts = list(accounts)
        self._nicr = dict(nicr)
