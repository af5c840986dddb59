"""Data types for the CDP engine.

Requests and outcomes are frozen dataclasses. Amounts are unsigned ints with a
separate direction flag, matching how the borrower operations are invoked.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Any

Address = str


@unique
class PositionStatus(Enum):
    NONEXISTENT = "nonexistent"
    ACTIVE = "active"
    CLOSED_BY_OWNER = "closed_by_owner"
    CLOSED_BY_LIQUIDATION = "closed_by_liquidation"


@unique
class Operation(Enum):
    """Borrower operation kind reported in position-updated observations."""
    OPEN_POSITION = "open_position"
    CLOSE_POSITION = "close_position"
    ADJUST_POSITION = "adjust_position"


@unique
class Event(Enum):
    POSITION_CREATED = "PositionCreated"
    POSITION_UPDATED = "PositionUpdated"
    BORROWING_FEE_PAID = "BorrowingFeePaid"
    LEVERAGE_ADJUSTED = "LeverageAdjusted"


@dataclass
class Position:
    """Ledger record for one account. Mutable; owned by the position ledger."""

    coll: int = 0
    debt: int = 0
    stake: int = 0
    status: PositionStatus = PositionStatus.NONEXISTENT
    array_index: int = 0


@dataclass(frozen=True)
class AdjustmentRequest:
    """One combined collateral/debt change. Unused fields default to 0/False."""

    coll_deposit: int = 0
    coll_withdrawal: int = 0
    debt_change: int = 0
    is_debt_increase: bool = False
    max_fee_percentage: int = 0
    upper_hint: Address | None = None
    lower_hint: Address | None = None

    @property
    def coll_change(self) -> tuple[int, bool]:
        """(magnitude, is_increase) of the collateral change."""
        if self.coll_deposit != 0:
            return self.coll_deposit, True
        return self.coll_withdrawal, False


@dataclass(frozen=True)
class AdjustmentOutcome:
    """Post-state summary returned by every borrower operation."""

    account: Address
    operation: Operation
    old_coll: int
    old_debt: int
    new_coll: int
    new_debt: int
    stake: int
    fee: int = 0
    old_icr: int = 0
    new_icr: int = 0
    new_nicr: int = 0


@dataclass(frozen=True)
class LeverageRequest:
    """Parameters for one leveraged adjustment.

    `swap_guard_amount` is a minimum output (leverage increase) or the exact
    collateral to withdraw and swap back (leverage decrease).
    """

    debt_change: int
    is_debt_increase: bool
    principal_coll_change: int = 0
    is_principal_coll_increase: bool = False
    swap_guard_amount: int = 0
    swap_payload: Any = None
    max_fee_percentage: int = 0
    upper_hint: Address | None = None
    lower_hint: Address | None = None


@dataclass(frozen=True)
class LoanPayload:
    """Carried through the flash loan to the orchestrator's callback."""

    caller: Address
    principal_coll_change: int
    is_principal_coll_increase: bool
    is_debt_increase: bool
    swap_payload: Any
    swap_guard_amount: int
    max_fee_percentage: int
    upper_hint: Address | None = None
    lower_hint: Address | None = None


@dataclass(frozen=True)
class LeverageOutcome:
    account: Address
    is_debt_increase: bool
    loan_amount: int
    loan_fee: int
    leveraged_coll_change: int
    net_coll_change: int
    is_net_coll_increase: bool
    leftover_forwarded: int = 0
    leftover_absorbed: int = 0
    adjustment: AdjustmentOutcome | None = None
