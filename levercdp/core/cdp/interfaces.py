"""
Collaborator interfaces consumed by the borrower operations and the leverage
orchestrator.

These are plain base classes: implementations override every method. The
in-memory implementations under `levercdp/state/` and
`levercdp/integration/swap_venue.py` are the reference ones.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from .fees import BaseRateState
from .types import Address, PositionStatus

# Value a flash borrower must return from `on_flash_loan` to acknowledge the loan.
FLASH_CALLBACK_SUCCESS = "FlashBorrower.onFlashLoan"


class PriceOracle:
    """Source of the collateral price (debt-token per collateral, 18 decimals)."""

    def fetch_price(self) -> int:
        raise NotImplementedError


class OrderingStructure:
    """Positions ranked by nominal collateral ratio (descending)."""

    def insert(self, account: Address, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> None:
        raise NotImplementedError

    def re_insert(self, account: Address, nicr: int, hint_high: Optional[Address], hint_low: Optional[Address]) -> None:
        raise NotImplementedError

    def remove(self, account: Address) -> None:
        raise NotImplementedError

    def contains(self, account: Address) -> bool:
        raise NotImplementedError


class PositionLedgerInterface:
    def get_status(self, account: Address) -> PositionStatus:
        raise NotImplementedError

    def get_collateral(self, account: Address) -> int:
        raise NotImplementedError

    def get_debt(self, account: Address) -> int:
        raise NotImplementedError

    def get_stake(self, account: Address) -> int:
        raise NotImplementedError

    def increase_collateral(self, account: Address, amount: int) -> int:
        raise NotImplementedError

    def decrease_collateral(self, account: Address, amount: int) -> int:
        raise NotImplementedError

    def increase_debt(self, account: Address, amount: int) -> int:
        raise NotImplementedError

    def decrease_debt(self, account: Address, amount: int) -> int:
        raise NotImplementedError

    def set_status(self, account: Address, status: PositionStatus) -> None:
        raise NotImplementedError

    def update_stake(self, account: Address) -> int:
        raise NotImplementedError

    def remove_stake(self, account: Address) -> None:
        raise NotImplementedError

    def apply_pending_rewards(self, account: Address) -> None:
        raise NotImplementedError

    def update_reward_snapshots(self, account: Address) -> None:
        raise NotImplementedError

    def add_owner(self, account: Address) -> int:
        raise NotImplementedError

    def close_position(self, account: Address) -> None:
        raise NotImplementedError

    def get_entire_debt_and_coll(self, account: Address) -> Tuple[int, int, int, int]:
        """(debt, coll, pending_debt_reward, pending_coll_reward)."""
        raise NotImplementedError

    def get_base_rate_state(self) -> BaseRateState:
        raise NotImplementedError

    def set_base_rate_state(self, state: BaseRateState) -> None:
        raise NotImplementedError


class TokenInterface:
    address: Address
    asset: str

    def balance_of(self, account: Address) -> int:
        raise NotImplementedError

    def transfer(self, sender: Address, recipient: Address, amount: int) -> None:
        raise NotImplementedError


class DebtTokenInterface(TokenInterface):
    def mint(self, account: Address, amount: int) -> None:
        raise NotImplementedError

    def burn(self, account: Address, amount: int) -> None:
        raise NotImplementedError

    def flash_fee(self, token: str, amount: int) -> int:
        raise NotImplementedError

    def flash_loan(self, caller: Address, receiver: "FlashBorrower", token: str, amount: int, payload: Any) -> bool:
        raise NotImplementedError


class FlashBorrower:
    address: Address

    def on_flash_loan(
        self,
        *,
        sender: Address,
        initiator: Address,
        token: str,
        amount: int,
        fee: int,
        payload: Any,
    ) -> str:
        raise NotImplementedError


class SwapVenue:
    def swap(
        self,
        caller: Address,
        token_in: str,
        token_out: str,
        amount_in: int,
        guard_amount: int,
        payload: Any = None,
    ) -> int:
        raise NotImplementedError


class CollateralPool:
    """Aggregate collateral and debt liability backing active positions."""

    address: Address

    def deposit_collateral(self, account: Address, amount: int) -> None:
        raise NotImplementedError

    def withdraw_collateral(self, account: Address, amount: int) -> None:
        raise NotImplementedError

    def increase_debt_liability(self, amount: int) -> None:
        raise NotImplementedError

    def decrease_debt_liability(self, amount: int) -> None:
        raise NotImplementedError

    def get_collateral(self) -> int:
        raise NotImplementedError

    def get_debt(self) -> int:
        raise NotImplementedError
