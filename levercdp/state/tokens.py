"""
Token views over a shared `BalanceTable`.

`Token` models a plain transferable asset (the collateral). `DebtToken` adds the
mint/burn ledger used by borrower operations and an ERC-3156 style flash loan:
the borrowed amount is minted to the receiver, the receiver's callback runs
synchronously, then `amount` is burned and `fee` moved to the fee recipient.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.cdp.errors import CdpInvariantError, CdpSecurityError, CdpValidationError
from ..core.cdp.interfaces import FLASH_CALLBACK_SUCCESS, DebtTokenInterface, FlashBorrower, TokenInterface
from ..core.cdp.params import BPS_DENOM
from .balances import Address, AssetId, BalanceTable

logger = logging.getLogger(__name__)

MAX_SUPPLY = 2**256 - 1


class Token(TokenInterface):
    def __init__(self, balances: BalanceTable, *, address: Address, asset: AssetId) -> None:
        self._balances = balances
        self.address = address
        self.asset = asset

    def balance_of(self, account: Address) -> int:
        return self._balances.get(account, self.asset)

    def total_supply(self) -> int:
        return self._balances.total_for_asset(self.asset)

    def transfer(self, sender: Address, recipient: Address, amount: int) -> None:
        if recipient == self.address:
            raise ValueError("cannot transfer to the token address")
        self._balances.move(sender, recipient, self.asset, amount)

    def credit(self, account: Address, amount: int) -> None:
        """Faucet for deployments and tests."""
        self._balances.add(account, self.asset, amount)

    def __repr__(self) -> str:
        return f"Token(asset={self.asset!r}, supply={self.total_supply()})"


class DebtToken(Token, DebtTokenInterface):
    def __init__(
        self,
        balances: BalanceTable,
        *,
        address: Address,
        asset: AssetId,
        flash_fee_bps: int = 0,
        flash_fee_recipient: Address | None = None,
    ) -> None:
        super().__init__(balances, address=address, asset=asset)
        if not (0 <= flash_fee_bps <= BPS_DENOM):
            raise ValueError(f"flash_fee_bps must be in [0, {BPS_DENOM}]: {flash_fee_bps}")
        self.flash_fee_bps = flash_fee_bps
        self.flash_fee_recipient = flash_fee_recipient or address + ":flash-fees"

    def mint(self, account: Address, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"mint amount must be non-negative: {amount}")
        self._balances.add(account, self.asset, amount)

    def burn(self, account: Address, amount: int) -> None:
        self._balances.subtract(account, self.asset, amount)

    def max_flash_loan(self, token: AssetId) -> int:
        if token != self.asset:
            return 0
        return MAX_SUPPLY - self.total_supply()

    def flash_fee(self, token: AssetId, amount: int) -> int:
        if token != self.asset:
            raise CdpValidationError("unsupported_flash_token", str(token))
        return amount * self.flash_fee_bps // BPS_DENOM

    def flash_loan(self, caller: Address, receiver: FlashBorrower, token: AssetId, amount: int, payload: Any) -> bool:
        if token != self.asset:
            raise CdpValidationError("unsupported_flash_token", str(token))
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise CdpValidationError("invalid_amount", f"flash loan amount must be positive: {amount}")
        if amount > self.max_flash_loan(token):
            raise CdpValidationError("flash_loan_too_large", str(amount))

        fee = self.flash_fee(token, amount)
        logger.debug("flash loan %s -> %s amount=%d fee=%d", caller, receiver.address, amount, fee)
        self.mint(receiver.address, amount)

        ack = receiver.on_flash_loan(
            sender=self.address,
            initiator=caller,
            token=token,
            amount=amount,
            fee=fee,
            payload=payload,
        )
        if ack != FLASH_CALLBACK_SUCCESS:
            raise CdpSecurityError("flash_callback_failed", f"unexpected acknowledgement {ack!r}")

        balance = self.balance_of(receiver.address)
        if balance < amount + fee:
            raise CdpInvariantError("insufficient_repayment", f"{balance} < {amount + fee}")
        self.burn(receiver.address, amount)
        if fee:
            self.transfer(receiver.address, self.flash_fee_recipient, fee)
        return True
