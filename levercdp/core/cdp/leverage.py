"""Leveraged position orchestrator.

One leveraged adjustment is a synchronous call chain:

    adjust_leverage -> debt_token.flash_loan -> on_flash_loan
        -> swap (increase) -> borrower_operations.adjust_position_for
        -> forward principal -> swap back + forward leftover (decrease)
    <- flash loan burns `amount` and collects `fee` from this orchestrator

The orchestrator keeps a single in-flight loan ticket. The callback accepts
exactly one invocation per ticket and only from the debt token it borrowed
from, with itself as the initiator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .borrower_operations import BorrowerOperations
from .effects import EventLog, leverage_adjusted
from .errors import CdpSecurityError, CdpValidationError
from .guards import require_amount, require_non_zero_debt_change, require_sufficient_balance
from .interfaces import FLASH_CALLBACK_SUCCESS, DebtTokenInterface, FlashBorrower, SwapVenue, TokenInterface
from .params import ProtocolParams
from .types import Address, AdjustmentRequest, LeverageOutcome, LeverageRequest, LoanPayload

logger = logging.getLogger(__name__)


def reconcile_collateral_change(
    principal: int,
    is_principal_increase: bool,
    leveraged: int,
    is_debt_increase: bool,
) -> Tuple[int, bool]:
    """Net (magnitude, is_increase) of a principal and a leveraged collateral change.

    Equal magnitudes in opposite directions net to (0, False).
    """
    if is_principal_increase == is_debt_increase:
        return principal + leveraged, is_debt_increase
    if is_debt_increase:
        # principal removed, leverage adds
        if leveraged > principal:
            return leveraged - principal, True
        return principal - leveraged, False
    # principal added, leverage removes
    if principal > leveraged:
        return principal - leveraged, True
    return leveraged - principal, False


@dataclass
class _LoanTicket:
    payload: LoanPayload
    consumed: bool = False
    outcome: Optional[LeverageOutcome] = None


class LeverageOrchestrator(FlashBorrower):
    def __init__(
        self,
        *,
        address: Address,
        borrower_operations: BorrowerOperations,
        debt_token: DebtTokenInterface,
        collateral_token: TokenInterface,
        swap_venue: SwapVenue,
        events: EventLog,
        params: ProtocolParams,
    ) -> None:
        self.address = address
        self._ops = borrower_operations
        self._debt_token = debt_token
        self._coll_token = collateral_token
        self._venue = swap_venue
        self._events = events
        self.params = params
        self._ticket: Optional[_LoanTicket] = None

    @property
    def loan_in_flight(self) -> bool:
        return self._ticket is not None

    def adjust_leverage(self, caller: Address, req: LeverageRequest) -> LeverageOutcome:
        require_amount("debt_change", req.debt_change)
        require_amount("principal_coll_change", req.principal_coll_change)
        require_amount("swap_guard_amount", req.swap_guard_amount)
        require_non_zero_debt_change(req.debt_change)
        if not req.is_debt_increase and req.swap_guard_amount == 0:
            raise CdpValidationError("invalid_swap_guard", "leverage decrease needs the collateral amount to swap back")
        if self._ticket is not None:
            raise CdpSecurityError("reentrant_call", "a flash loan is already in flight")

        if req.is_principal_coll_increase and req.principal_coll_change > 0:
            require_sufficient_balance(
                self._coll_token.balance_of(caller), req.principal_coll_change, asset=self._coll_token.asset
            )
            self._coll_token.transfer(caller, self.address, req.principal_coll_change)

        payload = LoanPayload(
            caller=caller,
            principal_coll_change=req.principal_coll_change,
            is_principal_coll_increase=req.is_principal_coll_increase,
            is_debt_increase=req.is_debt_increase,
            swap_payload=req.swap_payload,
            swap_guard_amount=req.swap_guard_amount,
            max_fee_percentage=req.max_fee_percentage,
            upper_hint=req.upper_hint,
            lower_hint=req.lower_hint,
        )
        ticket = _LoanTicket(payload)
        self._ticket = ticket
        try:
            self._debt_token.flash_loan(self.address, self, self._debt_token.asset, req.debt_change, payload)
        finally:
            self._ticket = None

        outcome = ticket.outcome
        if outcome is None:
            raise CdpSecurityError("flash_callback_failed", "loan returned without running the callback")
        adj = outcome.adjustment
        self._events.emit(
            leverage_adjusted(caller, adj.new_debt if adj else 0, adj.new_coll if adj else 0, outcome.loan_fee)
        )
        logger.info(
            "leverage %s %s loan=%d net_coll=%s%d forwarded=%d absorbed=%d",
            "up" if req.is_debt_increase else "down",
            caller,
            outcome.loan_amount,
            "+" if outcome.is_net_coll_increase else "-",
            outcome.net_coll_change,
            outcome.leftover_forwarded,
            outcome.leftover_absorbed,
        )
        return outcome

    def on_flash_loan(
        self,
        *,
        sender: Address,
        initiator: Address,
        token: str,
        amount: int,
        fee: int,
        payload: LoanPayload,
    ) -> str:
        if sender != self._debt_token.address:
            raise CdpSecurityError("untrusted_lender", sender)
        if initiator != self.address:
            raise CdpSecurityError("untrusted_initiator", initiator)
        ticket = self._ticket
        if ticket is None or ticket.consumed or payload is not ticket.payload:
            raise CdpSecurityError("unexpected_flash_loan", "no matching loan in flight")
        ticket.consumed = True

        debt_asset = self._debt_token.asset
        coll_asset = self._coll_token.asset

        if payload.is_debt_increase:
            leveraged = self._venue.swap(
                self.address, debt_asset, coll_asset, amount, payload.swap_guard_amount, payload.swap_payload
            )
        else:
            leveraged = payload.swap_guard_amount

        net, is_net_increase = reconcile_collateral_change(
            payload.principal_coll_change,
            payload.is_principal_coll_increase,
            leveraged,
            payload.is_debt_increase,
        )

        # Increase: the engine mints the loan repayment to us. Decrease: it burns `amount` from us.
        engine_debt_change = amount + fee if payload.is_debt_increase else amount
        adjustment = self._ops.adjust_position_for(
            self.address,
            payload.caller,
            AdjustmentRequest(
                coll_deposit=net if is_net_increase else 0,
                coll_withdrawal=0 if is_net_increase else net,
                debt_change=engine_debt_change,
                is_debt_increase=payload.is_debt_increase,
                max_fee_percentage=payload.max_fee_percentage,
                upper_hint=payload.upper_hint,
                lower_hint=payload.lower_hint,
            ),
        )

        if not payload.is_principal_coll_increase and payload.principal_coll_change > 0:
            self._coll_token.transfer(self.address, payload.caller, payload.principal_coll_change)

        forwarded = absorbed = 0
        if not payload.is_debt_increase:
            repay = amount + fee
            amount_out = self._venue.swap(
                self.address, coll_asset, debt_asset, leveraged, repay, payload.swap_payload
            )
            leftover = amount_out - repay
            if leftover > self.params.max_leftover:
                self._debt_token.transfer(self.address, payload.caller, leftover)
                forwarded = leftover
            else:
                absorbed = leftover

        ticket.outcome = LeverageOutcome(
            account=payload.caller,
            is_debt_increase=payload.is_debt_increase,
            loan_amount=amount,
            loan_fee=fee,
            leveraged_coll_change=leveraged,
            net_coll_change=net,
            is_net_coll_increase=is_net_increase,
            leftover_forwarded=forwarded,
            leftover_absorbed=absorbed,
            adjustment=adjustment,
        )
        return FLASH_CALLBACK_SUCCESS
