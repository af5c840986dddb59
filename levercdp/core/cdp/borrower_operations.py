"""Position adjustment engine: open, adjust and close positions.

Every operation follows the same shape:

1. Validate the request shape and the position status (guards).
2. Fold pending rewards into the position, fetch the price.
3. Charge the borrowing fee on debt increases (fee engine).
4. Check the economic invariants on the resulting (coll, debt).
5. Apply the deltas to the ledger, re-rank, emit observations.
6. Move the real tokens between the payer and the pools.
7. Re-check the post-state invariants.

Failures raise a typed ``CdpError``. The engine performs no rollback itself:
callers run operations through ``integration.transaction.AtomicExecutor``,
which restores every collaborator when an operation raises.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from .effects import EventLog, borrowing_fee_paid, position_created, position_updated
from .errors import CdpAccountingError, CdpSecurityError
from .fees import require_valid_max_fee_percentage, trigger_borrowing_fee
from .guards import (
    require_amount,
    require_at_least_min_net_debt,
    require_icr_above_mcr,
    require_non_zero_adjustment,
    require_non_zero_debt_change,
    require_position_active,
    require_position_not_active,
    require_singular_coll_change,
    require_sufficient_balance,
    require_valid_repayment,
)
from .interfaces import (
    CollateralPool,
    DebtTokenInterface,
    OrderingStructure,
    PositionLedgerInterface,
    PriceOracle,
    TokenInterface,
)
from .invariants import check_position
from .math import compute_cr, compute_nominal_cr, new_coll_and_debt
from .params import ProtocolParams
from .types import Address, AdjustmentOutcome, AdjustmentRequest, Operation, Position, PositionStatus

logger = logging.getLogger(__name__)


class BorrowerOperations:
    def __init__(
        self,
        *,
        params: ProtocolParams,
        ledger: PositionLedgerInterface,
        sorted_positions: OrderingStructure,
        active_pool: CollateralPool,
        gas_pool_address: Address,
        debt_token: DebtTokenInterface,
        collateral_token: TokenInterface,
        price_feed: PriceOracle,
        events: EventLog,
        fee_recipient: Address,
        clock: Callable[[], int],
    ) -> None:
        self.params = params
        self._ledger = ledger
        self._sorted = sorted_positions
        self._active_pool = active_pool
        self._gas_pool = gas_pool_address
        self._debt_token = debt_token
        self._coll_token = collateral_token
        self._price_feed = price_feed
        self._events = events
        self.fee_recipient = fee_recipient
        self._clock = clock
        self._operators: set[Address] = set()
        self._entered = False

    # -- operators -----------------------------------------------------------

    def authorize_operator(self, operator: Address) -> None:
        """Allow `operator` to adjust positions on behalf of their owners."""
        self._operators.add(operator)

    def is_authorized_operator(self, operator: Address) -> bool:
        return operator in self._operators

    @contextmanager
    def _non_reentrant(self) -> Iterator[None]:
        if self._entered:
            raise CdpSecurityError("reentrant_call", "borrower operations already executing")
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    # -- open ----------------------------------------------------------------

    def open_position(
        self,
        caller: Address,
        coll_amount: int,
        debt_amount: int,
        max_fee_percentage: int,
        upper_hint: Address | None = None,
        lower_hint: Address | None = None,
    ) -> AdjustmentOutcome:
        with self._non_reentrant():
            return self._open(caller, coll_amount, debt_amount, max_fee_percentage, upper_hint, lower_hint)

    def _open(
        self,
        caller: Address,
        coll_amount: int,
        debt_amount: int,
        max_fee_percentage: int,
        upper_hint: Address | None,
        lower_hint: Address | None,
    ) -> AdjustmentOutcome:
        p = self.params
        require_amount("coll_amount", coll_amount)
        require_amount("debt_amount", debt_amount)
        require_valid_max_fee_percentage(max_fee_percentage, p)
        require_position_not_active(self._ledger.get_status(caller))

        price = self._price_feed.fetch_price()
        fee = self._trigger_borrowing_fee(caller, debt_amount, max_fee_percentage)
        net_debt = debt_amount + fee
        require_at_least_min_net_debt(net_debt, p)

        composite_debt = p.composite_debt(net_debt)
        icr = compute_cr(coll_amount, composite_debt, price)
        nicr = compute_nominal_cr(coll_amount, composite_debt)
        require_icr_above_mcr(icr, p)
        require_sufficient_balance(self._coll_token.balance_of(caller), coll_amount, asset=self._coll_token.asset)

        self._ledger.set_status(caller, PositionStatus.ACTIVE)
        self._ledger.increase_collateral(caller, coll_amount)
        self._ledger.increase_debt(caller, composite_debt)
        self._ledger.update_reward_snapshots(caller)
        stake = self._ledger.update_stake(caller)

        self._sorted.insert(caller, nicr, upper_hint, lower_hint)
        index = self._ledger.add_owner(caller)
        self._events.emit(position_created(caller, index))

        self._active_pool.deposit_collateral(caller, coll_amount)
        self._withdraw_debt_token(caller, debt_amount, net_debt)
        self._withdraw_debt_token(self._gas_pool, p.gas_compensation, p.gas_compensation)

        self._events.emit(position_updated(caller, composite_debt, coll_amount, stake, Operation.OPEN_POSITION))
        self._check_post_state(caller, price)
        logger.debug("open %s coll=%d debt=%d fee=%d", caller, coll_amount, composite_debt, fee)

        return AdjustmentOutcome(
            account=caller,
            operation=Operation.OPEN_POSITION,
            old_coll=0,
            old_debt=0,
            new_coll=coll_amount,
            new_debt=composite_debt,
            stake=stake,
            fee=fee,
            old_icr=0,
            new_icr=icr,
            new_nicr=nicr,
        )

    # -- adjust --------------------------------------------------------------

    def adjust_position(self, caller: Address, request: AdjustmentRequest) -> AdjustmentOutcome:
        with self._non_reentrant():
            return self._adjust(caller, caller, request)

    def adjust_position_for(self, operator: Address, borrower: Address, request: AdjustmentRequest) -> AdjustmentOutcome:
        """Adjust `borrower`'s position with value flowing to and from `operator`."""
        if not self.is_authorized_operator(operator):
            raise CdpSecurityError("unauthorized_operator", operator)
        with self._non_reentrant():
            return self._adjust(borrower, operator, request)

    def add_collateral(
        self,
        caller: Address,
        amount: int,
        upper_hint: Address | None = None,
        lower_hint: Address | None = None,
    ) -> AdjustmentOutcome:
        return self.adjust_position(
            caller, AdjustmentRequest(coll_deposit=amount, upper_hint=upper_hint, lower_hint=lower_hint)
        )

    def withdraw_collateral(
        self,
        caller: Address,
        amount: int,
        upper_hint: Address | None = None,
        lower_hint: Address | None = None,
    ) -> AdjustmentOutcome:
        return self.adjust_position(
            caller, AdjustmentRequest(coll_withdrawal=amount, upper_hint=upper_hint, lower_hint=lower_hint)
        )

    def withdraw_debt(
        self,
        caller: Address,
        amount: int,
        max_fee_percentage: int,
        upper_hint: Address | None = None,
        lower_hint: Address | None = None,
    ) -> AdjustmentOutcome:
        return self.adjust_position(
            caller,
            AdjustmentRequest(
                debt_change=amount,
                is_debt_increase=True,
                max_fee_percentage=max_fee_percentage,
                upper_hint=upper_hint,
                lower_hint=lower_hint,
            ),
        )

    def repay_debt(
        self,
        caller: Address,
        amount: int,
        upper_hint: Address | None = None,
        lower_hint: Address | None = None,
    ) -> AdjustmentOutcome:
        return self.adjust_position(
            caller, AdjustmentRequest(debt_change=amount, upper_hint=upper_hint, lower_hint=lower_hint)
        )

    def _adjust(self, borrower: Address, payer: Address, req: AdjustmentRequest) -> AdjustmentOutcome:
        p = self.params
        require_amount("coll_deposit", req.coll_deposit)
        require_amount("coll_withdrawal", req.coll_withdrawal)
        require_amount("debt_change", req.debt_change)
        if req.is_debt_increase:
            require_valid_max_fee_percentage(req.max_fee_percentage, p)
            require_non_zero_debt_change(req.debt_change)
        require_singular_coll_change(req.coll_deposit, req.coll_withdrawal)
        require_non_zero_adjustment(req.coll_deposit, req.coll_withdrawal, req.debt_change)
        require_position_active(self._ledger.get_status(borrower))

        price = self._price_feed.fetch_price()
        self._ledger.apply_pending_rewards(borrower)

        coll_change, is_coll_increase = req.coll_change
        net_debt_change = req.debt_change
        fee = 0
        if req.is_debt_increase:
            fee = self._trigger_borrowing_fee(borrower, req.debt_change, req.max_fee_percentage)
            net_debt_change += fee

        coll = self._ledger.get_collateral(borrower)
        debt = self._ledger.get_debt(borrower)
        if not is_coll_increase and coll_change > coll:
            raise CdpAccountingError("withdrawal_exceeds_collateral", f"{coll_change} > {coll}")

        if not req.is_debt_increase and req.debt_change > 0:
            require_valid_repayment(debt, req.debt_change, p)
            require_at_least_min_net_debt(p.net_debt(debt) - req.debt_change, p)
            require_sufficient_balance(
                self._debt_token.balance_of(payer), req.debt_change, asset=self._debt_token.asset
            )

        old_icr = compute_cr(coll, debt, price)
        new_coll, new_debt = new_coll_and_debt(
            coll, debt, coll_change, is_coll_increase, net_debt_change, req.is_debt_increase
        )
        new_icr = compute_cr(new_coll, new_debt, price)
        require_icr_above_mcr(new_icr, p)
        if is_coll_increase and coll_change > 0:
            require_sufficient_balance(self._coll_token.balance_of(payer), coll_change, asset=self._coll_token.asset)

        if coll_change > 0:
            if is_coll_increase:
                self._ledger.increase_collateral(borrower, coll_change)
            else:
                self._ledger.decrease_collateral(borrower, coll_change)
        if net_debt_change > 0:
            if req.is_debt_increase:
                self._ledger.increase_debt(borrower, net_debt_change)
            else:
                self._ledger.decrease_debt(borrower, net_debt_change)
        stake = self._ledger.update_stake(borrower)
        new_nicr = compute_nominal_cr(new_coll, new_debt)
        self._sorted.re_insert(borrower, new_nicr, req.upper_hint, req.lower_hint)

        self._events.emit(position_updated(borrower, new_debt, new_coll, stake, Operation.ADJUST_POSITION))

        if req.debt_change > 0:
            if req.is_debt_increase:
                self._withdraw_debt_token(payer, req.debt_change, net_debt_change)
            else:
                self._repay_debt_token(payer, req.debt_change)
        if coll_change > 0:
            if is_coll_increase:
                self._active_pool.deposit_collateral(payer, coll_change)
            else:
                self._active_pool.withdraw_collateral(payer, coll_change)

        self._check_post_state(borrower, price)
        logger.debug(
            "adjust %s (payer %s) coll %d->%d debt %d->%d fee=%d",
            borrower, payer, coll, new_coll, debt, new_debt, fee,
        )

        return AdjustmentOutcome(
            account=borrower,
            operation=Operation.ADJUST_POSITION,
            old_coll=coll,
            old_debt=debt,
            new_coll=new_coll,
            new_debt=new_debt,
            stake=stake,
            fee=fee,
            old_icr=old_icr,
            new_icr=new_icr,
            new_nicr=new_nicr,
        )

    # -- close ---------------------------------------------------------------

    def close_position(self, caller: Address) -> AdjustmentOutcome:
        with self._non_reentrant():
            return self._close(caller)

    def _close(self, caller: Address) -> AdjustmentOutcome:
        p = self.params
        require_position_active(self._ledger.get_status(caller))
        self._ledger.apply_pending_rewards(caller)

        coll = self._ledger.get_collateral(caller)
        debt = self._ledger.get_debt(caller)
        repayment = p.net_debt(debt)
        require_sufficient_balance(self._debt_token.balance_of(caller), repayment, asset=self._debt_token.asset)

        self._ledger.remove_stake(caller)
        self._ledger.close_position(caller)
        self._sorted.remove(caller)
        self._events.emit(position_updated(caller, 0, 0, 0, Operation.CLOSE_POSITION))

        self._repay_debt_token(caller, repayment)
        self._repay_debt_token(self._gas_pool, p.gas_compensation)
        self._active_pool.withdraw_collateral(caller, coll)
        logger.debug("close %s coll=%d debt=%d", caller, coll, debt)

        return AdjustmentOutcome(
            account=caller,
            operation=Operation.CLOSE_POSITION,
            old_coll=coll,
            old_debt=debt,
            new_coll=0,
            new_debt=0,
            stake=0,
        )

    # -- views ---------------------------------------------------------------

    def get_current_icr(self, account: Address, price: int) -> int:
        debt, coll, _, _ = self._ledger.get_entire_debt_and_coll(account)
        return compute_cr(coll, debt, price)

    def get_nominal_icr(self, account: Address) -> int:
        debt, coll, _, _ = self._ledger.get_entire_debt_and_coll(account)
        return compute_nominal_cr(coll, debt)

    # -- helpers -------------------------------------------------------------

    def _trigger_borrowing_fee(self, account: Address, amount: int, max_fee_percentage: int) -> int:
        res = trigger_borrowing_fee(
            self._ledger.get_base_rate_state(), amount, max_fee_percentage, self._clock(), self.params
        )
        self._ledger.set_base_rate_state(res.state)
        if res.fee > 0:
            self._debt_token.mint(self.fee_recipient, res.fee)
            self._events.emit(borrowing_fee_paid(account, res.fee))
        return res.fee

    def _withdraw_debt_token(self, account: Address, amount: int, net_debt_increase: int) -> None:
        self._active_pool.increase_debt_liability(net_debt_increase)
        self._debt_token.mint(account, amount)

    def _repay_debt_token(self, account: Address, amount: int) -> None:
        self._active_pool.decrease_debt_liability(amount)
        self._debt_token.burn(account, amount)

    def _check_post_state(self, account: Address, price: int) -> None:
        record = Position(
            coll=self._ledger.get_collateral(account),
            debt=self._ledger.get_debt(account),
            stake=self._ledger.get_stake(account),
            status=self._ledger.get_status(account),
        )
        violations = check_position(record, price, self.params)
        if violations:
            raise CdpAccountingError(
                "post_state_invariant", f"{account}: {', '.join(violations)}", violations=violations
            )
