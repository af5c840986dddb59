"""Tests for levercdp/core/cdp/leverage.py: flash-loan leveraged adjustments."""

from __future__ import annotations

import pytest

from levercdp.core.cdp import (
    CdpError,
    CdpSecurityError,
    ErrorKind,
    Event,
    LeverageOrchestrator,
    LeverageRequest,
    LoanPayload,
    ProtocolParams,
)
from levercdp.core.cdp.interfaces import SwapVenue
from levercdp.integration.system import (
    DEBT_TOKEN_ADDRESS,
    FEE_RECIPIENT_ADDRESS,
    ORCHESTRATOR_ADDRESS,
    CdpSystem,
    ManualClock,
    deploy_system,
)

UNIT = 10**18
PRICE = 2_000 * UNIT
MAX_FEE = UNIT // 20
D = 2_000 * UNIT


def _system(params: ProtocolParams | None = None) -> CdpSystem:
    s = deploy_system(params if params is not None else ProtocolParams(), clock=ManualClock(1_000_000))
    s.price_feed.set_price(PRICE)
    s.collateral_token.credit("alice", 100 * UNIT)
    s.collateral_token.credit("lp", 1_000 * UNIT)
    s.debt_token.mint("lp", 2_000_000 * UNIT)
    s.swap_venue.add_liquidity("lp", {"COLL": 1_000 * UNIT, "DEBT": 2_000_000 * UNIT})
    s.open_position("alice", 10 * UNIT, 2_000 * UNIT, MAX_FEE)
    return s


def _state(s: CdpSystem) -> tuple:
    return (
        s.balances.snapshot(),
        s.ledger.snapshot(),
        s.sorted_positions.snapshot(),
        s.active_pool.snapshot(),
        len(s.events),
    )


def _rejects(s: CdpSystem, reason: str, fn, *args) -> CdpError:
    before = _state(s)
    with pytest.raises(CdpError) as ei:
        fn(*args)
    assert ei.value.reason == reason
    assert _state(s) == before
    assert not s.leverage.loan_in_flight
    return ei.value


def _lever_up(s: CdpSystem, amount: int = D, **kwargs):
    expected = s.swap_venue.quote("DEBT", "COLL", amount)
    req = LeverageRequest(
        debt_change=amount,
        is_debt_increase=True,
        swap_guard_amount=kwargs.pop("swap_guard_amount", expected),
        max_fee_percentage=MAX_FEE,
        **kwargs,
    )
    return s.adjust_leverage("alice", req), expected


def _orchestrator_balances(s: CdpSystem) -> tuple[int, int]:
    return (
        s.collateral_token.balance_of(ORCHESTRATOR_ADDRESS),
        s.debt_token.balance_of(ORCHESTRATOR_ADDRESS),
    )


# ---------------------------------------------------------------------------
# leverage up
# ---------------------------------------------------------------------------

class TestLeverUp:
    def test_borrowed_debt_becomes_collateral(self):
        s = _system()
        out, expected = _lever_up(s)

        assert out.is_debt_increase
        assert out.loan_amount == D
        assert out.loan_fee == 0
        assert out.leveraged_coll_change == expected
        assert (out.net_coll_change, out.is_net_coll_increase) == (expected, True)

        adj = out.adjustment
        assert adj.fee == 10 * UNIT
        assert adj.new_debt == 2_210 * UNIT + D + 10 * UNIT
        assert adj.new_coll == 10 * UNIT + expected
        assert s.active_pool.get_debt() == adj.new_debt
        assert s.active_pool.get_collateral() == adj.new_coll

    def test_caller_wallet_untouched_and_loan_repaid(self):
        s = _system()
        _lever_up(s)
        assert s.collateral_token.balance_of("alice") == 90 * UNIT
        assert s.debt_token.balance_of("alice") == 2_000 * UNIT
        assert _orchestrator_balances(s) == (0, 0)
        assert not s.leverage.loan_in_flight

    def test_observation(self):
        s = _system()
        out, _ = _lever_up(s)
        last = s.events.entries()[-1]
        assert last.event is Event.LEVERAGE_ADJUSTED
        assert last.account == "alice"
        assert (last.debt, last.coll) == (out.adjustment.new_debt, out.adjustment.new_coll)

    def test_flash_fee_is_borrowed_too(self):
        s = _system(ProtocolParams(flash_fee_bps=9))
        out, _ = _lever_up(s)
        f = D * 9 // 10_000
        assert out.loan_fee == f
        borrowed = D + f
        assert out.adjustment.new_debt == 2_210 * UNIT + borrowed + borrowed * 5 * 10**15 // UNIT
        assert s.debt_token.balance_of(FEE_RECIPIENT_ADDRESS) == 10 * UNIT + f + out.adjustment.fee
        assert _orchestrator_balances(s) == (0, 0)

    def test_with_principal_deposit(self):
        s = _system()
        out, expected = _lever_up(s, principal_coll_change=5 * UNIT, is_principal_coll_increase=True)
        assert (out.net_coll_change, out.is_net_coll_increase) == (5 * UNIT + expected, True)
        assert out.adjustment.new_coll == 15 * UNIT + expected
        assert s.collateral_token.balance_of("alice") == 85 * UNIT

    def test_with_principal_withdrawal_larger_than_leverage(self):
        s = _system()
        out, expected = _lever_up(s, principal_coll_change=UNIT, is_principal_coll_increase=False)
        assert expected < UNIT
        assert (out.net_coll_change, out.is_net_coll_increase) == (UNIT - expected, False)
        assert out.adjustment.new_coll == 9 * UNIT + expected
        assert s.collateral_token.balance_of("alice") == 91 * UNIT
        assert _orchestrator_balances(s) == (0, 0)

    def test_swap_below_guard_rolls_back(self):
        s = _system()
        expected = s.swap_venue.quote("DEBT", "COLL", D)
        req = LeverageRequest(debt_change=D, is_debt_increase=True, swap_guard_amount=expected + 1, max_fee_percentage=MAX_FEE)
        _rejects(s, "swap_output_below_minimum", s.adjust_leverage, "alice", req)

    def test_engine_failure_unwinds_loan_and_swap(self):
        s = _system()
        s.price_feed.set_price(1_000 * UNIT)
        amount = 20_000 * UNIT
        req = LeverageRequest(
            debt_change=amount,
            is_debt_increase=True,
            swap_guard_amount=s.swap_venue.quote("DEBT", "COLL", amount),
            max_fee_percentage=MAX_FEE,
        )
        err = _rejects(s, "icr_below_mcr", s.adjust_leverage, "alice", req)
        assert err.kind is ErrorKind.INVARIANT

    def test_principal_deposit_rolled_back(self):
        s = _system()
        req = LeverageRequest(
            debt_change=D,
            is_debt_increase=True,
            principal_coll_change=5 * UNIT,
            is_principal_coll_increase=True,
            swap_guard_amount=10**30,
            max_fee_percentage=MAX_FEE,
        )
        _rejects(s, "swap_output_below_minimum", s.adjust_leverage, "alice", req)
        assert s.collateral_token.balance_of("alice") == 90 * UNIT

    def test_no_position(self):
        s = _system()
        req = LeverageRequest(debt_change=D, is_debt_increase=True, max_fee_percentage=MAX_FEE)
        _rejects(s, "position_not_active", s.adjust_leverage, "bob", req)

    def test_zero_debt_change(self):
        s = _system()
        _rejects(s, "zero_debt_change", s.adjust_leverage, "alice", LeverageRequest(debt_change=0, is_debt_increase=True))


# ---------------------------------------------------------------------------
# leverage down
# ---------------------------------------------------------------------------

class TestLeverDown:
    def _down(self, s: CdpSystem, g: int, repay: int, **kwargs):
        req = LeverageRequest(debt_change=repay, is_debt_increase=False, swap_guard_amount=g, **kwargs)
        return s.adjust_leverage("alice", req)

    def test_excess_forwarded(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        proceeds = s.swap_venue.quote("COLL", "DEBT", g)
        repay = proceeds * 99 // 100
        wallet = s.debt_token.balance_of("alice")

        out = self._down(s, g, repay)

        assert not out.is_debt_increase
        assert out.leveraged_coll_change == g
        assert (out.net_coll_change, out.is_net_coll_increase) == (g, False)
        assert out.leftover_forwarded == proceeds - repay
        assert out.leftover_absorbed == 0
        assert s.debt_token.balance_of("alice") == wallet + proceeds - repay
        assert out.adjustment.new_debt == up.adjustment.new_debt - repay
        assert out.adjustment.new_coll == up.adjustment.new_coll - g
        assert _orchestrator_balances(s) == (0, 0)

    def test_dust_absorbed(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        proceeds = s.swap_venue.quote("COLL", "DEBT", g)
        wallet = s.debt_token.balance_of("alice")

        out = self._down(s, g, proceeds - 10**14)

        assert out.leftover_forwarded == 0
        assert out.leftover_absorbed == 10**14
        assert s.debt_token.balance_of("alice") == wallet
        assert s.debt_token.balance_of(ORCHESTRATOR_ADDRESS) == 10**14

    def test_leftover_at_tolerance_is_absorbed(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        proceeds = s.swap_venue.quote("COLL", "DEBT", g)
        out = self._down(s, g, proceeds - s.params.max_leftover)
        assert out.leftover_absorbed == s.params.max_leftover
        assert out.leftover_forwarded == 0

    def test_proceeds_below_repayment(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        proceeds = s.swap_venue.quote("COLL", "DEBT", g)
        req = LeverageRequest(debt_change=proceeds + 1, is_debt_increase=False, swap_guard_amount=g)
        _rejects(s, "swap_output_below_minimum", s.adjust_leverage, "alice", req)

    def test_with_principal_deposit(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        repay = s.swap_venue.quote("COLL", "DEBT", g) * 99 // 100
        out = self._down(s, g, repay, principal_coll_change=2 * UNIT, is_principal_coll_increase=True)
        assert (out.net_coll_change, out.is_net_coll_increase) == (2 * UNIT - g, True)
        assert out.adjustment.new_coll == up.adjustment.new_coll + 2 * UNIT - g
        assert s.collateral_token.balance_of("alice") == 88 * UNIT

    def test_with_principal_withdrawal(self):
        s = _system()
        up, _ = _lever_up(s)
        g = up.leveraged_coll_change // 2
        repay = s.swap_venue.quote("COLL", "DEBT", g) * 99 // 100
        out = self._down(s, g, repay, principal_coll_change=UNIT, is_principal_coll_increase=False)
        assert (out.net_coll_change, out.is_net_coll_increase) == (UNIT + g, False)
        assert s.collateral_token.balance_of("alice") == 91 * UNIT
        assert _orchestrator_balances(s) == (0, 0)

    def test_zero_guard_rejected(self):
        s = _system()
        _rejects(
            s,
            "invalid_swap_guard",
            s.adjust_leverage,
            "alice",
            LeverageRequest(debt_change=UNIT, is_debt_increase=False),
        )


# ---------------------------------------------------------------------------
# callback security
# ---------------------------------------------------------------------------

def _forged_payload() -> LoanPayload:
    return LoanPayload(
        caller="mallory",
        principal_coll_change=0,
        is_principal_coll_increase=False,
        is_debt_increase=False,
        swap_payload=None,
        swap_guard_amount=UNIT,
        max_fee_percentage=0,
    )


class TestCallbackSecurity:
    def test_untrusted_lender(self):
        s = _system()
        with pytest.raises(CdpSecurityError) as ei:
            s.leverage.on_flash_loan(
                sender="mallory", initiator=ORCHESTRATOR_ADDRESS, token="DEBT", amount=UNIT, fee=0, payload=_forged_payload()
            )
        assert ei.value.reason == "untrusted_lender"

    def test_untrusted_initiator(self):
        s = _system()
        with pytest.raises(CdpSecurityError) as ei:
            s.leverage.on_flash_loan(
                sender=DEBT_TOKEN_ADDRESS, initiator="mallory", token="DEBT", amount=UNIT, fee=0, payload=_forged_payload()
            )
        assert ei.value.reason == "untrusted_initiator"

    def test_no_loan_in_flight(self):
        s = _system()
        with pytest.raises(CdpSecurityError) as ei:
            s.leverage.on_flash_loan(
                sender=DEBT_TOKEN_ADDRESS,
                initiator=ORCHESTRATOR_ADDRESS,
                token="DEBT",
                amount=UNIT,
                fee=0,
                payload=_forged_payload(),
            )
        assert ei.value.reason == "unexpected_flash_loan"

    def test_third_party_loan_to_orchestrator(self):
        s = _system()
        before = _state(s)
        r = s.execute(s.debt_token.flash_loan, "mallory", s.leverage, "DEBT", 1_000 * UNIT, _forged_payload())
        assert not r.ok
        assert r.kind is ErrorKind.SECURITY
        assert r.reason == "untrusted_initiator"
        assert _state(s) == before


class _HijackingVenue(SwapVenue):
    """Swap venue that tries to re-enter the orchestrator mid-sequence."""

    def __init__(self, inner: SwapVenue, mode: str) -> None:
        self.inner = inner
        self.mode = mode
        self.orchestrator: LeverageOrchestrator | None = None

    def swap(self, caller, token_in, token_out, amount_in, guard_amount, payload=None):
        orch = self.orchestrator
        if self.mode == "callback":
            orch.on_flash_loan(
                sender=DEBT_TOKEN_ADDRESS,
                initiator=orch.address,
                token="DEBT",
                amount=amount_in,
                fee=0,
                payload=_forged_payload(),
            )
        else:
            orch.adjust_leverage("alice", LeverageRequest(debt_change=UNIT, is_debt_increase=True, max_fee_percentage=MAX_FEE))
        return self.inner.swap(caller, token_in, token_out, amount_in, guard_amount, payload)


@pytest.mark.parametrize("mode,reason", [("callback", "unexpected_flash_loan"), ("leverage", "reentrant_call")])
def test_reentry_during_swap_aborts(mode, reason):
    s = _system()
    venue = _HijackingVenue(s.swap_venue, mode)
    orch = LeverageOrchestrator(
        address="orchestrator-2",
        borrower_operations=s.borrower_operations,
        debt_token=s.debt_token,
        collateral_token=s.collateral_token,
        swap_venue=venue,
        events=s.events,
        params=s.params,
    )
    venue.orchestrator = orch
    s.borrower_operations.authorize_operator(orch.address)

    before = _state(s)
    req = LeverageRequest(debt_change=D, is_debt_increase=True, max_fee_percentage=MAX_FEE)
    with pytest.raises(CdpSecurityError) as ei:
        s.executor.run_or_raise(orch.adjust_leverage, "alice", req)
    assert ei.value.reason == reason
    assert _state(s) == before
    assert not orch.loan_in_flight
