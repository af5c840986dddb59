"""Tests for levercdp/state/pools.py and levercdp/state/positions.py."""

from __future__ import annotations

import pytest

from levercdp.core.cdp.fees import BaseRateState
from levercdp.core.cdp.types import PositionStatus
from levercdp.state.balances import BalanceTable
from levercdp.state.pools import ActivePool, DefaultPool
from levercdp.state.positions import PositionLedger
from levercdp.state.tokens import Token


def _setup():
    table = BalanceTable()
    coll = Token(table, address="coll-token", asset="COLL")
    active = ActivePool(address="active-pool", collateral_token=coll)
    default = DefaultPool(address="default-pool", collateral_token=coll)
    ledger = PositionLedger(active_pool=active, default_pool=default)
    return coll, active, default, ledger


def _open(ledger: PositionLedger, account: str, coll: int, debt: int) -> int:
    ledger.set_status(account, PositionStatus.ACTIVE)
    ledger.increase_collateral(account, coll)
    ledger.increase_debt(account, debt)
    ledger.update_stake(account)
    return ledger.add_owner(account)


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------

class TestActivePool:
    def test_deposit_and_withdraw(self):
        coll, active, _, _ = _setup()
        coll.credit("a", 10)
        active.deposit_collateral("a", 7)
        assert active.get_collateral() == 7
        assert coll.balance_of("active-pool") == 7
        active.withdraw_collateral("b", 3)
        assert active.get_collateral() == 4
        assert coll.balance_of("b") == 3

    def test_withdraw_more_than_tracked(self):
        coll, active, _, _ = _setup()
        coll.credit("active-pool", 10)
        with pytest.raises(ValueError):
            active.withdraw_collateral("a", 1)

    def test_debt_liability(self):
        _, active, _, _ = _setup()
        active.increase_debt_liability(10)
        active.decrease_debt_liability(4)
        assert active.get_debt() == 6
        with pytest.raises(ValueError):
            active.decrease_debt_liability(7)

    def test_snapshot_restore(self):
        _, active, _, _ = _setup()
        active.increase_debt_liability(5)
        snap = active.snapshot()
        active.increase_debt_liability(5)
        active.restore(snap)
        assert active.get_debt() == 5


class TestDefaultPool:
    def test_redistribution_requires_tokens(self):
        coll, _, default, _ = _setup()
        with pytest.raises(ValueError):
            default.receive_redistribution(5, 1)
        coll.credit("default-pool", 5)
        default.receive_redistribution(5, 1)
        assert (default.get_collateral(), default.get_debt()) == (5, 1)

    def test_send_to_active_pool(self):
        coll, active, default, _ = _setup()
        coll.credit("default-pool", 5)
        default.receive_redistribution(5, 2)
        default.send_to_active_pool(active, 3, 1)
        assert (default.get_collateral(), default.get_debt()) == (2, 1)
        assert (active.get_collateral(), active.get_debt()) == (3, 1)
        assert coll.balance_of("active-pool") == 3
        with pytest.raises(ValueError):
            default.send_to_active_pool(active, 3, 0)


# ---------------------------------------------------------------------------
# PositionLedger
# ---------------------------------------------------------------------------

class TestPositionLedger:
    def test_unknown_account_defaults(self):
        _, _, _, ledger = _setup()
        assert ledger.get_status("x") is PositionStatus.NONEXISTENT
        assert (ledger.get_collateral("x"), ledger.get_debt("x"), ledger.get_stake("x")) == (0, 0, 0)
        assert ledger.get_entire_debt_and_coll("x") == (0, 0, 0, 0)

    def test_collateral_and_debt_deltas(self):
        _, _, _, ledger = _setup()
        assert ledger.increase_collateral("a", 10) == 10
        assert ledger.decrease_collateral("a", 4) == 6
        assert ledger.increase_debt("a", 10) == 10
        assert ledger.decrease_debt("a", 10) == 0
        with pytest.raises(ValueError):
            ledger.decrease_collateral("a", 7)
        with pytest.raises(ValueError):
            ledger.decrease_debt("a", 1)

    def test_stake_equals_collateral_without_snapshot(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        _open(ledger, "b", 30, 100)
        assert ledger.get_stake("a") == 10
        assert ledger.get_total_stakes() == 40

    def test_stake_scaled_by_snapshots(self):
        _, _, _, ledger = _setup()
        ledger.total_stakes_snapshot = 50
        ledger.total_collateral_snapshot = 100
        _open(ledger, "a", 10, 100)
        assert ledger.get_stake("a") == 5

    def test_remove_stake(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        ledger.remove_stake("a")
        assert ledger.get_stake("a") == 0
        assert ledger.get_total_stakes() == 0

    def test_pending_rewards_only_applied_to_active(self):
        coll, active, default, ledger = _setup()
        coll.credit("default-pool", 4)
        ledger.record_pending_rewards("a", 4, 40)

        ledger.apply_pending_rewards("a")
        assert ledger.has_pending_rewards("a")

        _open(ledger, "a", 10, 100)
        assert ledger.get_entire_debt_and_coll("a") == (140, 14, 40, 4)
        ledger.apply_pending_rewards("a")
        assert (ledger.get_collateral("a"), ledger.get_debt("a")) == (14, 140)
        assert not ledger.has_pending_rewards("a")
        assert (default.get_collateral(), default.get_debt()) == (0, 0)
        assert (active.get_collateral(), active.get_debt()) == (4, 40)

    def test_owner_indices(self):
        _, _, _, ledger = _setup()
        assert _open(ledger, "a", 10, 100) == 0
        assert _open(ledger, "b", 10, 100) == 1
        assert _open(ledger, "c", 10, 100) == 2
        ledger.close_position("a")
        assert ledger.get_owners() == ["c", "b"]
        assert ledger.get_position("c").array_index == 0
        assert ledger.get_status("a") is PositionStatus.CLOSED_BY_OWNER

    def test_close_zeroes_and_accepts_liquidation_status(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        ledger.remove_stake("a")
        ledger.close_position("a", PositionStatus.CLOSED_BY_LIQUIDATION)
        p = ledger.get_position("a")
        assert (p.coll, p.debt, p.stake, p.status) == (0, 0, 0, PositionStatus.CLOSED_BY_LIQUIDATION)

    def test_close_rejects_open_statuses(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        with pytest.raises(ValueError):
            ledger.close_position("a", PositionStatus.ACTIVE)

    def test_get_position_is_a_copy(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        p = ledger.get_position("a")
        p.coll = 0
        assert ledger.get_collateral("a") == 10

    def test_snapshot_restore(self):
        _, _, _, ledger = _setup()
        _open(ledger, "a", 10, 100)
        snap = ledger.snapshot()
        ledger.increase_collateral("a", 5)
        ledger.set_base_rate_state(BaseRateState(base_rate=1, last_fee_operation_time=60))
        _open(ledger, "b", 1, 1)
        ledger.restore(snap)
        assert ledger.get_collateral("a") == 10
        assert ledger.get_owners() == ["a"]
        assert ledger.get_status("b") is PositionStatus.NONEXISTENT
        assert ledger.get_base_rate_state() == BaseRateState()
