#!/usr/bin/env python3
"""
Offline walk-through of a leveraged position:

open -> lever up (flash loan + swap) -> lever down -> close
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from levercdp.core.cdp import DECIMAL_PRECISION, CdpError, LeverageRequest
from levercdp.integration import CdpSystem, deploy_system, params_from_env

UNIT = DECIMAL_PRECISION
MAX_FEE = UNIT // 20  # 5%


def _fmt(amount: int) -> str:
    return f"{amount / UNIT:,.4f}"


def _report(system: CdpSystem, account: str, price: int, label: str) -> None:
    debt, coll, _, _ = system.get_entire_debt_and_coll(account)
    icr = system.get_current_icr(account, price) if debt else 0
    print(
        f"[leverage-demo] {label}: coll={_fmt(coll)} debt={_fmt(debt)} icr={icr * 100 // UNIT}% "
        f"wallet_coll={_fmt(system.collateral_token.balance_of(account))} "
        f"wallet_debt={_fmt(system.debt_token.balance_of(account))}"
    )


def run(args: argparse.Namespace) -> int:
    system = deploy_system(params_from_env())
    price = args.price * UNIT
    system.price_feed.set_price(price)

    alice = "alice"
    lp = "lp"
    system.collateral_token.credit(alice, 2 * args.coll * UNIT)
    system.collateral_token.credit(lp, 1_000 * UNIT)
    system.debt_token.mint(lp, 1_000 * args.price * UNIT)
    system.swap_venue.add_liquidity(lp, {"COLL": 1_000 * UNIT, "DEBT": 1_000 * args.price * UNIT})

    system.open_position(alice, args.coll * UNIT, args.debt * UNIT, MAX_FEE)
    _report(system, alice, price, "opened")

    borrow = args.lever * UNIT
    expected = system.swap_venue.quote("DEBT", "COLL", borrow)
    up = system.adjust_leverage(
        alice,
        LeverageRequest(
            debt_change=borrow,
            is_debt_increase=True,
            swap_guard_amount=expected * (100 - args.slippage_pct) // 100,
            max_fee_percentage=MAX_FEE,
        ),
    )
    print(f"[leverage-demo] lever up: loan={_fmt(up.loan_amount)} coll_in={_fmt(up.leveraged_coll_change)}")
    _report(system, alice, price, "levered up")

    unwind_coll = up.leveraged_coll_change // 2
    proceeds = system.swap_venue.quote("COLL", "DEBT", unwind_coll)
    down = system.adjust_leverage(
        alice,
        LeverageRequest(
            debt_change=proceeds * (100 - args.slippage_pct) // 100,
            is_debt_increase=False,
            swap_guard_amount=unwind_coll,
        ),
    )
    print(
        f"[leverage-demo] lever down: repaid={_fmt(down.loan_amount)} "
        f"forwarded={_fmt(down.leftover_forwarded)} absorbed={down.leftover_absorbed}"
    )
    _report(system, alice, price, "levered down")

    debt, _, _, _ = system.get_entire_debt_and_coll(alice)
    shortfall = system.get_net_debt(debt) - system.debt_token.balance_of(alice)
    if shortfall > 0:
        sell = shortfall * 103 // 100 * UNIT // price + 1
        system.execute(system.swap_venue.swap, alice, "COLL", "DEBT", sell, shortfall)
    system.close_position(alice)
    _report(system, alice, price, "closed")
    print(f"[leverage-demo] observations: {len(system.events)}")
    print("[leverage-demo] OK")
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Open, lever up, lever down and close one position.")
    ap.add_argument("--price", type=int, default=2_000, help="debt token per collateral (whole units)")
    ap.add_argument("--coll", type=int, default=5, help="initial collateral (whole units)")
    ap.add_argument("--debt", type=int, default=4_000, help="initial debt (whole units)")
    ap.add_argument("--lever", type=int, default=2_000, help="debt to flash-borrow when levering up")
    ap.add_argument("--slippage-pct", type=int, default=1)
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    try:
        return run(args)
    except CdpError as exc:
        print(f"[leverage-demo] FAIL: {exc} ({exc.kind.value})")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
