"""Guard functions for borrower operations.

Each guard is pure and raises a typed ``CdpError`` when the condition fails.
Reason strings are stable and asserted by tests.
"""

from __future__ import annotations

from typing import Any

from .errors import CdpInvariantError, CdpValidationError
from .params import ProtocolParams
from .types import PositionStatus


def require_amount(name: str, value: Any) -> int:
    """Amounts are non-negative ints; bools are rejected."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise CdpValidationError("invalid_amount", f"{name} must be an int")
    if value < 0:
        raise CdpValidationError("invalid_amount", f"{name} must be non-negative: {value}")
    return value


def require_singular_coll_change(coll_deposit: int, coll_withdrawal: int) -> None:
    if coll_deposit != 0 and coll_withdrawal != 0:
        raise CdpValidationError(
            "singular_coll_change",
            "cannot deposit and withdraw collateral in one adjustment",
        )


def require_non_zero_adjustment(coll_deposit: int, coll_withdrawal: int, debt_change: int) -> None:
    if coll_deposit == 0 and coll_withdrawal == 0 and debt_change == 0:
        raise CdpValidationError("zero_adjustment", "no collateral or debt change requested")


def require_non_zero_debt_change(debt_change: int) -> None:
    if debt_change == 0:
        raise CdpValidationError("zero_debt_change", "debt increase must be positive")


def require_position_active(status: PositionStatus) -> None:
    if status is not PositionStatus.ACTIVE:
        raise CdpValidationError("position_not_active", f"status is {status.value}")


def require_position_not_active(status: PositionStatus) -> None:
    if status is PositionStatus.ACTIVE:
        raise CdpValidationError("position_active", "position is already open")


def require_icr_above_mcr(new_icr: int, params: ProtocolParams) -> None:
    if new_icr < params.mcr:
        raise CdpInvariantError("icr_below_mcr", f"{new_icr} < {params.mcr}")


def require_at_least_min_net_debt(net_debt: int, params: ProtocolParams) -> None:
    if net_debt < params.min_net_debt:
        raise CdpInvariantError("net_debt_below_min", f"{net_debt} < {params.min_net_debt}")


def require_valid_repayment(current_debt: int, repayment: int, params: ProtocolParams) -> None:
    """Repayment may not eat into the gas-compensation reserve."""
    if repayment > params.net_debt(current_debt):
        raise CdpInvariantError(
            "repayment_exceeds_debt",
            f"{repayment} > {params.net_debt(current_debt)}",
        )


def require_sufficient_balance(balance: int, amount: int, *, asset: str) -> None:
    if balance < amount:
        raise CdpInvariantError("insufficient_balance", f"{asset}: {balance} < {amount}")
