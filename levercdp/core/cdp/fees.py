"""
Borrowing fee kernels (deterministic, integer-only).

The base rate decays exponentially per elapsed minute. Every borrowing
operation first decays the stored base rate, then charges
``min(floor + base_rate, max_fee) * amount``.

State is immutable: callers persist the returned `BaseRateState`.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import CdpInvariantError, CdpValidationError
from .math import DECIMAL_PRECISION, dec_mul, dec_pow
from .params import ProtocolParams

SECONDS_IN_ONE_MINUTE = 60


@dataclass(frozen=True)
class BaseRateState:
    base_rate: int = 0
    last_fee_operation_time: int = 0

    def __post_init__(self) -> None:
        for name, v in (
            ("base_rate", self.base_rate),
            ("last_fee_operation_time", self.last_fee_operation_time),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.base_rate > DECIMAL_PRECISION:
            raise ValueError(f"base_rate must be <= 100%: {self.base_rate}")


@dataclass(frozen=True)
class BorrowingFeeResult:
    fee: int
    borrowing_rate: int
    state: BaseRateState


def minutes_passed_since_last_fee_op(state: BaseRateState, now: int) -> int:
    if now < state.last_fee_operation_time:
        return 0
    return (now - state.last_fee_operation_time) // SECONDS_IN_ONE_MINUTE


def calc_decayed_base_rate(state: BaseRateState, now: int, params: ProtocolParams) -> int:
    minutes = minutes_passed_since_last_fee_op(state, now)
    decay_factor = dec_pow(params.minute_decay_factor, minutes)
    return dec_mul(state.base_rate, decay_factor)


def calc_borrowing_rate(base_rate: int, params: ProtocolParams) -> int:
    return min(params.borrowing_fee_floor + base_rate, params.max_borrowing_fee)


def calc_borrowing_fee(debt: int, base_rate: int, params: ProtocolParams) -> int:
    return calc_borrowing_rate(base_rate, params) * debt // DECIMAL_PRECISION


def decay_base_rate_from_borrowing(state: BaseRateState, now: int, params: ProtocolParams) -> BaseRateState:
    """
    Persist the decayed base rate.

    The operation time only advances once a full minute has elapsed, so that
    frequent operations cannot stall the decay.
    """
    decayed = calc_decayed_base_rate(state, now, params)
    if decayed > DECIMAL_PRECISION:
        raise AssertionError("decayed base rate exceeds 100%")
    minutes = minutes_passed_since_last_fee_op(state, now)
    if minutes == 0:
        return BaseRateState(base_rate=decayed, last_fee_operation_time=state.last_fee_operation_time)
    return BaseRateState(base_rate=decayed, last_fee_operation_time=now)


def require_valid_max_fee_percentage(max_fee_percentage: int, params: ProtocolParams) -> None:
    if not isinstance(max_fee_percentage, int) or isinstance(max_fee_percentage, bool):
        raise CdpValidationError("invalid_max_fee", "max_fee_percentage must be an int")
    if max_fee_percentage < params.borrowing_fee_floor or max_fee_percentage > DECIMAL_PRECISION:
        raise CdpValidationError(
            "invalid_max_fee",
            f"max fee percentage must be between {params.borrowing_fee_floor} and {DECIMAL_PRECISION}",
        )


def require_user_accepts_fee(fee: int, amount: int, max_fee_percentage: int) -> None:
    """``fee <= max_fee_percentage * amount`` (cross-multiplied, exact)."""
    if fee * DECIMAL_PRECISION > max_fee_percentage * amount:
        raise CdpInvariantError("fee_exceeds_max", f"fee {fee} on {amount} exceeds {max_fee_percentage}")


def trigger_borrowing_fee(
    state: BaseRateState,
    amount: int,
    max_fee_percentage: int,
    now: int,
    params: ProtocolParams,
) -> BorrowingFeeResult:
    """Decay the base rate, compute the fee on `amount`, enforce the caller's cap."""
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise ValueError(f"amount must be a non-negative int, got {amount}")

    new_state = decay_base_rate_from_borrowing(state, now, params)
    rate = calc_borrowing_rate(new_state.base_rate, params)
    fee = rate * amount // DECIMAL_PRECISION
    require_user_accepts_fee(fee, amount, max_fee_percentage)
    return BorrowingFeeResult(fee=fee, borrowing_rate=rate, state=new_state)
