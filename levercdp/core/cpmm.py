"""
Constant Product Market Maker (CPMM) swap math.

Used by the reference swap venue. Integer arithmetic with deterministic
rounding:
- fee = ceil(amount_in * fee_bps / 10_000), kept in the pool
- amount_out = floor(reserve_out * net_in / (reserve_in + net_in))

Invariant: after each swap, x' * y' >= x * y.
"""

from typing import Tuple

BPS_DENOM = 10_000


def compute_fee_total(gross_amount: int, fee_bps: int) -> int:
    """Deterministic fee computation (ceil rounding)."""
    if gross_amount < 0:
        raise ValueError(f"gross_amount must be non-negative: {gross_amount}")
    if not (0 <= fee_bps <= BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOM}]: {fee_bps}")
    return (gross_amount * fee_bps + BPS_DENOM - 1) // BPS_DENOM


def swap_exact_in(
    reserve_in: int,
    reserve_out: int,
    amount_in: int,
    fee_bps: int,
) -> Tuple[int, Tuple[int, int]]:
    """
    Compute output amount for an exact-in swap.

    Returns:
        Tuple of (amount_out, (new_reserve_in, new_reserve_out))

    Raises:
        ValueError: If inputs are invalid or the trade rounds to zero output
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(f"Reserves must be positive: ({reserve_in}, {reserve_out})")
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {amount_in}")

    fee = compute_fee_total(amount_in, fee_bps)
    net_in = amount_in - fee
    if net_in <= 0:
        raise ValueError("net_in must be positive after fees")

    amount_out = (reserve_out * net_in) // (reserve_in + net_in)
    if amount_out <= 0:
        raise ValueError("amount_out is zero (trade too small)")

    new_reserve_in = reserve_in + amount_in
    new_reserve_out = reserve_out - amount_out
    if new_reserve_in * new_reserve_out < reserve_in * reserve_out:
        raise ValueError("Invariant violation: constant product decreased")

    return amount_out, (new_reserve_in, new_reserve_out)
