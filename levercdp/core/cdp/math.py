"""Pure ratio arithmetic for the CDP engine.

Every function is stateless and operates on plain Python ints in 18-decimal
fixed point. Rounding is explicit: `//` floors, `dec_mul` rounds half up.
"""

from __future__ import annotations

DECIMAL_PRECISION: int = 10**18

# NICR is scaled by 1e20 so that small-collateral positions still rank distinctly.
NICR_PRECISION: int = 10**20

# Stand-in for an infinite ratio (debt == 0).
MAX_RATIO: int = 2**256 - 1

# 1000 years in minutes; caps the exponent of `dec_pow`.
MAX_DECAY_MINUTES: int = 525_600_000


def dec_mul(x: int, y: int) -> int:
    """Fixed-point multiply, rounding half up."""
    return (x * y + DECIMAL_PRECISION // 2) // DECIMAL_PRECISION


def dec_pow(base: int, minutes: int) -> int:
    """``base ** minutes`` in fixed point, by exponentiation by squaring.

    `minutes` is capped at `MAX_DECAY_MINUTES`; beyond that the decayed value is
    indistinguishable from zero for any base below 1.0.
    """
    if minutes < 0:
        raise ValueError(f"minutes must be non-negative: {minutes}")
    n = min(minutes, MAX_DECAY_MINUTES)
    if n == 0:
        return DECIMAL_PRECISION

    y = DECIMAL_PRECISION
    x = base
    while n > 1:
        if n % 2 == 0:
            x = dec_mul(x, x)
            n //= 2
        else:
            y = dec_mul(x, y)
            x = dec_mul(x, x)
            n = (n - 1) // 2
    return dec_mul(x, y)


def compute_cr(coll: int, debt: int, price: int) -> int:
    """Collateralization ratio: ``coll * price / debt`` (price-denominated)."""
    if debt > 0:
        return (coll * price) // debt
    return MAX_RATIO


def compute_nominal_cr(coll: int, debt: int) -> int:
    """Price-independent ordering ratio: ``coll * 1e20 / debt``."""
    if debt > 0:
        return (coll * NICR_PRECISION) // debt
    return MAX_RATIO


def apply_delta(value: int, change: int, is_increase: bool) -> int:
    """Signed application of an unsigned magnitude."""
    return value + change if is_increase else value - change


def new_coll_and_debt(
    coll: int,
    debt: int,
    coll_change: int,
    is_coll_increase: bool,
    debt_change: int,
    is_debt_increase: bool,
) -> tuple[int, int]:
    """Post-adjustment (coll, debt) pair."""
    return (
        apply_delta(coll, coll_change, is_coll_increase),
        apply_delta(debt, debt_change, is_debt_increase),
    )
