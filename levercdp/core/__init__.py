"""
Core CDP algorithms
"""

from .cpmm import compute_fee_total, swap_exact_in
from .oracle import ManualPriceFeed, OracleState, init_oracle_state, is_fresh, update_price_timestamp

__all__ = [
    "compute_fee_total",
    "swap_exact_in",
    "ManualPriceFeed",
    "OracleState",
    "init_oracle_state",
    "is_fresh",
    "update_price_timestamp",
]
