"""Protocol parameters for the CDP engine.

All values are 18-decimal fixed point unless the name says otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass

from .math import DECIMAL_PRECISION

BPS_DENOM = 10_000

MCR_DEFAULT = 1_100_000_000_000_000_000            # 110%
MIN_NET_DEBT_DEFAULT = 1_800 * DECIMAL_PRECISION
GAS_COMPENSATION_DEFAULT = 200 * DECIMAL_PRECISION
BORROWING_FEE_FLOOR_DEFAULT = DECIMAL_PRECISION // 1000 * 5   # 0.5%
MAX_BORROWING_FEE_DEFAULT = DECIMAL_PRECISION // 100 * 5      # 5%
MINUTE_DECAY_FACTOR_DEFAULT = 999_037_758_833_783_000         # 12h half life
MAX_LEFTOVER_DEFAULT = 10**15


@dataclass(frozen=True)
class ProtocolParams:
    mcr: int = MCR_DEFAULT
    min_net_debt: int = MIN_NET_DEBT_DEFAULT
    gas_compensation: int = GAS_COMPENSATION_DEFAULT
    borrowing_fee_floor: int = BORROWING_FEE_FLOOR_DEFAULT
    max_borrowing_fee: int = MAX_BORROWING_FEE_DEFAULT
    minute_decay_factor: int = MINUTE_DECAY_FACTOR_DEFAULT

    # Leverage: debt-token dust at or below this is kept by the orchestrator.
    max_leftover: int = MAX_LEFTOVER_DEFAULT

    # Debt-token flash loans.
    flash_fee_bps: int = 0

    # Oracle.
    oracle_max_staleness_seconds: int = 3600

    def __post_init__(self) -> None:
        for name in (
            "mcr",
            "min_net_debt",
            "gas_compensation",
            "borrowing_fee_floor",
            "max_borrowing_fee",
            "minute_decay_factor",
            "max_leftover",
            "flash_fee_bps",
            "oracle_max_staleness_seconds",
        ):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.mcr <= DECIMAL_PRECISION:
            raise ValueError(f"mcr must exceed 100%: {self.mcr}")
        if self.borrowing_fee_floor > self.max_borrowing_fee:
            raise ValueError("borrowing_fee_floor must be <= max_borrowing_fee")
        if self.max_borrowing_fee > DECIMAL_PRECISION:
            raise ValueError("max_borrowing_fee must be <= 100%")
        if not (0 < self.minute_decay_factor < DECIMAL_PRECISION):
            raise ValueError("minute_decay_factor must be in (0, 1)")
        if self.flash_fee_bps > BPS_DENOM:
            raise ValueError(f"flash_fee_bps must be in [0, {BPS_DENOM}]: {self.flash_fee_bps}")
        if self.oracle_max_staleness_seconds <= 0:
            raise ValueError("oracle_max_staleness_seconds must be positive")

    def net_debt(self, debt: int) -> int:
        """Debt excluding the gas-compensation reserve."""
        return debt - self.gas_compensation

    def composite_debt(self, net_debt: int) -> int:
        """Net debt plus the gas-compensation reserve."""
        return net_debt + self.gas_compensation


DEFAULT_PARAMS = ProtocolParams()
