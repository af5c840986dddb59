"""
CDP position engine.

Layout:
- math / fees: integer ratio math and the borrowing fee engine (pure)
- guards / invariants: request validation and post-state checks (pure)
- borrower_operations: open / adjust / close against injected collaborators
- leverage: flash-loan driven leveraged adjustments
"""

from .borrower_operations import BorrowerOperations
from .effects import EventLog, Observation
from .errors import (
    CdpAccountingError,
    CdpError,
    CdpInvariantError,
    CdpSecurityError,
    CdpValidationError,
    ErrorKind,
)
from .fees import BaseRateState, BorrowingFeeResult, calc_borrowing_fee, calc_borrowing_rate, calc_decayed_base_rate
from .interfaces import FLASH_CALLBACK_SUCCESS
from .invariants import check_position
from .leverage import LeverageOrchestrator, reconcile_collateral_change
from .math import DECIMAL_PRECISION, MAX_RATIO, NICR_PRECISION, compute_cr, compute_nominal_cr, dec_mul, dec_pow
from .params import DEFAULT_PARAMS, ProtocolParams
from .types import (
    Address,
    AdjustmentOutcome,
    AdjustmentRequest,
    Event,
    LeverageOutcome,
    LeverageRequest,
    LoanPayload,
    Operation,
    Position,
    PositionStatus,
)

__all__ = [
    "BorrowerOperations",
    "EventLog",
    "Observation",
    "CdpAccountingError",
    "CdpError",
    "CdpInvariantError",
    "CdpSecurityError",
    "CdpValidationError",
    "ErrorKind",
    "BaseRateState",
    "BorrowingFeeResult",
    "calc_borrowing_fee",
    "calc_borrowing_rate",
    "calc_decayed_base_rate",
    "FLASH_CALLBACK_SUCCESS",
    "check_position",
    "LeverageOrchestrator",
    "reconcile_collateral_change",
    "DECIMAL_PRECISION",
    "MAX_RATIO",
    "NICR_PRECISION",
    "compute_cr",
    "compute_nominal_cr",
    "dec_mul",
    "dec_pow",
    "DEFAULT_PARAMS",
    "ProtocolParams",
    "Address",
    "AdjustmentOutcome",
    "AdjustmentRequest",
    "Event",
    "LeverageOutcome",
    "LeverageRequest",
    "LoanPayload",
    "Operation",
    "Position",
    "PositionStatus",
]
