"""Exception types for the CDP engine.

Every error carries a machine-readable ``reason`` and a ``kind``. The atomic
executor in ``integration/transaction.py`` maps them to ``TxResult``.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class ErrorKind(Enum):
    VALIDATION = "validation"   # malformed request or wrong position status
    INVARIANT = "invariant"     # economic rejection
    SECURITY = "security"       # unexpected caller / lender / initiator
    ACCOUNTING = "accounting"   # internal bookkeeping defect


class CdpError(Exception):
    """Base class. Subclasses pin ``kind``."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, reason: str, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        msg = reason if detail is None else f"{reason}: {detail}"
        super().__init__(msg)


class CdpValidationError(CdpError):
    """Raised when a request is malformed or targets a position in the wrong status."""

    kind = ErrorKind.VALIDATION


class CdpInvariantError(CdpError):
    """Raised when the resulting state would violate an economic invariant."""

    kind = ErrorKind.INVARIANT


class CdpSecurityError(CdpError):
    """Raised on identity checks: untrusted lender/initiator, unauthorized operator, re-entry."""

    kind = ErrorKind.SECURITY


class CdpAccountingError(CdpError):
    """Raised when tracked balances disagree with a requested change. Indicates a bug."""

    kind = ErrorKind.ACCOUNTING

    def __init__(self, reason: str, detail: str | None = None, violations: list[str] | None = None) -> None:
        self.violations = list(violations or [])
        super().__init__(reason, detail)
