"""
All-or-nothing execution of CDP operations.

Every mutable collaborator exposes `snapshot()` / `restore(snap)`. The executor
snapshots all participants, runs the operation, and restores every snapshot if
the operation raises, so a failed call leaves no trace: no ledger change, no
token movement, no observation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from ..core.cdp.errors import CdpError, ErrorKind

logger = logging.getLogger(__name__)


class Snapshottable:
    def snapshot(self) -> Any:
        raise NotImplementedError

    def restore(self, snap: Any) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class TxResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    reason: Optional[str] = None


class AtomicExecutor:
    def __init__(self, participants: Sequence[Snapshottable]) -> None:
        if not participants:
            raise ValueError("participants must be non-empty")
        self._participants: List[Snapshottable] = list(participants)

    def _snapshot(self) -> List[Any]:
        return [p.snapshot() for p in self._participants]

    def _restore(self, snaps: List[Any]) -> None:
        for p, snap in zip(self._participants, snaps):
            p.restore(snap)

    def run_or_raise(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run `op`; on any exception restore every participant and re-raise."""
        snaps = self._snapshot()
        try:
            return op(*args, **kwargs)
        except BaseException as exc:
            self._restore(snaps)
            logger.warning("rolled back %s: %s", getattr(op, "__name__", op), exc)
            raise

    def run(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> TxResult:
        """Like `run_or_raise` but maps typed CDP errors to a failed `TxResult`.

        Untyped exceptions still roll back and then propagate: they indicate a
        bug, not a rejected request.
        """
        try:
            value = self.run_or_raise(op, *args, **kwargs)
        except CdpError as exc:
            return TxResult(ok=False, error=str(exc), kind=exc.kind, reason=exc.reason)
        return TxResult(ok=True, value=value)
