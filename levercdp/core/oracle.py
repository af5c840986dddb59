"""
Oracle freshness kernel and a manually driven price feed.

The kernel is small and pure; `ManualPriceFeed` is the imperative shell that
stores the last reported price and refuses to serve it once stale.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from .cdp.errors import CdpInvariantError
from .cdp.interfaces import PriceOracle


@dataclass(frozen=True)
class OracleState:
    """Minimal oracle freshness state."""

    price_timestamp: int
    max_staleness_seconds: int

    def __post_init__(self) -> None:
        if self.price_timestamp < 0:
            raise ValueError(f"price_timestamp must be non-negative: {self.price_timestamp}")
        if self.max_staleness_seconds <= 0:
            raise ValueError(
                f"max_staleness_seconds must be positive: {self.max_staleness_seconds}"
            )


def init_oracle_state(max_staleness_seconds: int = 3600) -> OracleState:
    """Initialize oracle state with an empty (0) price timestamp."""
    return OracleState(price_timestamp=0, max_staleness_seconds=max_staleness_seconds)


def is_fresh(state: OracleState, current_timestamp: int) -> bool:
    """Return True if the oracle price timestamp is within the max staleness window."""
    if current_timestamp < 0:
        raise ValueError(f"current_timestamp must be non-negative: {current_timestamp}")
    if state.price_timestamp > current_timestamp:
        return False
    return (current_timestamp - state.price_timestamp) <= state.max_staleness_seconds


def update_price_timestamp(state: OracleState, current_timestamp: int) -> OracleState:
    """Update oracle state to record a new price timestamp."""
    if current_timestamp < 0:
        raise ValueError(f"current_timestamp must be non-negative: {current_timestamp}")
    return replace(state, price_timestamp=current_timestamp)


class ManualPriceFeed(PriceOracle):
    """Price set by the operator (or a test); served only while fresh."""

    def __init__(self, *, clock: Callable[[], int], max_staleness_seconds: int = 3600) -> None:
        self._clock = clock
        self._state = init_oracle_state(max_staleness_seconds)
        self._price = 0

    @property
    def last_good_price(self) -> int:
        return self._price

    def set_price(self, price: int) -> None:
        if not isinstance(price, int) or isinstance(price, bool) or price <= 0:
            raise ValueError(f"price must be a positive int: {price}")
        self._price = price
        self._state = update_price_timestamp(self._state, self._clock())

    def fetch_price(self) -> int:
        if self._price == 0:
            raise CdpInvariantError("price_unavailable", "no price has been reported")
        if not is_fresh(self._state, self._clock()):
            raise CdpInvariantError("stale_price", f"last update at {self._state.price_timestamp}")
        return self._price
