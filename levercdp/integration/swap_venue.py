"""
Reference swap venue: one constant-product pool per token pair.

Reserves are the venue's own token balances, so a swap is two real transfers
on the shared balance table. The opaque payload is accepted for interface
compatibility and not interpreted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from ..core.cdp.errors import CdpInvariantError, CdpValidationError
from ..core.cdp.interfaces import SwapVenue, TokenInterface
from ..core.cpmm import swap_exact_in

logger = logging.getLogger(__name__)


class CpmmSwapVenue(SwapVenue):
    def __init__(self, *, address: str, fee_bps: int = 30) -> None:
        if not (0 <= fee_bps <= 10_000):
            raise ValueError(f"fee_bps must be in [0, 10000]: {fee_bps}")
        self.address = address
        self.fee_bps = fee_bps
        self._tokens: Dict[str, TokenInterface] = {}

    def register_token(self, token: TokenInterface) -> None:
        self._tokens[token.asset] = token

    def reserves(self, token_in: str, token_out: str) -> Tuple[int, int]:
        return (
            self._token(token_in).balance_of(self.address),
            self._token(token_out).balance_of(self.address),
        )

    def _token(self, asset: str) -> TokenInterface:
        token = self._tokens.get(asset)
        if token is None:
            raise CdpValidationError("unsupported_swap_token", asset)
        return token

    def add_liquidity(self, provider: str, amounts: Dict[str, int]) -> None:
        for asset, amount in amounts.items():
            self._token(asset).transfer(provider, self.address, amount)

    def quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        reserve_in, reserve_out = self.reserves(token_in, token_out)
        amount_out, _ = swap_exact_in(reserve_in, reserve_out, amount_in, self.fee_bps)
        return amount_out

    def swap(
        self,
        caller: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        guard_amount: int,
        payload: Any = None,
    ) -> int:
        if token_in == token_out:
            raise CdpValidationError("invalid_swap_pair", token_in)
        tin = self._token(token_in)
        tout = self._token(token_out)
        if tin.balance_of(caller) < amount_in:
            raise CdpInvariantError("insufficient_balance", f"{token_in}: {tin.balance_of(caller)} < {amount_in}")

        try:
            amount_out = self.quote(token_in, token_out, amount_in)
        except ValueError as exc:
            raise CdpInvariantError("swap_failed", str(exc)) from exc
        if amount_out < guard_amount:
            raise CdpInvariantError("swap_output_below_minimum", f"{amount_out} < {guard_amount}")

        tin.transfer(caller, self.address, amount_in)
        tout.transfer(self.address, caller, amount_out)
        logger.debug("swap %s %d %s -> %d %s", caller, amount_in, token_in, amount_out, token_out)
        return amount_out
