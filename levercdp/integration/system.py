"""
In-memory deployment of the CDP system.

`deploy_system()` wires the reference collaborators together and returns a
`CdpSystem` facade. Every state-changing facade method runs inside the atomic
executor: it either completes or leaves every balance, ledger entry and
observation exactly as it found them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from ..core.cdp.borrower_operations import BorrowerOperations
from ..core.cdp.effects import EventLog
from ..core.cdp.leverage import LeverageOrchestrator
from ..core.cdp.math import compute_cr
from ..core.cdp.params import DEFAULT_PARAMS, ProtocolParams
from ..core.cdp.types import Address, AdjustmentOutcome, AdjustmentRequest, LeverageOutcome, LeverageRequest
from ..core.oracle import ManualPriceFeed
from ..state.balances import BalanceTable
from ..state.pools import ActivePool, DefaultPool, GasPool
from ..state.positions import PositionLedger
from ..state.sorted_positions import SortedPositions
from ..state.tokens import DebtToken, Token
from .swap_venue import CpmmSwapVenue
from .transaction import AtomicExecutor, TxResult

logger = logging.getLogger(__name__)

COLLATERAL_ASSET = "COLL"
DEBT_ASSET = "DEBT"

COLLATERAL_TOKEN_ADDRESS = "coll-token"
DEBT_TOKEN_ADDRESS = "debt-token"
ACTIVE_POOL_ADDRESS = "active-pool"
DEFAULT_POOL_ADDRESS = "default-pool"
GAS_POOL_ADDRESS = "gas-pool"
FEE_RECIPIENT_ADDRESS = "fee-recipient"
ORCHESTRATOR_ADDRESS = "leverage-orchestrator"
SWAP_VENUE_ADDRESS = "swap-venue"


class ManualClock:
    """Deterministic clock in seconds."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError(f"start must be non-negative: {start}")
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"seconds must be non-negative: {seconds}")
        self.now += seconds
        return self.now


@dataclass
class CdpSystem:
    params: ProtocolParams
    clock: Callable[[], int]
    balances: BalanceTable
    collateral_token: Token
    debt_token: DebtToken
    price_feed: ManualPriceFeed
    active_pool: ActivePool
    default_pool: DefaultPool
    gas_pool: GasPool
    ledger: PositionLedger
    sorted_positions: SortedPositions
    events: EventLog
    borrower_operations: BorrowerOperations
    swap_venue: CpmmSwapVenue
    leverage: LeverageOrchestrator
    executor: AtomicExecutor

    # ------------------------------------------------------------------
    # Borrower operations
    # ------------------------------------------------------------------

    def open_position(
        self,
        caller: Address,
        coll_amount: int,
        debt_amount: int,
        max_fee_percentage: int,
        upper_hint: Optional[Address] = None,
        lower_hint: Optional[Address] = None,
    ) -> AdjustmentOutcome:
        return self.executor.run_or_raise(
            self.borrower_operations.open_position,
            caller, coll_amount, debt_amount, max_fee_percentage, upper_hint, lower_hint,
        )

    def adjust_position(self, caller: Address, request: AdjustmentRequest) -> AdjustmentOutcome:
        return self.executor.run_or_raise(self.borrower_operations.adjust_position, caller, request)

    def add_collateral(self, caller: Address, amount: int) -> AdjustmentOutcome:
        return self.executor.run_or_raise(self.borrower_operations.add_collateral, caller, amount)

    def withdraw_collateral(self, caller: Address, amount: int) -> AdjustmentOutcome:
        return self.executor.run_or_raise(self.borrower_operations.withdraw_collateral, caller, amount)

    def withdraw_debt(self, caller: Address, amount: int, max_fee_percentage: int) -> AdjustmentOutcome:
        return self.executor.run_or_raise(
            self.borrower_operations.withdraw_debt, caller, amount, max_fee_percentage
        )

    def repay_debt(self, caller: Address, amount: int) -> AdjustmentOutcome:
        return self.executor.run_or_raise(self.borrower_operations.repay_debt, caller, amount)

    def close_position(self, caller: Address) -> AdjustmentOutcome:
        return self.executor.run_or_raise(self.borrower_operations.close_position, caller)

    def adjust_leverage(self, caller: Address, request: LeverageRequest) -> LeverageOutcome:
        return self.executor.run_or_raise(self.leverage.adjust_leverage, caller, request)

    def execute(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> TxResult:
        """Run any operation atomically and report the result instead of raising."""
        return self.executor.run(op, *args, **kwargs)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_entire_debt_and_coll(self, account: Address) -> Tuple[int, int, int, int]:
        return self.ledger.get_entire_debt_and_coll(account)

    def get_current_icr(self, account: Address, price: int) -> int:
        return self.borrower_operations.get_current_icr(account, price)

    def get_nominal_icr(self, account: Address) -> int:
        return self.borrower_operations.get_nominal_icr(account)

    def get_tcr(self, price: int) -> int:
        """System-wide collateral ratio over the active and default pools."""
        coll = self.active_pool.get_collateral() + self.default_pool.get_collateral()
        debt = self.active_pool.get_debt() + self.default_pool.get_debt()
        return compute_cr(coll, debt, price)

    def get_net_debt(self, debt: int) -> int:
        return self.params.net_debt(debt)

    def get_composite_debt(self, net_debt: int) -> int:
        return self.params.composite_debt(net_debt)


def deploy_system(
    params: ProtocolParams = DEFAULT_PARAMS,
    *,
    clock: Optional[Callable[[], int]] = None,
    swap_fee_bps: int = 30,
    max_positions: Optional[int] = None,
) -> CdpSystem:
    clock = clock if clock is not None else ManualClock()
    balances = BalanceTable()
    coll_token = Token(balances, address=COLLATERAL_TOKEN_ADDRESS, asset=COLLATERAL_ASSET)
    debt_token = DebtToken(
        balances,
        address=DEBT_TOKEN_ADDRESS,
        asset=DEBT_ASSET,
        flash_fee_bps=params.flash_fee_bps,
        flash_fee_recipient=FEE_RECIPIENT_ADDRESS,
    )
    price_feed = ManualPriceFeed(clock=clock, max_staleness_seconds=params.oracle_max_staleness_seconds)
    active_pool = ActivePool(address=ACTIVE_POOL_ADDRESS, collateral_token=coll_token)
    default_pool = DefaultPool(address=DEFAULT_POOL_ADDRESS, collateral_token=coll_token)
    gas_pool = GasPool(GAS_POOL_ADDRESS)
    ledger = PositionLedger(active_pool=active_pool, default_pool=default_pool)
    sorted_positions = SortedPositions(max_positions)
    events = EventLog()

    ops = BorrowerOperations(
        params=params,
        ledger=ledger,
        sorted_positions=sorted_positions,
        active_pool=active_pool,
        gas_pool_address=gas_pool.address,
        debt_token=debt_token,
        collateral_token=coll_token,
        price_feed=price_feed,
        events=events,
        fee_recipient=FEE_RECIPIENT_ADDRESS,
        clock=clock,
    )

    venue = CpmmSwapVenue(address=SWAP_VENUE_ADDRESS, fee_bps=swap_fee_bps)
    venue.register_token(coll_token)
    venue.register_token(debt_token)

    orchestrator = LeverageOrchestrator(
        address=ORCHESTRATOR_ADDRESS,
        borrower_operations=ops,
        debt_token=debt_token,
        collateral_token=coll_token,
        swap_venue=venue,
        events=events,
        params=params,
    )
    ops.authorize_operator(orchestrator.address)

    executor = AtomicExecutor([balances, ledger, sorted_positions, active_pool, default_pool, events])
    logger.debug("deployed CDP system (mcr=%d, min_net_debt=%d)", params.mcr, params.min_net_debt)

    return CdpSystem(
        params=params,
        clock=clock,
        balances=balances,
        collateral_token=coll_token,
        debt_token=debt_token,
        price_feed=price_feed,
        active_pool=active_pool,
        default_pool=default_pool,
        gas_pool=gas_pool,
        ledger=ledger,
        sorted_positions=sorted_positions,
        events=events,
        borrower_operations=ops,
        swap_venue=venue,
        leverage=orchestrator,
        executor=executor,
    )
