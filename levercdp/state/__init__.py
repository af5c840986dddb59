"""
In-memory state for the CDP system
"""

from .balances import BalanceTable
from .pools import ActivePool, DefaultPool, GasPool
from .positions import PositionLedger
from .sorted_positions import SortedPositions
from .tokens import DebtToken, Token

__all__ = [
    "BalanceTable",
    "ActivePool",
    "DefaultPool",
    "GasPool",
    "PositionLedger",
    "SortedPositions",
    "DebtToken",
    "Token",
]
