"""
Multi-asset balance tracking.

Implements BalanceTable[Address, AssetId] -> Amount, shared by every token in a
deployment so a single snapshot captures all balances.
"""

from typing import Dict, Tuple


# Type aliases
Address = str
AssetId = str
Amount = int  # Non-negative integer (arbitrary precision)


class BalanceTable:
    """
    Balance table mapping (account, asset) -> amount.

    Zero balances are not stored.
    """

    def __init__(self):
        self._balances: Dict[Tuple[Address, AssetId], Amount] = {}

    def get(self, account: Address, asset: AssetId) -> Amount:
        """Get balance for (account, asset). Returns 0 if not found."""
        return self._balances.get((account, asset), 0)

    def set(self, account: Address, asset: AssetId, amount: Amount) -> None:
        """
        Set balance for (account, asset).

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((account, asset), None)
        else:
            self._balances[(account, asset)] = amount

    def add(self, account: Address, asset: AssetId, delta: Amount) -> None:
        """
        Add delta to balance (delta may be negative).

        Raises:
            ValueError: If resulting balance would be negative
        """
        current = self.get(account, asset)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(account, asset, new_balance)

    def subtract(self, account: Address, asset: AssetId, delta: Amount) -> None:
        """
        Subtract a non-negative delta from balance.

        Raises:
            ValueError: If delta is negative or insufficient balance
        """
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        self.add(account, asset, -delta)

    def move(self, sender: Address, recipient: Address, asset: AssetId, amount: Amount) -> None:
        """Transfer `amount` of `asset`; the sender is debited first."""
        if amount < 0:
            raise ValueError(f"Amount must be non-negative: {amount}")
        self.subtract(sender, asset, amount)
        self.add(recipient, asset, amount)

    def get_balances_for_asset(self, asset: AssetId) -> Dict[Address, Amount]:
        result = {}
        for (acct, a), amount in self._balances.items():
            if a == asset:
                result[acct] = amount
        return result

    def total_for_asset(self, asset: AssetId) -> Amount:
        return sum(self.get_balances_for_asset(asset).values())

    def snapshot(self) -> Dict[Tuple[Address, AssetId], Amount]:
        return dict(self._balances)

    def restore(self, snap: Dict[Tuple[Address, AssetId], Amount]) -> None:
        self._balances = dict(snap)

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
