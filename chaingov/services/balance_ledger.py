"""Voting-weight balance ledger.

The governance engine only ever reads balances through the ``BalanceLedger``
protocol. Balances are mutated exclusively by the minting authority.
"""
from typing import Dict, Iterable, Optional, Protocol, Tuple

from chaingov.services.errors import NotAuthorized

# Balances and tallies are persisted in signed 64-bit columns
MAX_TOTAL_SUPPLY = 2**63 - 1


class BalanceLedger(Protocol):
    """Read capability over account balances."""

    def get(self, account: str) -> int:
        ...


class OwnedBalanceLedger:
    """In-memory balance ledger whose only mutation is owner-gated minting."""

    def __init__(self, owner: str, balances: Optional[Dict[str, int]] = None):
        self.owner = owner
        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        if balances:
            self.restore(balances.items())

    def get(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balances(self) -> Dict[str, int]:
        return dict(self._balances)

    def mint(self, amount: int, recipient: str, caller: str) -> int:
        """
        Credit ``amount`` to ``recipient``.

        Args:
            amount: Weight units to mint (non-negative)
            recipient: Account receiving the weight
            caller: Identity invoking the mint; must equal the owner

        Returns:
            The recipient's new balance
        """
        if caller != self.owner:
            raise NotAuthorized(f"{caller} is not the minting authority")
        if amount < 0:
            raise ValueError("mint amount must be non-negative")
        if self._total_supply + amount > MAX_TOTAL_SUPPLY:
            raise OverflowError("mint would exceed the maximum total supply")

        self._balances[recipient] = self.get(recipient) + amount
        self._total_supply += amount
        return self._balances[recipient]

    def restore(self, balances: Iterable[Tuple[str, int]]) -> None:
        """Replace all balances with stored values."""
        restored: Dict[str, int] = {}
        total = 0
        for account, balance in balances:
            if balance < 0:
                raise ValueError(f"negative stored balance for {account}")
            restored[account] = balance
            total += balance
        if total > MAX_TOTAL_SUPPLY:
            raise OverflowError("stored balances exceed the maximum total supply")
        self._balances = restored
        self._total_supply = total

    def snapshot(self) -> Tuple[Dict[str, int], int]:
        return dict(self._balances), self._total_supply

    def rollback(self, snapshot: Tuple[Dict[str, int], int]) -> None:
        balances, total_supply = snapshot
        self._balances = dict(balances)
        self._total_supply = total_supply
