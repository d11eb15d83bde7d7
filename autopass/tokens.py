"""
Token-movement interface consumed by the automation module.

The module itself only ever raises an allowance for a whitelisted spender
(and puts it back after a failed swap). Moving tokens is the spender's job.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Tuple

from .environment import normalize_address
from .errors import InsufficientAllowance, InsufficientBalance

logger = logging.getLogger(__name__)


class FungibleToken(ABC):
    """Standard fungible-asset balance and allowance contract."""

    @abstractmethod
    def balance_of(self, account: str) -> int:
        pass

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set the spender's allowance, replacing any previous value."""
        pass

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int) -> None:
        pass

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        pass

    def increase_allowance(self, owner: str, spender: str, amount: int) -> int:
        """Add to the spender's allowance. Returns the new allowance."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        new_allowance = self.allowance(owner, spender) + amount
        self.approve(owner, spender, new_allowance)
        return new_allowance


class InMemoryToken(FungibleToken):
    """
    Ledger kept in dictionaries.

    Suitable for tests and simulations; balances live only as long as the
    process.
    """

    def __init__(self, symbol: str = "TKN"):
        self.symbol = symbol
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._balances[normalize_address(to)] += amount

    def balance_of(self, account):
        return self._balances.get(normalize_address(account), 0)

    def allowance(self, owner, spender):
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def approve(self, owner, spender, amount):
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        logger.debug("%s allowance %s -> %s: %d", self.symbol, owner, spender, amount)

    def transfer(self, sender, to, amount):
        sender = normalize_address(sender)
        if self._balances[sender] < amount:
            raise InsufficientBalance(b"insufficient balance")
        self._balances[sender] -= amount
        self._balances[normalize_address(to)] += amount

    def transfer_from(self, spender, owner, to, amount):
        key = (normalize_address(owner), normalize_address(spender))
        if self._allowances[key] < amount:
            raise InsufficientAllowance(b"insufficient allowance")
        self.transfer(owner, to, amount)
        self._allowances[key] -= amount
