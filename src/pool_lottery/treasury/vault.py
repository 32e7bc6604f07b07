"""In-memory treasury for the pool lottery.

Holds two kinds of value: each account's external holdings (what a player can
spend) and the pooled vault (everything deposited into the game and not yet
claimed). Every transfer moves value between the two; nothing is created
except through ``fund``.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Dict, Optional

from pool_lottery.lottery.exceptions import InsufficientFunds
from pool_lottery.utils.common import normalize_address
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class Vault:
    """Custodian of external account balances and the pooled game vault."""

    def __init__(self, initial_balances: Optional[Dict[str, int]] = None) -> None:
        self._lock = Lock()
        self._accounts: Dict[str, int] = {}
        self._vault = 0
        self._total_deposited = 0
        self._total_paid_out = 0
        for address, amount in (initial_balances or {}).items():
            self.fund(address, int(amount))

    def fund(self, address: str, amount: int) -> int:
        """Credit external holdings of ``address`` (faucet / genesis balances)."""
        if amount <= 0:
            raise ValueError("Funding amount must be positive")
        address = normalize_address(address)
        with self._lock:
            self._accounts[address] = self._accounts.get(address, 0) + amount
            balance = self._accounts[address]
        logger.info("Funded %s with %s (balance %s)", address, amount, balance)
        return balance

    def withdraw(self, caller: str, amount: int) -> int:
        """Move ``amount`` from the caller's holdings into the vault."""
        caller = normalize_address(caller)
        with self._lock:
            available = self._accounts.get(caller, 0)
            if amount > available:
                raise InsufficientFunds(caller, amount, available)
            self._accounts[caller] = available - amount
            self._vault += amount
            self._total_deposited += amount
        logger.debug("Withdrew %s from %s into vault", amount, caller)
        return amount

    def deposit(self, address: str, amount: int) -> None:
        """Pay ``amount`` out of the vault into the holdings of ``address``."""
        address = normalize_address(address)
        with self._lock:
            if amount > self._vault:
                raise InsufficientFunds("vault", amount, self._vault)
            self._vault -= amount
            self._accounts[address] = self._accounts.get(address, 0) + amount
            self._total_paid_out += amount
        logger.debug("Paid %s from vault to %s", amount, address)

    def balance(self) -> int:
        with self._lock:
            return self._vault

    def account_balance(self, address: str) -> int:
        address = normalize_address(address)
        with self._lock:
            return self._accounts.get(address, 0)

    def get_client_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "vault_balance": self._vault,
                "accounts": len(self._accounts),
                "total_deposited": self._total_deposited,
                "total_paid_out": self._total_paid_out,
            }
