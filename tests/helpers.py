"""
helpers.py - Test doubles and builders for the pool lottery tests

Provides deterministic randomness oracles, well-known accounts and an engine
builder usable both from fixtures and from hypothesis tests (which cannot
take function-scoped fixtures).
"""

from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Tuple

from eth_account import Account

from pool_lottery.lottery.engine import LotteryEngine
from pool_lottery.lottery.event_manager import MemoryStore
from pool_lottery.lottery.models import FIXED_ROUND_DURATION
from pool_lottery.treasury.vault import Vault
from pool_lottery.utils.clock import ManualClock
from pool_lottery.utils.crypto import build_auth_message, sign_auth_message

START_TIME = 1_700_000_000
STARTING_BALANCE = 10_000

# Fixed keys so failures are reproducible.
PRIVATE_KEYS = ["0x" + f"{i:02x}" * 32 for i in (1, 2, 3, 4)]
ACCOUNTS = [Account.from_key(key) for key in PRIVATE_KEYS]


class ScriptedRandom:
    """Randomness oracle that replays queued draws, then returns ``low``."""

    def __init__(self, draws: Iterable[int] = ()) -> None:
        self.draws: List[int] = list(draws)
        self.calls: List[Tuple[int, int]] = []

    def queue(self, *draws: int) -> None:
        self.draws.extend(draws)

    def uniform(self, low: int, high_exclusive: int) -> int:
        self.calls.append((low, high_exclusive))
        value = self.draws.pop(0) if self.draws else low
        if not low <= value < high_exclusive:
            raise ValueError(f"Scripted draw {value} outside [{low}, {high_exclusive})")
        return value


class SeededRandom:
    """Reproducible uniform oracle backed by ``random.Random``."""

    def __init__(self, seed: int = 0) -> None:
        self._rng = random.Random(seed)

    def uniform(self, low: int, high_exclusive: int) -> int:
        return self._rng.randrange(low, high_exclusive)


class FailingRandom:
    """Randomness oracle that is unavailable."""

    def uniform(self, low: int, high_exclusive: int) -> int:
        raise RuntimeError("randomness source unavailable")


def build_engine(
    randomness=None,
    balances: Optional[Dict[str, int]] = None,
    config: Optional[dict] = None,
    initialize: bool = True,
) -> Tuple[LotteryEngine, Vault, ManualClock, MemoryStore]:
    """Engine wired to a funded vault, a manual clock and a fresh store."""
    if balances is None:
        balances = {account.address: STARTING_BALANCE for account in ACCOUNTS}
    vault = Vault(balances)
    clock = ManualClock(START_TIME)
    store = MemoryStore()
    engine = LotteryEngine(vault, clock, randomness or ScriptedRandom(), store, config or {})
    if initialize:
        engine.initialize()
    return engine, vault, clock, store


def advance_past_cooldown(clock: ManualClock) -> int:
    """Move the clock just far enough for the next round closure."""
    return clock.advance(FIXED_ROUND_DURATION + 1)


def signed_payload(private_key: str, action: str, nonce: int, **params) -> dict:
    """Request body for a signed API call."""
    address = Account.from_key(private_key).address
    message = build_auth_message(action, address, nonce, params)
    payload = {"address": address, "nonce": nonce, "signature": sign_auth_message(private_key, message)}
    payload.update(params)
    return payload
