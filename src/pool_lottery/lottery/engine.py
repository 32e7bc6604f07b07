"""
Lottery Engine - round bookkeeping, round closure and prize settlement

The engine owns the single GameState. Every public operation runs under one
re-entrant lock, performs all of its checks (and the random draw) before its
first write, and publishes its notifications only after the state change is
complete. A failed call therefore leaves no trace: no mutation, no events.
"""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from pool_lottery.lottery.event_manager import MemoryStore
from pool_lottery.lottery.exceptions import (
    NoUnclaimedPrize,
    RoundTooSoon,
    StateAlreadyInitialized,
    StateNotInitialized,
)
from pool_lottery.lottery.ledger import EntryLedger, UnclaimedPrizeLedger
from pool_lottery.lottery.models import (
    FIXED_ROUND_DURATION,
    PLATFORM_FEE_PERCENTAGE,
    CurrentGameStatus,
    EntryReceipt,
    GameState,
    GameStatus,
    RoundResult,
)
from pool_lottery.lottery.registrar import EntryRegistrar
from pool_lottery.lottery.selector import select_winner
from pool_lottery.utils.clock import SystemClock
from pool_lottery.utils.common import normalize_address
from pool_lottery.utils.crypto import SecureRandom
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)

Event = Tuple[str, Dict[str, Any]]


class LotteryEngine:
    """Round-based pooled lottery.

    Collaborators:
        treasury: ``withdraw(caller, amount)``, ``deposit(address, amount)``, ``balance()``
        clock: ``now() -> int``
        randomness: ``uniform(low, high_exclusive) -> int``
        store: notification sink with ``emit(event_type, details)``
    """

    def __init__(self, treasury, clock=None, randomness=None,
                 store: Optional[MemoryStore] = None, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        lottery_config = self.config.get('lottery', {})

        self._treasury = treasury
        self._clock = clock or SystemClock()
        self._randomness = randomness or SecureRandom()
        self._store = store or MemoryStore(
            feed_capacity=int(lottery_config.get('feed_capacity', 100)),
            history_capacity=int(lottery_config.get('history_capacity', 50)),
        )
        self.registrar = EntryRegistrar(self.config)

        self._state: Optional[GameState] = None
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """One-time setup of the game state; round 1 starts now."""
        with self._lock:
            if self._state is not None:
                raise StateAlreadyInitialized()
            now = self._clock.now()
            self._state = GameState(
                round=1,
                last_round_time=now,
                entries=EntryLedger(),
                unclaimed=UnclaimedPrizeLedger(),
            )
        logger.info(f"Lottery engine initialized at {now}, round 1 open")

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    @property
    def store(self) -> MemoryStore:
        return self._store

    @property
    def platform_fee_percentage(self) -> int:
        return PLATFORM_FEE_PERCENTAGE

    def _require_state(self) -> GameState:
        if self._state is None:
            raise StateNotInitialized()
        return self._state

    def _publish(self, events: List[Event]) -> None:
        for event_type, details in events:
            self._store.emit(event_type, details)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------
    def enter_game(self, caller: str, round_count: int, stake_per_round: int) -> EntryReceipt:
        """Deposit ``round_count * stake_per_round`` and enter the next ``round_count`` rounds."""
        player = normalize_address(caller)
        with self._lock:
            state = self._require_state()
            total = self.registrar.validate(round_count, stake_per_round)
            now = self._clock.now()

            self._treasury.withdraw(player, total)
            receipt = self.registrar.record(state, player, round_count, stake_per_round, now)

            details = self.registrar.format_receipt(receipt)
            details["timestamp"] = now
            self._publish([("player_entered", details)])

        logger.info(f"{player} entered rounds {receipt.start_round}-{receipt.end_round} "
                    f"with {stake_per_round} per round")
        return receipt

    # ------------------------------------------------------------------
    # Round closure
    # ------------------------------------------------------------------
    def start_game(self, caller: str) -> RoundResult:
        """Close the current round and advance to the next one.

        More than one player: a stake-weighted winner is credited the whole
        prize. One player: the entry is carried into the next round, unpaid.
        No players: nothing happens besides the advance.
        """
        caller = normalize_address(caller)
        with self._lock:
            state = self._require_state()
            now = self._clock.now()
            earliest = state.last_round_time + FIXED_ROUND_DURATION + 1
            if now < earliest:
                raise RoundTooSoon(now, earliest)

            round_id = state.round
            entries = state.entries.snapshot(round_id)
            prize = sum(entry.stake for entry in entries)
            player_count = len(entries)

            events: List[Event] = [("round_starting", {
                "round": round_id,
                "prize": prize,
                "player_count": player_count,
                "caller": caller,
                "timestamp": now,
            })]
            for entry in entries:
                events.append(("round_entry", {
                    "round": round_id,
                    "player": entry.player,
                    "stake": entry.stake,
                    "entered_at": entry.entered_at,
                    "timestamp": now,
                }))

            result = RoundResult(
                closed_round=round_id,
                new_round=round_id + 1,
                player_count=player_count,
                prize=prize,
                closed_at=now,
            )

            if player_count > 1:
                draw = self._randomness.uniform(0, prize)
                selection = select_winner(entries, prize, draw)
                result.winner = selection.entry.player
                result.winning_stake = selection.entry.stake

                state.entries.pop_round(round_id)
                state.unclaimed.add(selection.entry.player, prize)
                events.append(("winner_selected", {
                    "round": round_id,
                    "winner": selection.entry.player,
                    "prize": prize,
                    "player_count": player_count,
                    "winning_stake": selection.entry.stake,
                    "ticket": selection.ticket,
                    "timestamp": now,
                }))
            elif player_count == 1:
                sole = state.entries.remove_entry(round_id, entries[0].player)
                merged = state.entries.merge(round_id + 1, sole)
                result.carried_forward = True
                events.append(("no_winner", {
                    "round": round_id,
                    "player": sole.player,
                    "prize": sole.stake,
                    "player_count": 1,
                    "carried_to": round_id + 1,
                    "next_round_stake": merged.stake,
                    "timestamp": now,
                }))
            else:
                events.append(("no_winner", {
                    "round": round_id,
                    "prize": 0,
                    "player_count": 0,
                    "timestamp": now,
                }))

            self._update_game_state(state, now, events)
            self._publish(events)

        if result.winner:
            logger.info(f"Round {round_id} closed: winner {result.winner} takes {prize} "
                        f"({player_count} players)")
        elif result.carried_forward:
            logger.info(f"Round {round_id} closed with a single player; stake carried to round {round_id + 1}")
        else:
            logger.info(f"Round {round_id} closed with no players")
        return result

    def _update_game_state(self, state: GameState, now: int, events: List[Event]) -> None:
        closed = state.round
        if state.entries.has_round(closed):
            state.entries.pop_round(closed)
        state.round = closed + 1
        state.last_round_time = now
        events.append(("round_advanced", {"round": state.round, "previous_round": closed, "timestamp": now}))
        events.append(("round_time_updated", {"round": state.round, "last_round_time": now, "timestamp": now}))

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------
    def claim_prize(self, caller: str) -> int:
        """Pay the caller's whole unclaimed balance out of the treasury."""
        player = normalize_address(caller)
        with self._lock:
            state = self._require_state()
            amount = state.unclaimed.get(player)
            if amount == 0:
                raise NoUnclaimedPrize(player)

            # Ledger is cleared only once the payout has gone through.
            self._treasury.deposit(player, amount)
            state.unclaimed.take(player)

            self._publish([("prize_claimed", {
                "player": player,
                "amount": amount,
                "round": state.round,
                "timestamp": self._clock.now(),
            })])

        logger.info(f"{player} claimed {amount}")
        return amount

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def vault_balance(self) -> int:
        with self._lock:
            self._require_state()
            return self._treasury.balance()

    def get_game_status(self) -> GameStatus:
        with self._lock:
            state = self._require_state()
            return GameStatus(
                round=state.round,
                last_round_time=state.last_round_time,
                entries_by_round={r: state.entries.snapshot(r) for r in state.entries.rounds()},
                unclaimed=dict(state.unclaimed.items()),
            )

    def get_last_round_time(self) -> int:
        with self._lock:
            return self._require_state().last_round_time

    def get_unclaimed_prize(self, address: str) -> int:
        player = normalize_address(address)
        with self._lock:
            return self._require_state().unclaimed.get(player)

    def get_current_round_player(self) -> int:
        with self._lock:
            state = self._require_state()
            return state.entries.player_count(state.round)

    def get_current_round_prize(self) -> int:
        with self._lock:
            state = self._require_state()
            return state.entries.total_stake(state.round)

    def get_current_game_status(self) -> CurrentGameStatus:
        with self._lock:
            state = self._require_state()
            entries = state.entries.snapshot(state.round)
            return CurrentGameStatus(
                round=state.round,
                last_round_time=state.last_round_time,
                player_count=len(entries),
                prize=sum(entry.stake for entry in entries),
                entries=entries,
            )

    def get_player_rounds(self, address: str) -> Dict[int, int]:
        """Stake per round for every round the player is entered in."""
        player = normalize_address(address)
        with self._lock:
            return self._require_state().entries.stakes_for(player)

    def seconds_until_next_round(self) -> int:
        with self._lock:
            state = self._require_state()
            earliest = state.last_round_time + FIXED_ROUND_DURATION + 1
            return max(0, earliest - self._clock.now())
