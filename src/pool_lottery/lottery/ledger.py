"""
Entry and prize ledgers.

EntryLedger keeps, per round, the ordered list of entries. List order is the
tie-break axis for winner selection, so entries are only ever appended and
never reordered. UnclaimedPrizeLedger keeps winnings that have been credited
but not yet paid out.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple

from pool_lottery.lottery.models import Entry


class EntryLedger:
    """Per-round mapping of player -> cumulative stake."""

    def __init__(self) -> None:
        self._rounds: Dict[int, List[Entry]] = {}

    def get_or_create_round(self, round_id: int) -> List[Entry]:
        """Return the live entry list for ``round_id``, creating it if absent."""
        return self._rounds.setdefault(round_id, [])

    def has_round(self, round_id: int) -> bool:
        return round_id in self._rounds

    def find(self, round_id: int, player: str) -> Optional[Entry]:
        for entry in self._rounds.get(round_id, ()):
            if entry.player == player:
                return entry
        return None

    def upsert(self, round_id: int, player: str, amount: int, entered_at: int) -> Entry:
        """Add ``amount`` to the player's entry in ``round_id`` or append a new one."""
        entries = self.get_or_create_round(round_id)
        for entry in entries:
            if entry.player == player:
                entry.stake += amount
                return entry
        entry = Entry(player=player, stake=amount, entered_at=entered_at)
        entries.append(entry)
        return entry

    def merge(self, round_id: int, carried: Entry) -> Entry:
        """Merge an existing entry into ``round_id``, keeping its stake and entry time."""
        entries = self.get_or_create_round(round_id)
        for entry in entries:
            if entry.player == carried.player:
                entry.stake += carried.stake
                return entry
        entry = replace(carried)
        entries.append(entry)
        return entry

    def remove_entry(self, round_id: int, player: str) -> Optional[Entry]:
        entries = self._rounds.get(round_id)
        if not entries:
            return None
        for index, entry in enumerate(entries):
            if entry.player == player:
                return entries.pop(index)
        return None

    def pop_round(self, round_id: int) -> List[Entry]:
        """Remove the bucket for ``round_id`` and return its entries (empty if absent)."""
        return self._rounds.pop(round_id, [])

    def snapshot(self, round_id: int) -> List[Entry]:
        """Copies of the entries for ``round_id``, in list order."""
        return [replace(entry) for entry in self._rounds.get(round_id, ())]

    def total_stake(self, round_id: int) -> int:
        return sum(entry.stake for entry in self._rounds.get(round_id, ()))

    def player_count(self, round_id: int) -> int:
        return len(self._rounds.get(round_id, ()))

    def rounds(self) -> List[int]:
        return sorted(self._rounds)

    def outstanding(self) -> int:
        """Sum of every stake still held in any round bucket."""
        return sum(entry.stake for entries in self._rounds.values() for entry in entries)

    def stakes_for(self, player: str) -> Dict[int, int]:
        stakes = {}
        for round_id in self.rounds():
            entry = self.find(round_id, player)
            if entry is not None:
                stakes[round_id] = entry.stake
        return stakes


class UnclaimedPrizeLedger:
    """Per-player prizes credited but not yet redeemed."""

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}

    def add(self, player: str, amount: int) -> int:
        self._balances[player] = self._balances.get(player, 0) + amount
        return self._balances[player]

    def get(self, player: str) -> int:
        return self._balances.get(player, 0)

    def take(self, player: str) -> int:
        """Return the player's balance and clear it; 0 if there is none."""
        return self._balances.pop(player, 0)

    def total(self) -> int:
        return sum(self._balances.values())

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(list(self._balances.items()))
