"""Core data models for the pool lottery."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from pool_lottery.lottery.ledger import EntryLedger, UnclaimedPrizeLedger

# Seconds that must pass between two round closures.
FIXED_ROUND_DURATION = 90

# Declared platform fee. Not applied to prizes or claims.
PLATFORM_FEE_PERCENTAGE = 1


@dataclass
class Entry:
    """A player's cumulative stake in one round."""

    player: str
    stake: int
    entered_at: int


@dataclass
class GameState:
    """The single mutable state owned by the engine."""

    round: int
    last_round_time: int
    entries: EntryLedger
    unclaimed: UnclaimedPrizeLedger


@dataclass
class EntryReceipt:
    """Result of a successful deposit."""

    player: str
    stake_per_round: int
    start_round: int
    end_round: int
    total_amount: int
    current_round: int


@dataclass(frozen=True)
class WinnerSelection:
    """Winning entry (a copy), round size and the 1-indexed ticket drawn."""

    entry: Entry
    player_count: int
    ticket: int


@dataclass
class RoundResult:
    """Outcome of a round closure."""

    closed_round: int
    new_round: int
    player_count: int
    prize: int
    winner: Optional[str] = None
    winning_stake: int = 0
    carried_forward: bool = False
    closed_at: int = 0


@dataclass
class CurrentGameStatus:
    """Aggregate snapshot of the round in progress."""

    round: int
    last_round_time: int
    player_count: int
    prize: int
    entries: List[Entry] = field(default_factory=list)


@dataclass
class GameStatus:
    """Snapshot of the whole game state."""

    round: int
    last_round_time: int
    entries_by_round: Dict[int, List[Entry]]
    unclaimed: Dict[str, int]


class RoundOutcome(str, Enum):
    WINNER = "WINNER"
    NO_WINNER = "NO_WINNER"


@dataclass
class RoundSnapshot:
    """Historical record of a closed round."""

    round_id: int
    outcome: RoundOutcome
    prize: int
    participant_count: int
    winner: Optional[str]
    winning_stake: int
    finished_at: int


@dataclass
class LiveFeedItem:
    """Notification pushed to the activity feed."""

    event_type: str
    message: str
    details: Dict[str, int | str | None]
    event_time: int

    def get_item_id(self) -> str:
        round_id = self.details.get("round", 0)
        return f"{round_id}-{self.event_time}-{self.event_type}"
