"""In-memory notification sink for the pool lottery."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import asdict
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from pool_lottery.lottery.models import LiveFeedItem, RoundOutcome, RoundSnapshot
from pool_lottery.utils.common import shorten_address
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)

# Every event published to listeners is also available under this wildcard.
ANY_EVENT = "*"


class MemoryStore:
    """Volatile storage for the live feed and round history, with listener fan-out."""

    def __init__(self, *, feed_capacity: int = 100, history_capacity: int = 50) -> None:
        self._lock = Lock()
        self._listeners: Dict[str, List[Callable[[str, dict], None]]] = defaultdict(list)
        self._feed_capacity = feed_capacity
        self._history_capacity = history_capacity
        self._live_feed: deque[LiveFeedItem] = deque(maxlen=feed_capacity)
        self._history: deque[RoundSnapshot] = deque(maxlen=history_capacity)

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[str, dict], None]) -> None:
        with self._lock:
            self._listeners[event_type].append(callback)
        logger.debug(f"[MemoryStore] Adding listener for event_type={event_type}, callback={callback}")

    def _notify(self, event_type: str, payload: dict) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event_type, [])) + list(self._listeners.get(ANY_EVENT, []))
        for callback in listeners:
            try:
                callback(event_type, payload)
            except Exception as exc:  # pragma: no cover
                logger.error("Listener for %s failed: %s", event_type, exc)

    # ------------------------------------------------------------------
    # Notification sink
    # ------------------------------------------------------------------
    def emit(self, event_type: str, details: Dict[str, Any] | None = None) -> LiveFeedItem:
        """Record one notification and fan it out to listeners."""
        safe_details = dict(details or {})
        feed_item = LiveFeedItem(
            event_type=event_type,
            message=self._describe(event_type, safe_details),
            details=safe_details,
            event_time=int(safe_details.get("timestamp", 0) or 0),
        )

        with self._lock:
            self._live_feed.append(feed_item)
        logger.info("[MemoryStore] %s: %s", event_type, feed_item.message)

        if event_type in ("winner_selected", "no_winner"):
            self.add_history_snapshot(event_type=event_type, details=safe_details)

        self._notify(event_type, self.serialize_feed_item(feed_item))
        return feed_item

    def add_history_snapshot(self, *, event_type: str, details: Dict[str, Any]) -> RoundSnapshot:
        """Append a RoundSnapshot built from a winner/no-winner notification."""
        winner = details.get("winner") if event_type == "winner_selected" else None
        snapshot = RoundSnapshot(
            round_id=int(details.get("round", 0)),
            outcome=RoundOutcome.WINNER if winner else RoundOutcome.NO_WINNER,
            prize=int(details.get("prize", 0)),
            participant_count=int(details.get("player_count", 0)),
            winner=winner,
            winning_stake=int(details.get("winning_stake", 0)) if winner else 0,
            finished_at=int(details.get("timestamp", 0)),
        )
        with self._lock:
            self._history.append(snapshot)
        logger.debug(f"[MemoryStore] Added history snapshot: {snapshot}")
        return snapshot

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get_round_history(self, limit: Optional[int] = None) -> List[RoundSnapshot]:
        with self._lock:
            items = list(self._history)
        if limit is not None:
            return items[-limit:]
        return items

    def get_live_feed(self, limit: Optional[int] = None) -> List[LiveFeedItem]:
        with self._lock:
            items = list(self._live_feed)
        if limit is not None:
            return items[-limit:]
        return items

    def event_types(self) -> List[str]:
        """Event types in the feed, oldest first."""
        with self._lock:
            return [item.event_type for item in self._live_feed]

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    @staticmethod
    def serialize_feed_item(item: LiveFeedItem) -> dict:
        return {
            "id": item.get_item_id(),
            "event_type": item.event_type,
            "message": item.message,
            "details": item.details,
            "event_time": item.event_time,
        }

    @staticmethod
    def serialize_snapshot(snapshot: RoundSnapshot) -> dict:
        payload = asdict(snapshot)
        payload["outcome"] = snapshot.outcome.value
        return payload

    @staticmethod
    def _describe(event_type: str, details: Dict[str, Any]) -> str:
        player = shorten_address(str(details.get("player") or details.get("winner") or ""))
        round_id = details.get("round")
        if event_type == "player_entered":
            return (f"{player} staked {details.get('stake_per_round')} per round "
                    f"for rounds {details.get('start_round')}-{details.get('end_round')}")
        if event_type == "round_starting":
            return (f"Round {round_id} closing with {details.get('player_count')} players "
                    f"and prize {details.get('prize')}")
        if event_type == "round_entry":
            return f"Round {round_id}: {player} in with stake {details.get('stake')}"
        if event_type == "winner_selected":
            return f"Round {round_id} won by {player}, prize {details.get('prize')}"
        if event_type == "no_winner":
            return f"Round {round_id} had no winner ({details.get('player_count')} players)"
        if event_type == "round_advanced":
            return f"Round advanced to {details.get('round')}"
        if event_type == "round_time_updated":
            return f"Last round time set to {details.get('last_round_time')}"
        if event_type == "prize_claimed":
            return f"{player} claimed {details.get('amount')}"
        return event_type
