"""
Entry Registrar - validates deposits and records them across a span of rounds
"""

from typing import Any, Dict

from pool_lottery.lottery.exceptions import InvalidEntry
from pool_lottery.lottery.models import EntryReceipt, GameState
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class EntryRegistrar:
    """Validates and records a deposit into the entry ledger"""

    def __init__(self, config: Dict[str, Any]):
        lottery_config = config.get('lottery', {})
        self.min_stake = int(lottery_config.get('min_stake', 1))
        self.max_rounds_per_entry = int(lottery_config.get('max_rounds_per_entry', 100))
        if self.min_stake < 1:
            raise ValueError("lottery.min_stake must be at least 1")

    def validate(self, round_count: int, stake_per_round: int) -> int:
        """Check the deposit shape and return the total amount to withdraw"""
        if isinstance(round_count, bool) or not isinstance(round_count, int):
            raise InvalidEntry("Round count must be an integer")
        if isinstance(stake_per_round, bool) or not isinstance(stake_per_round, int):
            raise InvalidEntry("Stake per round must be an integer")
        if round_count < 1:
            raise InvalidEntry("Round count must be at least 1")
        if round_count > self.max_rounds_per_entry:
            raise InvalidEntry(f"Round count may not exceed {self.max_rounds_per_entry}")
        if stake_per_round < self.min_stake:
            raise InvalidEntry(f"Stake per round must be at least {self.min_stake}")
        return round_count * stake_per_round

    def record(self, state: GameState, player: str, round_count: int,
               stake_per_round: int, now: int) -> EntryReceipt:
        """Upsert the player into each round of [round, round + round_count).

        The deposit must already have been validated and paid for.
        """
        start_round = state.round
        end_round = start_round + round_count - 1
        for round_id in range(start_round, end_round + 1):
            entry = state.entries.upsert(round_id, player, stake_per_round, now)
            logger.debug(f"Round {round_id}: {player} stake now {entry.stake}")

        return EntryReceipt(
            player=player,
            stake_per_round=stake_per_round,
            start_round=start_round,
            end_round=end_round,
            total_amount=round_count * stake_per_round,
            current_round=state.round,
        )

    def format_receipt(self, receipt: EntryReceipt) -> Dict[str, Any]:
        """Format a receipt for API responses and notifications"""
        return {
            "player": receipt.player,
            "stake_per_round": receipt.stake_per_round,
            "start_round": receipt.start_round,
            "end_round": receipt.end_round,
            "total_amount": receipt.total_amount,
            "round": receipt.current_round,
        }
