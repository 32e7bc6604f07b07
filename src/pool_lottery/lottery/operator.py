"""
Passive lottery operator.

Round closure is a public heartbeat: anyone may call ``start_game`` once the
cooldown has elapsed. The operator is simply a participant that does so on a
timer, signing as its own account:
- If the cooldown has not elapsed: do nothing
- Otherwise: close the round and record the outcome
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from eth_account import Account

from pool_lottery.lottery.engine import LotteryEngine
from pool_lottery.lottery.exceptions import LotteryError
from pool_lottery.lottery.models import RoundResult
from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class PassiveOperator:
    """Heartbeat that advances rounds when they are due."""

    def __init__(self, engine: LotteryEngine, config: Dict[str, Any]) -> None:
        self._engine = engine
        operator_config = config.get("operator", {})
        self._check_interval = float(operator_config.get("check_interval", 5))
        self._max_failures = int(operator_config.get("max_failures", 3))

        private_key = operator_config.get("private_key")
        self.account = Account.from_key(private_key) if private_key else Account.create()
        logger.info("Operator account loaded: %s", self.account.address)

        self._running = False
        self._task: Optional[asyncio.Task[None]] = None
        self.last_result: Optional[RoundResult] = None
        self.rounds_closed = 0
        self.consecutive_failures = 0

    @property
    def address(self) -> str:
        return self.account.address

    async def start(self) -> None:
        """Start the heartbeat loop."""
        if self._running:
            logger.warning("Passive operator already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._heartbeat_loop(), name="lottery-operator")
        logger.info("Passive operator started (interval %ss)", self._check_interval)

    async def stop(self) -> None:
        """Stop the operator."""
        if not self._running:
            return
        logger.info("Stopping passive operator")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Passive operator stopped")

    def get_status(self) -> Dict[str, Any]:
        """Return operator status."""
        last = self.last_result
        return {
            "status": "running" if self._running else "stopped",
            "operator_address": self.address,
            "check_interval": self._check_interval,
            "rounds_closed": self.rounds_closed,
            "consecutive_failures": self.consecutive_failures,
            "last_closed_round": last.closed_round if last else None,
            "last_winner": last.winner if last else None,
        }

    def tick(self) -> Optional[RoundResult]:
        """Close the current round if it is due; returns the outcome or None."""
        if not self._engine.is_initialized:
            return None
        if self._engine.seconds_until_next_round() > 0:
            return None

        try:
            result = self._engine.start_game(self.address)
        except LotteryError as exc:
            # Another caller may have closed the round first.
            self.consecutive_failures += 1
            logger.warning("Round closure failed (%s): %s", exc.code, exc)
            return None

        self.consecutive_failures = 0
        self.rounds_closed += 1
        self.last_result = result
        return result

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception as exc:
                self.consecutive_failures += 1
                logger.error("Operator heartbeat error: %s", exc)
                if self.consecutive_failures >= self._max_failures:
                    logger.error("Operator reached %s consecutive failures", self.consecutive_failures)
            await asyncio.sleep(self._check_interval)
