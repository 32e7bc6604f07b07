"""
Heartbeat operator tests.
"""

import asyncio

from eth_account import Account

from pool_lottery.lottery.operator import PassiveOperator
from tests.helpers import ACCOUNTS, PRIVATE_KEYS, advance_past_cooldown, build_engine

OPERATOR_KEY = PRIVATE_KEYS[3]


def _operator(engine, **operator_config):
    config = {"operator": {"private_key": OPERATOR_KEY, "check_interval": 0.01}}
    config["operator"].update(operator_config)
    return PassiveOperator(engine, config)


class TestTick:

    def test_uses_configured_account(self):
        engine, *_ = build_engine()
        operator = _operator(engine)
        assert operator.address == Account.from_key(OPERATOR_KEY).address

    def test_ephemeral_account_without_key(self):
        engine, *_ = build_engine()
        operator = PassiveOperator(engine, {})
        assert operator.address.startswith("0x")
        assert len(operator.address) == 42

    def test_does_nothing_before_cooldown(self):
        engine, *_ = build_engine()
        operator = _operator(engine)
        assert operator.tick() is None
        assert engine.get_current_game_status().round == 1

    def test_does_nothing_before_initialization(self):
        engine, *_ = build_engine(initialize=False)
        assert _operator(engine).tick() is None

    def test_closes_due_round(self):
        engine, _, clock, store = build_engine()
        engine.enter_game(ACCOUNTS[0].address, 1, 10)
        engine.enter_game(ACCOUNTS[1].address, 1, 10)
        operator = _operator(engine)
        advance_past_cooldown(clock)

        result = operator.tick()

        assert result.closed_round == 1
        assert result.winner == ACCOUNTS[0].address
        assert engine.get_current_game_status().round == 2
        assert operator.rounds_closed == 1
        assert operator.get_status()["last_winner"] == ACCOUNTS[0].address
        starting = [item for item in store.get_live_feed() if item.event_type == "round_starting"]
        assert starting[0].details["caller"] == operator.address

    def test_one_closure_per_cooldown(self):
        engine, _, clock, _ = build_engine()
        operator = _operator(engine)
        advance_past_cooldown(clock)
        assert operator.tick() is not None
        assert operator.tick() is None
        assert engine.get_current_game_status().round == 2


class TestHeartbeatLoop:

    def test_start_and_stop(self):
        engine, _, clock, _ = build_engine()
        operator = _operator(engine)
        advance_past_cooldown(clock)

        async def scenario():
            await operator.start()
            assert operator.get_status()["status"] == "running"
            await asyncio.sleep(0.05)
            await operator.stop()

        asyncio.run(scenario())

        assert operator.get_status()["status"] == "stopped"
        assert engine.get_current_game_status().round == 2
        assert operator.consecutive_failures == 0
