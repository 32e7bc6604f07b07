"""
Conservation Conformance Tests

INVARIANT: for every sequence of operations,

    vault balance == Σ stakes deposited − Σ prizes claimed
                  == Σ stakes still in round buckets + Σ unclaimed prizes

and the total value across the vault and all player accounts never changes.
Failed operations are part of the sequences: they must not move value.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from pool_lottery.lottery.exceptions import InsufficientFunds, NoUnclaimedPrize, RoundTooSoon
from tests.helpers import ACCOUNTS, SeededRandom, advance_past_cooldown, build_engine

PLAYERS = [account.address for account in ACCOUNTS]


# =============================================================================
# STRATEGIES FOR PROPERTY-BASED TESTING
# =============================================================================

enter_op = st.tuples(
    st.just("enter"),
    st.integers(min_value=0, max_value=len(PLAYERS) - 1),
    st.integers(min_value=1, max_value=4),
    st.integers(min_value=1, max_value=2_000),
)
start_op = st.tuples(st.just("start"), st.booleans())
claim_op = st.tuples(st.just("claim"), st.integers(min_value=0, max_value=len(PLAYERS) - 1))

operations = st.lists(st.one_of(enter_op, start_op, claim_op), min_size=1, max_size=40)


def _total_value(engine, vault):
    return engine.vault_balance() + sum(vault.account_balance(p) for p in PLAYERS)


class TestConservationProperties:

    @given(ops=operations, seed=st.integers(min_value=0, max_value=2**32))
    @settings(max_examples=75, deadline=None)
    def test_vault_matches_deposits_minus_claims(self, ops, seed):
        engine, vault, clock, _ = build_engine(SeededRandom(seed))
        deposited = 0
        claimed = 0
        total_before = _total_value(engine, vault)

        for op in ops:
            kind = op[0]
            if kind == "enter":
                _, idx, rounds, stake = op
                try:
                    receipt = engine.enter_game(PLAYERS[idx], rounds, stake)
                    deposited += receipt.total_amount
                except InsufficientFunds:
                    pass
            elif kind == "start":
                _, wait = op
                if wait:
                    advance_past_cooldown(clock)
                round_before = engine.get_current_game_status().round
                try:
                    engine.start_game(PLAYERS[0])
                    assert engine.get_current_game_status().round == round_before + 1
                except RoundTooSoon:
                    assert engine.get_current_game_status().round == round_before
            else:
                _, idx = op
                try:
                    claimed += engine.claim_prize(PLAYERS[idx])
                except NoUnclaimedPrize:
                    pass

            status = engine.get_game_status()
            in_rounds = sum(e.stake for entries in status.entries_by_round.values() for e in entries)
            assert engine.vault_balance() == deposited - claimed
            assert engine.vault_balance() == in_rounds + sum(status.unclaimed.values())
            assert _total_value(engine, vault) == total_before

    @given(stakes=st.lists(st.integers(min_value=1, max_value=500), min_size=2, max_size=4),
           seed=st.integers(min_value=0, max_value=2**32))
    @settings(max_examples=50, deadline=None)
    def test_prize_equals_round_stakes(self, stakes, seed):
        """PROPERTY: a contested round credits exactly its stakes to one winner."""
        engine, _, clock, _ = build_engine(SeededRandom(seed))
        for player, stake in zip(PLAYERS, stakes):
            engine.enter_game(player, 1, stake)
        advance_past_cooldown(clock)

        result = engine.start_game(PLAYERS[0])

        assert result.prize == sum(stakes)
        assert engine.get_unclaimed_prize(result.winner) == sum(stakes)
        assert sum(engine.get_unclaimed_prize(p) for p in PLAYERS) == sum(stakes)
