"""
Weighted winner selection tests.

Tickets are numbered from 1 in entry order; draw r selects ticket r + 1.
"""

import random

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pool_lottery.lottery.models import Entry
from pool_lottery.lottery.selector import select_winner


def _entries(*stakes):
    return [Entry(player=f"P{i}", stake=stake, entered_at=0) for i, stake in enumerate(stakes)]


class TestTicketBoundaries:
    """Earlier entries cover the lower ticket numbers."""

    @pytest.mark.parametrize("draw, expected", [
        (0, "P0"),
        (99, "P0"),
        (100, "P1"),
        (299, "P1"),
        (300, "P2"),
        (599, "P2"),
    ])
    def test_draw_maps_to_covering_entry(self, draw, expected):
        entries = _entries(100, 200, 300)
        selection = select_winner(entries, 600, draw)
        assert selection.entry.player == expected
        assert selection.ticket == draw + 1
        assert selection.player_count == 3

    def test_winner_is_a_copy(self):
        entries = _entries(1, 1)
        selection = select_winner(entries, 2, 1)
        assert selection.entry == entries[1]
        assert selection.entry is not entries[1]


class TestPreconditions:

    def test_empty_entries_rejected(self):
        with pytest.raises(ValueError):
            select_winner([], 0, 0)

    @pytest.mark.parametrize("draw", [-1, 30, 31])
    def test_draw_out_of_range_rejected(self, draw):
        with pytest.raises(ValueError):
            select_winner(_entries(10, 20), 30, draw)

    def test_prize_total_must_match_stakes(self):
        with pytest.raises(ValueError):
            select_winner(_entries(10, 20), 31, 0)


class TestSelectionProperties:

    @given(
        stakes=st.lists(st.integers(min_value=1, max_value=1000), min_size=1, max_size=20),
        data=st.data(),
    )
    @settings(max_examples=200)
    def test_winner_range_contains_ticket(self, stakes, data):
        """PROPERTY: the winner's cumulative ticket range contains the drawn ticket."""
        entries = _entries(*stakes)
        total = sum(stakes)
        draw = data.draw(st.integers(min_value=0, max_value=total - 1))

        selection = select_winner(entries, total, draw)
        index = int(selection.entry.player[1:])
        covered_before = sum(stakes[:index])
        assert covered_before < selection.ticket <= covered_before + stakes[index]

    def test_weighted_fairness(self):
        """Empirical win rate converges to stake share."""
        rng = random.Random(1234)
        entries = _entries(1, 3)
        trials = 20_000
        wins = sum(
            1 for _ in range(trials)
            if select_winner(entries, 4, rng.randrange(0, 4)).entry.player == "P0"
        )
        assert abs(wins / trials - 0.25) < 0.02
