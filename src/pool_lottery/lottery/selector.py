"""
Weighted winner selection.

Each unit of stake is one ticket. Tickets are numbered from 1 in entry-list
order, so earlier entries cover the lower ticket numbers. The random draw
``r`` in ``[0, prize_total)`` picks ticket ``r + 1``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from pool_lottery.lottery.models import Entry, WinnerSelection


def select_winner(entries: Sequence[Entry], prize_total: int, random_draw: int) -> WinnerSelection:
    """Walk the entries subtracting stakes until one covers the drawn ticket."""
    if not entries:
        raise ValueError("Cannot select a winner from an empty round")
    if prize_total != sum(entry.stake for entry in entries):
        raise ValueError(f"Prize total {prize_total} does not match the sum of stakes")
    if not 0 <= random_draw < prize_total:
        raise ValueError(f"Random draw {random_draw} outside [0, {prize_total})")

    ticket = random_draw + 1
    remaining = ticket
    for entry in entries:
        if remaining <= entry.stake:
            return WinnerSelection(entry=replace(entry), player_count=len(entries), ticket=ticket)
        remaining -= entry.stake

    # Unreachable while the stakes sum to prize_total.
    raise RuntimeError(f"Ticket {ticket} not covered by any entry")
