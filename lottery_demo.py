#!/usr/bin/env python3
"""
Pool Lottery Demo

Runs a few rounds against an in-memory vault on a manual clock and prints
what happens: multi-round entries, a sole-player carry-forward, a weighted
draw and a prize claim.
"""

import argparse
import random

from eth_account import Account

from pool_lottery.lottery.engine import LotteryEngine
from pool_lottery.lottery.exceptions import LotteryError
from pool_lottery.lottery.models import FIXED_ROUND_DURATION
from pool_lottery.treasury.vault import Vault
from pool_lottery.utils.clock import ManualClock
from pool_lottery.utils.crypto import SecureRandom
from pool_lottery.utils.common import shorten_address


class SeededRandom:
    """Reproducible draws for demo runs with --seed."""

    def __init__(self, seed):
        self._rng = random.Random(seed)

    def uniform(self, low, high_exclusive):
        return self._rng.randrange(low, high_exclusive)


class LotteryDemo:
    def __init__(self, seed=None, rounds=4):
        self.rounds = rounds
        self.users = {name: Account.create() for name in ("Alice", "Bob", "Carol")}
        self.names = {account.address: name for name, account in self.users.items()}
        self.vault = Vault({account.address: 1_000 for account in self.users.values()})
        self.clock = ManualClock(1_700_000_000)
        randomness = SeededRandom(seed) if seed is not None else SecureRandom()
        self.engine = LotteryEngine(self.vault, self.clock, randomness)

    def print_header(self, title):
        print(f"\n{'=' * 60}")
        print(f"{title}")
        print('=' * 60)

    def label(self, address):
        return self.names.get(address, shorten_address(address))

    def show_round(self):
        status = self.engine.get_current_game_status()
        print(f"   Round {status.round}: {status.player_count} players, prize {status.prize}")
        for entry in status.entries:
            print(f"     - {self.label(entry.player)}: stake {entry.stake}")

    def close_round(self):
        self.clock.advance(FIXED_ROUND_DURATION + 1)
        caller = self.users["Carol"].address
        result = self.engine.start_game(caller)
        if result.winner:
            print(f"   Round {result.closed_round} won by {self.label(result.winner)} "
                  f"(stake {result.winning_stake} of {result.prize})")
        elif result.carried_forward:
            print(f"   Round {result.closed_round} had a single player; stake carried to round {result.new_round}")
        else:
            print(f"   Round {result.closed_round} had no players")

    def run(self):
        self.print_header("Pool Lottery Demo")
        self.engine.initialize()

        print("\n1. Alice enters alone for one round")
        self.engine.enter_game(self.users["Alice"].address, 1, 100)
        self.show_round()
        self.close_round()
        self.show_round()

        print("\n2. Bob enters three rounds at 50 each")
        self.engine.enter_game(self.users["Bob"].address, 3, 50)
        self.show_round()

        for _ in range(self.rounds):
            print()
            self.close_round()
            self.show_round()

        print("\n3. Claims")
        for name, account in self.users.items():
            try:
                amount = self.engine.claim_prize(account.address)
                print(f"   {name} claimed {amount}")
            except LotteryError as exc:
                print(f"   {name}: {exc}")

        self.print_header("Final balances")
        for name, account in self.users.items():
            print(f"   {name}: {self.vault.account_balance(account.address)}")
        print(f"   Vault: {self.engine.vault_balance()}")


def main():
    parser = argparse.ArgumentParser(description="Simulate a few pool lottery rounds")
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible draws")
    parser.add_argument("--rounds", type=int, default=4, help="rounds to close after Bob enters")
    args = parser.parse_args()
    LotteryDemo(seed=args.seed, rounds=args.rounds).run()


if __name__ == "__main__":
    main()
