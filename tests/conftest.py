"""
conftest.py - Shared pytest fixtures for the pool lottery tests

Provides:
- Well-known player accounts (alice, bob, carol)
- An initialized engine wired to a funded vault, manual clock and scripted randomness
"""

import pytest

from tests.helpers import ACCOUNTS, ScriptedRandom, build_engine


@pytest.fixture
def alice():
    return ACCOUNTS[0].address


@pytest.fixture
def bob():
    return ACCOUNTS[1].address


@pytest.fixture
def carol():
    return ACCOUNTS[2].address


@pytest.fixture
def randomness():
    return ScriptedRandom()


@pytest.fixture
def setup(randomness):
    """(engine, vault, clock, store) with round 1 open at START_TIME."""
    return build_engine(randomness)


@pytest.fixture
def engine(setup):
    return setup[0]


@pytest.fixture
def vault(setup):
    return setup[1]


@pytest.fixture
def clock(setup):
    return setup[2]


@pytest.fixture
def store(setup):
    return setup[3]
