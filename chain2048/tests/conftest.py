"""
Pytest fixtures for Chain2048 tests.
"""

import pytest

from ..engine_core.board import Board
from ..ledger.memory import InMemoryLedger
from ..session import SessionClient

ALICE = "0xA11CE00000000000000000000000000000000001"
BOB = "0xB0B0000000000000000000000000000000000002"


class FirstCellRandom:
    """Deterministic rng: always the first empty cell, always a 2."""

    def choice(self, seq):
        return seq[0]

    def random(self):
        return 0.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def rng() -> FirstCellRandom:
    return FirstCellRandom()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def client(ledger: InMemoryLedger, rng: FirstCellRandom) -> SessionClient:
    return SessionClient(ledger, rng=rng)


@pytest.fixture
def last_move_board() -> Board:
    """
    Full board with one legal move: left merges the leading 2s, the spawned
    2 fills the only gap, and nothing can move afterwards.
    """
    return Board.from_rows([
        [2, 2, 8, 16],
        [32, 64, 128, 256],
        [512, 1024, 4, 8],
        [16, 32, 64, 128],
    ])


@pytest.fixture
def stuck_board() -> Board:
    """Full board with no equal neighbours."""
    return Board.from_rows([
        [2, 4, 2, 4],
        [4, 2, 4, 2],
        [2, 4, 2, 4],
        [4, 2, 4, 2],
    ])
