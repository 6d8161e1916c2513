"""
Ledger interfaces - What the session client writes and the leaderboard reads.

The ledger is an append-only external log. Two write operations:
- create_game(board_hash)            -> emits GameCreated
- submit_score(id, board_hash, score) -> emits ScoreSubmitted

One read operation:
- score events within a contiguous block range, in increasing block order

Writes block until finalization and return a TransactionReceipt carrying the
decoded events. Implementations raise LedgerSubmissionError when a write
cannot be finalized and FinalizationTimeoutError when the outcome is unknown.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

MAX_SCORE = 2**32 - 1


def normalize_identity(identity: str) -> str:
    """Canonical (lowercase) form of an address-like identity."""
    return identity.strip().lower()


@dataclass(frozen=True)
class GameCreated:
    """Creation record for one session."""
    session_id: int
    player: str
    board_hash: bytes
    block_number: int = 0
    tx_hash: str = ""


@dataclass(frozen=True)
class ScoreSubmitted:
    """Closing record for one session."""
    session_id: int
    player: str
    final_board_hash: bytes
    final_score: int
    block_number: int = 0
    tx_hash: str = ""


LedgerEvent = GameCreated | ScoreSubmitted


@dataclass(frozen=True)
class TransactionReceipt:
    """A finalized write and the events it emitted."""
    tx_hash: str
    block_number: int
    events: tuple[LedgerEvent, ...] = field(default_factory=tuple)

    def find_event(self, event_type: type) -> LedgerEvent | None:
        for event in self.events:
            if isinstance(event, event_type):
                return event
        return None


class LedgerWriter(ABC):
    """Write side, consumed by the session client."""

    @abstractmethod
    def create_game(self, identity: str, board_hash: bytes) -> TransactionReceipt:
        """Submit a session-creation request as `identity` and wait for it."""
        ...

    @abstractmethod
    def submit_score(
        self,
        identity: str,
        session_id: int,
        final_board_hash: bytes,
        final_score: int,
    ) -> TransactionReceipt:
        """Submit a session-closing request as `identity` and wait for it."""
        ...

    @abstractmethod
    def get_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        """Receipt of a previously submitted request, or None if not final yet."""
        ...


class LedgerReader(ABC):
    """Read side, consumed by the leaderboard aggregator."""

    @abstractmethod
    def block_number(self) -> int:
        """Current chain head."""
        ...

    @abstractmethod
    def get_score_events(self, from_block: int, to_block: int) -> list[ScoreSubmitted]:
        """ScoreSubmitted events in [from_block, to_block], in block order."""
        ...
