"""
In-memory ledger - A simulated append-only chain.

Used when no RPC endpoint is configured and throughout the tests. Each write
is mined into its own block; events are kept in block order so range scans
behave like eth_getLogs.

The simulated contract mirrors the on-chain checks that are known:
- score must fit in 32 bits
- only the creating identity may submit a score for a session
It accepts a second submission for the same session (the deployed contract's
behaviour there is unconfirmed, so the client guards against it itself).
"""

from __future__ import annotations
from dataclasses import dataclass, field
import hashlib
import logging

from .base import (
    GameCreated,
    LedgerReader,
    LedgerWriter,
    MAX_SCORE,
    ScoreSubmitted,
    TransactionReceipt,
    normalize_identity,
)
from ..errors import LedgerSubmissionError

logger = logging.getLogger(__name__)


@dataclass
class InMemoryLedger(LedgerWriter, LedgerReader):
    """
    Usage:
        ledger = InMemoryLedger()
        receipt = ledger.create_game("0xabc...", board_hash)
        events = ledger.get_score_events(0, ledger.block_number())
    """
    start_block: int = 0

    _head: int = field(default=0, init=False)
    _next_session_id: int = field(default=1, init=False)
    _owners: dict[int, str] = field(default_factory=dict, init=False)
    _receipts: dict[str, TransactionReceipt] = field(default_factory=dict, init=False)
    _score_events: list[ScoreSubmitted] = field(default_factory=list, init=False)

    # Counters for tests
    write_count: int = field(default=0, init=False)
    read_count: int = field(default=0, init=False)

    def __post_init__(self):
        self._head = self.start_block

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def create_game(self, identity: str, board_hash: bytes) -> TransactionReceipt:
        self.write_count += 1
        self._check_hash(board_hash)

        session_id = self._next_session_id
        self._next_session_id += 1
        self._owners[session_id] = normalize_identity(identity)

        block, tx_hash = self._mine("createGame", identity, session_id)
        event = GameCreated(
            session_id=session_id,
            player=identity,
            board_hash=board_hash,
            block_number=block,
            tx_hash=tx_hash,
        )
        return self._store(TransactionReceipt(tx_hash=tx_hash, block_number=block, events=(event,)))

    def submit_score(
        self,
        identity: str,
        session_id: int,
        final_board_hash: bytes,
        final_score: int,
    ) -> TransactionReceipt:
        self.write_count += 1
        self._check_hash(final_board_hash)

        owner = self._owners.get(session_id)
        if owner is None:
            raise LedgerSubmissionError(f"Reverted: unknown game {session_id}")
        if owner != normalize_identity(identity):
            raise LedgerSubmissionError(f"Reverted: game {session_id} not owned by {identity}")
        if not 0 <= final_score <= MAX_SCORE:
            raise LedgerSubmissionError(f"Reverted: score {final_score} out of uint32 range")

        block, tx_hash = self._mine("submitScore", identity, session_id)
        event = ScoreSubmitted(
            session_id=session_id,
            player=identity,
            final_board_hash=final_board_hash,
            final_score=final_score,
            block_number=block,
            tx_hash=tx_hash,
        )
        self._score_events.append(event)
        return self._store(TransactionReceipt(tx_hash=tx_hash, block_number=block, events=(event,)))

    def get_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        return self._receipts.get(tx_hash)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def block_number(self) -> int:
        return self._head

    def get_score_events(self, from_block: int, to_block: int) -> list[ScoreSubmitted]:
        self.read_count += 1
        return [
            event for event in self._score_events
            if from_block <= event.block_number <= to_block
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def owner_of(self, session_id: int) -> str | None:
        return self._owners.get(session_id)

    def mine_empty_blocks(self, count: int):
        """Advance the head without emitting events."""
        self._head += count

    def _mine(self, method: str, identity: str, session_id: int) -> tuple[int, str]:
        self._head += 1
        seed = f"{method}:{identity}:{session_id}:{self._head}".encode()
        tx_hash = "0x" + hashlib.sha256(seed).hexdigest()
        logger.debug("Mined %s for game %s in block %s (%s)", method, session_id, self._head, tx_hash)
        return self._head, tx_hash

    def _store(self, receipt: TransactionReceipt) -> TransactionReceipt:
        self._receipts[receipt.tx_hash] = receipt
        return receipt

    @staticmethod
    def _check_hash(value: bytes):
        if len(value) != 32:
            raise LedgerSubmissionError(f"Reverted: commitment must be 32 bytes, got {len(value)}")
