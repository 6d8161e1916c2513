"""
Session Client - Opens and closes sessions on the ledger.

Ledger writes are at-most-once and never retried:
- open_session registers a board commitment and returns the new ledger id
- close_session commits the final board and score, once per session,
  and only for the identity that opened it

Both checks (identity, single close) happen before any ledger call.

If finalization is not observed in time the session keeps the transaction
hash in `pending_tx`; call `reconcile` to read its receipt instead of
submitting again.
"""

from __future__ import annotations
from typing import Any
import logging
import random

from .commitment import board_commitment, commitment_hex
from .manager import Session, SessionState
from ..engine_core.board import Board, initialize
from ..errors import (
    EventNotFoundError,
    FinalizationTimeoutError,
    IdentityMismatchError,
    LedgerSubmissionError,
    SessionStateError,
)
from ..ledger.base import (
    GameCreated,
    LedgerWriter,
    MAX_SCORE,
    TransactionReceipt,
    normalize_identity,
)

logger = logging.getLogger(__name__)

OP_CREATE = "createGame"
OP_CLOSE = "submitScore"


class SessionClient:
    """
    Drives the ledger side of a session.

    Usage:
        client = SessionClient(ledger)
        session = client.start("0xPlayer")
        ...  # moves via GameLoop
        receipt = client.close(session)
    """

    def __init__(self, ledger: LedgerWriter, rng: random.Random | None = None):
        self.ledger = ledger
        self.rng = rng
        self._sessions: dict[int, Session] = {}

    # =========================================================================
    # Open
    # =========================================================================

    def new_session(self, identity: str) -> Session:
        """A fresh OPEN session with an initialized board (no ledger call)."""
        return Session(identity=identity, board=initialize(self.rng))

    def start(self, identity: str) -> Session:
        """New board, registered on the ledger."""
        session = self.new_session(identity)
        self.register(session)
        return session

    def open_session(self, identity: str, board: Board) -> int:
        """Register `board` under `identity` and return the ledger session id."""
        return self.register(Session(identity=identity, board=board))

    def register(self, session: Session) -> int:
        """
        Commit the session's board to the ledger.

        Raises:
            SessionStateError: session is not OPEN or has a request outstanding
            LedgerSubmissionError: the create request was not finalized
            EventNotFoundError: finalized, but no GameCreated in the receipt
        """
        session.require_idle()
        if not session.can_transition(SessionState.REGISTERED):
            raise SessionStateError(f"Session already {session.state.value}; open a new one")

        commitment = board_commitment(session.board)
        logger.debug("Registering board %s for %s", commitment_hex(commitment), session.identity)
        receipt = self._submit(session, OP_CREATE, self.ledger.create_game, session.identity, commitment)
        return self._complete_open(session, receipt)

    def _complete_open(self, session: Session, receipt: TransactionReceipt) -> int:
        event = receipt.find_event(GameCreated)
        if event is None:
            raise EventNotFoundError("GameCreated", tx_hash=receipt.tx_hash)

        session.session_id = event.session_id
        session.open_tx = receipt.tx_hash
        session.transition(SessionState.REGISTERED)
        self._sessions[event.session_id] = session

        logger.info("Opened session %s for %s (%s)", event.session_id, session.identity, receipt.tx_hash)
        return event.session_id

    # =========================================================================
    # Close
    # =========================================================================

    def close(self, session: Session, identity: str | None = None) -> TransactionReceipt:
        """Close `session` with its current board and score."""
        if session.session_id is None:
            raise SessionStateError("Session was never registered on the ledger")
        return self.close_session(
            identity or session.identity,
            session.session_id,
            session.board,
            session.score,
        )

    def close_session(
        self,
        identity: str,
        session_id: int,
        board: Board,
        final_score: int,
    ) -> TransactionReceipt:
        """
        Commit the final board and score for `session_id`.

        Raises:
            IdentityMismatchError: `identity` did not open this session
            SessionStateError: unknown session, already closed, or busy
            LedgerSubmissionError: the submission was not finalized
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionStateError(f"Session {session_id} is not open on this client")

        if normalize_identity(identity) != session.owner:
            raise IdentityMismatchError(session_id, expected=session.identity, actual=identity)

        session.require_idle()
        if not session.can_transition(SessionState.CLOSED):
            raise SessionStateError(f"Session {session_id} is {session.state.value}; cannot close")

        if not 0 <= final_score <= MAX_SCORE:
            raise ValueError(f"Final score {final_score} does not fit in 32 bits")

        session.pending_final = (board, final_score)
        commitment = board_commitment(board)
        try:
            receipt = self._submit(
                session, OP_CLOSE, self.ledger.submit_score,
                identity, session_id, commitment, final_score,
            )
        except LedgerSubmissionError:
            # A timed-out close keeps its values for reconcile
            if session.pending_tx is None:
                session.pending_final = None
            raise
        return self._complete_close(session, receipt)

    def _complete_close(self, session: Session, receipt: TransactionReceipt) -> TransactionReceipt:
        if session.pending_final is not None:
            session.board, session.score = session.pending_final
            session.pending_final = None
        session.close_receipt = receipt
        session.transition(SessionState.CLOSED)
        self._sessions.pop(session.session_id, None)
        logger.info(
            "Closed session %s with score %s (%s)",
            session.session_id, session.score, receipt.tx_hash,
        )
        return receipt

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile(self, session: Session) -> bool:
        """
        Resolve an outstanding request by reading its receipt.

        Returns True if the pending transition completed, False if the
        outcome is still unknown. A reverted request clears the pending
        marker and raises LedgerSubmissionError.
        """
        if session.pending_tx is None:
            return False

        tx_hash, operation = session.pending_tx, session.pending_operation
        try:
            receipt = self.ledger.get_receipt(tx_hash)
        except LedgerSubmissionError:
            self._clear_pending(session)
            session.pending_final = None
            raise

        if receipt is None:
            logger.info("Session %s: %s %s still not final", session.session_id, operation, tx_hash)
            return False

        self._clear_pending(session)
        if operation == OP_CREATE:
            self._complete_open(session, receipt)
        else:
            self._complete_close(session, receipt)
        return True

    def get_session(self, session_id: int) -> Session | None:
        """Registered session that has not been closed yet."""
        return self._sessions.get(session_id)

    def forget(self, session_id: int) -> Session | None:
        """Stop tracking a session; it can no longer be closed through this client."""
        return self._sessions.pop(session_id, None)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _submit(self, session: Session, operation: str, send, *args: Any) -> TransactionReceipt:
        try:
            return send(*args)
        except FinalizationTimeoutError as e:
            session.pending_tx = e.tx_hash
            session.pending_operation = operation
            logger.warning(
                "Session %s: %s %s outcome unknown; reconcile before retrying",
                session.session_id, operation, e.tx_hash,
            )
            raise
        except LedgerSubmissionError:
            logger.exception("Session %s: %s failed", session.session_id, operation)
            raise

    @staticmethod
    def _clear_pending(session: Session):
        session.pending_tx = None
        session.pending_operation = None
