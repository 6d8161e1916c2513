"""
Session Manager - Session records and their lifecycle.

LIFECYCLE:
    OPEN        board initialized, no ledger id yet
    REGISTERED  ledger id assigned by create
    PLAYING     one or more moves applied
    CLOSED      final commitment accepted (terminal)

Guards are checked before a transition is attempted, never after the ledger
call. While a ledger request is outstanding (`pending_tx` set) no other
ledger operation may start for the same session.

Sessions live in memory only; the ledger keeps the permanent record.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import time

from ..engine_core.board import Board
from ..errors import SessionStateError
from ..ledger.base import TransactionReceipt, normalize_identity


class SessionState(Enum):
    """State of a play session."""
    OPEN = "open"
    REGISTERED = "registered"
    PLAYING = "playing"
    CLOSED = "closed"


# Allowed transitions
_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.OPEN: {SessionState.REGISTERED},
    SessionState.REGISTERED: {SessionState.PLAYING, SessionState.CLOSED},
    SessionState.PLAYING: {SessionState.PLAYING, SessionState.CLOSED},
    SessionState.CLOSED: set(),
}


@dataclass
class Session:
    """
    One play attempt.

    Owned by exactly one caller at a time; the board value itself is
    immutable and replaced on every move.
    """
    identity: str
    board: Board
    created_at: float = field(default_factory=time.time)

    session_id: int | None = None
    state: SessionState = SessionState.OPEN
    score: int = 0
    moves: int = 0
    won: bool = False

    # Ledger bookkeeping
    open_tx: str | None = None
    close_receipt: TransactionReceipt | None = None
    pending_tx: str | None = None
    pending_operation: str | None = None
    # Board and score of an outstanding close, applied once it finalizes
    pending_final: tuple[Board, int] | None = None

    @property
    def owner(self) -> str:
        return normalize_identity(self.identity)

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def is_playable(self) -> bool:
        return self.state in {SessionState.REGISTERED, SessionState.PLAYING}

    def can_transition(self, target: SessionState) -> bool:
        return target in _TRANSITIONS[self.state]

    def transition(self, target: SessionState):
        """Move to `target`, raising SessionStateError if not allowed."""
        if not self.can_transition(target):
            raise SessionStateError(
                f"Session {self.session_id}: cannot go from {self.state.value} to {target.value}"
            )
        self.state = target

    def require_idle(self):
        if self.pending_tx is not None:
            raise SessionStateError(
                f"Session {self.session_id}: {self.pending_operation} {self.pending_tx} "
                "still outstanding; reconcile before submitting again"
            )


class SessionManager:
    """
    In-memory registry of live sessions.

    Sessions are keyed by ledger id once registered. Starting a new session
    for an identity replaces that identity's previous one.
    """

    def __init__(self):
        self._sessions: dict[int, Session] = {}
        self._by_identity: dict[str, int] = {}

    def add(self, session: Session) -> Session:
        if session.session_id is None:
            raise SessionStateError("Only registered sessions can be tracked")

        previous = self._by_identity.get(session.owner)
        if previous is not None and previous != session.session_id:
            self._sessions.pop(previous, None)

        self._sessions[session.session_id] = session
        self._by_identity[session.owner] = session.session_id
        return session

    def get(self, session_id: int) -> Session | None:
        return self._sessions.get(session_id)

    def for_identity(self, identity: str) -> Session | None:
        session_id = self._by_identity.get(normalize_identity(identity))
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def remove(self, session_id: int) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session and self._by_identity.get(session.owner) == session_id:
            del self._by_identity[session.owner]
        return session

    def list_active(self) -> list[int]:
        return [sid for sid, session in self._sessions.items() if not session.is_closed]

    def cleanup_stale(self, max_age_seconds: int = 3600, now: float | None = None) -> list[int]:
        """Drop closed sessions older than max_age. Returns the dropped ids."""
        now = time.time() if now is None else now
        stale = [
            sid for sid, session in self._sessions.items()
            if session.is_closed and now - session.created_at > max_age_seconds
        ]
        for sid in stale:
            self.remove(sid)
        return stale
