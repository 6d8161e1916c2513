"""
Game Loop - Drives one session move by move.

The loop:
1. Apply the player's direction to the board
2. Accumulate the merge score
3. Report the first 2048 tile (play continues)
4. When no legal move remains, close the session on the ledger once

Only the identity that opened the session may move or close it.

Once a close has reached the ledger it is never resubmitted from here, even
if it failed: resubmitting could commit the score twice. A close refused
before any ledger call (request still outstanding) can be retried with
`close()`; a timed-out close is settled with `SessionClient.reconcile`.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import random

from .client import SessionClient
from .manager import Session, SessionState
from ..engine_core.board import Direction, apply_move, can_move, has_won
from ..errors import Chain2048Error, IdentityMismatchError, SessionStateError
from ..ledger.base import TransactionReceipt, normalize_identity

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """Result of one move."""
    moved: bool
    score_delta: int
    score: int
    won_now: bool = False
    game_over: bool = False

    # Set when the game ended on this move
    close_receipt: TransactionReceipt | None = None
    close_error: Chain2048Error | None = None


class GameLoop:
    """
    Usage:
        loop = GameLoop(client, session)
        result = loop.move("left")
        if result.game_over:
            show(result.close_receipt or result.close_error)
    """

    def __init__(
        self,
        client: SessionClient,
        session: Session,
        rng: random.Random | None = None,
    ):
        self.client = client
        self.session = session
        self.rng = rng if rng is not None else client.rng
        self.game_over = session.is_closed or (session.is_playable and not can_move(session.board))
        self.close_submitted = session.is_closed

    def move(self, direction: Direction | str, identity: str | None = None) -> TurnResult:
        """
        Apply `direction`. If it ends the game, close as `identity`
        (defaults to the session's own identity).

        Raises IdentityMismatchError, before touching the board, when
        `identity` did not open the session.
        """
        session = self.session
        self._check_identity(identity)
        if self.game_over or not session.is_playable:
            raise SessionStateError(
                f"Session {session.session_id} is over ({session.state.value}); no moves allowed"
            )

        result = apply_move(session.board, direction, self.rng)
        if not result.moved:
            return TurnResult(moved=False, score_delta=0, score=session.score)

        session.board = result.board
        session.score += result.score_delta
        session.moves += 1
        session.transition(SessionState.PLAYING)

        turn = TurnResult(moved=True, score_delta=result.score_delta, score=session.score)

        if not session.won and has_won(session.board):
            session.won = True
            turn.won_now = True
            logger.info("Session %s reached 2048 after %s moves", session.session_id, session.moves)

        if not can_move(session.board):
            self.game_over = True
            turn.game_over = True
            self._close(turn, identity)

        return turn

    def close(self, identity: str | None = None) -> TurnResult:
        """
        Retry a close that was refused before reaching the ledger.

        Raises SessionStateError if the game is not over or a close was
        already submitted, IdentityMismatchError for the wrong identity.
        """
        if not self.game_over:
            raise SessionStateError("Game is not over yet")
        if self.close_submitted:
            raise SessionStateError(f"Session {self.session.session_id} close already submitted")
        self._check_identity(identity)

        turn = TurnResult(moved=False, score_delta=0, score=self.session.score, game_over=True)
        self._close(turn, identity)
        return turn

    def _close(self, turn: TurnResult, identity: str | None):
        try:
            turn.close_receipt = self.client.close(self.session, identity)
            self.close_submitted = True
        except (IdentityMismatchError, SessionStateError) as e:
            # Refused before any ledger call
            logger.warning("Session %s: close not submitted: %s", self.session.session_id, e)
            turn.close_error = e
        except Chain2048Error as e:
            self.close_submitted = True
            logger.warning("Session %s: final score not committed: %s", self.session.session_id, e)
            turn.close_error = e

    def _check_identity(self, identity: str | None):
        if identity is None:
            return
        if normalize_identity(identity) != self.session.owner:
            raise IdentityMismatchError(
                self.session.session_id, expected=self.session.identity, actual=identity
            )
