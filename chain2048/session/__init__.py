"""
Session Module - Ledger-bound play sessions.

A session represents one play attempt:
- Opened by registering the initial board commitment on the ledger
- Played move by move through the engine
- Closed once, by the opening identity, with the final board and score

Sessions are in-memory; the ledger holds the permanent record.
"""

from .manager import SessionManager, Session, SessionState
from .client import SessionClient
from .game_loop import GameLoop, TurnResult
from .commitment import board_commitment, canonical_serialization

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "SessionClient",
    "GameLoop",
    "TurnResult",
    "board_commitment",
    "canonical_serialization",
]
