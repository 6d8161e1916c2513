"""
API Module - HTTP interface for the game client.

The client:
1. Starts a session for its wallet identity
2. Sends moves; the server closes the session on game over
3. Reads the leaderboard
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    MoveRequest,
    # Responses
    SessionResponse,
    MoveResponse,
    LeaderboardResponse,
    LeaderboardEntryInfo,
    ReceiptInfo,
    HealthResponse,
    ErrorResponse,
    # Enums
    ErrorCode,
    SessionStatus,
    MoveDirection,
)
from .service import APIService, build_ledger
from .app import create_app

__all__ = [
    "CreateSessionRequest",
    "MoveRequest",
    "SessionResponse",
    "MoveResponse",
    "LeaderboardResponse",
    "LeaderboardEntryInfo",
    "ReceiptInfo",
    "HealthResponse",
    "ErrorResponse",
    "ErrorCode",
    "SessionStatus",
    "MoveDirection",
    "APIService",
    "build_ledger",
    "create_app",
]
