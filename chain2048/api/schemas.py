"""
Pydantic Schemas for API - Request/response models for OpenAPI.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or was replaced
- IDENTITY_MISMATCH: Caller is not the identity that opened the session
- INVALID_SESSION_STATE: Transition not allowed (closed, busy, ...)
- LEDGER_SUBMISSION_FAILED: Write could not be finalized
- LEDGER_TIMEOUT: Write submitted, finalization not observed (outcome unknown)
- EVENT_NOT_FOUND: Write finalized without the expected event
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session lifecycle values."""
    OPEN = "open"
    REGISTERED = "registered"
    PLAYING = "playing"
    CLOSED = "closed"


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    IDENTITY_MISMATCH = "IDENTITY_MISMATCH"
    INVALID_SESSION_STATE = "INVALID_SESSION_STATE"
    LEDGER_SUBMISSION_FAILED = "LEDGER_SUBMISSION_FAILED"
    LEDGER_TIMEOUT = "LEDGER_TIMEOUT"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Requests
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Start a new game for a wallet identity."""
    identity: str = Field(min_length=1, description="Wallet address of the player")


class MoveRequest(BaseModel):
    """Apply one move. The identity is used for the closing commitment."""
    identity: str = Field(min_length=1)
    direction: MoveDirection


class CloseRequest(BaseModel):
    """Commit the final score of a finished game."""
    identity: str = Field(min_length=1, description="Wallet address that opened the session")


# =============================================================================
# Responses
# =============================================================================

class ReceiptInfo(BaseModel):
    tx_hash: str
    block_number: int


class SessionResponse(BaseModel):
    """Session status and board. `session_id` is unset while the open is pending."""
    session_id: Optional[int] = None
    identity: str
    status: SessionStatus
    board: list[list[int]]
    score: int = 0
    moves: int = 0
    won: bool = False
    game_over: bool = False
    open_tx: Optional[str] = None
    close_receipt: Optional[ReceiptInfo] = None
    pending_tx: Optional[str] = None


class MoveResponse(BaseModel):
    """Result of one move."""
    session: SessionResponse
    moved: bool
    score_delta: int = 0
    won_now: bool = False
    game_over: bool = False
    close_receipt: Optional[ReceiptInfo] = None
    close_error: Optional[str] = Field(
        None, description="Set when the game ended but the final score was not committed"
    )


class LeaderboardEntryInfo(BaseModel):
    rank: int
    player: str
    score: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryInfo] = Field(default_factory=list)
    count: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    ledger: str = Field(description="memory or web3")


class ErrorResponse(BaseModel):
    """Standard error body."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None
