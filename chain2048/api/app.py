"""
FastAPI Application - HTTP surface for sessions and the leaderboard.

Endpoints:
    GET    /api/v1/health                          Liveness
    POST   /api/v1/sessions                        Start a game (registers on ledger)
    GET    /api/v1/sessions                        List active session ids
    GET    /api/v1/sessions/{id}                   Session status and board
    POST   /api/v1/sessions/{id}/moves             Apply a move; closes on game over
    POST   /api/v1/sessions/{id}/close             Retry a close refused before the ledger
    POST   /api/v1/sessions/{id}/reconcile         Settle a timed-out close
    POST   /api/v1/sessions/pending/{tx}/reconcile Settle a timed-out open
    GET    /api/v1/leaderboard                     Ranked best scores
    POST   /api/v1/leaderboard/refresh             Rebuild the leaderboard now

The leaderboard endpoints never answer with an error status: a failed
rebuild yields the last snapshot or an empty list.
"""

from typing import Union
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, configure_logging
from ..errors import (
    Chain2048Error,
    EventNotFoundError,
    FinalizationTimeoutError,
    IdentityMismatchError,
    LedgerSubmissionError,
    SessionStateError,
)
from .schemas import (
    CreateSessionRequest,
    MoveRequest,
    CloseRequest,
    SessionResponse,
    MoveResponse,
    LeaderboardResponse,
    HealthResponse,
    ErrorResponse,
    ErrorCode,
)
from .service import APIService

logger = logging.getLogger(__name__)


def error_for(exc: Chain2048Error) -> tuple[ErrorCode, int]:
    """Map a lifecycle error to (code, HTTP status)."""
    if isinstance(exc, IdentityMismatchError):
        return ErrorCode.IDENTITY_MISMATCH, 403
    if isinstance(exc, SessionStateError):
        return ErrorCode.INVALID_SESSION_STATE, 409
    if isinstance(exc, FinalizationTimeoutError):
        return ErrorCode.LEDGER_TIMEOUT, 504
    if isinstance(exc, LedgerSubmissionError):
        return ErrorCode.LEDGER_SUBMISSION_FAILED, 502
    if isinstance(exc, EventNotFoundError):
        return ErrorCode.EVENT_NOT_FOUND, 502
    return ErrorCode.INTERNAL_ERROR, 500


def create_app(service: APIService | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService (built from settings if not provided)
        settings: Optional Settings (read from the environment if not provided)
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    api_service = service or APIService.from_settings(settings)

    app = FastAPI(
        title="Chain2048 API",
        description="2048 sessions committed to a ledger, and the leaderboard rebuilt from it.",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict | None = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Chain2048Error)
    async def handle_lifecycle_error(request, exc: Chain2048Error) -> JSONResponse:
        code, status = error_for(exc)
        details = {}
        tx_hash = getattr(exc, "tx_hash", None)
        if tx_hash:
            details["tx_hash"] = tx_hash
        return make_error_response(code, str(exc), status_code=status, details=details or None)

    @app.exception_handler(ValueError)
    async def handle_value_error(request, exc: ValueError) -> JSONResponse:
        return make_error_response(ErrorCode.VALIDATION_ERROR, str(exc))

    def session_not_found(session_id: int) -> JSONResponse:
        return make_error_response(
            ErrorCode.SESSION_NOT_FOUND,
            f"Session {session_id} not found",
            status_code=404,
        )

    # =========================================================================
    # Health
    # =========================================================================

    @app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, ledger=api_service.ledger_kind)

    # =========================================================================
    # Sessions
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={
            502: {"model": ErrorResponse, "description": "Ledger submission failed"},
            504: {"model": ErrorResponse, "description": "Ledger finalization timed out"},
        },
        tags=["Sessions"],
        summary="Start a new game",
    )
    def create_session(body: CreateSessionRequest) -> SessionResponse:
        """Initialize a board and register its commitment on the ledger."""
        return api_service.create_session(body)

    @app.get("/api/v1/sessions", response_model=list[int], tags=["Sessions"])
    async def list_sessions() -> list[int]:
        return api_service.list_sessions()

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: int) -> Union[SessionResponse, JSONResponse]:
        response = api_service.get_session(session_id)
        if response is None:
            return session_not_found(session_id)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/moves",
        response_model=MoveResponse,
        responses={
            403: {"model": ErrorResponse, "description": "Wrong identity"},
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Game already over"},
        },
        tags=["Sessions"],
        summary="Apply a move",
    )
    def move(session_id: int, body: MoveRequest) -> Union[MoveResponse, JSONResponse]:
        """
        Apply one move. When no legal move remains the final board and score
        are committed as `identity`; a failed commit is reported in
        `close_error`, not as an error status.
        """
        response = api_service.move(session_id, body)
        if response is None:
            return session_not_found(session_id)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/close",
        response_model=MoveResponse,
        responses={
            403: {"model": ErrorResponse, "description": "Wrong identity"},
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Game not over, or close already submitted"},
        },
        tags=["Sessions"],
        summary="Commit the final score",
    )
    def close_session(session_id: int, body: CloseRequest) -> Union[MoveResponse, JSONResponse]:
        """
        Commit the final board and score of a finished game whose close was
        refused before reaching the ledger. A close that reached the ledger
        is never resubmitted.
        """
        response = api_service.close_session(session_id, body)
        if response is None:
            return session_not_found(session_id)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/reconcile",
        response_model=SessionResponse,
        responses={
            404: {"model": ErrorResponse, "description": "Session not found"},
            502: {"model": ErrorResponse, "description": "Pending close reverted"},
        },
        tags=["Sessions"],
        summary="Settle a timed-out close",
    )
    def reconcile_session(session_id: int) -> Union[SessionResponse, JSONResponse]:
        """
        Read the receipt of the session's outstanding close. `pending_tx`
        stays set while the outcome is still unknown.
        """
        response = api_service.reconcile(session_id)
        if response is None:
            return session_not_found(session_id)
        return response

    @app.post(
        "/api/v1/sessions/pending/{tx_hash}/reconcile",
        response_model=SessionResponse,
        responses={
            404: {"model": ErrorResponse, "description": "No pending open for this transaction"},
            502: {"model": ErrorResponse, "description": "Pending open reverted"},
        },
        tags=["Sessions"],
        summary="Settle a timed-out open",
    )
    def reconcile_open(tx_hash: str) -> Union[SessionResponse, JSONResponse]:
        """
        Read the receipt of a session open that timed out. Once finalized the
        session gets its ledger id and can be played.
        """
        response = api_service.reconcile_open(tx_hash)
        if response is None:
            return make_error_response(
                ErrorCode.SESSION_NOT_FOUND,
                f"No pending session open for transaction {tx_hash}",
                status_code=404,
            )
        return response

    # =========================================================================
    # Leaderboard
    # =========================================================================

    @app.get("/api/v1/leaderboard", response_model=LeaderboardResponse, tags=["Leaderboard"])
    def leaderboard() -> LeaderboardResponse:
        return api_service.get_leaderboard()

    @app.post("/api/v1/leaderboard/refresh", response_model=LeaderboardResponse, tags=["Leaderboard"])
    def refresh_leaderboard() -> LeaderboardResponse:
        return api_service.refresh_leaderboard()

    return app
