"""
API Service - Business logic layer between the HTTP app and the core.

The service:
1. Starts sessions (board + ledger registration)
2. Applies moves through each session's GameLoop, closing on game over
3. Reconciles ledger requests whose outcome is unknown after a timeout
4. Serves the leaderboard from the aggregator

Framework-agnostic: session-lifecycle errors (Chain2048Error subclasses)
propagate to the caller, which maps them to responses.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from .schemas import (
    CreateSessionRequest,
    MoveRequest,
    CloseRequest,
    SessionResponse,
    MoveResponse,
    LeaderboardResponse,
    LeaderboardEntryInfo,
    ReceiptInfo,
    SessionStatus,
)
from ..config import Settings
from ..errors import Chain2048Error, FinalizationTimeoutError
from ..leaderboard import (
    FileLeaderboardCache,
    LeaderboardAggregator,
    LeaderboardEntry,
    MemoryLeaderboardCache,
    ScanThrottle,
)
from ..ledger import InMemoryLedger, Web3Ledger
from ..ledger.base import TransactionReceipt
from ..session import GameLoop, Session, SessionClient, SessionManager

logger = logging.getLogger(__name__)


def build_ledger(settings: Settings):
    """Web3Ledger when an RPC endpoint and contract are configured, else in-memory."""
    if settings.uses_chain:
        return Web3Ledger.from_rpc(
            settings.rpc_url,
            settings.contract_address,
            receipt_timeout=settings.receipt_timeout,
        )
    logger.info("No RPC endpoint configured; using the in-memory ledger")
    return InMemoryLedger()


@dataclass
class APIService:
    """
    Usage:
        service = APIService.in_memory()
        session = service.create_session(CreateSessionRequest(identity="0xabc"))
        service.move(session.session_id, MoveRequest(identity="0xabc", direction="left"))
    """
    session_client: SessionClient
    aggregator: LeaderboardAggregator
    session_manager: SessionManager = field(default_factory=SessionManager)
    ledger_kind: str = "memory"
    # Closed sessions older than this are dropped on the next create
    session_max_age: int = 3600

    # Game loops per session
    _game_loops: dict[int, GameLoop] = field(default_factory=dict)
    # Opens that timed out, keyed by transaction hash
    _pending_opens: dict[str, Session] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> APIService:
        ledger = build_ledger(settings)
        aggregator = LeaderboardAggregator(
            reader=ledger,
            cache=FileLeaderboardCache(settings.cache_file),
            deploy_block=settings.deploy_block,
            block_step=settings.block_step,
            ttl=settings.cache_ttl,
            throttle=ScanThrottle(delay=settings.scan_delay),
        )
        return cls(
            session_client=SessionClient(ledger),
            aggregator=aggregator,
            ledger_kind="web3" if settings.uses_chain else "memory",
        )

    @classmethod
    def in_memory(cls, ledger: InMemoryLedger | None = None, rng=None) -> APIService:
        ledger = ledger or InMemoryLedger()
        aggregator = LeaderboardAggregator(
            reader=ledger,
            cache=MemoryLeaderboardCache(),
            deploy_block=0,
            throttle=ScanThrottle(delay=0),
        )
        return cls(session_client=SessionClient(ledger, rng=rng), aggregator=aggregator)

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        self._cleanup_stale()
        session = self.session_client.new_session(request.identity)
        try:
            self.session_client.register(session)
        except FinalizationTimeoutError:
            if session.pending_tx is not None:
                self._pending_opens[session.pending_tx] = session
            raise
        self._track(session)
        return self._session_to_response(session)

    def get_session(self, session_id: int) -> SessionResponse | None:
        loop = self._game_loops.get(session_id)
        if loop is None:
            return None
        return self._session_to_response(loop.session)

    def move(self, session_id: int, request: MoveRequest) -> MoveResponse | None:
        loop = self._game_loops.get(session_id)
        if loop is None:
            return None

        turn = loop.move(request.direction.value, identity=request.identity)
        return self._turn_to_response(loop, turn)

    def close_session(self, session_id: int, request: CloseRequest) -> MoveResponse | None:
        """Commit the final score of a finished game whose close was refused earlier."""
        loop = self._game_loops.get(session_id)
        if loop is None:
            return None
        return self._turn_to_response(loop, loop.close(request.identity))

    def reconcile(self, session_id: int) -> SessionResponse | None:
        """Settle an outstanding close by reading its receipt."""
        loop = self._game_loops.get(session_id)
        if loop is None:
            return None
        self.session_client.reconcile(loop.session)
        return self._session_to_response(loop.session)

    def reconcile_open(self, tx_hash: str) -> SessionResponse | None:
        """Settle a timed-out open; once finalized the session becomes playable."""
        session = self._pending_opens.get(tx_hash)
        if session is None:
            return None
        try:
            completed = self.session_client.reconcile(session)
        except Chain2048Error:
            self._pending_opens.pop(tx_hash, None)
            raise
        if completed:
            self._pending_opens.pop(tx_hash, None)
            self._track(session)
        return self._session_to_response(session)

    def list_sessions(self) -> list[int]:
        return self.session_manager.list_active()

    def _track(self, session: Session):
        previous = self.session_manager.for_identity(session.identity)
        self.session_manager.add(session)
        if previous is not None and previous.session_id != session.session_id:
            self._game_loops.pop(previous.session_id, None)
            self.session_client.forget(previous.session_id)
        self._game_loops[session.session_id] = GameLoop(self.session_client, session)

    def _cleanup_stale(self):
        for session_id in self.session_manager.cleanup_stale(self.session_max_age):
            self._game_loops.pop(session_id, None)
            self.session_client.forget(session_id)

    # =========================================================================
    # Leaderboard
    # =========================================================================

    def get_leaderboard(self) -> LeaderboardResponse:
        return self._leaderboard_response(self.aggregator.get_leaderboard())

    def refresh_leaderboard(self) -> LeaderboardResponse:
        return self._leaderboard_response(self.aggregator.refresh())

    # =========================================================================
    # Conversion
    # =========================================================================

    def _turn_to_response(self, loop: GameLoop, turn) -> MoveResponse:
        return MoveResponse(
            session=self._session_to_response(loop.session),
            moved=turn.moved,
            score_delta=turn.score_delta,
            won_now=turn.won_now,
            game_over=turn.game_over,
            close_receipt=self._receipt_info(turn.close_receipt),
            close_error=str(turn.close_error) if turn.close_error else None,
        )

    def _session_to_response(self, session: Session) -> SessionResponse:
        loop = self._game_loops.get(session.session_id)
        return SessionResponse(
            session_id=session.session_id,
            identity=session.identity,
            status=SessionStatus(session.state.value),
            board=session.board.to_rows(),
            score=session.score,
            moves=session.moves,
            won=session.won,
            game_over=bool(loop and loop.game_over) or session.is_closed,
            open_tx=session.open_tx,
            close_receipt=self._receipt_info(session.close_receipt),
            pending_tx=session.pending_tx,
        )

    @staticmethod
    def _receipt_info(receipt: TransactionReceipt | None) -> ReceiptInfo | None:
        if receipt is None:
            return None
        return ReceiptInfo(tx_hash=receipt.tx_hash, block_number=receipt.block_number)

    @staticmethod
    def _leaderboard_response(entries: list[LeaderboardEntry]) -> LeaderboardResponse:
        return LeaderboardResponse(
            entries=[
                LeaderboardEntryInfo(rank=rank, player=entry.player, score=entry.score)
                for rank, entry in enumerate(entries, start=1)
            ],
            count=len(entries),
        )
