"""
Tests for API layer.

Tests:
- Session lifecycle over HTTP
- Only the opening identity can move or close
- Timed-out opens and closes are reconciled, not resubmitted
- Error responses for lifecycle failures
- Leaderboard read path
- OpenAPI schema generation
"""

import pytest
from fastapi.testclient import TestClient

from .conftest import ALICE, BOB, FirstCellRandom
from ..api.app import create_app, error_for
from ..api.schemas import CreateSessionRequest, ErrorCode, MoveRequest, SessionStatus
from ..api.service import APIService
from ..config import Settings
from ..errors import (
    EventNotFoundError,
    FinalizationTimeoutError,
    IdentityMismatchError,
    LedgerSubmissionError,
    SessionStateError,
)
from ..ledger.memory import InMemoryLedger


class PendingLedger(InMemoryLedger):
    """Writes land, but waiting for the chosen ones times out."""

    def __init__(self, time_out_creates=False, time_out_closes=False):
        super().__init__()
        self.time_out_creates = time_out_creates
        self.time_out_closes = time_out_closes
        self.hide_receipts = True

    def create_game(self, identity, board_hash):
        receipt = super().create_game(identity, board_hash)
        if self.time_out_creates:
            raise FinalizationTimeoutError("createGame not finalized", tx_hash=receipt.tx_hash)
        return receipt

    def submit_score(self, identity, session_id, final_board_hash, final_score):
        receipt = super().submit_score(identity, session_id, final_board_hash, final_score)
        if self.time_out_closes:
            raise FinalizationTimeoutError("submitScore not finalized", tx_hash=receipt.tx_hash)
        return receipt

    def get_receipt(self, tx_hash):
        if self.hide_receipts:
            return None
        return super().get_receipt(tx_hash)


def client_for(service, tmp_path):
    return TestClient(create_app(service=service, settings=Settings(cache_file=tmp_path / "lb.json")))


def start_last_move(http, service, board):
    """Open a session for ALICE and put it one move from game over."""
    session_id = http.post("/api/v1/sessions", json={"identity": ALICE}).json()["session_id"]
    service.session_client.get_session(session_id).board = board
    return session_id


@pytest.fixture
def api_ledger():
    return InMemoryLedger()


@pytest.fixture
def service(api_ledger):
    return APIService.in_memory(ledger=api_ledger, rng=FirstCellRandom())


@pytest.fixture
def http(service, tmp_path):
    settings = Settings(cache_file=tmp_path / "leaderboard.json")
    return TestClient(create_app(service=service, settings=settings))


class TestAPIService:
    """Tests for APIService."""

    def test_create_session(self, service):
        response = service.create_session(CreateSessionRequest(identity=ALICE))

        assert response.session_id == 1
        assert response.status == SessionStatus.REGISTERED
        assert response.open_tx is not None
        assert sum(1 for row in response.board for v in row if v) == 2

    def test_new_session_replaces_previous(self, service):
        first = service.create_session(CreateSessionRequest(identity=ALICE))
        second = service.create_session(CreateSessionRequest(identity=ALICE))

        assert service.get_session(first.session_id) is None
        assert service.get_session(second.session_id) is not None
        assert service.list_sessions() == [second.session_id]

    def test_move(self, service):
        created = service.create_session(CreateSessionRequest(identity=ALICE))
        # Both spawned 2s sit at (0, 0) and (0, 1)
        response = service.move(created.session_id, MoveRequest(identity=ALICE, direction="left"))

        assert response.moved
        assert response.score_delta == 4
        assert response.session.board[0] == [4, 2, 0, 0]
        assert response.session.status == SessionStatus.PLAYING

    def test_move_unknown_session(self, service):
        assert service.move(42, MoveRequest(identity=ALICE, direction="up")) is None


class TestHTTP:
    """Tests for the FastAPI routes."""

    def test_health(self, http):
        res = http.get("/api/v1/health")
        assert res.status_code == 200
        assert res.json()["ledger"] == "memory"

    def test_session_lifecycle(self, http):
        res = http.post("/api/v1/sessions", json={"identity": ALICE})
        assert res.status_code == 200
        session = res.json()
        assert session["status"] == "registered"

        res = http.get(f"/api/v1/sessions/{session['session_id']}")
        assert res.status_code == 200
        assert res.json()["identity"] == ALICE

        res = http.post(
            f"/api/v1/sessions/{session['session_id']}/moves",
            json={"identity": ALICE, "direction": "left"},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["moved"] is True
        assert body["session"]["score"] == 4
        assert body["game_over"] is False

    def test_unknown_session_is_404(self, http):
        res = http.get("/api/v1/sessions/999")
        assert res.status_code == 404
        assert res.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_invalid_direction_is_422(self, http):
        session = http.post("/api/v1/sessions", json={"identity": ALICE}).json()
        res = http.post(
            f"/api/v1/sessions/{session['session_id']}/moves",
            json={"identity": ALICE, "direction": "sideways"},
        )
        assert res.status_code == 422

    def test_move_after_close_is_409(self, http, service):
        session = http.post("/api/v1/sessions", json={"identity": ALICE}).json()
        live = service.session_client.get_session(session["session_id"])
        service.session_client.close(live)

        res = http.post(
            f"/api/v1/sessions/{session['session_id']}/moves",
            json={"identity": ALICE, "direction": "left"},
        )
        assert res.status_code == 409
        assert res.json()["error_code"] == "INVALID_SESSION_STATE"

    def test_leaderboard(self, http, api_ledger):
        for identity, score in [(ALICE, 100), (ALICE, 50), (BOB, 200)]:
            receipt = api_ledger.create_game(identity, b"\x01" * 32)
            session_id = receipt.events[0].session_id
            api_ledger.submit_score(identity, session_id, b"\x02" * 32, score)

        res = http.get("/api/v1/leaderboard")
        assert res.status_code == 200
        body = res.json()
        assert body["count"] == 2
        assert [(e["rank"], e["player"], e["score"]) for e in body["entries"]] == [
            (1, BOB.lower(), 200),
            (2, ALICE.lower(), 100),
        ]

    def test_leaderboard_cached_until_refresh(self, http, api_ledger):
        assert http.get("/api/v1/leaderboard").json()["count"] == 0

        receipt = api_ledger.create_game(ALICE, b"\x01" * 32)
        api_ledger.submit_score(ALICE, receipt.events[0].session_id, b"\x02" * 32, 8)

        assert http.get("/api/v1/leaderboard").json()["count"] == 0
        assert http.post("/api/v1/leaderboard/refresh").json()["count"] == 1

    def test_ledger_failure_maps_to_502(self, service, tmp_path):
        class Down(InMemoryLedger):
            def create_game(self, identity, board_hash):
                raise LedgerSubmissionError("rpc unavailable")

        service.session_client.ledger = Down()
        http = TestClient(create_app(service=service, settings=Settings(cache_file=tmp_path / "lb.json")))

        res = http.post("/api/v1/sessions", json={"identity": ALICE})
        assert res.status_code == 502
        assert res.json()["error_code"] == "LEDGER_SUBMISSION_FAILED"


    def test_value_error_maps_to_validation_error(self, service, tmp_path, monkeypatch):
        def bad_move(session_id, request):
            raise ValueError("bad board")

        monkeypatch.setattr(service, "move", bad_move)
        http = TestClient(create_app(service=service, settings=Settings(cache_file=tmp_path / "lb.json")))

        res = http.post("/api/v1/sessions/1/moves", json={"identity": ALICE, "direction": "up"})
        assert res.status_code == 400
        assert res.json()["error_code"] == "VALIDATION_ERROR"


class TestIdentityAndClose:
    """Tests for identity checks and the close route."""

    def test_other_identity_cannot_move(self, http, service):
        session_id = http.post("/api/v1/sessions", json={"identity": ALICE}).json()["session_id"]
        before = http.get(f"/api/v1/sessions/{session_id}").json()

        res = http.post(
            f"/api/v1/sessions/{session_id}/moves",
            json={"identity": BOB, "direction": "left"},
        )

        assert res.status_code == 403
        assert res.json()["error_code"] == "IDENTITY_MISMATCH"
        assert http.get(f"/api/v1/sessions/{session_id}").json() == before

    def test_other_identity_cannot_finish_owners_game(self, http, service, last_move_board):
        session_id = start_last_move(http, service, last_move_board)

        res = http.post(
            f"/api/v1/sessions/{session_id}/moves",
            json={"identity": BOB, "direction": "left"},
        )
        assert res.status_code == 403

        res = http.post(
            f"/api/v1/sessions/{session_id}/moves",
            json={"identity": ALICE, "direction": "left"},
        )
        body = res.json()
        assert res.status_code == 200
        assert body["game_over"] is True
        assert body["close_receipt"] is not None
        assert body["session"]["status"] == "closed"

    def test_close_route_retries_refused_close(self, http, service, last_move_board):
        session_id = start_last_move(http, service, last_move_board)
        live = service.session_client.get_session(session_id)
        live.pending_tx = "0xfeed"
        live.pending_operation = "submitScore"

        body = http.post(
            f"/api/v1/sessions/{session_id}/moves",
            json={"identity": ALICE, "direction": "left"},
        ).json()
        assert body["game_over"] is True
        assert body["close_error"] is not None
        assert body["session"]["status"] == "playing"

        live.pending_tx = None
        live.pending_operation = None

        res = http.post(f"/api/v1/sessions/{session_id}/close", json={"identity": BOB})
        assert res.status_code == 403

        res = http.post(f"/api/v1/sessions/{session_id}/close", json={"identity": ALICE})
        assert res.status_code == 200
        assert res.json()["close_receipt"] is not None
        assert res.json()["session"]["status"] == "closed"
        assert http.get("/api/v1/leaderboard").json()["count"] == 1

        res = http.post(f"/api/v1/sessions/{session_id}/close", json={"identity": ALICE})
        assert res.status_code == 409

    def test_close_before_game_over_is_409(self, http):
        session_id = http.post("/api/v1/sessions", json={"identity": ALICE}).json()["session_id"]
        res = http.post(f"/api/v1/sessions/{session_id}/close", json={"identity": ALICE})
        assert res.status_code == 409
        assert res.json()["error_code"] == "INVALID_SESSION_STATE"

    def test_close_unknown_session_is_404(self, http):
        res = http.post("/api/v1/sessions/77/close", json={"identity": ALICE})
        assert res.status_code == 404


class TestReconcile:
    """Tests for settling timed-out ledger requests."""

    def test_timed_out_close_is_reconciled(self, tmp_path, last_move_board):
        ledger = PendingLedger(time_out_closes=True)
        service = APIService.in_memory(ledger=ledger, rng=FirstCellRandom())
        http = client_for(service, tmp_path)
        session_id = start_last_move(http, service, last_move_board)

        body = http.post(
            f"/api/v1/sessions/{session_id}/moves",
            json={"identity": ALICE, "direction": "left"},
        ).json()
        pending = body["session"]["pending_tx"]
        assert body["game_over"] is True
        assert pending is not None
        writes = ledger.write_count

        res = http.post(f"/api/v1/sessions/{session_id}/reconcile")
        assert res.status_code == 200
        assert res.json()["pending_tx"] == pending
        assert res.json()["status"] == "playing"

        ledger.hide_receipts = False
        res = http.post(f"/api/v1/sessions/{session_id}/reconcile")
        assert res.json()["status"] == "closed"
        assert res.json()["pending_tx"] is None
        assert res.json()["close_receipt"]["tx_hash"] == pending
        assert ledger.write_count == writes

    def test_timed_out_open_is_reconciled(self, tmp_path):
        ledger = PendingLedger(time_out_creates=True)
        service = APIService.in_memory(ledger=ledger, rng=FirstCellRandom())
        http = client_for(service, tmp_path)

        res = http.post("/api/v1/sessions", json={"identity": ALICE})
        assert res.status_code == 504
        assert res.json()["error_code"] == "LEDGER_TIMEOUT"
        tx_hash = res.json()["details"]["tx_hash"]

        res = http.post(f"/api/v1/sessions/pending/{tx_hash}/reconcile")
        assert res.status_code == 200
        assert res.json()["status"] == "open"
        assert res.json()["session_id"] is None

        ledger.hide_receipts = False
        res = http.post(f"/api/v1/sessions/pending/{tx_hash}/reconcile")
        assert res.json()["status"] == "registered"
        assert res.json()["session_id"] == 1
        assert ledger.write_count == 1

        res = http.post("/api/v1/sessions/1/moves", json={"identity": ALICE, "direction": "left"})
        assert res.status_code == 200

        res = http.post(f"/api/v1/sessions/pending/{tx_hash}/reconcile")
        assert res.status_code == 404

    def test_reconcile_unknown_session_is_404(self, http):
        assert http.post("/api/v1/sessions/5/reconcile").status_code == 404


class TestSessionTracking:
    """Tests for dropping sessions that can no longer be played."""

    def test_replaced_session_released_by_client(self, service):
        first = service.create_session(CreateSessionRequest(identity=ALICE))
        service.create_session(CreateSessionRequest(identity=ALICE))

        assert service.session_client.get_session(first.session_id) is None

    def test_stale_closed_sessions_dropped_on_create(self, service):
        first = service.create_session(CreateSessionRequest(identity=ALICE))
        live = service.session_client.get_session(first.session_id)
        service.session_client.close(live)
        live.created_at -= 2 * service.session_max_age

        service.create_session(CreateSessionRequest(identity=BOB))

        assert service.get_session(first.session_id) is None
        assert service.session_manager.get(first.session_id) is None


class TestErrorMapping:

    @pytest.mark.parametrize("exc, code, status", [
        (IdentityMismatchError(1, "a", "b"), ErrorCode.IDENTITY_MISMATCH, 403),
        (SessionStateError("closed"), ErrorCode.INVALID_SESSION_STATE, 409),
        (FinalizationTimeoutError("slow", tx_hash="0x1"), ErrorCode.LEDGER_TIMEOUT, 504),
        (LedgerSubmissionError("reverted"), ErrorCode.LEDGER_SUBMISSION_FAILED, 502),
        (EventNotFoundError("GameCreated"), ErrorCode.EVENT_NOT_FOUND, 502),
    ])
    def test_error_for(self, exc, code, status):
        assert error_for(exc) == (code, status)

    def test_error_code_values_are_strings(self):
        for code in ErrorCode:
            assert code.value == code.value.upper()


class TestOpenAPISchema:

    def test_paths_present(self, http):
        schema = http.get("/openapi.json").json()
        paths = schema["paths"]
        assert "/api/v1/sessions" in paths
        assert "/api/v1/sessions/{session_id}/moves" in paths
        assert "/api/v1/sessions/{session_id}/close" in paths
        assert "/api/v1/sessions/{session_id}/reconcile" in paths
        assert "/api/v1/sessions/pending/{tx_hash}/reconcile" in paths
        assert "/api/v1/leaderboard" in paths
        assert "ErrorResponse" in schema["components"]["schemas"]
