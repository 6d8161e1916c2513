"""
Web3 ledger - EVM JSON-RPC adapter for the game contract.

Contract surface:
    createGame(bytes32 initialBoardHash) returns (uint256)
    submitScore(uint256 gameId, bytes32 finalBoardHash, uint32 finalScore)
    event GameCreated(uint256 indexed gameId, address indexed player, bytes32 boardHash)
    event ScoreSubmitted(uint256 indexed gameId, address indexed player,
                         bytes32 finalBoardHash, uint32 finalScore)

Transactions are sent with transact({"from": identity}); signing is whatever
the Web3 instance provides (node-managed account or signing middleware).
"""

from __future__ import annotations
from typing import Any
import logging

from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound
from web3.logs import DISCARD

from .base import (
    GameCreated,
    LedgerReader,
    LedgerWriter,
    ScoreSubmitted,
    TransactionReceipt,
)
from ..errors import FinalizationTimeoutError, LedgerSubmissionError

logger = logging.getLogger(__name__)

GAME_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "createGame",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "initialBoardHash", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "submitScore",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "gameId", "type": "uint256"},
            {"name": "finalBoardHash", "type": "bytes32"},
            {"name": "finalScore", "type": "uint32"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "GameCreated",
        "anonymous": False,
        "inputs": [
            {"name": "gameId", "type": "uint256", "indexed": True},
            {"name": "player", "type": "address", "indexed": True},
            {"name": "boardHash", "type": "bytes32", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "ScoreSubmitted",
        "anonymous": False,
        "inputs": [
            {"name": "gameId", "type": "uint256", "indexed": True},
            {"name": "player", "type": "address", "indexed": True},
            {"name": "finalBoardHash", "type": "bytes32", "indexed": False},
            {"name": "finalScore", "type": "uint32", "indexed": False},
        ],
    },
]

SCORE_SUBMITTED_SIGNATURE = "ScoreSubmitted(uint256,address,bytes32,uint32)"


class Web3Ledger(LedgerWriter, LedgerReader):
    """
    Ledger backed by a deployed game contract.

    Usage:
        ledger = Web3Ledger.from_rpc(rpc_url, contract_address)
        receipt = ledger.create_game(player_address, board_hash)
    """

    def __init__(self, w3: Web3, contract_address: str, receipt_timeout: float = 120.0):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract = w3.eth.contract(address=self.contract_address, abi=GAME_ABI)
        self.receipt_timeout = receipt_timeout
        self.score_topic = Web3.to_hex(Web3.keccak(text=SCORE_SUBMITTED_SIGNATURE))

    @classmethod
    def from_rpc(cls, rpc_url: str, contract_address: str, receipt_timeout: float = 120.0) -> Web3Ledger:
        return cls(Web3(Web3.HTTPProvider(rpc_url)), contract_address, receipt_timeout)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def create_game(self, identity: str, board_hash: bytes) -> TransactionReceipt:
        call = self.contract.functions.createGame(board_hash)
        return self._transact(call, identity, "createGame")

    def submit_score(
        self,
        identity: str,
        session_id: int,
        final_board_hash: bytes,
        final_score: int,
    ) -> TransactionReceipt:
        call = self.contract.functions.submitScore(session_id, final_board_hash, final_score)
        return self._transact(call, identity, "submitScore")

    def get_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        try:
            raw = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        if raw["status"] == 0:
            raise LedgerSubmissionError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return self._to_receipt(raw)

    def _transact(self, call, identity: str, method: str) -> TransactionReceipt:
        sender = Web3.to_checksum_address(identity)
        try:
            tx_hash = Web3.to_hex(call.transact({"from": sender}))
        except Exception as e:
            raise LedgerSubmissionError(f"{method} submission failed: {e}") from e

        logger.info("Submitted %s from %s: %s", method, sender, tx_hash)

        try:
            raw = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted as e:
            raise FinalizationTimeoutError(
                f"{method} not finalized after {self.receipt_timeout}s", tx_hash=tx_hash
            ) from e

        if raw["status"] == 0:
            raise LedgerSubmissionError(f"{method} reverted", tx_hash=tx_hash)
        return self._to_receipt(raw)

    def _to_receipt(self, raw) -> TransactionReceipt:
        tx_hash = Web3.to_hex(raw["transactionHash"])
        events = []
        for log in self.contract.events.GameCreated().process_receipt(raw, errors=DISCARD):
            events.append(self._to_game_created(log))
        for log in self.contract.events.ScoreSubmitted().process_receipt(raw, errors=DISCARD):
            events.append(self._to_score_submitted(log))
        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=int(raw["blockNumber"]),
            events=tuple(events),
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def get_score_events(self, from_block: int, to_block: int) -> list[ScoreSubmitted]:
        logs = self.w3.eth.get_logs({
            "address": self.contract_address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": [self.score_topic],
        })
        event = self.contract.events.ScoreSubmitted()
        return [self._to_score_submitted(event.process_log(log)) for log in logs]

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _to_game_created(log) -> GameCreated:
        args = log["args"]
        return GameCreated(
            session_id=int(args["gameId"]),
            player=args["player"],
            board_hash=bytes(args["boardHash"]),
            block_number=int(log["blockNumber"]),
            tx_hash=Web3.to_hex(log["transactionHash"]),
        )

    @staticmethod
    def _to_score_submitted(log) -> ScoreSubmitted:
        args = log["args"]
        return ScoreSubmitted(
            session_id=int(args["gameId"]),
            player=args["player"],
            final_board_hash=bytes(args["finalBoardHash"]),
            final_score=int(args["finalScore"]),
            block_number=int(log["blockNumber"]),
            tx_hash=Web3.to_hex(log["transactionHash"]),
        )
