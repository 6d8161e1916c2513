"""
Ledger Module - The append-only log sessions are committed to.

Two implementations of the same interfaces:
- InMemoryLedger: simulated chain for development and tests
- Web3Ledger: the deployed game contract over JSON-RPC
"""

from .base import (
    GameCreated,
    ScoreSubmitted,
    LedgerEvent,
    TransactionReceipt,
    LedgerWriter,
    LedgerReader,
    MAX_SCORE,
    normalize_identity,
)
from .memory import InMemoryLedger
from .web3_ledger import Web3Ledger, GAME_ABI

__all__ = [
    "GameCreated",
    "ScoreSubmitted",
    "LedgerEvent",
    "TransactionReceipt",
    "LedgerWriter",
    "LedgerReader",
    "MAX_SCORE",
    "normalize_identity",
    "InMemoryLedger",
    "Web3Ledger",
    "GAME_ABI",
]
