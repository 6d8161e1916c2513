"""
Board commitment - deterministic digest of a board's canonical form.

The canonical serialization is compact JSON of the row-major nested list,
e.g. "[[0,2,0,0],[0,0,0,0],[0,0,4,0],[0,0,0,0]]". The commitment is its
keccak-256 digest (32 bytes), the same value the game contract records.
"""

from __future__ import annotations
import json

from web3 import Web3

from ..engine_core.board import Board

COMMITMENT_SIZE = 32


def canonical_serialization(board: Board) -> str:
    return json.dumps(board.to_rows(), separators=(",", ":"))


def board_commitment(board: Board) -> bytes:
    """keccak-256 of the canonical serialization."""
    return bytes(Web3.keccak(text=canonical_serialization(board)))


def commitment_hex(commitment: bytes) -> str:
    return Web3.to_hex(commitment)
