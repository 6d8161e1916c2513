"""
Engine Core - Deterministic 2048 board transitions.

The engine:
1. Initializes a board with two spawned tiles
2. Applies a directional move (slide, merge, score, spawn)
3. Detects the terminal state (no legal move left)
4. Detects the win tile (does not end the game)
"""

from .board import (
    Board,
    Direction,
    MoveResult,
    SIZE,
    WINNING_TILE,
    initialize,
    spawn_tile,
    collapse_line,
    apply_move,
    can_move,
    has_won,
)

__all__ = [
    "Board",
    "Direction",
    "MoveResult",
    "SIZE",
    "WINNING_TILE",
    "initialize",
    "spawn_tile",
    "collapse_line",
    "apply_move",
    "can_move",
    "has_won",
]
