"""
Board - The 4x4 tile grid and its pure transitions.

Design principles:
- Immutable: every transition returns a new Board
- Randomness is injected (rng) so transitions are reproducible in tests
- Terminal detection is side-effect free

A move collapses each line toward its leading edge: empty cells are removed,
equal neighbours merge once (scanning from the leading edge), and the line is
padded back to four cells on the trailing side. A tile is spawned only if the
move changed at least one cell.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import random

SIZE = 4
WINNING_TILE = 2048
SPAWN_TWO_PROBABILITY = 0.9

Rows = tuple[tuple[int, ...], ...]


class Direction(str, Enum):
    """Move directions."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


def _is_tile_value(value: int) -> bool:
    return value == 0 or (value >= 2 and value & (value - 1) == 0)


@dataclass(frozen=True)
class Board:
    """
    A 4x4 grid of tile values, 0 meaning empty.

    Cells are stored row-major as nested tuples; use `from_rows` to build
    one from lists (validates shape and values) and `to_rows` to get plain
    lists back for serialization.
    """
    cells: Rows

    @classmethod
    def empty(cls) -> Board:
        return cls(cells=tuple((0,) * SIZE for _ in range(SIZE)))

    @classmethod
    def from_rows(cls, rows) -> Board:
        """Build a board from a 4x4 nested sequence of ints."""
        rows = [list(row) for row in rows]
        if len(rows) != SIZE or any(len(row) != SIZE for row in rows):
            raise ValueError(f"Board must be {SIZE}x{SIZE}")
        for row in rows:
            for value in row:
                if not isinstance(value, int) or isinstance(value, bool):
                    raise ValueError(f"Tile values must be integers, got {value!r}")
                if not _is_tile_value(value):
                    raise ValueError(f"Tile value must be 0 or a power of two >= 2, got {value}")
        return cls(cells=tuple(tuple(row) for row in rows))

    def to_rows(self) -> list[list[int]]:
        return [list(row) for row in self.cells]

    def cell(self, row: int, col: int) -> int:
        return self.cells[row][col]

    def empty_cells(self) -> list[tuple[int, int]]:
        """Coordinates of empty cells in row-major order."""
        return [
            (r, c)
            for r in range(SIZE)
            for c in range(SIZE)
            if self.cells[r][c] == 0
        ]

    def with_cell(self, row: int, col: int, value: int) -> Board:
        """Return new board with one cell replaced."""
        rows = self.to_rows()
        rows[row][col] = value
        return Board(cells=tuple(tuple(r) for r in rows))

    def column(self, col: int) -> tuple[int, ...]:
        return tuple(self.cells[r][col] for r in range(SIZE))

    def tile_count(self) -> int:
        return sum(1 for row in self.cells for value in row if value)

    def __str__(self) -> str:
        return "\n".join(
            " ".join(f"{value or '.':>5}" for value in row)
            for row in self.cells
        )


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a single directional move."""
    board: Board
    moved: bool
    score_delta: int


def spawn_tile(board: Board, rng: random.Random | None = None) -> Board:
    """
    Place one new tile on a uniformly chosen empty cell.

    The tile is 2 with probability 0.9, else 4. Returns the board unchanged
    when there is no empty cell.
    """
    rng = rng or random
    empty = board.empty_cells()
    if not empty:
        return board
    row, col = rng.choice(empty)
    value = 2 if rng.random() < SPAWN_TWO_PROBABILITY else 4
    return board.with_cell(row, col, value)


def initialize(rng: random.Random | None = None) -> Board:
    """Empty board with two spawned tiles."""
    board = Board.empty()
    board = spawn_tile(board, rng)
    board = spawn_tile(board, rng)
    return board


def collapse_line(line: tuple[int, ...]) -> tuple[tuple[int, ...], int]:
    """
    Collapse one line toward index 0.

    Returns (new line, merge score). A merged tile is not merged again in
    the same call: [2, 2, 2, 0] -> [4, 2, 0, 0].
    """
    tiles = [value for value in line if value != 0]
    merged: list[int] = []
    score = 0
    i = 0
    while i < len(tiles):
        if i + 1 < len(tiles) and tiles[i] == tiles[i + 1]:
            value = tiles[i] * 2
            merged.append(value)
            score += value
            i += 2
        else:
            merged.append(tiles[i])
            i += 1
    merged.extend([0] * (len(line) - len(merged)))
    return tuple(merged), score


def _slide(board: Board, direction: Direction) -> tuple[Board, int]:
    rows = board.to_rows()
    score = 0

    if direction in (Direction.LEFT, Direction.RIGHT):
        for r in range(SIZE):
            line = tuple(rows[r])
            if direction == Direction.RIGHT:
                line = line[::-1]
            collapsed, gained = collapse_line(line)
            if direction == Direction.RIGHT:
                collapsed = collapsed[::-1]
            rows[r] = list(collapsed)
            score += gained
    else:
        for c in range(SIZE):
            line = board.column(c)
            if direction == Direction.DOWN:
                line = line[::-1]
            collapsed, gained = collapse_line(line)
            if direction == Direction.DOWN:
                collapsed = collapsed[::-1]
            for r in range(SIZE):
                rows[r][c] = collapsed[r]
            score += gained

    return Board(cells=tuple(tuple(row) for row in rows)), score


def apply_move(
    board: Board,
    direction: Direction | str,
    rng: random.Random | None = None,
) -> MoveResult:
    """
    Apply one directional move.

    `moved` is true iff any cell changed. A tile is spawned only when
    `moved` is true; a no-op move leaves board and score untouched.
    """
    direction = Direction(direction)
    slid, score_delta = _slide(board, direction)
    moved = slid != board
    if moved:
        slid = spawn_tile(slid, rng)
    return MoveResult(board=slid, moved=moved, score_delta=score_delta)


def can_move(board: Board) -> bool:
    """True if any cell is empty or any orthogonal neighbours are equal."""
    for r in range(SIZE):
        for c in range(SIZE):
            value = board.cell(r, c)
            if value == 0:
                return True
            if r + 1 < SIZE and board.cell(r + 1, c) == value:
                return True
            if c + 1 < SIZE and board.cell(r, c + 1) == value:
                return True
    return False


def has_won(board: Board) -> bool:
    """True once a 2048 tile is on the board. Play may continue."""
    return any(value == WINNING_TILE for row in board.cells for value in row)
