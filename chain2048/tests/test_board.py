"""
Tests for the board engine.

Tests:
- Initialization and the spawn rule
- Line collapse and merge scoring
- Moves in all four directions
- Terminal and win detection
"""

import random

import pytest

from ..engine_core.board import (
    Board,
    Direction,
    apply_move,
    can_move,
    collapse_line,
    has_won,
    initialize,
    spawn_tile,
)


def row_board(first_row, fill=0):
    """Board whose first row is `first_row` and the rest `fill`."""
    return Board.from_rows([list(first_row)] + [[fill] * 4 for _ in range(3)])


class TestInitialize:
    """Tests for board initialization."""

    @pytest.mark.parametrize("seed", range(20))
    def test_two_tiles_of_two_or_four(self, seed):
        """A fresh board has exactly two tiles, each 2 or 4."""
        board = initialize(random.Random(seed))
        tiles = [value for row in board.cells for value in row if value]
        assert len(tiles) == 2
        assert all(value in (2, 4) for value in tiles)

    def test_uses_module_random_by_default(self):
        board = initialize()
        assert board.tile_count() == 2


class TestSpawn:
    """Tests for the spawn rule."""

    def test_spawns_two_below_threshold(self, rng):
        board = spawn_tile(Board.empty(), rng)
        assert board.cell(0, 0) == 2
        assert board.tile_count() == 1

    def test_spawns_four_above_threshold(self):
        class High:
            def choice(self, seq):
                return seq[-1]

            def random(self):
                return 0.95

        board = spawn_tile(Board.empty(), High())
        assert board.cell(3, 3) == 4

    def test_full_board_is_unchanged(self, stuck_board):
        assert spawn_tile(stuck_board, random.Random(1)) is stuck_board

    def test_spawn_only_on_empty_cells(self):
        board = Board.from_rows([
            [2, 4, 8, 16],
            [32, 64, 128, 256],
            [512, 1024, 0, 2],
            [4, 8, 16, 32],
        ])
        spawned = spawn_tile(board, random.Random(3))
        assert spawned.cell(2, 2) in (2, 4)
        assert spawned.empty_cells() == []

    def test_spawn_returns_new_board(self, rng):
        board = Board.empty()
        spawned = spawn_tile(board, rng)
        assert board.tile_count() == 0
        assert spawned is not board


class TestCollapseLine:
    """Tests for single-line collapse."""

    def test_first_pair_of_three_merges(self):
        assert collapse_line((2, 2, 2, 0)) == ((4, 2, 0, 0), 4)

    def test_two_pairs_merge(self):
        assert collapse_line((2, 2, 4, 4)) == ((4, 8, 0, 0), 12)

    def test_merged_tile_not_merged_again(self):
        assert collapse_line((4, 4, 8, 0)) == ((8, 8, 0, 0), 8)

    def test_gaps_removed_before_merge(self):
        assert collapse_line((2, 0, 0, 2)) == ((4, 0, 0, 0), 4)

    def test_no_merge(self):
        assert collapse_line((2, 4, 8, 16)) == ((2, 4, 8, 16), 0)

    def test_empty_line(self):
        assert collapse_line((0, 0, 0, 0)) == ((0, 0, 0, 0), 0)


class TestApplyMove:
    """Tests for directional moves."""

    def test_left_merges_first_pair(self, rng):
        board = row_board([2, 2, 2, 0])
        result = apply_move(board, Direction.LEFT, rng)

        assert result.moved
        assert result.score_delta == 4
        # Spawned 2 lands in the first empty cell, (0, 2)
        assert result.board.cells[0] == (4, 2, 2, 0)

    def test_right_packs_toward_right_edge(self, rng):
        board = row_board([2, 2, 2, 0])
        result = apply_move(board, "right", rng)

        assert result.moved
        assert result.score_delta == 4
        assert result.board.cells[0][1:] == (0, 2, 4)

    def test_up_and_down_use_columns(self, rng):
        board = Board.from_rows([
            [2, 0, 0, 0],
            [2, 0, 0, 0],
            [4, 0, 0, 0],
            [4, 0, 0, 0],
        ])
        up = apply_move(board, Direction.UP, rng)
        assert up.score_delta == 12
        assert up.board.column(0) == (4, 8, 0, 0)

        down = apply_move(board, Direction.DOWN, rng)
        assert down.score_delta == 12
        # The spawned 2 takes the first empty cell, (0, 0)
        assert down.board.column(0) == (2, 0, 4, 8)

    def test_score_sums_over_all_lines(self):
        board = Board.from_rows([
            [2, 2, 0, 0],
            [4, 4, 0, 0],
            [8, 8, 0, 0],
            [0, 0, 0, 0],
        ])
        result = apply_move(board, Direction.LEFT, random.Random(0))
        assert result.score_delta == 4 + 8 + 16

    def test_move_spawns_exactly_one_tile(self, rng):
        board = row_board([0, 0, 0, 2])
        result = apply_move(board, Direction.LEFT, rng)
        assert result.moved
        assert result.board.tile_count() == 2

    def test_noop_move_does_not_spawn_or_score(self):
        board = row_board([2, 4, 8, 16])
        result = apply_move(board, Direction.LEFT, random.Random(0))

        assert not result.moved
        assert result.score_delta == 0
        assert result.board == board

    @pytest.mark.parametrize("direction", list(Direction))
    def test_empty_board_never_moves(self, direction):
        result = apply_move(Board.empty(), direction, random.Random(0))
        assert not result.moved
        assert result.score_delta == 0
        assert result.board.tile_count() == 0

    @pytest.mark.parametrize("seed", range(10))
    def test_noop_direction_is_idempotent(self, seed):
        """A direction that did not move keeps not moving on the same board."""
        rng = random.Random(seed)
        board = initialize(rng)
        for _ in range(30):
            result = apply_move(board, Direction.LEFT, rng)
            if not result.moved:
                again = apply_move(result.board, Direction.LEFT, rng)
                assert not again.moved
                assert again.board == board
                return
            board = result.board

    def test_input_board_is_not_mutated(self, rng):
        board = row_board([2, 2, 0, 0])
        before = board.to_rows()
        apply_move(board, Direction.LEFT, rng)
        assert board.to_rows() == before

    def test_unknown_direction_rejected(self):
        with pytest.raises(ValueError):
            apply_move(Board.empty(), "sideways")


class TestCanMove:
    """Tests for terminal detection."""

    def test_empty_cell_allows_move(self):
        assert can_move(row_board([2, 4, 8, 16], fill=0))

    def test_stuck_board(self, stuck_board):
        assert not can_move(stuck_board)

    @pytest.mark.parametrize("direction", list(Direction))
    def test_stuck_board_has_no_moving_direction(self, stuck_board, direction):
        assert not apply_move(stuck_board, direction, random.Random(0)).moved

    def test_horizontal_pair_allows_move(self, stuck_board):
        board = stuck_board.with_cell(0, 1, 2)
        assert can_move(board)

    def test_vertical_pair_allows_move(self, stuck_board):
        board = stuck_board.with_cell(1, 0, 2)
        assert can_move(board)

    def test_last_move_ends_game(self, last_move_board, rng):
        assert can_move(last_move_board)
        result = apply_move(last_move_board, Direction.LEFT, rng)
        assert result.moved
        assert result.score_delta == 4
        assert result.board.cells[0] == (4, 8, 16, 2)
        assert not can_move(result.board)


class TestWin:
    def test_has_won(self):
        assert has_won(row_board([2048, 0, 0, 0]))
        assert not has_won(row_board([1024, 1024, 0, 0]))


class TestBoardValue:
    """Tests for Board construction."""

    def test_rejects_wrong_shape(self):
        with pytest.raises(ValueError):
            Board.from_rows([[0, 0, 0]] * 4)

    def test_rejects_non_power_of_two(self):
        with pytest.raises(ValueError):
            row_board([3, 0, 0, 0])

    def test_rejects_one(self):
        with pytest.raises(ValueError):
            row_board([1, 0, 0, 0])

    def test_round_trip_rows(self):
        rows = [[2, 0, 0, 4], [0] * 4, [0] * 4, [0, 8, 0, 0]]
        assert Board.from_rows(rows).to_rows() == rows

    def test_equal_boards_compare_equal(self):
        assert row_board([2, 0, 0, 0]) == row_board([2, 0, 0, 0])
