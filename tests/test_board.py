"""
Board Engine Tests

Match detection, special tiles, swaps, cascades, gravity and the
boss hooks (blocked column, burns, conversions).
"""

import random

import pytest

from engine.board import (
    Board, SwapRejection, find_matches, plan_specials, special_footprint,
)
from engine.game_state import Cell, Direction, Match, SpecialKind
from engine.resolver import resolve_matches


def grid_of(rows):
    return [[Cell(g) for g in row] for row in rows]


class TestFindMatches:
    """Row and column scanning."""

    def test_stable_grid_has_no_matches(self, make_dead_rows):
        assert find_matches(grid_of(make_dead_rows())) == []

    def test_five_horizontal_and_three_vertical_sharing_a_cell(self):
        """An L/T crossing is reported as two separate matches."""
        rows = [[(2 * r + c) % 5 for c in range(7)] for r in range(7)]
        for c in range(1, 6):
            rows[3][c] = 5
        rows[4][3] = 5
        rows[5][3] = 5

        matches = find_matches(grid_of(rows))

        assert matches == [
            Match(5, ((3, 1), (3, 2), (3, 3), (3, 4), (3, 5)), Direction.HORIZONTAL),
            Match(5, ((3, 3), (4, 3), (5, 3)), Direction.VERTICAL),
        ]
        assert [m.length for m in matches] == [5, 3]

    def test_empty_cells_break_runs(self):
        rows = [
            [1, 1, None, 1, 1],
            [2, 3, 4, 5, 0],
            [3, 4, 5, 0, 1],
        ]
        assert find_matches(grid_of(rows)) == []

    def test_empty_cells_never_match_each_other(self):
        rows = [
            [None, None, None],
            [1, 2, 3],
            [2, 3, 1],
        ]
        assert find_matches(grid_of(rows)) == []

    def test_runs_are_maximal(self):
        rows = [
            [4, 4, 4, 4, 1, 2],
            [0, 1, 2, 3, 5, 0],
        ]
        matches = find_matches(grid_of(rows))
        assert len(matches) == 1
        assert matches[0].length == 4
        assert matches[0].middle == (0, 2)


class TestSpecialTiles:
    """Which specials a step creates, and what they would clear."""

    def test_four_in_a_row_makes_line_blast(self):
        h = Match(1, ((2, 0), (2, 1), (2, 2), (2, 3)), Direction.HORIZONTAL)
        v = Match(2, ((0, 5), (1, 5), (2, 5), (3, 5)), Direction.VERTICAL)
        placed = plan_specials([h, v])
        assert [(p.pos, p.kind, p.gem_id) for p in placed] == [
            ((2, 2), SpecialKind.LINE_H, 1),
            ((2, 5), SpecialKind.LINE_V, 2),
        ]

    def test_five_in_a_row_makes_color_bomb(self):
        m = Match(3, tuple((0, c) for c in range(5)), Direction.HORIZONTAL)
        placed = plan_specials([m])
        assert len(placed) == 1
        assert placed[0].kind == SpecialKind.COLOR_BOMB
        assert placed[0].pos == (0, 2)

    def test_three_in_a_row_makes_nothing(self):
        m = Match(3, ((0, 0), (0, 1), (0, 2)), Direction.HORIZONTAL)
        assert plan_specials([m]) == []

    def test_l_shape_makes_area_bomb_at_corner(self):
        h = Match(4, ((0, 0), (0, 1), (0, 2)), Direction.HORIZONTAL)
        v = Match(4, ((0, 0), (1, 0), (2, 0)), Direction.VERTICAL)
        placed = plan_specials([h, v])
        assert [(p.pos, p.kind, p.gem_id) for p in placed] == [((0, 0), SpecialKind.AREA_BOMB, 4)]

    def test_first_registered_special_wins_the_cell(self):
        """A 5-run crossing a 3-run at its middle keeps the color bomb."""
        h = Match(5, tuple((3, c) for c in range(1, 6)), Direction.HORIZONTAL)
        v = Match(5, ((3, 3), (4, 3), (5, 3)), Direction.VERTICAL)
        placed = plan_specials([h, v])
        assert [(p.pos, p.kind) for p in placed] == [((3, 3), SpecialKind.COLOR_BOMB)]

    def test_line_footprints(self, make_dead_rows):
        grid = grid_of(make_dead_rows())
        assert special_footprint(SpecialKind.LINE_H, (2, 4), 0, grid) == [(2, c) for c in range(7)]
        assert special_footprint(SpecialKind.LINE_V, (2, 4), 0, grid) == [(r, 4) for r in range(7)]

    def test_area_bomb_is_clipped_at_the_edge(self, make_dead_rows):
        grid = grid_of(make_dead_rows())
        assert sorted(special_footprint(SpecialKind.AREA_BOMB, (0, 0), 0, grid)) == [
            (0, 0), (0, 1), (1, 0), (1, 1),
        ]
        assert len(special_footprint(SpecialKind.AREA_BOMB, (3, 3), 0, grid)) == 9

    def test_color_bomb_hits_every_gem_of_its_color(self, make_dead_rows):
        rows = make_dead_rows()
        grid = grid_of(rows)
        hits = special_footprint(SpecialKind.COLOR_BOMB, (0, 0), 4, grid)
        expected = [(r, c) for r in range(7) for c in range(7) if rows[r][c] == 4]
        assert hits == expected
        assert special_footprint(SpecialKind.NONE, (0, 0), 4, grid) == []


class TestBoardGeneration:

    @pytest.mark.parametrize("seed", range(10))
    def test_fresh_board_is_stable_and_playable(self, seed):
        board = Board(rng=random.Random(seed))
        assert board.is_stable()
        assert board.has_valid_move()
        assert all(0 <= g < 6 for row in board.to_rows() for g in row)

    def test_same_seed_same_board(self):
        assert Board(rng=random.Random(5)).to_rows() == Board(rng=random.Random(5)).to_rows()

    def test_dead_board_is_detected_and_reshuffled(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(3))
        assert not board.has_valid_move()
        assert board.valid_moves() == []

        deals = board.reshuffle()
        assert deals >= 1
        assert board.has_valid_move()
        assert board.is_stable()


class TestSwaps:

    def test_out_of_bounds_is_rejected(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        outcome = board.attempt_swap((0, 6), (0, 7))
        assert not outcome.valid
        assert outcome.rejection == SwapRejection.OUT_OF_BOUNDS

    def test_non_adjacent_is_rejected(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        for b in [(0, 2), (1, 1), (0, 0)]:
            outcome = board.attempt_swap((0, 0), b)
            assert not outcome.valid
            assert outcome.rejection == SwapRejection.NOT_ADJACENT

    def test_no_match_swap_leaves_grid_untouched(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        before_rows = board.to_rows()
        before_cells = [list(row) for row in board.grid]

        outcome = board.attempt_swap((3, 3), (3, 4))

        assert not outcome.valid
        assert outcome.rejection == SwapRejection.NO_MATCH
        assert outcome.steps == []
        assert board.to_rows() == before_rows
        assert all(a is b for row_a, row_b in zip(board.grid, before_cells) for a, b in zip(row_a, row_b))

    def test_preview_does_not_mutate(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        before = board.to_rows()
        matches = board.preview_swap((0, 2), (1, 2))
        assert [m.gem_id for m in matches] == [0]
        assert board.to_rows() == before

    def test_valid_swap_cascades_to_a_stable_board(self, sword_rows, warrior):
        board = Board.from_rows(sword_rows, rng=random.Random(11))
        seen = []
        outcome = board.attempt_swap(
            (0, 2), (1, 2),
            resolve=lambda counts, depth: resolve_matches(counts, depth, warrior),
            on_step=seen.append,
        )

        assert outcome.valid
        assert outcome.cascade_depth >= 1
        assert seen == outcome.steps
        first = outcome.steps[0]
        assert first.depth == 1
        assert first.gem_counts == {0: 3}
        assert first.cleared == [(0, 0), (0, 1), (0, 2)]
        # 3 * 8 * (1 + 12 * 0.08) = 47.04
        assert first.effects.physical_damage == 47
        assert [s.depth for s in outcome.steps] == list(range(1, outcome.cascade_depth + 1))
        assert board.is_stable()

    def test_no_resolver_means_no_effects(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(11))
        outcome = board.attempt_swap((0, 2), (1, 2))
        assert outcome.valid
        assert outcome.steps[0].effects is None

    @pytest.mark.parametrize("seed", range(5))
    def test_board_stays_stable_through_many_swaps(self, seed):
        rng = random.Random(seed)
        board = Board(rng=rng)
        for _ in range(15):
            moves = board.valid_moves()
            if not moves:
                board.reshuffle()
                continue
            a, b = rng.choice(moves)
            assert board.attempt_swap(a, b).valid
            assert board.is_stable()


class TestDropAndFill:

    def test_survivors_slide_down_in_order(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        column = [board.grid[r][3] for r in range(7)]
        other = [list(row) for row in board.grid]

        board.clear_cells([(2, 3), (4, 3)])
        board.drop_and_fill()

        # survivors from rows 0, 1, 3, 5, 6 end up in rows 2..6
        assert [board.grid[r][3] for r in range(2, 7)] == [column[0], column[1], column[3], column[5], column[6]]
        assert all(board.grid[r][3] is column[i] for r, i in zip(range(2, 7), (0, 1, 3, 5, 6)))
        # the top two are brand-new cells
        for r in (0, 1):
            assert all(board.grid[r][3] is not old for old in column)
            assert not board.grid[r][3].is_empty
        # other columns didn't move
        for r in range(7):
            for c in range(7):
                if c != 3:
                    assert board.grid[r][c] is other[r][c]


class TestDetonation:

    def test_specials_are_inert_by_default(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(2))
        board.grid[0][0].special = SpecialKind.LINE_V
        assert board.specials() == [((0, 0), SpecialKind.LINE_V)]
        step = board.attempt_swap((0, 2), (1, 2)).steps[0]
        assert step.detonated == []
        assert step.cleared == [(0, 0), (0, 1), (0, 2)]

    def test_matched_line_blast_clears_its_column(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(2), detonate_specials=True)
        board.grid[0][0].special = SpecialKind.LINE_V
        step = board.attempt_swap((0, 2), (1, 2)).steps[0]

        assert step.detonated == [(0, 0)]
        assert set(step.cleared) == {(0, 1), (0, 2)} | {(r, 0) for r in range(7)}
        # column 0 below the match holds 2, 4, 0, 2, 4, 0
        assert step.gem_counts == {0: 5, 2: 2, 4: 2}

    def test_blasts_chain_through_other_specials(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(2), detonate_specials=True)
        board.grid[0][0].special = SpecialKind.LINE_V
        board.grid[3][0].special = SpecialKind.LINE_H
        step = board.attempt_swap((0, 2), (1, 2)).steps[0]

        assert step.detonated == [(0, 0), (3, 0)]
        assert {(3, c) for c in range(7)} <= set(step.cleared)


class TestBossHooks:

    def test_blocked_column_rejects_swaps(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        board.blocked_column = 2
        outcome = board.attempt_swap((0, 2), (1, 2))
        assert not outcome.valid
        assert outcome.rejection == SwapRejection.BLOCKED_COLUMN
        assert all(2 not in (a[1], b[1]) for a, b in board.valid_moves())

    def test_burn_replaces_previous_burns(self, rng):
        board = Board(rng=rng)
        board.blocked_column = 0
        first = board.burn_random_cells(3)
        assert len(first) == 3
        assert sorted(first) == board.burned_cells()

        second = board.burn_random_cells(3)
        assert sorted(second) == board.burned_cells()
        assert not set(first) & set(second)
        assert all(c != 0 for _, c in first + second)

    def test_burned_matches_are_counted(self, sword_rows):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        board.grid[0][1].burned = True
        step = board.attempt_swap((0, 2), (1, 2)).steps[0]
        assert step.burned_matched == 1

    def test_convert_only_touches_other_colors(self, rng):
        board = Board(rng=rng)
        board.blocked_column = 6
        before = board.to_rows()
        converted = board.convert_random_cells(0, 5)
        assert len(converted) == 5
        for r, c in converted:
            assert before[r][c] != 0
            assert board.gem_at((r, c)) == 0
            assert c != 6
