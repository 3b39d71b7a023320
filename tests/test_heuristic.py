"""
Move Heuristic Tests

Swap enumeration order, match scoring, best-move choice and hints.
"""

import random

from engine.board import Board
from engine.combat import create_boss, create_enemy
from engine.game_state import Direction, Match
from engine.heuristic.explainer import explain_move
from engine.heuristic.moves import Swap, candidate_swaps, matching_swaps
from engine.heuristic.scoring import score_match, score_matches
from engine.heuristic.search import find_best_move, rank_moves


def run(gem_id, length):
    return Match(gem_id, tuple((0, c) for c in range(length)), Direction.HORIZONTAL)


class TestCandidateSwaps:

    def test_scan_order_right_then_down(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        swaps = candidate_swaps(board)
        assert swaps[:3] == [Swap((0, 0), (0, 1)), Swap((0, 0), (1, 0)), Swap((0, 1), (0, 2))]
        # 7 rows * 6 horizontal + 6 rows * 7 vertical
        assert len(swaps) == 84

    def test_blocked_column_is_skipped(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        board.blocked_column = 3
        swaps = candidate_swaps(board)
        assert all(3 not in (s.a[1], s.b[1]) for s in swaps)

    def test_swap_dict_round_trip(self):
        s = Swap((2, 3), (2, 4))
        assert s.to_dict() == {"from": [2, 3], "to": [2, 4]}
        assert Swap.from_dict(s.to_dict()) == s

    def test_matching_swaps_on_dead_board(self, make_dead_rows):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        assert matching_swaps(board) == []


class TestScoring:

    def test_damage_gems_weigh_three(self):
        assert score_match(run(0, 3), 1.0) == 9
        assert score_match(run(1, 3), 1.0) == 9

    def test_length_bonuses_stack(self):
        assert score_match(run(0, 4), 1.0) == 12 + 3
        assert score_match(run(0, 5), 1.0) == 15 + 3 + 5

    def test_hearts_matter_when_low(self):
        assert score_match(run(3, 3), 0.9) == 3
        assert score_match(run(3, 3), 0.49) == 12
        assert score_match(run(3, 3), 0.5) == 3

    def test_other_weights(self):
        assert score_match(run(2, 3), 1.0) == 4.5
        assert score_match(run(4, 3), 1.0) == 1.5
        assert score_match(run(5, 3), 1.0) == 3

    def test_matches_add_up(self):
        assert score_matches([run(0, 3), run(4, 4)], 1.0) == 9 + 2 + 3
        assert score_matches([], 1.0) == 0


class TestSearch:

    def test_nothing_to_play_on_a_dead_board(self, make_dead_rows, warrior):
        board = Board.from_rows(make_dead_rows(), rng=random.Random(0))
        assert find_best_move(board, warrior) is None
        assert rank_moves(board, warrior) == []

    def test_full_hp_prefers_swords(self, heart_and_sword_rows, warrior):
        board = Board.from_rows(heart_and_sword_rows, rng=random.Random(0))
        best = find_best_move(board, warrior)
        assert best is not None
        assert {m.gem_id for m in best.matches} == {0}
        assert best.score == 9

    def test_low_hp_prefers_hearts(self, heart_and_sword_rows, warrior):
        board = Board.from_rows(heart_and_sword_rows, rng=random.Random(0))
        warrior.current_hp = 60
        best = find_best_move(board, warrior)
        assert {m.gem_id for m in best.matches} == {3}
        # 4 hearts * 4 + long match bonus
        assert best.score == 19
        assert best.swap == Swap((5, 2), (6, 2))

    def test_ranking_agrees_with_best_move(self, warrior):
        for seed in range(5):
            board = Board(rng=random.Random(seed))
            ranked = rank_moves(board, warrior)
            best = find_best_move(board, warrior)
            assert ranked[0].swap == best.swap
            assert [m.score for m in ranked] == sorted((m.score for m in ranked), reverse=True)

    def test_ties_keep_scan_order(self, warrior):
        board = Board(rng=random.Random(21))
        order = {s: i for i, s in enumerate(candidate_swaps(board))}
        ranked = rank_moves(board, warrior)
        top = [m for m in ranked if m.score == ranked[0].score]
        assert [order[m.swap] for m in top] == sorted(order[m.swap] for m in top)
        assert find_best_move(board, warrior).swap == top[0].swap

    def test_search_leaves_board_alone(self, warrior):
        board = Board(rng=random.Random(6))
        before = board.to_rows()
        find_best_move(board, warrior)
        rank_moves(board, warrior)
        assert board.to_rows() == before


class TestExplainer:

    def test_hint_for_a_move(self, sword_rows, warrior):
        board = Board.from_rows(sword_rows, rng=random.Random(0))
        best = find_best_move(board, warrior)
        hint = explain_move(best, warrior, create_enemy("slime", 1))
        assert hint["do_this"].startswith("Swap (")
        assert "Sword" in hint["why"]
        assert hint["score"] == best.score

    def test_hint_without_a_move(self, warrior):
        hint = explain_move(None, warrior, create_enemy("slime", 1))
        assert "reshuffle" in hint["do_this"]
        assert hint["score"] == 0.0

    def test_boss_warnings(self, warrior):
        for key, word in [("ogre_king", "enrages"), ("sand_wyrm", "column"),
                          ("lich_lord", "poisons"), ("dragon_emperor", "burns")]:
            hint = explain_move(None, warrior, create_boss(key))
            assert word in hint["watch_for"]
