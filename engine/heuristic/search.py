"""
Move Search: try every swap, keep the best one.

No lookahead and no randomness: for each legal swap, make it, see what
matches, undo it, score it. Highest score wins; on a tie the first swap in
scan order (row-major, right neighbour before down neighbour) stays.

Returns None when nothing on the board matches. The caller has to
reshuffle before asking again.
"""

from dataclasses import dataclass

from engine.balance import DEFAULT_BALANCE, BalanceConfig
from engine.board import Board
from engine.game_state import Hero, Match
from engine.heuristic.moves import Swap, candidate_swaps
from engine.heuristic.scoring import score_matches


@dataclass
class ScoredMove:
    swap: Swap
    score: float
    matches: list[Match]


def rank_moves(board: Board, hero: Hero, balance: BalanceConfig = DEFAULT_BALANCE) -> list[ScoredMove]:
    """
    Every matching swap with its score, best first.
    sorted() is stable, so equal scores keep their scan order.
    """
    hp_ratio = hero.hp_ratio
    scored = []
    for swap in candidate_swaps(board):
        matches = board.preview_swap(swap.a, swap.b)
        if not matches:
            continue
        scored.append(ScoredMove(swap, score_matches(matches, hp_ratio, balance), matches))
    return sorted(scored, key=lambda m: m.score, reverse=True)


def find_best_move(board: Board, hero: Hero, balance: BalanceConfig = DEFAULT_BALANCE) -> ScoredMove | None:
    best: ScoredMove | None = None
    hp_ratio = hero.hp_ratio
    for swap in candidate_swaps(board):
        matches = board.preview_swap(swap.a, swap.b)
        if not matches:
            continue
        score = score_matches(matches, hp_ratio, balance)
        if best is None or score > best.score:
            best = ScoredMove(swap, score, matches)
    return best
