"""
Move Library: every swap the player could try on the current board.

A swap is two side-by-side cells. Swapping is symmetric, so only the right
and down neighbour of each cell get listed, in scan order:

    (0,0)->(0,1), (0,0)->(1,0), (0,1)->(0,2), (0,1)->(1,1), ...

That order matters: the search keeps the first of several equal scores.
"""

from dataclasses import dataclass

from engine.board import Board
from engine.game_state import Pos


@dataclass(frozen=True)
class Swap:
    a: Pos
    b: Pos

    def to_dict(self) -> dict:
        return {"from": list(self.a), "to": list(self.b)}

    @classmethod
    def from_dict(cls, data: dict) -> "Swap":
        return cls(tuple(data["from"]), tuple(data["to"]))


def candidate_swaps(board: Board) -> list[Swap]:
    """Every legal pair (in bounds, adjacent, not touching a blocked column)."""
    return [Swap(a, b) for a, b in board.adjacent_pairs()]


def matching_swaps(board: Board) -> list[Swap]:
    """Only the swaps that would actually make a match."""
    return [swap for swap in candidate_swaps(board) if board.preview_swap(swap.a, swap.b)]
