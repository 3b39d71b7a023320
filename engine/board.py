"""
Board Engine: the match-3 grid and everything that happens on it.

A swap goes through these stages:

    1. CHECK:    both cells on the board, side by side, not in a blocked column
    2. SWAP:     trade the two gems
    3. DETECT:   any 3+ runs? If not, swap back and report "invalid"
    4. CASCADE:  resolve matches -> clear -> drop -> refill -> detect again,
                 until the board has no runs left

The board never deals damage itself. The caller passes a `resolve` function
that turns a step's gem counts into an EffectBundle, and an `on_step` hook
that applies it. That way the same board serves the headless simulator and
an interactive front-end.

Invariant after every settle: no 3-in-a-row anywhere, no empty cells.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator

from engine.game_state import Cell, Direction, EffectBundle, Match, Pos, SpecialKind

logger = logging.getLogger(__name__)

# Refill is random, so a cascade ends with probability 1. This only trips
# on a broken config (e.g. a single gem type).
MAX_CASCADE_STEPS = 500


class SwapRejection(Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    NOT_ADJACENT = "not_adjacent"
    BLOCKED_COLUMN = "blocked_column"
    NO_MATCH = "no_match"


@dataclass
class SpecialPlacement:
    pos: Pos
    kind: SpecialKind
    gem_id: int


@dataclass
class CascadeStep:
    """Everything that happened in one detect -> clear -> refill round."""
    depth: int
    matches: list[Match]
    gem_counts: dict[int, int]
    cleared: list[Pos]
    specials: list[SpecialPlacement] = field(default_factory=list)
    detonated: list[Pos] = field(default_factory=list)
    burned_matched: int = 0
    effects: EffectBundle | None = None


@dataclass
class SwapOutcome:
    swap: tuple[Pos, Pos]
    valid: bool
    rejection: SwapRejection | None = None
    steps: list[CascadeStep] = field(default_factory=list)

    @property
    def cascade_depth(self) -> int:
        return len(self.steps)

    @property
    def effects(self) -> EffectBundle:
        total = EffectBundle()
        for step in self.steps:
            if step.effects is not None:
                total = total + step.effects
        return total


Resolver = Callable[[dict[int, int], int], EffectBundle]
StepHook = Callable[[CascadeStep], None]


# ─── MATCH DETECTION ───

def find_matches(grid: list[list[Cell]]) -> list[Match]:
    """
    Every maximal run of 3+ identical gems, rows first (left to right), then
    columns (top to bottom). An L or T shape shows up as two matches that
    share a cell; the caller dedupes cells when clearing.
    Empty cells are skipped and break a run.
    """
    rows = len(grid)
    cols = len(grid[0]) if rows else 0
    ids = [[cell.gem_id for cell in row] for row in grid]
    matches: list[Match] = []

    for r in range(rows):
        c = 0
        while c < cols:
            gem_id = ids[r][c]
            if gem_id is None:
                c += 1
                continue
            length = 1
            while c + length < cols and ids[r][c + length] == gem_id:
                length += 1
            if length >= 3:
                cells = tuple((r, c + i) for i in range(length))
                matches.append(Match(gem_id, cells, Direction.HORIZONTAL))
            c += length

    for c in range(cols):
        r = 0
        while r < rows:
            gem_id = ids[r][c]
            if gem_id is None:
                r += 1
                continue
            length = 1
            while r + length < rows and ids[r + length][c] == gem_id:
                length += 1
            if length >= 3:
                cells = tuple((r + i, c) for i in range(length))
                matches.append(Match(gem_id, cells, Direction.VERTICAL))
            r += length

    return matches


# ─── SPECIAL TILES ───

def plan_specials(matches: list[Match]) -> list[SpecialPlacement]:
    """
    Which special tiles one cascade step creates.

    5+ in a line -> color bomb at the middle cell
    exactly 4    -> line blast at the middle cell, same direction as the run
    L/T crossing -> area bomb at the shared cell
    One special per cell; whichever rule registered first keeps it.
    """
    placements: list[SpecialPlacement] = []
    taken: set[Pos] = set()

    def register(pos: Pos, kind: SpecialKind, gem_id: int):
        if pos in taken:
            return
        taken.add(pos)
        placements.append(SpecialPlacement(pos, kind, gem_id))

    for match in matches:
        if match.length >= 5:
            register(match.middle, SpecialKind.COLOR_BOMB, match.gem_id)
        elif match.length == 4:
            kind = SpecialKind.LINE_H if match.direction == Direction.HORIZONTAL else SpecialKind.LINE_V
            register(match.middle, kind, match.gem_id)

    vertical_cells: dict[Pos, int] = {}
    for match in matches:
        if match.direction == Direction.VERTICAL:
            for pos in match.cells:
                vertical_cells[pos] = match.gem_id

    for match in matches:
        if match.direction != Direction.HORIZONTAL:
            continue
        for pos in match.cells:
            if pos in vertical_cells:
                register(pos, SpecialKind.AREA_BOMB, match.gem_id)

    return placements


def special_footprint(
    kind: SpecialKind,
    pos: Pos,
    gem_id: int | None,
    grid: list[list[Cell]],
) -> list[Pos]:
    """Cells a special tile clears when it goes off."""
    rows = len(grid)
    cols = len(grid[0]) if rows else 0
    r, c = pos

    if kind == SpecialKind.LINE_H:
        return [(r, col) for col in range(cols)]
    if kind == SpecialKind.LINE_V:
        return [(row, c) for row in range(rows)]
    if kind == SpecialKind.AREA_BOMB:
        return [
            (r + dr, c + dc)
            for dr in (-1, 0, 1)
            for dc in (-1, 0, 1)
            if 0 <= r + dr < rows and 0 <= c + dc < cols
        ]
    if kind == SpecialKind.COLOR_BOMB:
        return [
            (row, col)
            for row in range(rows)
            for col in range(cols)
            if gem_id is not None and grid[row][col].gem_id == gem_id
        ]
    return []


# ─── THE BOARD ───

class Board:
    """
    Owns one grid. Every random draw goes through `self.rng`, so a board
    built from a seeded random.Random replays exactly.
    """

    def __init__(
        self,
        rows: int = 7,
        cols: int = 7,
        gem_count: int = 6,
        rng: random.Random | None = None,
        detonate_specials: bool = False,
        grid: list[list[Cell]] | None = None,
    ):
        self.rows = rows
        self.cols = cols
        self.gem_count = gem_count
        self.rng = rng or random.Random()
        self.detonate_specials = detonate_specials
        self.blocked_column: int | None = None

        if grid is None:
            self.grid = self._generate()
            if not self.has_valid_move():
                self.reshuffle()
        else:
            self.grid = grid

    @classmethod
    def from_config(cls, balance, rng: random.Random | None = None, **kwargs) -> "Board":
        return cls(balance.board.rows, balance.board.cols, balance.gem_count, rng=rng, **kwargs)

    @classmethod
    def from_rows(
        cls,
        gem_rows: list[list[int | None]],
        gem_count: int = 6,
        rng: random.Random | None = None,
        **kwargs,
    ) -> "Board":
        """Build a board from a hand-written grid of gem ids (None = empty)."""
        grid = [[Cell(gem_id) for gem_id in row] for row in gem_rows]
        return cls(len(grid), len(grid[0]), gem_count, rng=rng, grid=grid, **kwargs)

    # ── Reading the grid ──

    def cell(self, pos: Pos) -> Cell:
        return self.grid[pos[0]][pos[1]]

    def gem_at(self, pos: Pos) -> int | None:
        return self.grid[pos[0]][pos[1]].gem_id

    def in_bounds(self, pos: Pos) -> bool:
        return 0 <= pos[0] < self.rows and 0 <= pos[1] < self.cols

    def to_rows(self) -> list[list[int | None]]:
        return [[cell.gem_id for cell in row] for row in self.grid]

    def burned_cells(self) -> list[Pos]:
        return [
            (r, c)
            for r in range(self.rows)
            for c in range(self.cols)
            if self.grid[r][c].burned
        ]

    def specials(self) -> list[tuple[Pos, SpecialKind]]:
        return [
            ((r, c), self.grid[r][c].special)
            for r in range(self.rows)
            for c in range(self.cols)
            if self.grid[r][c].special != SpecialKind.NONE
        ]

    def find_matches(self) -> list[Match]:
        return find_matches(self.grid)

    def is_stable(self) -> bool:
        """No runs and no holes."""
        if any(cell.is_empty for row in self.grid for cell in row):
            return False
        return not self.find_matches()

    # ── Generation ──

    def _random_gem(self) -> int:
        return self.rng.randrange(self.gem_count)

    @staticmethod
    def _would_match_at(grid: list[list[Cell]], row: int, col: int, gem_id: int) -> bool:
        """Would placing gem_id here complete a run with the 2 cells left or the 2 above?"""
        if col >= 2 and grid[row][col - 1].gem_id == gem_id and grid[row][col - 2].gem_id == gem_id:
            return True
        if row >= 2 and grid[row - 1][col].gem_id == gem_id and grid[row - 2][col].gem_id == gem_id:
            return True
        return False

    def _generate(self) -> list[list[Cell]]:
        grid: list[list[Cell]] = []
        for r in range(self.rows):
            grid.append([])
            for c in range(self.cols):
                gem_id = self._random_gem()
                while self._would_match_at(grid, r, c, gem_id):
                    gem_id = self._random_gem()
                grid[r].append(Cell(gem_id))
        return grid

    def reshuffle(self) -> int:
        """
        Throw the board away and deal a fresh one, again and again until at
        least one swap works. Returns how many deals it took.
        """
        attempts = 0
        while True:
            attempts += 1
            self.grid = self._generate()
            if self.has_valid_move():
                break
        logger.debug("Board reshuffled (%d deal%s)", attempts, "" if attempts == 1 else "s")
        return attempts

    # ── Swapping ──

    def check_swap(self, a: Pos, b: Pos) -> SwapRejection | None:
        """Why this pair can't be swapped, or None if it's a legal pair."""
        if not self.in_bounds(a) or not self.in_bounds(b):
            return SwapRejection.OUT_OF_BOUNDS
        if abs(a[0] - b[0]) + abs(a[1] - b[1]) != 1:
            return SwapRejection.NOT_ADJACENT
        if self.blocked_column is not None and self.blocked_column in (a[1], b[1]):
            return SwapRejection.BLOCKED_COLUMN
        return None

    def _swap_cells(self, a: Pos, b: Pos):
        (r1, c1), (r2, c2) = a, b
        self.grid[r1][c1], self.grid[r2][c2] = self.grid[r2][c2], self.grid[r1][c1]

    def preview_swap(self, a: Pos, b: Pos) -> list[Match]:
        """Matches this swap would make. The grid is left exactly as it was."""
        if self.check_swap(a, b) is not None:
            return []
        self._swap_cells(a, b)
        try:
            return self.find_matches()
        finally:
            self._swap_cells(a, b)

    def adjacent_pairs(self) -> Iterator[tuple[Pos, Pos]]:
        """Every legal pair, row-major, right neighbour before down neighbour."""
        for r in range(self.rows):
            for c in range(self.cols):
                for other in ((r, c + 1), (r + 1, c)):
                    if self.check_swap((r, c), other) is None:
                        yield (r, c), other

    def valid_moves(self) -> list[tuple[Pos, Pos]]:
        return [(a, b) for a, b in self.adjacent_pairs() if self.preview_swap(a, b)]

    def has_valid_move(self) -> bool:
        return any(self.preview_swap(a, b) for a, b in self.adjacent_pairs())

    def attempt_swap(
        self,
        a: Pos,
        b: Pos,
        resolve: Resolver | None = None,
        on_step: StepHook | None = None,
    ) -> SwapOutcome:
        """
        Try a player swap. Invalid swaps come back with valid=False and the
        grid untouched; valid ones cascade until the board is stable again.
        """
        rejection = self.check_swap(a, b)
        if rejection is not None:
            return SwapOutcome((a, b), valid=False, rejection=rejection)

        self._swap_cells(a, b)
        if not self.find_matches():
            self._swap_cells(a, b)
            return SwapOutcome((a, b), valid=False, rejection=SwapRejection.NO_MATCH)

        steps = self.settle(resolve=resolve, on_step=on_step)
        return SwapOutcome((a, b), valid=True, steps=steps)

    # ── Cascades ──

    def settle(self, resolve: Resolver | None = None, on_step: StepHook | None = None) -> list[CascadeStep]:
        """Run the cascade loop until nothing matches. Depth starts at 1."""
        steps: list[CascadeStep] = []
        depth = 0
        while True:
            matches = self.find_matches()
            if not matches:
                break
            depth += 1
            if depth > MAX_CASCADE_STEPS:
                raise RuntimeError(f"Cascade did not settle after {MAX_CASCADE_STEPS} steps")

            step = self._resolve_step(matches, depth, resolve)
            steps.append(step)
            if on_step is not None:
                on_step(step)
        return steps

    def _resolve_step(self, matches: list[Match], depth: int, resolve: Resolver | None) -> CascadeStep:
        to_clear: set[Pos] = set()
        gem_counts: dict[int, int] = {}
        for match in matches:
            to_clear.update(match.cells)
            gem_counts[match.gem_id] = gem_counts.get(match.gem_id, 0) + match.length

        detonated: list[Pos] = []
        if self.detonate_specials:
            detonated = self._detonate(to_clear, gem_counts)

        specials = plan_specials(matches)
        burned_matched = sum(1 for pos in to_clear if self.cell(pos).burned)
        effects = resolve(dict(gem_counts), depth) if resolve is not None else None

        self.clear_cells(to_clear)
        for sp in specials:
            self.grid[sp.pos[0]][sp.pos[1]] = Cell(sp.gem_id, sp.kind)
        self.drop_and_fill()

        return CascadeStep(
            depth=depth,
            matches=matches,
            gem_counts=gem_counts,
            cleared=sorted(to_clear),
            specials=specials,
            detonated=detonated,
            burned_matched=burned_matched,
            effects=effects,
        )

    def _detonate(self, to_clear: set[Pos], gem_counts: dict[int, int]) -> list[Pos]:
        """
        Grow the clear set with the footprint of every special caught in it,
        chaining through specials the blasts reach. Blasted gems count toward
        the step's effects like matched ones.
        """
        pending = [pos for pos in sorted(to_clear) if self.cell(pos).special != SpecialKind.NONE]
        detonated: list[Pos] = []
        seen: set[Pos] = set()

        while pending:
            pos = pending.pop(0)
            if pos in seen:
                continue
            seen.add(pos)
            detonated.append(pos)
            cell = self.cell(pos)
            for hit in special_footprint(cell.special, pos, cell.gem_id, self.grid):
                if hit in to_clear:
                    continue
                to_clear.add(hit)
                hit_cell = self.cell(hit)
                if hit_cell.gem_id is not None:
                    gem_counts[hit_cell.gem_id] = gem_counts.get(hit_cell.gem_id, 0) + 1
                if hit_cell.special != SpecialKind.NONE:
                    pending.append(hit)

        return detonated

    def clear_cells(self, cells) -> None:
        for r, c in cells:
            self.grid[r][c] = Cell()

    def drop_and_fill(self) -> None:
        """
        Gravity per column: surviving cells slide down keeping their order,
        then the gaps at the top get brand-new random gems.
        """
        for c in range(self.cols):
            survivors = [self.grid[r][c] for r in range(self.rows - 1, -1, -1) if not self.grid[r][c].is_empty]
            fresh = [Cell(self._random_gem()) for _ in range(self.rows - len(survivors))]
            column = survivors + fresh   # bottom to top
            for i, cell in enumerate(column):
                self.grid[self.rows - 1 - i][c] = cell

    # ── Boss / skill hooks ──

    def _open_cells(self, exclude_gem: int | None = None, skip_burned: bool = False) -> list[Pos]:
        return [
            (r, c)
            for r in range(self.rows)
            for c in range(self.cols)
            if c != self.blocked_column
            and not self.grid[r][c].is_empty
            and (exclude_gem is None or self.grid[r][c].gem_id != exclude_gem)
            and not (skip_burned and self.grid[r][c].burned)
        ]

    def convert_random_cells(self, gem_id: int, count: int) -> list[Pos]:
        """Turn up to `count` random gems (of another color) into gem_id."""
        available = self._open_cells(exclude_gem=gem_id)
        self.rng.shuffle(available)
        chosen = available[:count]
        for r, c in chosen:
            self.grid[r][c].gem_id = gem_id
        return chosen

    def burn_random_cells(self, count: int) -> list[Pos]:
        """Clear last turn's burns and mark up to `count` fresh cells as burned."""
        available = self._open_cells(skip_burned=True)
        for row in self.grid:
            for cell in row:
                cell.burned = False
        self.rng.shuffle(available)
        chosen = available[:count]
        for r, c in chosen:
            self.grid[r][c].burned = True
        return chosen
