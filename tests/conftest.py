"""
Shared pytest fixtures for the combat simulator tests.

This module provides reusable fixtures for:
- Seeded random sources
- Hand-built gem grids with known properties
- Fresh heroes from the default balance
"""

import random

import pytest

from engine.balance import DEFAULT_BALANCE
from engine.combat import create_hero


# =============================================================================
# Grid builders
# =============================================================================


def dead_rows(rows: int = 7, cols: int = 7) -> list[list[int]]:
    """
    Gem (2r + c) % 6 at every cell. Neighbours along a row differ by 1 and
    along a column by 2, so there is no run, and no single swap makes one.
    """
    return [[(2 * r + c) % 6 for c in range(cols)] for r in range(rows)]


@pytest.fixture
def make_dead_rows():
    return dead_rows


@pytest.fixture
def sword_rows():
    """
    Dead grid plus three sword gems (id 0) set up so that swapping
    (0, 2) with (1, 2) makes exactly one 3-sword match along row 0.
    """
    rows = dead_rows()
    rows[0][0] = 0
    rows[0][1] = 0
    rows[1][2] = 0
    return rows


@pytest.fixture
def heart_and_sword_rows(sword_rows):
    """
    The sword setup at the top plus a heart (id 3) setup at the bottom:
    swapping (5, 2) with (6, 2) lines up four hearts along row 6
    (the dead grid already has a heart at (6, 3)).
    """
    rows = [list(r) for r in sword_rows]
    rows[6][0] = 3
    rows[6][1] = 3
    rows[5][2] = 3
    return rows


# =============================================================================
# RNG / actors
# =============================================================================


@pytest.fixture
def rng():
    """Random source with a fixed seed."""
    return random.Random(42)


@pytest.fixture
def balance():
    return DEFAULT_BALANCE


@pytest.fixture
def warrior():
    return create_hero("warrior")


@pytest.fixture
def mage():
    return create_hero("mage")


@pytest.fixture
def paladin():
    return create_hero("paladin")
