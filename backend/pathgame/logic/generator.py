"""
Daily grid generation.

A grid is a pure function of (date, grid size): cells are filled row-major
from the seeded stream in rng.py with values in [MIN_CELL_VALUE, MAX_CELL_VALUE].
No structural constraint is applied; the center cell alone is always a valid path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pathgame.logic.enums import GridSize
from pathgame.logic.rng import SeededRandom
from pathgame.logic.types import Grid, PuzzleKey

if TYPE_CHECKING:
    import datetime as dt

MIN_CELL_VALUE = 1
MAX_CELL_VALUE = 5


def generate_grid(date: dt.date, grid_size: GridSize | int) -> Grid:
    """Generate the daily grid for a date and size.

    Raises ValueError for sizes other than 5 and 7.
    """
    grid_size = GridSize.from_size(int(grid_size))
    rng = SeededRandom.for_puzzle(date, grid_size)
    rows = tuple(
        tuple(rng.next_int(MIN_CELL_VALUE, MAX_CELL_VALUE) for _ in range(grid_size.size))
        for _ in range(grid_size.size)
    )
    return Grid(cells=rows)


def generate_for_key(key: PuzzleKey) -> Grid:
    return generate_grid(key.date, key.grid_size)
