"""
Value types shared by the generator, solver, session and scoring layers.

Positions serialize as ``[row, col]`` pairs and grids as nested integer
arrays, so the JSON form matches what clients already exchange.
"""

from __future__ import annotations

import datetime as dt
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pathgame.logic.enums import GridSize

MAX_STEP_DIFFERENCE = 1

# Row-major order; the solver and the session rely on this order being fixed.
NEIGHBOR_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, -1),
    (0, 1),
    (1, -1),
    (1, 0),
    (1, 1),
)


class Position(NamedTuple):
    """Zero-indexed grid coordinate."""

    row: int
    col: int

    def is_adjacent_to(self, other: Position) -> bool:
        """True for the up-to-8 cells touching this one (never for itself)."""
        row_diff = abs(self.row - other.row)
        col_diff = abs(self.col - other.col)
        return max(row_diff, col_diff) == 1


class Grid(BaseModel):
    """Immutable square grid of small integers."""

    model_config = ConfigDict(frozen=True)

    cells: tuple[tuple[int, ...], ...]

    @field_validator("cells")
    @classmethod
    def _validate_square(cls, cells: tuple[tuple[int, ...], ...]) -> tuple[tuple[int, ...], ...]:
        if not cells:
            raise ValueError("Grid must have at least one row")
        size = len(cells)
        for row in cells:
            if len(row) != size:
                raise ValueError(f"Grid must be square, got a row of length {len(row)} in a {size}-row grid")
        return cells

    @classmethod
    def from_rows(cls, rows: list[list[int]] | tuple[tuple[int, ...], ...]) -> Grid:
        return cls(cells=tuple(tuple(row) for row in rows))

    @property
    def size(self) -> int:
        return len(self.cells)

    @property
    def center(self) -> Position:
        half = self.size // 2
        return Position(half, half)

    def in_bounds(self, position: Position) -> bool:
        return 0 <= position.row < self.size and 0 <= position.col < self.size

    def value(self, position: Position) -> int:
        """Value at a position; out-of-bounds positions raise IndexError."""
        if not self.in_bounds(position):
            raise IndexError(f"Position {tuple(position)} is outside a {self.size}x{self.size} grid")
        return self.cells[position.row][position.col]

    def positions(self) -> list[Position]:
        """All cells in row-major order."""
        return [Position(r, c) for r in range(self.size) for c in range(self.size)]

    def neighbors(self, position: Position) -> list[Position]:
        """In-bounds 8-neighbours of a position, in NEIGHBOR_OFFSETS order."""
        result = []
        for dr, dc in NEIGHBOR_OFFSETS:
            candidate = Position(position.row + dr, position.col + dc)
            if self.in_bounds(candidate):
                result.append(candidate)
        return result

    def can_step(self, source: Position, target: Position) -> bool:
        """True if moving from source to target obeys adjacency and the value rule."""
        if not (self.in_bounds(source) and self.in_bounds(target)):
            return False
        if not source.is_adjacent_to(target):
            return False
        return abs(self.value(target) - self.value(source)) <= MAX_STEP_DIFFERENCE

    def is_valid_path(self, path: tuple[Position, ...] | list[Position]) -> bool:
        """Check the path invariant: starts at center, distinct cells, legal steps."""
        if not path or path[0] != self.center:
            return False
        if len(set(path)) != len(path):
            return False
        return all(self.can_step(a, b) for a, b in zip(path, path[1:], strict=False))


class PuzzleKey(BaseModel):
    """Deterministic identity of a daily puzzle."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    grid_size: GridSize

    def __str__(self) -> str:
        return f"{self.date.isoformat()}/{self.grid_size.value}"


class SolverResult(BaseModel):
    """Optimal path length for a grid plus one witnessing path."""

    model_config = ConfigDict(frozen=True)

    length: int = Field(ge=1)
    path: tuple[Position, ...] = ()
    nodes: int = 0  # search nodes expanded; diagnostic only
