"""
Enum definitions for puzzle, session and achievement concepts.
"""

from __future__ import annotations

from enum import Enum


class GridSize(int, Enum):
    """Supported daily grid sizes, valued by side length."""

    SMALL = 5
    LARGE = 7

    @property
    def size(self) -> int:
        return self.value

    @property
    def n(self) -> int:
        """Half-width of the grid: the center index, and the seed offset tag."""
        return self.value // 2

    @property
    def total_cells(self) -> int:
        return self.value * self.value

    @property
    def display_name(self) -> str:
        return f"{self.value}×{self.value}"

    @classmethod
    def from_size(cls, size: int) -> GridSize:
        """Look up a grid size by side length, raising ValueError for unsupported sizes."""
        try:
            return cls(size)
        except ValueError:
            supported = ", ".join(str(s.value) for s in cls)
            raise ValueError(f"Unsupported grid size {size}, expected one of {supported}") from None


class SessionPhase(str, Enum):
    """Lifecycle phase of a single play-through."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    GAVE_UP = "gave_up"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionPhase.COMPLETED, SessionPhase.GAVE_UP)


class MoveRejection(str, Enum):
    """Reasons a move or undo request had no effect."""

    NOT_IN_PROGRESS = "not_in_progress"
    OUT_OF_BOUNDS = "out_of_bounds"
    NOT_ADJACENT = "not_adjacent"
    VALUE_MISMATCH = "value_mismatch"
    ALREADY_VISITED = "already_visited"
    NOTHING_TO_UNDO = "nothing_to_undo"
    UNDO_LIMIT = "undo_limit"


class AchievementCategory(str, Enum):
    """Grouping used when listing achievements."""

    BEGINNER = "beginner"
    STREAK = "streak"
    MASTERY = "mastery"
    SPECIAL = "special"


class ArchiveStatus(str, Enum):
    """Play status of a past daily puzzle."""

    NEW = "new"
    COMPLETED_5X5 = "completed_5x5"
    COMPLETED_7X7 = "completed_7x7"
