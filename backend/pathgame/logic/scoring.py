"""
Scoring of finished sessions against the solver optimum.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pathgame.logic.enums import GridSize, SessionPhase
from pathgame.logic.exceptions import InvalidTransitionError
from pathgame.progress.models import GameResult

if TYPE_CHECKING:
    from pathgame.logic.session import PuzzleSession
    from pathgame.logic.types import SolverResult

SMALL_GRID_MESSAGES: dict[int, str] = {
    13: "Novice Navigator!",
    14: "Path Finder!",
    15: "Route Ranger!",
    16: "Trail Blazer!",
    17: "Way Maker!",
    18: "Journey Master!",
    19: "Expedition Expert!",
    20: "Odyssey Oracle!",
    21: "Path Perfection!",
}

# checked from the highest threshold down
LARGE_GRID_MESSAGES: tuple[tuple[int, str], ...] = (
    (45, "Absolute Perfection!"),
    (40, "Omnipotent Pathfinder!"),
    (35, "Cosmic Navigator!"),
    (30, "Master Trailblazer!"),
    (25, "Beginner Pathfinder!"),
)


def percentage(path_length: int, optimal_length: int) -> int:
    """Achieved share of the optimum, rounded half-up to a whole percent."""
    if optimal_length <= 0:
        return 0
    return (path_length * 200 + optimal_length) // (optimal_length * 2)


def is_perfect(path_length: int, optimal_length: int) -> bool:
    return path_length == optimal_length


def tiered_message(grid_size: GridSize, path_length: int) -> str:
    """Encouragement shown on the completion screen."""
    if grid_size is GridSize.SMALL:
        message = SMALL_GRID_MESSAGES.get(path_length)
        if message is not None:
            return message
        return "Impossible Achievement!" if path_length > 21 else "Keep exploring!"
    for threshold, message in LARGE_GRID_MESSAGES:
        if path_length >= threshold:
            return message
    return "Keep pushing!"


def build_game_result(
    session: PuzzleSession,
    solution: SolverResult,
    *,
    completed_at: datetime | None = None,
) -> GameResult:
    """Turn a finished daily session into a GameResult.

    Raises:
        InvalidTransitionError: If the session is not COMPLETED or GAVE_UP, or
            has no puzzle key.
        ValueError: If the achieved path is longer than the solver optimum.

    """
    if not session.is_finished:
        raise InvalidTransitionError(f"cannot score a session in phase {session.phase.value}")
    key = session.key
    if key is None:
        raise InvalidTransitionError("cannot score a practice session without a puzzle key")
    if session.path_length > solution.length:
        raise ValueError(
            f"achieved length {session.path_length} exceeds optimal length {solution.length} for {key}",
        )
    return GameResult(
        date=key.date,
        grid_size=key.grid_size,
        path_length=session.path_length,
        optimal_length=solution.length,
        percentage=percentage(session.path_length, solution.length),
        is_perfect=is_perfect(session.path_length, solution.length),
        gave_up=session.phase is SessionPhase.GAVE_UP,
        attempts=session.attempts,
        completed_at=completed_at or session.ended_at or datetime.now(tz=UTC),
    )
