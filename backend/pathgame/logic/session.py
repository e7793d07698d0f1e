"""
Play-through state machine for a single puzzle attempt.

PuzzleSession is a frozen model; every transition returns a new session and
never mutates its input. Phases move NOT_STARTED -> IN_PROGRESS and then to
one of the terminal phases COMPLETED or GAVE_UP.

Illegal moves are an expected outcome of player input, so attempt_move and
undo_last_move report them through MoveOutcome.rejection instead of raising.
Calling a phase transition from the wrong phase is a caller bug and raises
InvalidTransitionError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, ConfigDict, Field

from pathgame.logic.enums import GridSize, MoveRejection, SessionPhase
from pathgame.logic.exceptions import InvalidTransitionError
from pathgame.logic.types import MAX_STEP_DIFFERENCE, Grid, Position, PuzzleKey

logger = structlog.get_logger()


class SessionRules(BaseModel):
    """Optional play restrictions applied on top of the movement rules."""

    model_config = ConfigDict(frozen=True)

    # 5x5: one consecutive undo. 7x7: two consecutive undos until the second
    # (bonus) undo has been spent once, then one.
    limit_undos: bool = True


class PuzzleSession(BaseModel):
    """State of one attempt at a puzzle."""

    model_config = ConfigDict(frozen=True)

    grid: Grid
    key: PuzzleKey | None = None  # None for practice grids that are not daily puzzles
    path: tuple[Position, ...] = ()
    phase: SessionPhase = SessionPhase.NOT_STARTED
    attempts: int = Field(default=1, ge=1)
    consecutive_undos: int = 0
    used_bonus_undo: bool = False
    rules: SessionRules = SessionRules()
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def head(self) -> Position | None:
        """Current cell (last path element), None before the session starts."""
        return self.path[-1] if self.path else None

    @property
    def path_length(self) -> int:
        return len(self.path)

    @property
    def is_finished(self) -> bool:
        return self.phase.is_terminal

    def is_in_path(self, position: Position) -> bool:
        return position in self.path

    def is_head(self, position: Position) -> bool:
        return self.head == position

    def is_start(self, position: Position) -> bool:
        return position == self.grid.center

    def path_index(self, position: Position) -> int | None:
        try:
            return self.path.index(position)
        except ValueError:
            return None

    def check_move(self, position: Position) -> MoveRejection | None:
        """Return why a move to position would be rejected, or None if it is legal."""
        head = self.head
        if self.phase is not SessionPhase.IN_PROGRESS or head is None:
            return MoveRejection.NOT_IN_PROGRESS
        if not self.grid.in_bounds(position):
            return MoveRejection.OUT_OF_BOUNDS
        if not head.is_adjacent_to(position):
            return MoveRejection.NOT_ADJACENT
        if abs(self.grid.value(position) - self.grid.value(head)) > MAX_STEP_DIFFERENCE:
            return MoveRejection.VALUE_MISMATCH
        if position in self.path:
            return MoveRejection.ALREADY_VISITED
        return None

    def is_legal_move(self, position: Position) -> bool:
        return self.check_move(position) is None

    def legal_moves(self) -> list[Position]:
        """Legal next cells from the head, in fixed neighbour order."""
        head = self.head
        if head is None:
            return []
        return [p for p in self.grid.neighbors(head) if self.is_legal_move(p)]

    def has_moves(self) -> bool:
        return bool(self.legal_moves())

    def max_consecutive_undos(self) -> int:
        if self.grid.size <= GridSize.SMALL.size or self.used_bonus_undo:
            return 1
        return 2

    def can_undo(self) -> bool:
        return self.check_undo() is None

    def check_undo(self) -> MoveRejection | None:
        """Return why an undo would be rejected, or None if it is allowed."""
        if self.phase is not SessionPhase.IN_PROGRESS:
            return MoveRejection.NOT_IN_PROGRESS
        if len(self.path) <= 1:
            return MoveRejection.NOTHING_TO_UNDO
        if self.rules.limit_undos and self.consecutive_undos >= self.max_consecutive_undos():
            return MoveRejection.UNDO_LIMIT
        return None


@dataclass(frozen=True)
class MoveOutcome:
    """Result of a move or undo request: the resulting session and any rejection."""

    session: PuzzleSession
    rejection: MoveRejection | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(tz=UTC)


def _require_phase(session: PuzzleSession, phase: SessionPhase, operation: str) -> None:
    if session.phase is not phase:
        raise InvalidTransitionError(f"cannot {operation} a session in phase {session.phase.value}")


def new_session(
    grid: Grid,
    key: PuzzleKey | None = None,
    *,
    attempts: int = 1,
    rules: SessionRules | None = None,
) -> PuzzleSession:
    """Create a NOT_STARTED session for a grid."""
    return PuzzleSession(grid=grid, key=key, attempts=attempts, rules=rules or SessionRules())


def start(session: PuzzleSession, *, now: datetime | None = None) -> PuzzleSession:
    """Place the player on the center cell and begin play."""
    _require_phase(session, SessionPhase.NOT_STARTED, "start")
    logger.debug("session started", puzzle=str(session.key), attempt=session.attempts)
    return session.model_copy(
        update={
            "path": (session.grid.center,),
            "phase": SessionPhase.IN_PROGRESS,
            "started_at": _now(now),
        },
    )


def start_session(
    grid: Grid,
    key: PuzzleKey | None = None,
    *,
    attempts: int = 1,
    rules: SessionRules | None = None,
    now: datetime | None = None,
) -> PuzzleSession:
    """Create and start a session in one step."""
    return start(new_session(grid, key, attempts=attempts, rules=rules), now=now)


def attempt_move(session: PuzzleSession, position: Position | tuple[int, int]) -> MoveOutcome:
    """Extend the path to position if the move is legal.

    Rejected moves return the input session unchanged. Reaching a cell with
    no onward moves does not end the session; the caller decides when to
    complete.
    """
    position = Position(*position)
    rejection = session.check_move(position)
    if rejection is not None:
        return MoveOutcome(session=session, rejection=rejection)
    moved = session.model_copy(update={"path": (*session.path, position), "consecutive_undos": 0})
    return MoveOutcome(session=moved)


def undo_last_move(session: PuzzleSession) -> MoveOutcome:
    """Remove the head of the path, subject to the session's undo rules."""
    rejection = session.check_undo()
    if rejection is not None:
        return MoveOutcome(session=session, rejection=rejection)
    used_bonus = session.used_bonus_undo or (
        session.rules.limit_undos and session.grid.size > GridSize.SMALL.size and session.consecutive_undos == 1
    )
    undone = session.model_copy(
        update={
            "path": session.path[:-1],
            "consecutive_undos": session.consecutive_undos + 1,
            "used_bonus_undo": used_bonus,
        },
    )
    return MoveOutcome(session=undone)


def restart(session: PuzzleSession, *, now: datetime | None = None) -> PuzzleSession:
    """Begin a fresh attempt on the same puzzle with the attempt counter advanced.

    Allowed while in progress or after completing; not after giving up.
    """
    if session.phase in (SessionPhase.NOT_STARTED, SessionPhase.GAVE_UP):
        raise InvalidTransitionError(f"cannot restart a session in phase {session.phase.value}")
    logger.debug("session restarted", puzzle=str(session.key), attempt=session.attempts + 1)
    return start_session(session.grid, session.key, attempts=session.attempts + 1, rules=session.rules, now=now)


def give_up(session: PuzzleSession, *, now: datetime | None = None) -> PuzzleSession:
    """End the attempt, keeping the current path as the achieved result."""
    _require_phase(session, SessionPhase.IN_PROGRESS, "give up")
    logger.debug("session gave up", puzzle=str(session.key), path_length=session.path_length)
    return session.model_copy(update={"phase": SessionPhase.GAVE_UP, "ended_at": _now(now)})


def complete(session: PuzzleSession, *, now: datetime | None = None) -> PuzzleSession:
    """End the attempt and record the current path as the achieved result."""
    _require_phase(session, SessionPhase.IN_PROGRESS, "complete")
    logger.debug("session completed", puzzle=str(session.key), path_length=session.path_length)
    return session.model_copy(update={"phase": SessionPhase.COMPLETED, "ended_at": _now(now)})
