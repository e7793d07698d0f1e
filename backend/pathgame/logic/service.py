"""
Daily puzzle facade: generation, solving and server-side verification.

Clients submit the path they played as a list of positions. The service
replays it through the session state machine, so a submitted path is held
to exactly the same rules as interactive play.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

import structlog

from pathgame.logic.exceptions import InvalidPathError
from pathgame.logic.generator import generate_for_key
from pathgame.logic.scoring import build_game_result
from pathgame.logic.session import SessionRules, attempt_move, complete, give_up, start_session
from pathgame.logic.solver_cache import SolverCache
from pathgame.logic.types import Position

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from pathgame.logic.session import PuzzleSession
    from pathgame.logic.types import Grid, PuzzleKey, SolverResult
    from pathgame.progress.models import GameResult

logger = structlog.get_logger()

BAD_START = "bad_start"

# Replayed paths are checked move by move; undo limits only matter interactively.
_REPLAY_RULES = SessionRules(limit_undos=False)


@lru_cache(maxsize=128)
def _cached_grid(key: PuzzleKey) -> Grid:
    return generate_for_key(key)


class DailyPuzzleService:
    """Generate, solve and verify daily puzzles through one shared solver cache."""

    def __init__(self, cache: SolverCache | None = None) -> None:
        self._cache = cache if cache is not None else SolverCache()

    @property
    def cache(self) -> SolverCache:
        return self._cache

    def puzzle(self, key: PuzzleKey) -> Grid:
        return _cached_grid(key)

    def solution(self, key: PuzzleKey) -> SolverResult:
        return self._cache.solve(key, self.puzzle(key))

    async def solution_async(self, key: PuzzleKey) -> SolverResult:
        return await self._cache.solve_async(key, self.puzzle(key))

    def replay(
        self,
        key: PuzzleKey,
        path: Sequence[Position | tuple[int, int]],
        *,
        attempts: int = 1,
        gave_up: bool = False,
        now: datetime | None = None,
    ) -> PuzzleSession:
        """Rebuild a finished session from a submitted path.

        Raises:
            InvalidPathError: If the path is empty, does not start at the
                center, or contains a move the session rejects.

        """
        grid = self.puzzle(key)
        if not path or Position(*path[0]) != grid.center:
            raise InvalidPathError(step=0, reason=BAD_START)

        session = start_session(grid, key, attempts=attempts, rules=_REPLAY_RULES, now=now)
        for step, position in enumerate(path[1:], start=1):
            outcome = attempt_move(session, position)
            if outcome.rejection is not None:
                logger.info(
                    "rejected submitted path",
                    puzzle=str(key),
                    step=step,
                    reason=outcome.rejection,
                )
                raise InvalidPathError(step=step, reason=outcome.rejection.value)
            session = outcome.session

        if gave_up:
            return give_up(session, now=now)
        return complete(session, now=now)

    def score(
        self,
        key: PuzzleKey,
        path: Sequence[Position | tuple[int, int]],
        *,
        attempts: int = 1,
        gave_up: bool = False,
        now: datetime | None = None,
    ) -> GameResult:
        """Verify a submitted path and score it against the optimum."""
        session = self.replay(key, path, attempts=attempts, gave_up=gave_up, now=now)
        return build_game_result(session, self.solution(key), completed_at=now)

    async def score_async(
        self,
        key: PuzzleKey,
        path: Sequence[Position | tuple[int, int]],
        *,
        attempts: int = 1,
        gave_up: bool = False,
        now: datetime | None = None,
    ) -> GameResult:
        session = self.replay(key, path, attempts=attempts, gave_up=gave_up, now=now)
        solution = await self.solution_async(key)
        return build_game_result(session, solution, completed_at=now)
