import datetime as dt

import pytest

from pathgame.logic.enums import GridSize, SessionPhase
from pathgame.logic.exceptions import InvalidPathError
from pathgame.logic.generator import generate_grid
from pathgame.logic.service import DailyPuzzleService
from pathgame.logic.solver_cache import SolverCache
from pathgame.logic.types import Position
from pathgame.tests.helpers.grids import REFERENCE_DATE, REFERENCE_SMALL_OPTIMUM, key

# 2024-01-01 5x5: center (2,2) holds 4; (1,2) holds 5, (1,3) holds 1.
SHORT_PATH = [(2, 2), (1, 2)]


@pytest.fixture
def service():
    return DailyPuzzleService(SolverCache())


class TestPuzzleAndSolution:
    def test_puzzle_matches_generator(self, service):
        assert service.puzzle(key()) == generate_grid(REFERENCE_DATE, GridSize.SMALL)

    def test_puzzle_is_memoised(self, service):
        assert service.puzzle(key()) is service.puzzle(key())

    def test_solution_is_cached(self, service):
        first = service.solution(key())
        assert first.length == REFERENCE_SMALL_OPTIMUM
        assert service.solution(key()) is first
        assert service.cache.get(key()) is first

    async def test_solution_async(self, service):
        result = await service.solution_async(key())
        assert result.length == REFERENCE_SMALL_OPTIMUM


class TestReplay:
    def test_completed_replay(self, service):
        session = service.replay(key(), SHORT_PATH, attempts=2)
        assert session.phase is SessionPhase.COMPLETED
        assert session.path == (Position(2, 2), Position(1, 2))
        assert session.attempts == 2

    def test_gave_up_replay(self, service):
        session = service.replay(key(), SHORT_PATH, gave_up=True)
        assert session.phase is SessionPhase.GAVE_UP

    def test_center_only(self, service):
        assert service.replay(key(), [(2, 2)]).path_length == 1

    def test_undo_limits_do_not_apply(self, service):
        solution = service.solution(key())
        assert service.replay(key(), list(solution.path)).path_length == REFERENCE_SMALL_OPTIMUM

    @pytest.mark.parametrize("path", [[], [(0, 0)], [(1, 2), (2, 2)]])
    def test_bad_start(self, service, path):
        with pytest.raises(InvalidPathError) as exc_info:
            service.replay(key(), path)
        assert exc_info.value.step == 0
        assert exc_info.value.reason == "bad_start"

    @pytest.mark.parametrize(
        ("path", "step", "reason"),
        [
            ([(2, 2), (1, 3)], 1, "value_mismatch"),
            ([(2, 2), (0, 0)], 1, "not_adjacent"),
            ([(2, 2), (1, 2), (2, 2)], 2, "already_visited"),
            ([(2, 2), (1, 2), (0, 5)], 2, "out_of_bounds"),
        ],
    )
    def test_first_rejected_step_reported(self, service, path, step, reason):
        with pytest.raises(InvalidPathError, match=f"step {step}") as exc_info:
            service.replay(key(), path)
        assert exc_info.value.step == step
        assert exc_info.value.reason == reason


class TestScore:
    def test_partial_score(self, service):
        when = dt.datetime(2024, 1, 1, 8, 0, tzinfo=dt.UTC)
        result = service.score(key(), SHORT_PATH, now=when)
        assert result.path_length == 2
        assert result.optimal_length == REFERENCE_SMALL_OPTIMUM
        assert result.percentage == 11
        assert not result.is_perfect
        assert result.completed_at == when

    def test_perfect_score_with_witness(self, service):
        witness = service.solution(key()).path
        result = service.score(key(), list(witness))
        assert result.is_perfect
        assert result.percentage == 100

    async def test_score_async(self, service):
        result = await service.score_async(key(), SHORT_PATH, attempts=3, gave_up=True)
        assert result.gave_up
        assert result.attempts == 3
