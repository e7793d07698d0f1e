import datetime as dt

import pytest

from pathgame.logic.enums import GridSize
from pathgame.logic.exceptions import InvalidTransitionError
from pathgame.logic.scoring import build_game_result, is_perfect, percentage, tiered_message
from pathgame.logic.session import attempt_move, complete, give_up, start_session
from pathgame.logic.types import Position, SolverResult
from pathgame.tests.helpers.grids import key, uniform_grid

ENDED = dt.datetime(2024, 1, 1, 20, 0, tzinfo=dt.UTC)


def _played(length: int, *, attempts: int = 1):
    """A session on a uniform 5x5 grid that walks `length` cells along the middle rows."""
    session = start_session(uniform_grid(5), key(), attempts=attempts)
    for position in [(2, 3), (2, 4), (1, 4), (1, 3), (1, 2), (1, 1), (1, 0)][: length - 1]:
        session = attempt_move(session, position).session
    assert session.path_length == length
    return session


class TestPercentage:
    @pytest.mark.parametrize(
        ("path_length", "optimal", "expected"),
        [
            (18, 18, 100),
            (9, 18, 50),
            (1, 8, 13),  # 12.5 rounds up
            (1, 3, 33),
            (2, 3, 67),
            (1, 18, 6),  # 5.55...
            (0, 5, 0),
        ],
    )
    def test_round_half_up(self, path_length, optimal, expected):
        assert percentage(path_length, optimal) == expected

    def test_zero_optimum(self):
        assert percentage(3, 0) == 0

    def test_is_perfect(self):
        assert is_perfect(18, 18)
        assert not is_perfect(17, 18)


class TestTieredMessage:
    @pytest.mark.parametrize(
        ("length", "message"),
        [
            (12, "Keep exploring!"),
            (13, "Novice Navigator!"),
            (18, "Journey Master!"),
            (21, "Path Perfection!"),
            (22, "Impossible Achievement!"),
        ],
    )
    def test_small_grid(self, length, message):
        assert tiered_message(GridSize.SMALL, length) == message

    @pytest.mark.parametrize(
        ("length", "message"),
        [
            (24, "Keep pushing!"),
            (25, "Beginner Pathfinder!"),
            (29, "Beginner Pathfinder!"),
            (38, "Cosmic Navigator!"),
            (44, "Omnipotent Pathfinder!"),
            (49, "Absolute Perfection!"),
        ],
    )
    def test_large_grid(self, length, message):
        assert tiered_message(GridSize.LARGE, length) == message


class TestBuildGameResult:
    def test_completed_session(self):
        session = complete(_played(4, attempts=2), now=ENDED)
        result = build_game_result(session, SolverResult(length=8))
        assert result.date == dt.date(2024, 1, 1)
        assert result.grid_size is GridSize.SMALL
        assert result.path_length == 4
        assert result.optimal_length == 8
        assert result.percentage == 50
        assert not result.is_perfect
        assert not result.gave_up
        assert result.attempts == 2
        assert result.completed_at == ENDED

    def test_perfect(self):
        session = complete(_played(5))
        result = build_game_result(session, SolverResult(length=5))
        assert result.is_perfect
        assert result.percentage == 100
        assert result.is_first_try_perfect

    def test_gave_up_keeps_player_path(self):
        session = give_up(_played(3))
        result = build_game_result(session, SolverResult(length=6))
        assert result.gave_up
        assert result.path_length == 3

    def test_explicit_completion_time_wins(self):
        later = ENDED + dt.timedelta(hours=1)
        session = complete(_played(2), now=ENDED)
        assert build_game_result(session, SolverResult(length=2), completed_at=later).completed_at == later

    def test_unique_ids(self):
        session = complete(_played(2))
        first = build_game_result(session, SolverResult(length=2))
        second = build_game_result(session, SolverResult(length=2))
        assert first.id != second.id

    def test_unfinished_session_rejected(self):
        with pytest.raises(InvalidTransitionError, match="cannot score"):
            build_game_result(_played(2), SolverResult(length=2))

    def test_practice_session_rejected(self):
        session = complete(start_session(uniform_grid(5)))
        with pytest.raises(InvalidTransitionError, match="without a puzzle key"):
            build_game_result(session, SolverResult(length=25))

    def test_longer_than_optimum_rejected(self):
        session = complete(_played(4))
        with pytest.raises(ValueError, match="exceeds optimal length"):
            build_game_result(session, SolverResult(length=3, path=(Position(2, 2),)))
