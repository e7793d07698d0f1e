"""
Folding of game results into cumulative stats and achievement progress.

Every function here is pure: it takes frozen values and returns new ones.
Counters only grow, so for any sequence of recorded results games_played
equals the number of results and perfect_games never exceeds it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from pathgame.logic.enums import GridSize
from pathgame.progress.achievements import default_achievements, update_achievements
from pathgame.progress.models import HISTORY_LIMIT, GameStats, GridStats, ProgressSnapshot

if TYPE_CHECKING:
    import datetime as dt

    from pathgame.progress.achievements import AchievementContext
    from pathgame.progress.models import GameResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProgressUpdate:
    snapshot: ProgressSnapshot
    newly_unlocked: list[str] = field(default_factory=list)


def next_streak(current: int, last_played: dt.date | None, played: dt.date) -> tuple[int, dt.date | None]:
    """Return (streak, last played date) after playing on `played`.

    A result dated before the last played date is a replay of an older
    puzzle and leaves both values unchanged.
    """
    if last_played is None:
        return 1, played
    gap = (played - last_played).days
    if gap < 0:
        return current, last_played
    if gap == 0:
        return max(current, 1), played
    if gap == 1:
        return current + 1, played
    return 1, played


def effective_streak(stats: GameStats, today: dt.date) -> int:
    """Streak as shown today: still alive until a whole day has been missed."""
    if stats.last_played_date is None:
        return 0
    if (today - stats.last_played_date).days > 1:
        return 0
    return stats.current_streak


def _record_grid(grid_stats: GridStats, result: GameResult) -> GridStats:
    return grid_stats.model_copy(
        update={
            "games_played": grid_stats.games_played + 1,
            "perfect_games": grid_stats.perfect_games + int(result.is_perfect),
            "gave_up_games": grid_stats.gave_up_games + int(result.gave_up),
            "best_score": max(grid_stats.best_score, result.path_length),
            "total_path_length": grid_stats.total_path_length + result.path_length,
            "total_optimal_length": grid_stats.total_optimal_length + result.optimal_length,
            "total_attempts": grid_stats.total_attempts + result.attempts,
            "first_try_perfects": grid_stats.first_try_perfects + int(result.is_first_try_perfect),
        },
    )


def record_result(stats: GameStats, result: GameResult, *, history_limit: int = HISTORY_LIMIT) -> GameStats:
    """Fold one result into the stats."""
    if history_limit < 1:
        raise ValueError(f"history_limit must be >= 1, got {history_limit}")
    streak, last_played = next_streak(stats.current_streak, stats.last_played_date, result.date)

    update: dict[str, object] = {
        "games_played": stats.games_played + 1,
        "perfect_games": stats.perfect_games + int(result.is_perfect),
        "gave_up_games": stats.gave_up_games + int(result.gave_up),
        "current_streak": streak,
        "best_streak": max(stats.best_streak, streak),
        "total_path_length": stats.total_path_length + result.path_length,
        "total_optimal_length": stats.total_optimal_length + result.optimal_length,
        "last_played_date": last_played,
        "results": (result, *stats.results)[:history_limit],
    }
    if result.grid_size is GridSize.SMALL:
        update["stats_5x5"] = _record_grid(stats.stats_5x5, result)
    else:
        update["stats_7x7"] = _record_grid(stats.stats_7x7, result)
    return stats.model_copy(update=update)


def record_progress(
    snapshot: ProgressSnapshot,
    result: GameResult,
    context: AchievementContext,
    *,
    history_limit: int = HISTORY_LIMIT,
) -> ProgressUpdate:
    """Fold a result into stats and achievements together."""
    stats = record_result(snapshot.stats, result, history_limit=history_limit)
    achievements, newly_unlocked = update_achievements(snapshot.achievements, stats, result, context)
    logger.debug(
        "recorded result",
        date=result.date.isoformat(),
        grid_size=result.grid_size,
        path_length=result.path_length,
        streak=stats.current_streak,
    )
    return ProgressUpdate(
        snapshot=ProgressSnapshot(stats=stats, achievements=achievements),
        newly_unlocked=newly_unlocked,
    )


def reset_progress() -> ProgressSnapshot:
    """Fresh stats and the default achievement set, as one value."""
    return ProgressSnapshot(stats=GameStats(), achievements=default_achievements())
