"""
Achievement definitions and the ratchet that advances them.

Each achievement tracks one metric computed from the stats after a result
has been folded in. Progress only moves up: an update takes the larger of
the stored progress and the current metric, so a streak that resets never
lowers streak achievements. Unlocking is permanent.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from pathgame.logic.enums import AchievementCategory, GridSize
from pathgame.progress.models import Achievement

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pathgame.progress.models import GameResult, GameStats

logger = structlog.get_logger()

WEEKEND_WINDOW_DAYS = 28
EARLY_BIRD_HOURS = range(4, 6)
NIGHT_OWL_HOURS = range(4)
COMEBACK_MIN_ATTEMPTS = 5


@dataclass(frozen=True)
class AchievementContext:
    """Facts about the play that are not part of the result itself."""

    played_at: dt.datetime  # player's local time of completion


DEFAULT_ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        id="first_game",
        title="First Steps",
        description="Complete your first puzzle",
        category=AchievementCategory.BEGINNER,
    ),
    Achievement(
        id="first_perfect",
        title="Perfect Start",
        description="Get your first perfect score",
        category=AchievementCategory.BEGINNER,
    ),
    Achievement(
        id="unlock_7x7",
        title="Level Up",
        description="Unlock the 7×7 grid",
        category=AchievementCategory.BEGINNER,
    ),
    Achievement(
        id="streak_3",
        title="Hat Trick",
        description="Get a 3-day streak",
        category=AchievementCategory.STREAK,
        requirement=3,
    ),
    Achievement(
        id="streak_7",
        title="Week Warrior",
        description="Get a 7-day streak",
        category=AchievementCategory.STREAK,
        requirement=7,
    ),
    Achievement(
        id="streak_30",
        title="Monthly Master",
        description="Get a 30-day streak",
        category=AchievementCategory.STREAK,
        requirement=30,
    ),
    Achievement(
        id="streak_100",
        title="Century Legend",
        description="Get a 100-day streak",
        category=AchievementCategory.STREAK,
        requirement=100,
    ),
    Achievement(
        id="perfect_5",
        title="Skilled",
        description="Get 5 perfect scores",
        category=AchievementCategory.MASTERY,
        requirement=5,
    ),
    Achievement(
        id="perfect_25",
        title="Expert",
        description="Get 25 perfect scores",
        category=AchievementCategory.MASTERY,
        requirement=25,
    ),
    Achievement(
        id="perfect_100",
        title="Grandmaster",
        description="Get 100 perfect scores",
        category=AchievementCategory.MASTERY,
        requirement=100,
    ),
    Achievement(
        id="first_try_10",
        title="Precision",
        description="Get 10 first-try perfects",
        category=AchievementCategory.MASTERY,
        requirement=10,
    ),
    Achievement(
        id="both_grids",
        title="Dual Master",
        description="Get perfect on both grids in one day",
        category=AchievementCategory.MASTERY,
    ),
    Achievement(
        id="weekend_warrior",
        title="Weekend Warrior",
        description="Play every weekend for a month",
        category=AchievementCategory.SPECIAL,
        requirement=8,
    ),
    Achievement(
        id="early_bird",
        title="Early Bird",
        description="Complete a puzzle before 6 AM",
        category=AchievementCategory.SPECIAL,
    ),
    Achievement(
        id="night_owl",
        title="Night Owl",
        description="Complete a puzzle after midnight",
        category=AchievementCategory.SPECIAL,
    ),
    Achievement(
        id="comeback",
        title="Never Give Up",
        description="Get perfect after 5+ attempts",
        category=AchievementCategory.SPECIAL,
    ),
)


def _both_grids_perfect(stats: GameStats, result: GameResult) -> int:
    sizes = {r.grid_size for r in stats.results if r.date == result.date and r.is_perfect}
    return int(sizes >= {GridSize.SMALL, GridSize.LARGE})


def _weekend_days_played(stats: GameStats, result: GameResult) -> int:
    window_start = result.date - dt.timedelta(days=WEEKEND_WINDOW_DAYS - 1)
    return len(
        {r.date for r in stats.results if window_start <= r.date <= result.date and r.date.weekday() >= 5},
    )


_METRICS: dict[str, Callable[[GameStats, GameResult, AchievementContext], int]] = {
    "first_game": lambda stats, _result, _ctx: stats.games_played,
    "first_perfect": lambda stats, _result, _ctx: stats.perfect_games,
    "unlock_7x7": lambda stats, _result, _ctx: stats.stats_5x5.perfect_games,
    "streak_3": lambda stats, _result, _ctx: stats.current_streak,
    "streak_7": lambda stats, _result, _ctx: stats.current_streak,
    "streak_30": lambda stats, _result, _ctx: stats.current_streak,
    "streak_100": lambda stats, _result, _ctx: stats.current_streak,
    "perfect_5": lambda stats, _result, _ctx: stats.perfect_games,
    "perfect_25": lambda stats, _result, _ctx: stats.perfect_games,
    "perfect_100": lambda stats, _result, _ctx: stats.perfect_games,
    "first_try_10": lambda stats, _result, _ctx: stats.first_try_perfects,
    "both_grids": lambda stats, result, _ctx: _both_grids_perfect(stats, result),
    "weekend_warrior": lambda stats, result, _ctx: _weekend_days_played(stats, result),
    "early_bird": lambda _stats, _result, ctx: int(ctx.played_at.hour in EARLY_BIRD_HOURS),
    "night_owl": lambda _stats, _result, ctx: int(ctx.played_at.hour in NIGHT_OWL_HOURS),
    "comeback": lambda _stats, result, _ctx: int(result.is_perfect and result.attempts >= COMEBACK_MIN_ATTEMPTS),
}


def default_achievements() -> tuple[Achievement, ...]:
    return DEFAULT_ACHIEVEMENTS


def with_defaults(achievements: Iterable[Achievement]) -> tuple[Achievement, ...]:
    """Fill in default achievements missing from a stored set.

    Stored entries keep their progress. Ids that are not defaults are kept
    after the defaults, untouched.
    """
    stored = {a.id: a for a in achievements}
    merged = [stored.pop(default.id, default) for default in DEFAULT_ACHIEVEMENTS]
    merged.extend(stored.values())
    return tuple(merged)


def advance(achievement: Achievement, value: int, *, now: dt.datetime) -> Achievement:
    """Apply the ratchet: progress never drops and an unlock is never undone."""
    progress = max(achievement.progress, value)
    unlocked = achievement.is_unlocked or progress >= achievement.requirement
    if progress == achievement.progress and unlocked == achievement.is_unlocked:
        return achievement
    return achievement.model_copy(
        update={
            "progress": progress,
            "is_unlocked": unlocked,
            "unlocked_at": achievement.unlocked_at or (now if unlocked else None),
        },
    )


def update_achievements(
    achievements: Iterable[Achievement],
    stats: GameStats,
    result: GameResult,
    context: AchievementContext,
) -> tuple[tuple[Achievement, ...], list[str]]:
    """Advance every known achievement for a result already folded into stats.

    Returns the updated set and the ids unlocked by this update, in set order.
    """
    updated = []
    newly_unlocked = []
    for achievement in with_defaults(achievements):
        metric = _METRICS.get(achievement.id)
        if metric is None:
            updated.append(achievement)
            continue
        advanced = advance(achievement, metric(stats, result, context), now=context.played_at)
        if advanced.is_unlocked and not achievement.is_unlocked:
            newly_unlocked.append(advanced.id)
        updated.append(advanced)

    if newly_unlocked:
        logger.info("achievements unlocked", achievement_ids=newly_unlocked, date=result.date.isoformat())
    return tuple(updated), newly_unlocked
