"""
Persistence and sync models for player progress.

Field names are part of the storage format. Unknown fields are ignored and
missing fields take their defaults, so snapshots written by older or newer
builds still load.
"""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from pathgame.logic.enums import AchievementCategory, GridSize

HISTORY_LIMIT = 100


class GameResult(BaseModel):
    """Immutable record of one finished attempt."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    date: dt.date
    grid_size: GridSize
    path_length: int = Field(ge=1)
    optimal_length: int = Field(ge=1)
    percentage: int = Field(ge=0)
    is_perfect: bool
    gave_up: bool = False
    attempts: int = Field(default=1, ge=1)
    completed_at: dt.datetime | None = None

    @property
    def is_first_try_perfect(self) -> bool:
        return self.is_perfect and self.attempts == 1


class GridStats(BaseModel):
    """Totals for one grid size."""

    model_config = ConfigDict(frozen=True)

    games_played: int = 0
    perfect_games: int = 0
    gave_up_games: int = 0
    best_score: int = 0
    total_path_length: int = 0
    total_optimal_length: int = 0
    total_attempts: int = 0
    first_try_perfects: int = 0

    @property
    def average_percentage(self) -> int:
        if self.total_optimal_length <= 0:
            return 0
        return self.total_path_length * 100 // self.total_optimal_length

    @property
    def average_attempts(self) -> float:
        if self.games_played <= 0:
            return 0.0
        return self.total_attempts / self.games_played


class ScoreDistribution(BaseModel):
    """Count of recorded results per percentage band."""

    model_config = ConfigDict(frozen=True)

    perfect: int = 0
    excellent: int = 0  # 90-99%
    good: int = 0  # 70-89%
    fair: int = 0  # 50-69%
    poor: int = 0  # below 50%


class GameStats(BaseModel):
    """Cumulative statistics, built only by folding GameResults."""

    model_config = ConfigDict(frozen=True)

    games_played: int = 0
    perfect_games: int = 0
    gave_up_games: int = 0
    current_streak: int = 0
    best_streak: int = 0
    total_path_length: int = 0
    total_optimal_length: int = 0
    stats_5x5: GridStats = GridStats()
    stats_7x7: GridStats = GridStats()
    last_played_date: dt.date | None = None
    results: tuple[GameResult, ...] = ()  # most recent first

    @property
    def average_percentage(self) -> int:
        if self.total_optimal_length <= 0:
            return 0
        return self.total_path_length * 100 // self.total_optimal_length

    @property
    def perfect_percentage(self) -> int:
        if self.games_played <= 0:
            return 0
        return self.perfect_games * 100 // self.games_played

    def for_size(self, grid_size: GridSize) -> GridStats:
        return self.stats_5x5 if grid_size is GridSize.SMALL else self.stats_7x7

    @property
    def first_try_perfects(self) -> int:
        return self.stats_5x5.first_try_perfects + self.stats_7x7.first_try_perfects

    def distribution(self) -> ScoreDistribution:
        """Bucket the retained history by percentage."""
        counts = {"perfect": 0, "excellent": 0, "good": 0, "fair": 0, "poor": 0}
        for result in self.results:
            if result.is_perfect:
                counts["perfect"] += 1
            elif result.percentage >= 90:
                counts["excellent"] += 1
            elif result.percentage >= 70:
                counts["good"] += 1
            elif result.percentage >= 50:
                counts["fair"] += 1
            else:
                counts["poor"] += 1
        return ScoreDistribution(**counts)


class Achievement(BaseModel):
    """Progress toward one achievement. Progress only rises; unlocking is permanent."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    category: AchievementCategory = AchievementCategory.SPECIAL
    requirement: int = Field(default=1, ge=1)
    progress: int = Field(default=0, ge=0)
    is_unlocked: bool = False
    unlocked_at: dt.datetime | None = None

    @property
    def progress_percentage(self) -> int:
        return min(self.progress * 100 // self.requirement, 100)


class ProgressSnapshot(BaseModel):
    """Everything persisted or synced for one player."""

    model_config = ConfigDict(frozen=True)

    stats: GameStats = GameStats()
    achievements: tuple[Achievement, ...] = ()

    def achievement(self, achievement_id: str) -> Achievement | None:
        for achievement in self.achievements:
            if achievement.id == achievement_id:
                return achievement
        return None
