"""
Listing of recent past puzzles with the player's status on each.
"""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from pathgame.logic.enums import ArchiveStatus, GridSize

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pathgame.progress.models import GameResult

DEFAULT_ARCHIVE_DAYS = 7


class ArchiveEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    display_date: str
    status: ArchiveStatus


def archive_status(date: dt.date, history: Iterable[GameResult]) -> ArchiveStatus:
    """Completing the 7x7 puzzle outranks completing the 5x5 one."""
    sizes = {result.grid_size for result in history if result.date == date}
    if GridSize.LARGE in sizes:
        return ArchiveStatus.COMPLETED_7X7
    if GridSize.SMALL in sizes:
        return ArchiveStatus.COMPLETED_5X5
    return ArchiveStatus.NEW


def archive_entries(
    today: dt.date,
    history: Iterable[GameResult],
    *,
    days: int = DEFAULT_ARCHIVE_DAYS,
) -> list[ArchiveEntry]:
    """Return the `days` puzzle dates before today, most recent first."""
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")
    results = list(history)
    entries = []
    for offset in range(1, days + 1):
        date = today - dt.timedelta(days=offset)
        entries.append(
            ArchiveEntry(
                date=date,
                display_date=f"{date:%a}, {date:%b} {date.day}",
                status=archive_status(date, results),
            ),
        )
    return entries
