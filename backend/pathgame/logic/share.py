"""
Shareable text summary of a finished puzzle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pathgame.logic.types import Position

if TYPE_CHECKING:
    import datetime as dt
    from collections.abc import Sequence

    from pathgame.logic.enums import GridSize
    from pathgame.progress.models import GameResult

START_MARK = "🟢"
END_MARK = "🔵"
PATH_MARK = "⬜"
EMPTY_MARK = "⬛"


def format_share_date(date: dt.date) -> str:
    return f"{date:%b} {date.day}, {date.year}"


def emoji_grid(grid_size: GridSize, path: Sequence[Position]) -> str:
    """Render the path as rows of emoji, one line per grid row."""
    on_path = set(path)
    start = path[0] if path else None
    end = path[-1] if path else None
    lines = []
    for row in range(grid_size.size):
        marks = []
        for col in range(grid_size.size):
            position = Position(row, col)
            if position not in on_path:
                marks.append(EMPTY_MARK)
            elif position == start:
                marks.append(START_MARK)
            elif position == end:
                marks.append(END_MARK)
            else:
                marks.append(PATH_MARK)
        lines.append("".join(marks))
    return "\n".join(lines)


def share_text(path: Sequence[Position], result: GameResult, *, link: str | None = None) -> str:
    """Build the multi-line summary players paste into chats."""
    grid_size = result.grid_size
    title = f"🧩 Path {grid_size.display_name}"
    lines = [f"{title} 🏆" if result.is_perfect else title, f"📅 {format_share_date(result.date)}", ""]

    total = grid_size.total_cells
    if result.is_perfect:
        lines.append(f"✨ Perfect: {result.path_length}/{total}")
    else:
        lines.append(f"📊 Score: {result.path_length}/{total} ({result.percentage}%)")
    lines.append("🎯 First try!" if result.attempts == 1 else f"🎯 Attempts: {result.attempts}")

    lines.append("")
    lines.append(emoji_grid(grid_size, path))
    if link:
        lines.append("")
        lines.append(link)
    return "\n".join(lines)
