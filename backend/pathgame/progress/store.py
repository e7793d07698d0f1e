"""
Per-player progress persistence.

Each player's snapshot is a JSON document in a SnapshotStorage. Transitions
for one player are serialised with a per-player asyncio.Lock so concurrent
submissions cannot lose an update; different players never wait on each
other. Storage calls run in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from pathgame.progress.achievements import with_defaults
from pathgame.progress.aggregator import ProgressUpdate, record_progress, reset_progress
from pathgame.progress.models import HISTORY_LIMIT, ProgressSnapshot
from pathshared.storage import validate_snapshot_id

if TYPE_CHECKING:
    from pathgame.progress.achievements import AchievementContext
    from pathgame.progress.models import GameResult
    from pathshared.storage import SnapshotStorage

logger = structlog.get_logger()


class ProgressStore:
    def __init__(self, storage: SnapshotStorage, *, history_limit: int = HISTORY_LIMIT) -> None:
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")
        self._storage = storage
        self._history_limit = history_limit
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, player_id: str) -> asyncio.Lock:
        return self._locks.setdefault(player_id, asyncio.Lock())

    def load(self, player_id: str) -> ProgressSnapshot:
        """Return the stored snapshot, or defaults when none is stored or it is unreadable.

        Raises ValueError for malformed player ids.
        """
        validate_snapshot_id(player_id)
        try:
            content = self._storage.load_snapshot(player_id)
            if content is None:
                return reset_progress()
            snapshot = ProgressSnapshot.model_validate_json(content)
        except (UnicodeDecodeError, ValidationError):
            logger.warning("unreadable progress snapshot, using defaults", player_id=player_id)
            return reset_progress()
        return snapshot.model_copy(update={"achievements": with_defaults(snapshot.achievements)})

    async def load_async(self, player_id: str) -> ProgressSnapshot:
        return await asyncio.to_thread(self.load, player_id)

    async def _save(self, player_id: str, snapshot: ProgressSnapshot) -> None:
        await asyncio.to_thread(self._storage.save_snapshot, player_id, snapshot.model_dump_json())

    async def record(self, player_id: str, result: GameResult, context: AchievementContext) -> ProgressUpdate:
        """Fold a result into the player's snapshot and persist it."""
        validate_snapshot_id(player_id)
        async with self._lock(player_id):
            snapshot = await self.load_async(player_id)
            update = record_progress(snapshot, result, context, history_limit=self._history_limit)
            await self._save(player_id, update.snapshot)
        logger.info(
            "recorded player result",
            player_id=player_id,
            puzzle=f"{result.date.isoformat()}/{result.grid_size.value}",
            percentage=result.percentage,
            unlocked=update.newly_unlocked,
        )
        return update

    async def reset(self, player_id: str) -> ProgressSnapshot:
        """Replace the player's progress with defaults."""
        validate_snapshot_id(player_id)
        snapshot = reset_progress()
        async with self._lock(player_id):
            await self._save(player_id, snapshot)
        logger.info("reset player progress", player_id=player_id)
        return snapshot
