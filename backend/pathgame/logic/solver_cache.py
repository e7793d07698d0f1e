"""
Per-puzzle memoisation of solver results.

A puzzle is solved at most once per process. Synchronous callers on
different threads are serialised per key; asyncio callers share a single
in-flight task per key, which runs the search in a worker thread so the
event loop stays responsive. Distinct keys never wait on each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING

import structlog

from pathgame.logic.solver import solve

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from pathgame.logic.types import Grid, PuzzleKey, SolverResult

    SolveFn = Callable[..., SolverResult]

logger = structlog.get_logger()

DEFAULT_MAX_ENTRIES = 64


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class SolverCache:
    """Bounded LRU of SolverResult by PuzzleKey with in-flight deduplication."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, solve_fn: SolveFn = solve) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._solve = solve_fn
        self._results: OrderedDict[PuzzleKey, SolverResult] = OrderedDict()
        self._lock = threading.Lock()  # guards _results and _key_locks
        self._key_locks: dict[PuzzleKey, _KeyLock] = {}
        self._inflight: dict[PuzzleKey, asyncio.Task[SolverResult]] = {}
        self._cancel_events: dict[PuzzleKey, threading.Event] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def get(self, key: PuzzleKey) -> SolverResult | None:
        """Return the cached result for key, or None if it has not been solved."""
        with self._lock:
            result = self._results.get(key)
            if result is not None:
                self._results.move_to_end(key)
            return result

    def is_solving(self, key: PuzzleKey) -> bool:
        return key in self._inflight

    def _store(self, key: PuzzleKey, result: SolverResult) -> None:
        with self._lock:
            self._results[key] = result
            self._results.move_to_end(key)
            while len(self._results) > self._max_entries:
                evicted, _ = self._results.popitem(last=False)
                logger.debug("evicted solver result", puzzle=str(evicted))

    @contextlib.contextmanager
    def _key_lock(self, key: PuzzleKey) -> Iterator[None]:
        """Hold the per-key lock; the entry is dropped once no thread uses it."""
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    def _solve_once(self, key: PuzzleKey, grid: Grid, cancel: threading.Event | None) -> SolverResult:
        with self._key_lock(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            result = self._solve(grid, cancel=cancel)
            self._store(key, result)
            return result

    def solve(self, key: PuzzleKey, grid: Grid) -> SolverResult:
        """Return the cached result, solving synchronously on a miss."""
        cached = self.get(key)
        if cached is not None:
            return cached
        return self._solve_once(key, grid, None)

    async def solve_async(self, key: PuzzleKey, grid: Grid) -> SolverResult:
        """Return the cached result, solving in a worker thread on a miss.

        Concurrent awaiters for the same key share one search. Cancelling an
        awaiter does not cancel the shared search; use cancel(key) for that.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            event = threading.Event()
            task = asyncio.get_running_loop().create_task(self._run_in_thread(key, grid, event))
            self._inflight[key] = task
            self._cancel_events[key] = event
        else:
            logger.info("joining in-flight solve", puzzle=str(key))
        return await asyncio.shield(task)

    async def _run_in_thread(self, key: PuzzleKey, grid: Grid, cancel: threading.Event) -> SolverResult:
        try:
            return await asyncio.to_thread(self._solve_once, key, grid, cancel)
        finally:
            self._inflight.pop(key, None)
            self._cancel_events.pop(key, None)

    def cancel(self, key: PuzzleKey) -> bool:
        """Ask an in-flight async search to stop. Return False if none is running.

        Awaiters of the cancelled search receive SolveCancelledError and
        nothing is cached, so a later request starts a fresh search.
        """
        event = self._cancel_events.get(key)
        if event is None:
            return False
        event.set()
        logger.info("cancelling solve", puzzle=str(key))
        return True
