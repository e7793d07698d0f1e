from __future__ import annotations

import datetime as dt
import json
from typing import TYPE_CHECKING, TypeVar
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from pathgame.logic.archive import archive_entries
from pathgame.logic.enums import GridSize
from pathgame.logic.exceptions import InvalidPathError
from pathgame.logic.scoring import tiered_message
from pathgame.logic.service import DailyPuzzleService
from pathgame.logic.share import share_text
from pathgame.logic.solver_cache import SolverCache
from pathgame.logic.types import PuzzleKey
from pathgame.progress.achievements import AchievementContext
from pathgame.progress.aggregator import effective_streak
from pathgame.progress.store import ProgressStore
from pathgame.server.settings import PuzzleServerSettings
from pathgame.server.types import RecordResultRequest, VerifyPathRequest
from pathshared.build_info import APP_VERSION, GIT_COMMIT
from pathshared.logging import setup_logging
from pathshared.storage import LocalSnapshotStorage, validate_snapshot_id

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request

    from pathgame.logic.types import Position
    from pathgame.progress.models import GameResult, ProgressSnapshot

_MAX_REQUEST_BODY_SIZE = 8192


class RequestError(Exception):
    """Request could not be served; carries the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _parse_key(date_text: str, size_text: str) -> PuzzleKey:
    try:
        date = dt.date.fromisoformat(date_text)
        grid_size = GridSize.from_size(int(size_text))
    except ValueError as e:
        raise RequestError("Invalid puzzle date or size") from e
    return PuzzleKey(date=date, grid_size=grid_size)


def _path_key(request: Request) -> PuzzleKey:
    return _parse_key(request.path_params["date"], request.path_params["size"])


def _today(settings: PuzzleServerSettings) -> dt.date:
    return dt.datetime.now(tz=ZoneInfo(settings.timezone)).date()


T = TypeVar("T", bound=BaseModel)


async def _read_body(request: Request, model: type[T]) -> T:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise RequestError("Request body too large", status_code=413)
    try:
        return model.model_validate(json.loads(raw_body))
    except (ValueError, TypeError, UnicodeDecodeError, ValidationError) as e:  # fmt: skip
        raise RequestError("Invalid request body") from e


def _progress_payload(snapshot: ProgressSnapshot, today: dt.date) -> dict:
    payload = snapshot.model_dump(mode="json")
    payload["effective_streak"] = effective_streak(snapshot.stats, today)
    return payload


def _result_payload(result: GameResult, path: list[Position], settings: PuzzleServerSettings) -> dict:
    return {
        "result": result.model_dump(mode="json"),
        "message": tiered_message(result.grid_size, result.path_length),
        "share_text": share_text(path, result, link=settings.share_link),
    }


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def puzzle_payload(service: DailyPuzzleService, key: PuzzleKey) -> dict:
    grid = service.puzzle(key)
    solution = await service.solution_async(key)
    return {
        "key": str(key),
        "date": key.date.isoformat(),
        "grid_size": key.grid_size.value,
        "grid": [list(row) for row in grid.cells],
        "optimal_length": solution.length,
    }


async def today_puzzle(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    service: DailyPuzzleService = request.app.state.service
    key = _parse_key(_today(settings).isoformat(), request.query_params.get("size", "5"))
    return JSONResponse(await puzzle_payload(service, key))


async def get_puzzle(request: Request) -> JSONResponse:
    service: DailyPuzzleService = request.app.state.service
    return JSONResponse(await puzzle_payload(service, _path_key(request)))


async def get_solution(request: Request) -> JSONResponse:
    service: DailyPuzzleService = request.app.state.service
    key = _path_key(request)
    solution = await service.solution_async(key)
    return JSONResponse(
        {
            "key": str(key),
            "optimal_length": solution.length,
            "path": [list(position) for position in solution.path],
        },
    )


async def verify_path(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    service: DailyPuzzleService = request.app.state.service
    key = _path_key(request)
    body = await _read_body(request, VerifyPathRequest)
    result = await service.score_async(key, body.path, attempts=body.attempts, gave_up=body.gave_up)
    return JSONResponse(_result_payload(result, body.path, settings))


def _player_id(request: Request) -> str:
    player_id = request.path_params["player_id"]
    try:
        validate_snapshot_id(player_id)
    except ValueError as e:
        raise RequestError("Invalid player id") from e
    return player_id


async def get_progress(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    store: ProgressStore = request.app.state.progress_store
    snapshot = await store.load_async(_player_id(request))
    return JSONResponse(_progress_payload(snapshot, _today(settings)))


async def record_result(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    service: DailyPuzzleService = request.app.state.service
    store: ProgressStore = request.app.state.progress_store
    player_id = _player_id(request)

    body = await _read_body(request, RecordResultRequest)
    key = _parse_key(body.date.isoformat(), str(body.grid_size))
    if key.date > _today(settings):
        raise RequestError("Puzzle is not available yet")

    played_at = body.played_at or dt.datetime.now(tz=ZoneInfo(settings.timezone))
    result = await service.score_async(key, body.path, attempts=body.attempts, gave_up=body.gave_up, now=played_at)
    update = await store.record(player_id, result, AchievementContext(played_at=played_at))

    payload = _result_payload(result, body.path, settings)
    payload["progress"] = _progress_payload(update.snapshot, _today(settings))
    payload["newly_unlocked"] = update.newly_unlocked
    return JSONResponse(payload, status_code=201)


async def reset_progress(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    store: ProgressStore = request.app.state.progress_store
    snapshot = await store.reset(_player_id(request))
    return JSONResponse(_progress_payload(snapshot, _today(settings)))


async def get_archive(request: Request) -> JSONResponse:
    settings: PuzzleServerSettings = request.app.state.settings
    store: ProgressStore = request.app.state.progress_store
    snapshot = await store.load_async(_player_id(request))
    entries = archive_entries(_today(settings), snapshot.stats.results, days=settings.archive_days)
    return JSONResponse([entry.model_dump(mode="json") for entry in entries])


async def handle_request_error(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestError)  # noqa: S101
    return _error(exc.message, exc.status_code)


async def handle_invalid_path(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, InvalidPathError)  # noqa: S101
    logger.info("invalid path submitted", url=str(request.url.path), step=exc.step, reason=exc.reason)
    return JSONResponse({"error": "Invalid path", "step": exc.step, "reason": exc.reason}, status_code=422)


def create_app(
    settings: PuzzleServerSettings | None = None,
    service: DailyPuzzleService | None = None,
    progress_store: ProgressStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = PuzzleServerSettings()

    if service is None:
        service = DailyPuzzleService(SolverCache(max_entries=settings.solver_cache_size))

    if progress_store is None:
        progress_store = ProgressStore(
            LocalSnapshotStorage(settings.data_dir),
            history_limit=settings.history_limit,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/puzzles/today", today_puzzle, methods=["GET"]),
        Route("/puzzles/{date}/{size}", get_puzzle, methods=["GET"]),
        Route("/puzzles/{date}/{size}/solution", get_solution, methods=["GET"]),
        Route("/puzzles/{date}/{size}/verify", verify_path, methods=["POST"]),
        Route("/players/{player_id}/progress", get_progress, methods=["GET"]),
        Route("/players/{player_id}/progress", reset_progress, methods=["DELETE"]),
        Route("/players/{player_id}/results", record_result, methods=["POST"]),
        Route("/players/{player_id}/archive", get_archive, methods=["GET"]),
    ]

    app = Starlette(
        routes=routes,
        exception_handlers={
            RequestError: handle_request_error,
            InvalidPathError: handle_invalid_path,
        },
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.service = service
    app.state.progress_store = progress_store

    logger.info("puzzle server ready", timezone=settings.timezone)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = PuzzleServerSettings()
    setup_logging(level=_settings.log_level, json_output=_settings.log_json, log_dir=_settings.log_dir)
    return create_app(settings=_settings)
