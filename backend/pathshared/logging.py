"""
Logging setup for the puzzle server.

Our structlog events and third-party stdlib records (uvicorn, starlette) all
end up on the root logger, so one set of handlers renders both. Console
output is human-readable by default and JSON lines when json_output is set;
the optional log file uses the same rendering without colours.

Level and format come from PuzzleServerSettings (PATH_LOG_LEVEL,
PATH_LOG_JSON); this module does not read the environment itself.
"""

from __future__ import annotations

import datetime as dt
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def _plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def plain_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Processor turning enums such as GridSize or MoveRejection, and dates, into plain values."""
    for key, value in event_dict.items():
        event_dict[key] = _plain(value)
    return event_dict


def _formatter(*, json_output: bool, colors: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def _log_file_path(log_dir: Path | str) -> Path:
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{dt.datetime.now(tz=dt.UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"


def _replace_root_handlers(level: int | str, handlers: list[logging.Handler]) -> None:
    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_output: bool = False,
    log_dir: Path | str | None = None,
) -> Path | None:
    """Route structlog through the root logger; returns the log file path when log_dir is given.

    Calling it again replaces the handlers installed by the previous call.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            plain_values,
            structlog.processors.StackInfoRenderer(),
            # tracebacks are rendered by the handler formatters
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter(json_output=json_output, colors=sys.stdout.isatty()))
    handlers: list[logging.Handler] = [console]

    file_path = None
    if log_dir is not None:
        file_path = _log_file_path(log_dir)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(_formatter(json_output=json_output, colors=False))
        handlers.append(file_handler)

    _replace_root_handlers(level, handlers)
    # uvicorn logs every request at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return file_path
