import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from pathgame.logic.types import Position

MAX_SUBMITTED_PATH = 49  # every cell of the largest grid


class VerifyPathRequest(BaseModel):
    """A finished play-through submitted for scoring."""

    model_config = ConfigDict(extra="forbid")

    path: list[Position] = Field(min_length=1, max_length=MAX_SUBMITTED_PATH)
    attempts: int = Field(default=1, ge=1, le=1000, strict=True)
    gave_up: bool = False


class RecordResultRequest(VerifyPathRequest):
    """Verify a path for a daily puzzle and add the result to a player's progress."""

    date: dt.date
    grid_size: int
    # Player's local completion time; time-of-day achievements use its hour.
    played_at: dt.datetime | None = None
