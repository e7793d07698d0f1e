"""Puzzle server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from pathshared.validators import StringListEnvSettingsSource, parse_log_level, parse_string_list, parse_timezone

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class PuzzleServerSettings(BaseSettings):
    model_config = {"env_prefix": "PATH_"}

    log_dir: str = Field(default="backend/logs/puzzle", min_length=1)
    log_level: str = "INFO"
    log_json: bool = False
    data_dir: str = Field(default="backend/data/progress", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]
    # Decides which date "today" is for the daily puzzle endpoint.
    timezone: str = "UTC"
    history_limit: int = Field(default=100, ge=1)
    solver_cache_size: int = Field(default=64, ge=1)
    archive_days: int = Field(default=7, ge=1, le=365)
    share_link: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return parse_log_level(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return parse_timezone(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
