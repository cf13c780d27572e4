"""Configuration management for LifeGit."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class LifeGitSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    completion_base_url: str = Field(
        default="https://api.deepseek.com/v1", validation_alias="LIFEGIT_COMPLETION_BASE_URL"
    )
    completion_api_key: str | None = Field(default=None, validation_alias="LIFEGIT_COMPLETION_API_KEY")
    completion_model: str = Field(default="deepseek-reasoner", validation_alias="LIFEGIT_COMPLETION_MODEL")
    completion_timeout: float = Field(default=30.0, validation_alias="LIFEGIT_COMPLETION_TIMEOUT")
    completion_max_tokens: int = Field(default=2000, validation_alias="LIFEGIT_COMPLETION_MAX_TOKENS")
    completion_temperature: float = Field(default=0.7, validation_alias="LIFEGIT_COMPLETION_TEMPERATURE")
    plan_max_attempts: int = Field(default=3, validation_alias="LIFEGIT_PLAN_MAX_ATTEMPTS")
    plan_retry_base_delay: float = Field(default=2.0, validation_alias="LIFEGIT_PLAN_RETRY_BASE_DELAY")
    plan_retry_max_delay: float = Field(default=16.0, validation_alias="LIFEGIT_PLAN_RETRY_MAX_DELAY")
    plan_max_tasks: int = Field(default=50, validation_alias="LIFEGIT_PLAN_MAX_TASKS")
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="LIFEGIT_CHROMA_PATH"
    )
    life_area_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(), validation_alias="LIFEGIT_LIFE_AREA_PATHS"
    )
    log_level: str = Field(default="INFO", validation_alias="LIFEGIT_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "LIFEGIT_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("completion_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("LIFEGIT_COMPLETION_BASE_URL must not be empty")
        return normalized

    @field_validator("completion_model")
    @classmethod
    def _normalize_model(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("LIFEGIT_COMPLETION_MODEL must not be empty")
        return normalized

    @field_validator("life_area_paths", mode="before")
    @classmethod
    def _parse_life_area_paths(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts)
        raise TypeError("LIFEGIT_LIFE_AREA_PATHS must be a list of paths or a path-separated string")

    @field_validator("completion_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("LIFEGIT_COMPLETION_TIMEOUT must be > 0")
        return value

    @field_validator("completion_max_tokens", "plan_max_attempts", "plan_max_tasks")
    @classmethod
    def _validate_positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("token, attempt and task limits must be >= 1")
        return value

    @field_validator("completion_temperature")
    @classmethod
    def _validate_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 2.0:
            raise ValueError("LIFEGIT_COMPLETION_TEMPERATURE must be between 0 and 2")
        return value

    @model_validator(mode="after")
    def _validate_delays(self) -> "LifeGitSettings":
        if self.plan_retry_base_delay < 0:
            raise ValueError("LIFEGIT_PLAN_RETRY_BASE_DELAY must be >= 0")
        if self.plan_retry_max_delay < self.plan_retry_base_delay:
            raise ValueError("LIFEGIT_PLAN_RETRY_MAX_DELAY must be >= LIFEGIT_PLAN_RETRY_BASE_DELAY")
        return self


@lru_cache(maxsize=1)
def get_settings() -> LifeGitSettings:
    """Return cached settings instance."""

    settings = LifeGitSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    settings.life_area_paths = tuple(path.expanduser().resolve() for path in settings.life_area_paths)
    return settings


__all__ = ["LifeGitSettings", "get_settings"]
