"""Configuration management for hog agents."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LaunchMode = Literal["auto", "tmux", "terminal"]


class HogSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    config_dir: Path = Field(
        default=Path("~/.config/hog"), validation_alias="HOG_CONFIG_DIR"
    )
    agent_command: str = Field(default="claude", validation_alias="HOG_AGENT_COMMAND")
    launch_mode: LaunchMode = Field(default="auto", validation_alias="HOG_LAUNCH_MODE")
    terminal_app: str | None = Field(default=None, validation_alias="HOG_TERMINAL_APP")
    template_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(), validation_alias="HOG_TEMPLATE_PATHS"
    )
    log_level: str = Field(default="INFO", validation_alias="HOG_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "HOG_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("agent_command")
    @classmethod
    def _validate_agent_command(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("HOG_AGENT_COMMAND must not be empty")
        return normalized

    @field_validator("terminal_app", mode="before")
    @classmethod
    def _blank_terminal_app(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("template_paths", mode="before")
    @classmethod
    def _parse_template_paths(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts)
        raise TypeError("HOG_TEMPLATE_PATHS must be a list of paths or a path-separated string")

    @property
    def results_dir(self) -> Path:
        return self.config_dir / "agent-results"

    @property
    def enrichment_path(self) -> Path:
        return self.config_dir / "enrichment.json"


@lru_cache(maxsize=1)
def get_settings() -> HogSettings:
    """Return cached settings instance."""

    settings = HogSettings()
    settings.config_dir = settings.config_dir.expanduser().resolve()
    settings.template_paths = tuple(path.expanduser().resolve() for path in settings.template_paths)
    return settings


__all__ = ["HogSettings", "LaunchMode", "get_settings"]
