"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The API token uses SecretStr to prevent accidental logging.
    All settings are prefixed with ``COURSE_SEQUENCER_`` in the
    environment, e.g. ``COURSE_SEQUENCER_API_BASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COURSE_SEQUENCER_",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"

    # --- Course API ---
    api_base_url: str = "http://localhost:8081/api"
    api_token: SecretStr | None = None
    request_timeout: float = 10.0

    # --- Learner position ---
    position_store_path: Path = Path(".course_progress.json")

    # --- Playback ---
    pass_score: float = 60.0
    direct_video_extensions: list[str] = ["mp4", "webm", "ogg"]

    # --- Authoring ---
    # Failed reorder writes keep the optimistic order unless enabled.
    revert_failed_reorder: bool = False

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from course_sequencer.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
