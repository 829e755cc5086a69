"""Application settings loaded from environment variables and .env files.

Hey future me - every group has its own env prefix (TMDB_, MUSICBRAINZ_, ANALYSIS_, ...)
so one flat .env works for everything. Defaults are the values the catalogs tolerate:
TMDB allows ~40 req/s, MusicBrainz bans anyone faster than ~1 req/s, so we keep 1.5s.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"


class TMDBSettings(BaseSettings):
    """TMDB (film/TV catalog) client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TMDB_", env_file=_ENV_FILE, extra="ignore"
    )

    api_key: str | None = Field(default=None, description="TMDB v3 API key")
    base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p/"
    requests_per_window: int = Field(default=40, ge=1)
    window_seconds: float = Field(default=1.0, gt=0)
    buffer_seconds: float = Field(default=0.025, ge=0)
    max_concurrent: int = Field(default=10, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    cache_ttl_seconds: int = Field(default=24 * 60 * 60, ge=0)
    language: str = "en-US"


class MusicBrainzSettings(BaseSettings):
    """MusicBrainz client configuration.

    MusicBrainz REQUIRES a meaningful User-Agent: "AppName/Version ( contact )".
    """

    model_config = SettingsConfigDict(
        env_prefix="MUSICBRAINZ_", env_file=_ENV_FILE, extra="ignore"
    )

    app_name: str = "ShelfCheck"
    app_version: str = "0.1.0"
    contact: str = "https://github.com/shelfcheck/shelfcheck"
    base_url: str = "https://musicbrainz.org/ws/2"
    cover_art_base_url: str = "https://coverartarchive.org"
    request_delay_seconds: float = Field(default=1.5, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    cache_ttl_seconds: int = Field(default=24 * 60 * 60, ge=0)
    max_concurrent: int = Field(default=10, ge=1)
    max_retries: int = Field(default=3, ge=0)
    initial_retry_delay: float = Field(default=5.0, ge=0)
    max_retry_delay: float = Field(default=30.0, ge=0)
    retry_backoff_factor: float = Field(default=2.0, ge=1)

    @property
    def user_agent(self) -> str:
        return f"{self.app_name}/{self.app_version} ( {self.contact} )"


class AnalysisSettings(BaseSettings):
    """Batch analysis defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_", env_file=_ENV_FILE, extra="ignore"
    )

    series_batch_size: int = Field(default=5, ge=1)
    collection_batch_size: int = Field(default=10, ge=1)
    music_batch_size: int = Field(default=5, ge=1)
    checkpoint_interval: int = Field(default=25, ge=1)
    reanalyze_after_days: int = Field(default=7, ge=0)
    filter_vinyl_only: bool = False


class DatabaseSettings(BaseSettings):
    """Local store (SQLAlchemy) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = "sqlite+aiosqlite:///./shelfcheck.db"
    echo: bool = False

    @field_validator("url")
    @classmethod
    def _require_async_driver(cls, value: str) -> str:
        # Hey future me - the store uses AsyncSession, a sync driver URL explodes at first query
        if value.startswith("sqlite://"):
            return value.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return value

    def sqlite_path(self) -> Path | None:
        """Filesystem path of a SQLite database, None for memory/other engines."""
        if not self.url.startswith("sqlite") or ":memory:" in self.url:
            return None
        _, _, raw_path = self.url.partition(":///")
        return Path(raw_path) if raw_path else None


class LoggingSettings(BaseSettings):
    """Logging output configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=_ENV_FILE, extra="ignore"
    )

    level: str = "INFO"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class Settings(BaseSettings):
    """Root settings object aggregating all groups."""

    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    app_name: str = "shelfcheck"
    tmdb: TMDBSettings = Field(default_factory=TMDBSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Hey future me - cached so the .env file is parsed ONCE per process. Tests that need
# different values should construct Settings(...) directly instead of calling this.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


__all__ = [
    "AnalysisSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "MusicBrainzSettings",
    "Settings",
    "TMDBSettings",
    "get_settings",
]
