"""Configuration module for ShelfCheck."""

from .settings import (
    AnalysisSettings,
    DatabaseSettings,
    LoggingSettings,
    MusicBrainzSettings,
    Settings,
    TMDBSettings,
    get_settings,
)

__all__ = [
    "AnalysisSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "MusicBrainzSettings",
    "Settings",
    "TMDBSettings",
    "get_settings",
]
