"""
Centralized configuration management for the wordcore application.
"""
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_PAGE_SIZE


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.

    Variable names are case-insensitive, so `LINE_CHANNEL_ACCESS_TOKEN` sets
    `line_channel_access_token`.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # --- Messaging ---
    line_channel_access_token: str = ""
    # Webhook bodies are only signature-checked when a secret is configured.
    line_channel_secret: Optional[str] = None

    # --- Content source ---
    content_backend: Literal["notion", "yaml"] = "notion"
    notion_api_key: str = ""
    notion_database_id: str = ""
    notion_api_url: str = "https://api.notion.com/v1"
    deck_file: Optional[Path] = None
    page_size: int = DEFAULT_PAGE_SIZE

    # --- Progress ---
    # Optional local DuckDB mirror of every recorded grade.
    progress_db_path: Optional[Path] = None

    # --- Audio ---
    audio_enabled: bool = True
    audio_dir: Path = Path("./public/audio")
    audio_language: str = "en"
    public_base_url: str = "http://localhost:8000"
    internal_api_key: Optional[str] = None

    # --- Runtime ---
    http_timeout: float = 30.0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once."""
    return Settings()
