import json
import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_config_logger = logging.getLogger(__name__)

_SETTINGS_FILE = Path("data/settings.json")
_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)
_MODEL_KEYS = frozenset({
    "gemini_model",
})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Recipe Ingest API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///data/recipe_ingest.db"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Apify (post scraping)
    apify_api_token: str = ""
    apify_base_url: str = "https://api.apify.com/v2"
    apify_post_actor: str = "apify~instagram-post-scraper"
    apify_reel_actor: str = "apify~instagram-reel-scraper"
    apify_timeout: int = 120

    # Gemini (media upload + recipe extraction)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_model: str = "gemini-2.5-flash"
    gemini_upload_timeout: int = 120
    gemini_poll_interval: float = 2.0
    gemini_extraction_attempts: int = 3
    gemini_temperature: float = 0.2

    # Media download
    media_tmp_dir: str = ""                  # Empty → <system tmp>/recipe-ingest-media
    max_media_bytes: int = 20 * 1024 * 1024
    media_download_timeout: int = 30

    # Pipeline
    max_stage_attempts: int = 3
    stage_retry_delay_ms: int = 500
    resume_queued_on_startup: bool = True

    # Logging: per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine SQL queries
    log_level_http: str = "WARNING"          # httpx / httpcore outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_pipeline: str = "INFO"         # ImportPipeline stage ladder
    log_level_collaborators: str = "INFO"    # Apify / Gemini / media adapters

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Merge runtime overrides from data/settings.json into model settings."""
        if _SETTINGS_FILE.exists():
            try:
                overrides = json.loads(_SETTINGS_FILE.read_text("utf-8"))
                for key in _MODEL_KEYS:
                    if key in overrides and isinstance(overrides[key], str):
                        object.__setattr__(self, key, overrides[key])
            except Exception as exc:
                _config_logger.warning("Could not load settings overrides: %s", exc)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance: reads .env once."""
    return Settings()
