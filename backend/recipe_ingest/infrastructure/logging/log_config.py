"""Logging setup for the import service.

Every logger category has its own level in Settings, so the stage ladder
can be traced at DEBUG while SQL statements and outbound HTTP stay quiet:

    LOG_LEVEL_PIPELINE=DEBUG LOG_LEVEL_SQL=WARNING uvicorn recipe_ingest.main:app
"""

import logging
import sys

from recipe_ingest.config import Settings, get_settings

# Settings field → loggers it controls.
LOGGER_CATEGORIES: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_pipeline": (
        "ImportPipeline",
        "recipe_ingest.application.services",
        "recipe_ingest.client",
    ),
    "log_level_collaborators": (
        "recipe_ingest.infrastructure.apify",
        "recipe_ingest.infrastructure.gemini",
        "recipe_ingest.infrastructure.media",
    ),
}

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(settings: Settings | None = None) -> None:
    """Apply the root level and per-category levels. Safe to call repeatedly."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(parse_level(settings.log_level))
    # uvicorn installs its own handlers; scripts and tests may have none.
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)

    for field_name, logger_names in LOGGER_CATEGORIES.items():
        level = parse_level(getattr(settings, field_name, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured (root=%s pipeline=%s collaborators=%s sql=%s)",
        settings.log_level,
        settings.log_level_pipeline,
        settings.log_level_collaborators,
        settings.log_level_sql,
    )


def parse_level(raw: str | None) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    numeric = getattr(logging, (raw or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO
