"""FastAPI dependency injection: wires infrastructure to application layer."""

from functools import lru_cache

from recipe_ingest.config import Settings, get_settings
from recipe_ingest.application.services import (
    ImportEventBroker,
    ImportPipeline,
    ImportRunner,
    ImportService,
    RetryExecutor,
    StageTransitions,
)
from recipe_ingest.infrastructure.apify import ApifyPostScraper
from recipe_ingest.infrastructure.database.session import async_session_factory
from recipe_ingest.infrastructure.database.repositories import (
    SQLAlchemyImportJobRepository,
    SQLAlchemyRecipeRepository,
)
from recipe_ingest.infrastructure.gemini import GeminiRecipeExtractor
from recipe_ingest.infrastructure.media import HttpMediaDownloader

_runner: ImportRunner | None = None


@lru_cache
def get_event_broker() -> ImportEventBroker:
    """Process-wide SSE broker shared by the pipeline and the stream endpoints."""
    return ImportEventBroker()


def get_import_repository() -> SQLAlchemyImportJobRepository:
    return SQLAlchemyImportJobRepository(async_session_factory)


def get_recipe_repository() -> SQLAlchemyRecipeRepository:
    return SQLAlchemyRecipeRepository(async_session_factory)


def get_stage_transitions() -> StageTransitions:
    """Transitions that publish every persisted change to SSE clients."""
    return StageTransitions(get_import_repository(), listener=get_event_broker().publish)


def build_import_pipeline(settings: Settings | None = None) -> ImportPipeline:
    """Build an ImportPipeline with the Apify, media and Gemini adapters."""
    settings = settings or get_settings()
    import_repository = get_import_repository()

    scraper = ApifyPostScraper(
        api_token=settings.apify_api_token,
        base_url=settings.apify_base_url,
        post_actor=settings.apify_post_actor,
        reel_actor=settings.apify_reel_actor,
        timeout=settings.apify_timeout,
    )
    downloader = HttpMediaDownloader(
        media_dir=settings.media_tmp_dir or None,
        max_bytes=settings.max_media_bytes,
        timeout=settings.media_download_timeout,
    )
    extractor = GeminiRecipeExtractor(
        api_key=settings.gemini_api_key,
        base_url=settings.gemini_base_url,
        model=settings.gemini_model,
        temperature=settings.gemini_temperature,
        upload_timeout=settings.gemini_upload_timeout,
        poll_interval=settings.gemini_poll_interval,
        extraction_attempts=settings.gemini_extraction_attempts,
    )

    return ImportPipeline(
        import_repository=import_repository,
        recipe_repository=get_recipe_repository(),
        scraper=scraper,
        media_downloader=downloader,
        recipe_extractor=extractor,
        transitions=StageTransitions(import_repository, listener=get_event_broker().publish),
        retry_executor=RetryExecutor(
            max_attempts=settings.max_stage_attempts,
            delay_seconds=settings.stage_retry_delay_ms / 1000,
        ),
    )


def set_import_runner(runner: ImportRunner | None) -> None:
    """Register the lifespan-owned runner (``None`` on shutdown)."""
    global _runner
    _runner = runner


def get_import_runner() -> ImportRunner | None:
    return _runner


def get_import_service() -> ImportService:
    """Provides an ImportService bound to the running background runner."""
    return ImportService(
        import_repository=get_import_repository(),
        recipe_repository=get_recipe_repository(),
        transitions=get_stage_transitions(),
        runner=get_import_runner(),
    )

