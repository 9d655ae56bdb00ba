"""Import pipeline: runs one recipe import from URL to stored recipe.

Stage ladder:
    queued → scraping → downloading_media → uploading_media → extracting → ready

Every stage boundary is persisted before the stage's work starts, so
observers (pollers, SSE clients) see progress as it happens. Any error is
recorded on the import as ``failed`` and re-raised to the caller; a
cancellation aborts without writing anything further. Downloaded media is
deleted on every exit path.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.application.interfaces.media_downloader import MediaDownloader
from recipe_ingest.application.interfaces.post_scraper import PostScraper
from recipe_ingest.application.interfaces.recipe_extractor import (
    RecipeExtractionRequest,
    RecipeExtractor,
)
from recipe_ingest.application.interfaces.recipe_repository import RecipeRepository
from recipe_ingest.application.services.cancellation import CancellationCheck
from recipe_ingest.application.services.retry_executor import RetryExecutor, to_error_message
from recipe_ingest.application.services.stage_transitions import (
    StageTransitions,
    stage_metadata,
)
from recipe_ingest.domain.entities.import_job import ImportJob, ImportStatus
from recipe_ingest.domain.entities.recipe import (
    MediaAsset,
    MediaType,
    Recipe,
    ScrapedPost,
)
from recipe_ingest.domain.exceptions import (
    EntityNotFoundError,
    ImportCancelledError,
    MediaUploadError,
    ScrapeError,
)
from recipe_ingest.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)


# ── Pure helpers ─────────────────────────────────────────────────────


def select_media_asset(post: ScrapedPost) -> MediaAsset:
    """Prefer the post's video; fall back to its first image."""
    if post.video_url:
        return MediaAsset(url=post.video_url, media_type=MediaType.VIDEO)
    first_image = post.images[0] if post.images else post.display_url
    if first_image:
        return MediaAsset(url=first_image, media_type=MediaType.IMAGE)
    raise ScrapeError("NO_MEDIA", "No suitable media asset found on post", retryable=False)


def build_media_filename(post: ScrapedPost, media_type: MediaType, import_id: str) -> str:
    """Temp file name owned by a single import run."""
    code = post.short_code or post.id
    extension = "mp4" if media_type == MediaType.VIDEO else "jpg"
    return f"{code}-{import_id}.{extension}"


def build_recipe(
    job: ImportJob,
    post: ScrapedPost,
    media_file_uri: str,
    recipe_data: dict,
) -> Recipe:
    """Denormalize the scraped post next to the extracted recipe data."""
    return Recipe(
        import_id=job.id,
        input_url=job.input_url,
        recipe_data={**recipe_data, "is_original": True},
        short_code=post.short_code,
        source_url=post.url,
        caption=post.caption,
        hashtags=list(post.hashtags),
        owner_username=post.owner_username,
        video_url=post.video_url,
        display_url=post.display_url or (post.images[0] if post.images else None),
        media_file_uri=media_file_uri,
    )


# ── Driver ───────────────────────────────────────────────────────────


@dataclass
class _RunState:
    """Local state for one driver invocation; never persisted."""

    job: ImportJob
    stage: ImportStatus
    downloaded_path: str | None = None


class ImportPipeline:
    """Runs an import end-to-end: scrape → download → upload → extract → store.

    Collaborators are injected as ports so the pipeline can be exercised
    against in-memory fakes. Retry and backoff live entirely in the
    ``RetryExecutor``; this class only sequences stages and records outcomes.
    """

    def __init__(
        self,
        import_repository: ImportJobRepository,
        recipe_repository: RecipeRepository,
        scraper: PostScraper,
        media_downloader: MediaDownloader,
        recipe_extractor: RecipeExtractor,
        transitions: StageTransitions | None = None,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        self._imports = import_repository
        self._recipes = recipe_repository
        self._scraper = scraper
        self._downloader = media_downloader
        self._extractor = recipe_extractor
        self._transitions = transitions or StageTransitions(import_repository)
        self._retry = retry_executor or RetryExecutor()
        self._log = PipelineLogger("ImportPipeline")

    async def process(self, import_id: str) -> Recipe | None:
        """Run the import identified by ``import_id``.

        Returns the stored recipe on success. A ``ready`` import returns its
        existing recipe without touching any collaborator; a ``failed``
        import is inert and returns ``None``.
        """
        job = await self._imports.get_by_id(import_id)
        if job is None:
            raise EntityNotFoundError("ImportJob", import_id)

        if job.status == ImportStatus.READY and job.recipe_id:
            existing = await self._recipes.get_by_id(job.recipe_id)
            if existing is not None:
                self._log.detail(import_id, "Already ready, returning stored recipe", recipe_id=existing.id)
                return existing
            raise EntityNotFoundError("Recipe", job.recipe_id)

        if job.is_terminal:
            logger.info("Import %s is already %s; nothing to do", import_id, job.status.value)
            return None

        state = _RunState(job=job, stage=job.status)
        cancellation = CancellationCheck(self._imports, import_id)
        self._log.step_start(PipelineStage.PIPELINE, import_id, "Starting import", url=job.input_url)

        try:
            return await self._run(state, cancellation)
        except ImportCancelledError:
            self._log.step_warning(
                PipelineStage.CANCEL, import_id, f"Cancelled during {state.stage.value}"
            )
            raise
        except Exception as exc:
            message = to_error_message(exc)
            self._log.step_error(
                PipelineStage.ERROR, import_id, f"Failed at stage {state.stage.value}", error=exc
            )
            await self._mark_failed(state, message)
            raise
        finally:
            if state.downloaded_path:
                await self._cleanup(import_id, state.downloaded_path)

    async def _run(self, state: _RunState, cancellation: CancellationCheck) -> Recipe:
        import_id = state.job.id

        # ── Scraping ────────────────────────────────────────────────
        await self._advance(state, ImportStatus.SCRAPING, cancellation, stage_metadata(ImportStatus.SCRAPING))
        input_url = state.job.input_url
        self._log.step_start(PipelineStage.SCRAPE, import_id, "Scraping post", url=input_url)
        post = await self._retry.run(
            "scrape post",
            lambda: self._scraper.scrape(input_url),
            cancellation=cancellation,
        )
        self._log.step_complete(
            PipelineStage.SCRAPE,
            import_id,
            "Post scraped",
            short_code=post.short_code,
            caption_chars=len(post.caption),
        )

        # ── Downloading media ───────────────────────────────────────
        asset = select_media_asset(post)
        await self._advance(
            state,
            ImportStatus.DOWNLOADING_MEDIA,
            cancellation,
            stage_metadata(
                ImportStatus.DOWNLOADING_MEDIA,
                media_type=asset.media_type.value,
                media_source_url=asset.url,
            ),
        )
        filename = build_media_filename(post, asset.media_type, import_id)
        self._log.step_start(PipelineStage.DOWNLOAD, import_id, "Downloading media", media_type=asset.media_type.value)
        download = await self._retry.run(
            "download media",
            lambda: self._downloader.download(asset.url, filename=filename),
            cancellation=cancellation,
        )
        state.downloaded_path = download.file_path
        self._log.step_complete(
            PipelineStage.DOWNLOAD, import_id, "Media downloaded", bytes=download.size, mime=download.mime_type
        )

        # ── Uploading media ─────────────────────────────────────────
        await self._advance(
            state,
            ImportStatus.UPLOADING_MEDIA,
            cancellation,
            stage_metadata(ImportStatus.UPLOADING_MEDIA, media_size_bytes=download.size),
        )
        display_name = post.short_code or post.id
        uploaded = await self._retry.run(
            "upload media",
            lambda: self._extractor.upload_media(
                download.file_path, download.mime_type, display_name=display_name
            ),
            cancellation=cancellation,
        )
        media_file_uri = uploaded.reference
        if not media_file_uri:
            raise MediaUploadError(
                "UPLOAD_FAILED", "Media upload did not provide a file reference", retryable=False
            )
        self._log.step_complete(PipelineStage.UPLOAD, import_id, "Media uploaded", file=media_file_uri)

        # ── Extracting ──────────────────────────────────────────────
        await self._advance(
            state,
            ImportStatus.EXTRACTING,
            cancellation,
            stage_metadata(ImportStatus.EXTRACTING, media_file_uri=media_file_uri),
        )
        request = RecipeExtractionRequest(
            file_uri=media_file_uri,
            mime_type=download.mime_type,
            caption=post.caption,
            hashtags=list(post.hashtags),
            owner_username=post.owner_username,
            latest_comments=list(post.latest_comments),
        )
        with self._log.timed_step(PipelineStage.EXTRACT, import_id, "Extracting recipe"):
            recipe_data = await self._retry.run(
                "extract recipe",
                lambda: self._extractor.extract_recipe(request),
                cancellation=cancellation,
            )

        # ── Storing ─────────────────────────────────────────────────
        await cancellation.raise_if_cancelled()
        recipe = await self._recipes.create(
            build_recipe(state.job, post, media_file_uri, recipe_data)
        )
        self._log.step_complete(PipelineStage.STORE, import_id, "Recipe stored", recipe_id=recipe.id)

        await self._advance(
            state,
            ImportStatus.READY,
            cancellation,
            stage_metadata(ImportStatus.READY, confidence=recipe_data.get("confidence")),
            recipe_id=recipe.id,
        )
        self._log.step_complete(PipelineStage.COMPLETE, import_id, f"Recipe {recipe.id} ready")
        return recipe

    async def _advance(
        self,
        state: _RunState,
        target: ImportStatus,
        cancellation: CancellationCheck,
        metadata_patch: dict,
        recipe_id: str | None = None,
    ) -> None:
        """Check for cancellation, then persist the transition into ``target``."""
        await cancellation.raise_if_cancelled()
        state.stage = target
        state.job = await self._transitions.transition(
            state.job,
            target,
            error=None,
            recipe_id=recipe_id,
            metadata_patch=metadata_patch,
        )

    async def _mark_failed(self, state: _RunState, message: str) -> None:
        """Record the failure unless the import already reached a terminal state."""
        import_id = state.job.id
        try:
            latest = await self._imports.get_by_id(import_id)
            if latest is None or latest.is_terminal:
                logger.warning(
                    "Import %s not marked failed: it is %s",
                    import_id,
                    latest.status.value if latest else "gone",
                )
                return
            state.job = await self._transitions.transition(
                latest,
                ImportStatus.FAILED,
                error=message,
                metadata_patch={
                    "failed_stage": state.stage.value,
                    "failed_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except Exception:
            logger.exception("Could not record failure for import %s", import_id)

    async def _cleanup(self, import_id: str, file_path: str) -> None:
        try:
            await self._downloader.cleanup(file_path)
            self._log.detail(import_id, "Removed temporary media", path=file_path)
        except Exception as exc:
            self._log.step_warning(
                PipelineStage.CLEANUP, import_id, f"Failed to clean up {file_path}: {exc}"
            )
