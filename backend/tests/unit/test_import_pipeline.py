"""Unit tests for the ImportPipeline driver."""

import asyncio
from pathlib import Path

import pytest

from recipe_ingest.application.services import ImportPipeline, StageTransitions
from recipe_ingest.application.services.import_pipeline import (
    build_media_filename,
    select_media_asset,
)
from recipe_ingest.domain.entities import (
    CANCELLATION_MESSAGE,
    ImportJob,
    ImportStatus,
    MediaType,
)
from recipe_ingest.domain.exceptions import (
    EntityNotFoundError,
    ImportCancelledError,
    MediaDownloadError,
    ScrapeError,
)

INPUT_URL = "https://example.com/post/1"

HAPPY_PATH = [
    ImportStatus.QUEUED,
    ImportStatus.SCRAPING,
    ImportStatus.DOWNLOADING_MEDIA,
    ImportStatus.UPLOADING_MEDIA,
    ImportStatus.EXTRACTING,
    ImportStatus.READY,
]


@pytest.fixture
def pipeline(import_repo, recipe_repo, scraper, downloader, extractor, retry_executor) -> ImportPipeline:
    return ImportPipeline(
        import_repository=import_repo,
        recipe_repository=recipe_repo,
        scraper=scraper,
        media_downloader=downloader,
        recipe_extractor=extractor,
        retry_executor=retry_executor,
    )


async def _queued(import_repo) -> ImportJob:
    return await import_repo.create(ImportJob(input_url=INPUT_URL))


# ── Helpers ──


def test_select_media_asset_prefers_video(post_factory):
    asset = select_media_asset(post_factory())
    assert asset.media_type == MediaType.VIDEO
    assert asset.url == "https://cdn.example.com/video.mp4"


def test_select_media_asset_falls_back_to_first_image(post_factory):
    post = post_factory(video_url=None, images=["https://cdn.example.com/1.jpg"])
    asset = select_media_asset(post)
    assert asset.media_type == MediaType.IMAGE
    assert asset.url == "https://cdn.example.com/1.jpg"


def test_select_media_asset_without_media_is_permanent_error(post_factory):
    post = post_factory(video_url=None, display_url=None, images=[])
    with pytest.raises(ScrapeError) as exc_info:
        select_media_asset(post)
    assert exc_info.value.code == "NO_MEDIA"
    assert exc_info.value.retryable is False


def test_media_filename_uses_short_code_and_import_id(post_factory):
    assert build_media_filename(post_factory(), MediaType.VIDEO, "imp-1") == "ABC123-imp-1.mp4"
    assert (
        build_media_filename(post_factory(short_code=""), MediaType.IMAGE, "imp-2")
        == "3141592653-imp-2.jpg"
    )


# ── End-to-end ──


@pytest.mark.asyncio
async def test_successful_import_reaches_ready(pipeline, import_repo, recipe_repo, downloader, extractor):
    job = await _queued(import_repo)

    recipe = await pipeline.process(job.id)

    stored = await import_repo.get_by_id(job.id)
    assert stored.status == ImportStatus.READY
    assert stored.progress == 100
    assert stored.recipe_id == recipe.id
    assert stored.error is None
    assert import_repo.status_history[job.id] == HAPPY_PATH
    assert recipe_repo.count == 1
    assert recipe.recipe_data["title"] == "Garlic Butter Pasta"
    assert recipe.recipe_data["is_original"] is True
    assert recipe.media_file_uri.endswith("files/abc123")
    assert downloader.calls == ["https://cdn.example.com/video.mp4"]
    assert extractor.extract_calls[0].caption.startswith("Garlic butter pasta")
    assert downloader.residual_files() == []


@pytest.mark.asyncio
async def test_successful_import_records_stage_metadata(pipeline, import_repo):
    job = await _queued(import_repo)

    await pipeline.process(job.id)

    metadata = (await import_repo.get_by_id(job.id)).metadata
    assert metadata["media_type"] == "video"
    assert metadata["media_source_url"] == "https://cdn.example.com/video.mp4"
    assert metadata["media_size_bytes"] == 128
    assert "scraping_started_at" in metadata
    assert "extracting_started_at" in metadata
    assert "ready_started_at" in metadata
    assert metadata["confidence"] == 0.9


@pytest.mark.asyncio
async def test_download_always_failing_marks_import_failed(
    pipeline, import_repo, recipe_repo, downloader, recording_sleep
):
    downloader.error = MediaDownloadError("NETWORK_ERROR", "connection reset")
    job = await _queued(import_repo)

    with pytest.raises(MediaDownloadError):
        await pipeline.process(job.id)

    stored = await import_repo.get_by_id(job.id)
    assert len(downloader.calls) == 3
    assert recording_sleep.delays == [0.5, 1.0]
    assert stored.status == ImportStatus.FAILED
    assert stored.progress == 100
    assert stored.error == "connection reset"
    assert stored.metadata["failed_stage"] == "downloading_media"
    assert recipe_repo.count == 0
    assert downloader.residual_files() == []


@pytest.mark.asyncio
async def test_permanent_scrape_error_fails_after_one_attempt(pipeline, import_repo, scraper):
    scraper.errors = [ScrapeError("PRIVATE_POST", "Instagram post is private or inaccessible")]
    job = await _queued(import_repo)

    with pytest.raises(ScrapeError):
        await pipeline.process(job.id)

    stored = await import_repo.get_by_id(job.id)
    assert len(scraper.calls) == 1
    assert stored.status == ImportStatus.FAILED
    assert stored.error == "Instagram post is private or inaccessible"


@pytest.mark.asyncio
async def test_transient_scrape_error_is_retried(pipeline, import_repo, scraper):
    scraper.errors = [ScrapeError("RATE_LIMITED", "slow down")]
    job = await _queued(import_repo)

    await pipeline.process(job.id)

    assert len(scraper.calls) == 2
    assert (await import_repo.get_by_id(job.id)).status == ImportStatus.READY


@pytest.mark.asyncio
async def test_cancellation_during_download_aborts_and_cleans_up(
    pipeline, import_repo, recipe_repo, downloader, extractor
):
    job = await _queued(import_repo)
    transitions = StageTransitions(import_repo)

    async def cancel_mid_download():
        current = await import_repo.get_by_id(job.id)
        await transitions.transition(current, ImportStatus.FAILED, error=CANCELLATION_MESSAGE)

    downloader.before_download = cancel_mid_download

    with pytest.raises(ImportCancelledError):
        await pipeline.process(job.id)

    stored = await import_repo.get_by_id(job.id)
    assert stored.status == ImportStatus.FAILED
    assert stored.error == CANCELLATION_MESSAGE
    assert "failed_stage" not in stored.metadata
    assert extractor.upload_calls == []
    assert recipe_repo.count == 0
    assert downloader.residual_files() == []


@pytest.mark.asyncio
async def test_ready_import_is_idempotent(pipeline, import_repo, scraper, extractor):
    job = await _queued(import_repo)

    first = await pipeline.process(job.id)
    second = await pipeline.process(job.id)

    assert second.id == first.id
    assert len(scraper.calls) == 1
    assert len(extractor.extract_calls) == 1


@pytest.mark.asyncio
async def test_failed_import_is_inert(pipeline, import_repo, scraper):
    job = await import_repo.create(
        ImportJob(input_url=INPUT_URL, status=ImportStatus.FAILED, progress=100, error="earlier")
    )

    assert await pipeline.process(job.id) is None
    assert scraper.calls == []


@pytest.mark.asyncio
async def test_unknown_import_raises_not_found(pipeline):
    with pytest.raises(EntityNotFoundError):
        await pipeline.process("missing")


@pytest.mark.asyncio
async def test_interrupted_import_restarts_from_scraping(pipeline, import_repo):
    job = await import_repo.create(
        ImportJob(input_url=INPUT_URL, status=ImportStatus.UPLOADING_MEDIA, progress=55)
    )

    await pipeline.process(job.id)

    history = import_repo.status_history[job.id]
    assert history[0] == ImportStatus.UPLOADING_MEDIA
    assert history[1:] == HAPPY_PATH[1:]


@pytest.mark.asyncio
async def test_cleanup_failure_does_not_change_outcome(pipeline, import_repo, downloader):
    async def broken_cleanup(file_path):
        raise OSError("permission denied")

    downloader.cleanup = broken_cleanup
    job = await _queued(import_repo)

    await pipeline.process(job.id)

    assert (await import_repo.get_by_id(job.id)).status == ImportStatus.READY


@pytest.mark.asyncio
async def test_imports_sharing_a_short_code_keep_separate_media(pipeline, import_repo, downloader, extractor):
    first = await import_repo.create(ImportJob(input_url="https://www.instagram.com/p/ABC123/"))
    second = await import_repo.create(ImportJob(input_url="https://www.instagram.com/p/ABC123/?igsh=1"))

    original_upload = extractor.upload_media
    uploading: list[str] = []
    both_downloaded = asyncio.Event()
    release = asyncio.Event()
    present_after_other_finished: list[bool] = []

    async def upload_media(file_path, mime_type, display_name=None):
        uploading.append(file_path)
        if len(uploading) == 1:
            await both_downloaded.wait()
        else:
            both_downloaded.set()
            await release.wait()
            present_after_other_finished.append(Path(file_path).exists())
        return await original_upload(file_path, mime_type, display_name=display_name)

    extractor.upload_media = upload_media
    tasks = [asyncio.ensure_future(pipeline.process(job.id)) for job in (first, second)]

    done, _ = await asyncio.wait(tasks, timeout=5, return_when=asyncio.FIRST_COMPLETED)
    assert len(done) == 1
    release.set()
    await asyncio.gather(*tasks)

    assert uploading[0] != uploading[1]
    assert present_after_other_finished == [True]
    for job in (first, second):
        assert (await import_repo.get_by_id(job.id)).status == ImportStatus.READY
    assert downloader.residual_files() == []


@pytest.mark.asyncio
async def test_cancellation_during_extraction_stores_no_recipe(pipeline, import_repo, recipe_repo, extractor):
    job = await _queued(import_repo)
    transitions = StageTransitions(import_repo)
    original_extract = extractor.extract_recipe

    async def extract_then_cancel(request):
        result = await original_extract(request)
        current = await import_repo.get_by_id(job.id)
        await transitions.transition(current, ImportStatus.FAILED, error=CANCELLATION_MESSAGE)
        return result

    extractor.extract_recipe = extract_then_cancel

    with pytest.raises(ImportCancelledError):
        await pipeline.process(job.id)

    stored = await import_repo.get_by_id(job.id)
    assert stored.status == ImportStatus.FAILED
    assert stored.error == CANCELLATION_MESSAGE
    assert stored.recipe_id is None
    assert recipe_repo.count == 0
