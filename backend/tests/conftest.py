"""Shared fakes and fixtures for the import pipeline tests."""

import copy
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from recipe_ingest.application.interfaces import (
    ImportJobRepository,
    MediaDownloader,
    PostScraper,
    RecipeExtractionRequest,
    RecipeExtractor,
    RecipeRepository,
)
from recipe_ingest.application.services import RetryExecutor
from recipe_ingest.domain.entities import (
    ImportJob,
    ImportStatus,
    MediaDownload,
    MediaType,
    Recipe,
    ScrapedPost,
    UploadedMedia,
)
from recipe_ingest.domain.exceptions import EntityNotFoundError


SAMPLE_RECIPE = {
    "title": "Garlic Butter Pasta",
    "servings": {"value": 2, "note": None},
    "confidence": 0.9,
    "ingredients": [
        {"id": "ing_1", "name": "spaghetti", "quantity": 200, "unit": "g"},
        {"id": "ing_2", "name": "butter", "quantity": 30, "unit": "g"},
    ],
    "steps": [
        {"idx": 1, "text": "Boil the pasta.", "used_ingredients": ["ing_1"]},
        {"idx": 2, "text": "Toss with melted butter.", "used_ingredients": ["ing_1", "ing_2"]},
    ],
    "assumptions": [],
}


class InMemoryImportJobRepository(ImportJobRepository):
    """In-memory fake; copies on every read and write like a real store."""

    def __init__(self):
        self._jobs: dict[str, ImportJob] = {}
        self.status_history: dict[str, list[ImportStatus]] = {}

    async def get_by_id(self, import_id: str) -> ImportJob | None:
        job = self._jobs.get(import_id)
        return copy.deepcopy(job) if job else None

    async def create(self, job: ImportJob) -> ImportJob:
        if not job.id:
            job.id = str(uuid.uuid4())
        self._jobs[job.id] = copy.deepcopy(job)
        self.status_history[job.id] = [job.status]
        return job

    async def update(
        self,
        import_id: str,
        fields: dict[str, Any],
        metadata_patch: dict[str, Any] | None = None,
    ) -> ImportJob:
        job = self._jobs.get(import_id)
        if job is None:
            raise EntityNotFoundError("ImportJob", import_id)
        for key, value in fields.items():
            if key == "status":
                value = ImportStatus(value)
                self.status_history[import_id].append(value)
            setattr(job, key, value)
        if metadata_patch:
            job.metadata = {**job.metadata, **metadata_patch}
        job.updated_at = datetime.now(timezone.utc)
        return copy.deepcopy(job)

    async def list_imports(
        self, status: ImportStatus | None = None, limit: int = 50
    ) -> list[ImportJob]:
        jobs = [j for j in self._jobs.values() if status is None or j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [copy.deepcopy(j) for j in jobs[:limit]]

    async def get_unfinished(self, limit: int = 50) -> list[ImportJob]:
        jobs = [j for j in self._jobs.values() if not j.is_terminal]
        jobs.sort(key=lambda j: j.created_at)
        return [copy.deepcopy(j) for j in jobs[:limit]]

    async def find_pending_by_url(self, input_url: str) -> ImportJob | None:
        for job in self._jobs.values():
            if job.input_url == input_url and not job.is_terminal:
                return copy.deepcopy(job)
        return None

    async def delete(self, import_id: str) -> bool:
        return self._jobs.pop(import_id, None) is not None


class InMemoryRecipeRepository(RecipeRepository):
    def __init__(self):
        self._recipes: dict[str, Recipe] = {}

    async def get_by_id(self, recipe_id: str) -> Recipe | None:
        recipe = self._recipes.get(recipe_id)
        return copy.deepcopy(recipe) if recipe else None

    async def create(self, recipe: Recipe) -> Recipe:
        if not recipe.id:
            recipe.id = str(uuid.uuid4())
        self._recipes[recipe.id] = copy.deepcopy(recipe)
        return recipe

    async def find_by_input_url(self, input_url: str) -> Recipe | None:
        for recipe in self._recipes.values():
            if recipe.input_url == input_url:
                return copy.deepcopy(recipe)
        return None

    @property
    def count(self) -> int:
        return len(self._recipes)


class FakeScraper(PostScraper):
    """Returns ``post`` unless errors are queued in ``errors``."""

    def __init__(self, post: ScrapedPost | None = None):
        self.post = post
        self.errors: list[Exception] = []
        self.calls: list[str] = []

    async def scrape(self, url: str) -> ScrapedPost:
        self.calls.append(url)
        if self.errors:
            raise self.errors.pop(0)
        return self.post or make_post(url)


class FakeMediaDownloader(MediaDownloader):
    """Writes a real file under ``media_dir``; ``error`` makes every call fail."""

    def __init__(self, media_dir: Path):
        self.media_dir = media_dir
        self.error: Exception | None = None
        self.calls: list[str] = []
        self.before_download = None

    async def download(self, url: str, filename: str | None = None) -> MediaDownload:
        self.calls.append(url)
        if self.before_download is not None:
            await self.before_download()
        if self.error is not None:
            raise self.error
        path = self.media_dir / (filename or "media.bin")
        path.write_bytes(b"\x00" * 128)
        media_type = MediaType.VIDEO if path.suffix == ".mp4" else MediaType.IMAGE
        mime = "video/mp4" if media_type == MediaType.VIDEO else "image/jpeg"
        return MediaDownload(file_path=str(path), size=128, mime_type=mime, media_type=media_type)

    async def cleanup(self, file_path: str | None) -> None:
        if file_path:
            Path(file_path).unlink(missing_ok=True)

    def residual_files(self) -> list[Path]:
        return list(self.media_dir.iterdir())


class FakeRecipeExtractor(RecipeExtractor):
    def __init__(self, recipe: dict | None = None):
        self.recipe = recipe or SAMPLE_RECIPE
        self.upload_calls: list[str] = []
        self.extract_calls: list[RecipeExtractionRequest] = []

    async def upload_media(
        self, file_path: str, mime_type: str, display_name: str | None = None
    ) -> UploadedMedia:
        self.upload_calls.append(file_path)
        return UploadedMedia(
            name="files/abc123",
            uri="https://generativelanguage.googleapis.com/v1beta/files/abc123",
            mime_type=mime_type,
            state="ACTIVE",
        )

    async def extract_recipe(self, request: RecipeExtractionRequest) -> dict[str, Any]:
        self.extract_calls.append(request)
        return dict(self.recipe)


def make_post(url: str = "https://example.com/post/1", **overrides) -> ScrapedPost:
    fields = {
        "id": "3141592653",
        "short_code": "ABC123",
        "input_url": url,
        "url": url,
        "caption": "Garlic butter pasta in 10 minutes #pasta",
        "hashtags": ["pasta"],
        "video_url": "https://cdn.example.com/video.mp4",
        "display_url": "https://cdn.example.com/cover.jpg",
        "owner_username": "chef",
    }
    fields.update(overrides)
    return ScrapedPost(**fields)


class RecordingSleep:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def import_repo() -> InMemoryImportJobRepository:
    return InMemoryImportJobRepository()


@pytest.fixture
def recipe_repo() -> InMemoryRecipeRepository:
    return InMemoryRecipeRepository()


@pytest.fixture
def scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture
def downloader(tmp_path: Path) -> FakeMediaDownloader:
    media_dir = tmp_path / "media"
    media_dir.mkdir()
    return FakeMediaDownloader(media_dir)


@pytest.fixture
def extractor() -> FakeRecipeExtractor:
    return FakeRecipeExtractor()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_executor(recording_sleep: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(max_attempts=3, delay_seconds=0.5, sleep=recording_sleep)


@pytest.fixture
def post_factory():
    return make_post
