"""Import Service: submission, lookup, cancellation and deletion of imports."""

import logging
from urllib.parse import urlparse, urlunparse

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.application.interfaces.recipe_repository import RecipeRepository
from recipe_ingest.application.services.import_runner import ImportRunner
from recipe_ingest.application.services.stage_transitions import StageTransitions
from recipe_ingest.domain.entities.import_job import (
    CANCELLATION_MESSAGE,
    ImportJob,
    ImportStatus,
)
from recipe_ingest.domain.entities.recipe import Recipe
from recipe_ingest.domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    IllegalStageTransitionError,
    InvalidImportUrlError,
)

logger = logging.getLogger(__name__)


def normalize_import_url(raw_url: str | None) -> str:
    """Trim, default the scheme to https and drop the fragment.

    Raises ``InvalidImportUrlError`` for empty input, non-http(s) schemes or
    a missing host.
    """
    url = (raw_url or "").strip()
    if not url:
        raise InvalidImportUrlError("Missing post URL.")
    if "://" not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidImportUrlError(f"Invalid post URL: {raw_url}")
    return urlunparse(parsed._replace(fragment=""))


class ImportService:
    """Application service for the import lifecycle seen from the API."""

    def __init__(
        self,
        import_repository: ImportJobRepository,
        recipe_repository: RecipeRepository,
        transitions: StageTransitions,
        runner: ImportRunner | None = None,
    ) -> None:
        self._imports = import_repository
        self._recipes = recipe_repository
        self._transitions = transitions
        self._runner = runner

    async def submit_import(self, raw_url: str) -> ImportJob:
        """Create a queued import for ``raw_url`` and hand it to the runner.

        Raises ``DuplicateEntityError`` when the URL already produced a recipe
        or is being processed right now.
        """
        url = normalize_import_url(raw_url)

        existing_recipe = await self._recipes.find_by_input_url(url)
        if existing_recipe is not None:
            raise DuplicateEntityError("Recipe", "input_url", url, existing_id=existing_recipe.id)

        pending = await self._imports.find_pending_by_url(url)
        if pending is not None:
            raise DuplicateEntityError("ImportJob", "input_url", url, existing_id=pending.id)

        job = await self._imports.create(ImportJob(input_url=url))
        logger.info("Queued import %s for %s", job.id, url)

        if self._runner is not None:
            self._runner.submit(job.id)
        return job

    async def get_import(self, import_id: str) -> ImportJob | None:
        return await self._imports.get_by_id(import_id)

    async def list_imports(
        self, status: ImportStatus | None = None, limit: int = 50
    ) -> list[ImportJob]:
        return await self._imports.list_imports(status=status, limit=limit)

    async def cancel_import(self, import_id: str) -> ImportJob:
        """Mark a running import as cancelled.

        The running pipeline notices on its next cancellation check. Raises
        ``IllegalStageTransitionError`` for imports that already finished.
        """
        job = await self._imports.get_by_id(import_id)
        if job is None:
            raise EntityNotFoundError("ImportJob", import_id)
        if job.is_terminal:
            raise IllegalStageTransitionError(import_id, job.status.value, ImportStatus.FAILED.value)

        cancelled = await self._transitions.transition(
            job,
            ImportStatus.FAILED,
            error=CANCELLATION_MESSAGE,
            metadata_patch={"cancelled_from": job.status.value},
        )
        logger.info("Import %s cancelled at stage %s", import_id, job.status.value)
        return cancelled

    async def delete_import(self, import_id: str) -> bool:
        """Permanently delete an import record."""
        deleted = await self._imports.delete(import_id)
        if deleted:
            logger.info("Deleted import %s", import_id)
        return deleted

    async def get_recipe(self, recipe_id: str) -> Recipe | None:
        return await self._recipes.get_by_id(recipe_id)
