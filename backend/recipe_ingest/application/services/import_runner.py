"""Import runner: one asyncio task per submitted import."""

import asyncio
import logging
from collections.abc import Callable

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.application.services.import_pipeline import ImportPipeline
from recipe_ingest.domain.exceptions import ImportCancelledError

logger = logging.getLogger(__name__)


class ImportRunner:
    """Runs imports in the background inside FastAPI's lifespan.

    Every submitted import gets its own task running its own pipeline, so
    imports progress in parallel while each keeps a strictly sequential
    stage ladder. On start, imports left unfinished by a previous process
    are picked up again. This is the outermost boundary for pipeline
    errors: they are logged here and go no further.
    """

    def __init__(
        self,
        pipeline_factory: Callable[[], ImportPipeline],
        import_repository: ImportJobRepository,
        resume_unfinished: bool = True,
    ) -> None:
        self._pipeline_factory = pipeline_factory
        self._imports = import_repository
        self._resume_unfinished = resume_unfinished
        self._tasks: dict[str, asyncio.Task] = {}
        self._running = False

    async def start(self) -> None:
        """Start accepting imports and resume any left unfinished."""
        self._running = True
        logger.info("ImportRunner started")
        if not self._resume_unfinished:
            return
        try:
            unfinished = await self._imports.get_unfinished()
        except Exception:
            logger.exception("Could not load unfinished imports")
            return
        for job in unfinished:
            logger.info("Resuming import %s (%s)", job.id, job.status.value)
            self.submit(job.id)

    async def stop(self) -> None:
        """Cancel in-flight imports and wait for their cleanup to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("ImportRunner stopped")

    def submit(self, import_id: str) -> asyncio.Task | None:
        """Schedule ``import_id`` unless it is already running."""
        if not self._running:
            logger.warning("ImportRunner not running, import %s not scheduled", import_id)
            return None
        existing = self._tasks.get(import_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self._run(import_id), name=f"import-{import_id}")
        self._tasks[import_id] = task
        task.add_done_callback(lambda _t: self._forget(import_id, _t))
        return task

    def is_running(self, import_id: str) -> bool:
        task = self._tasks.get(import_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def _run(self, import_id: str) -> None:
        pipeline = self._pipeline_factory()
        try:
            await pipeline.process(import_id)
        except ImportCancelledError:
            logger.info("Import %s cancelled", import_id)
        except Exception:
            logger.exception("Import %s failed in background processing", import_id)

    def _forget(self, import_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(import_id) is task:
            del self._tasks[import_id]
