"""Cooperative cancellation backed by the import store."""

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.domain.entities.import_job import ImportJob
from recipe_ingest.domain.exceptions import EntityNotFoundError, ImportCancelledError


class CancellationCheck:
    """Re-reads the persisted import to see whether someone cancelled it.

    Cancellation is a ``failed`` status carrying the cancellation sentinel
    in ``error``; there is no in-memory flag, so a write from any process
    is observed on the next check.
    """

    def __init__(self, repository: ImportJobRepository, import_id: str) -> None:
        self._repo = repository
        self._import_id = import_id

    @property
    def import_id(self) -> str:
        return self._import_id

    async def raise_if_cancelled(self) -> ImportJob:
        """Return the fresh import, or raise ``ImportCancelledError``."""
        job = await self._repo.get_by_id(self._import_id)
        if job is None:
            raise EntityNotFoundError("ImportJob", self._import_id)
        if job.is_cancelled:
            raise ImportCancelledError(self._import_id)
        return job
