"""Abstract repository interface (port) for recipe imports."""

from abc import ABC, abstractmethod
from typing import Any

from recipe_ingest.domain.entities.import_job import ImportJob, ImportStatus


class ImportJobRepository(ABC):
    """Port for import persistence: implemented in the infrastructure layer.

    Implementations must be read-after-write consistent: a ``get_by_id``
    issued after ``update`` returns in the same process sees the update.
    """

    @abstractmethod
    async def get_by_id(self, import_id: str) -> ImportJob | None:
        """Retrieve a single import by ID."""
        ...

    @abstractmethod
    async def create(self, job: ImportJob) -> ImportJob:
        """Persist a new import and return it with the generated ID."""
        ...

    @abstractmethod
    async def update(
        self,
        import_id: str,
        fields: dict[str, Any],
        metadata_patch: dict[str, Any] | None = None,
    ) -> ImportJob:
        """Apply ``fields`` and merge ``metadata_patch`` into existing metadata.

        Allowed field keys: ``status``, ``progress``, ``recipe_id``, ``error``.
        Refreshes ``updated_at`` and returns the stored import.
        Raises ``EntityNotFoundError`` when the import does not exist.
        """
        ...

    @abstractmethod
    async def list_imports(
        self, status: ImportStatus | None = None, limit: int = 50
    ) -> list[ImportJob]:
        """Retrieve imports, most recent first, optionally filtered by status."""
        ...

    @abstractmethod
    async def get_unfinished(self, limit: int = 50) -> list[ImportJob]:
        """Retrieve non-terminal imports ordered by creation time (FIFO)."""
        ...

    @abstractmethod
    async def find_pending_by_url(self, input_url: str) -> ImportJob | None:
        """Return a non-terminal import for ``input_url`` if one exists."""
        ...

    @abstractmethod
    async def delete(self, import_id: str) -> bool:
        """Delete an import. Returns False when it did not exist."""
        ...
