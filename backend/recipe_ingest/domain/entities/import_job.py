"""Domain entity for recipe imports: one URL moving through the ingestion stages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ImportStatus(str, Enum):
    """Lifecycle states of an import.

    Status and stage are the same thing: every transition writes one value.
    """

    QUEUED = "queued"
    SCRAPING = "scraping"
    DOWNLOADING_MEDIA = "downloading_media"
    UPLOADING_MEDIA = "uploading_media"
    EXTRACTING = "extracting"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def progress(self) -> int:
        return STAGE_PROGRESS[self]


STAGE_PROGRESS: dict[ImportStatus, int] = {
    ImportStatus.QUEUED: 0,
    ImportStatus.SCRAPING: 15,
    ImportStatus.DOWNLOADING_MEDIA: 35,
    ImportStatus.UPLOADING_MEDIA: 55,
    ImportStatus.EXTRACTING: 80,
    ImportStatus.READY: 100,
    ImportStatus.FAILED: 100,
}

TERMINAL_STATUSES = frozenset({ImportStatus.READY, ImportStatus.FAILED})

# Happy-path order; FAILED sits outside it and is reachable from any non-terminal stage.
STAGE_ORDER: tuple[ImportStatus, ...] = (
    ImportStatus.QUEUED,
    ImportStatus.SCRAPING,
    ImportStatus.DOWNLOADING_MEDIA,
    ImportStatus.UPLOADING_MEDIA,
    ImportStatus.EXTRACTING,
    ImportStatus.READY,
)

CANCELLATION_MESSAGE = "Import cancelled by user"


@dataclass
class ImportJob:
    """A single recipe import tracked through its stage lifecycle.

    ``input_url`` never changes after creation. ``metadata`` collects
    stage-scoped diagnostic facts and is only ever merged into, never replaced.
    """

    input_url: str
    id: str | None = None
    status: ImportStatus = ImportStatus.QUEUED
    progress: int = 0
    recipe_id: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def stage(self) -> ImportStatus:
        """Alias of ``status`` kept for the public job contract."""
        return self.status

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_cancelled(self) -> bool:
        """True when an external actor marked the import failed with the cancellation sentinel."""
        return (
            self.status == ImportStatus.FAILED
            and self.error is not None
            and "cancelled" in self.error.lower()
        )

    def public_view(self) -> dict[str, Any]:
        """The tuple the presentation layer is allowed to depend on."""
        return {
            "id": self.id,
            "status": self.status.value,
            "stage": self.stage.value,
            "progress": self.progress,
            "error": self.error,
            "recipe_id": self.recipe_id,
        }
