"""Pydantic schemas for the imports API."""

from pydantic import BaseModel, Field

from recipe_ingest.domain.entities.import_job import ImportJob, ImportStatus


class SubmitImportRequest(BaseModel):
    """Request body for submitting a post URL for import."""

    url: str = Field(min_length=1, max_length=2000)


class ImportResponse(BaseModel):
    """Import representation returned to clients.

    ``status``, ``stage``, ``progress``, ``error`` and ``recipe_id`` are the
    contract; the rest is identification.
    """

    id: str
    input_url: str
    status: ImportStatus
    stage: ImportStatus
    progress: int
    error: str | None = None
    recipe_id: str | None = None
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, job: ImportJob) -> "ImportResponse":
        return cls(
            id=job.id,
            input_url=job.input_url,
            status=job.status,
            stage=job.stage,
            progress=job.progress,
            error=job.error,
            recipe_id=job.recipe_id,
            created_at=job.created_at.isoformat(),
            updated_at=job.updated_at.isoformat(),
        )


class ImportListResponse(BaseModel):
    imports: list[ImportResponse]


class ImportActionResponse(BaseModel):
    """Response after cancelling or deleting an import."""

    id: str
    message: str
