"""Imports API controller: submit, inspect, cancel and stream recipe imports."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from recipe_ingest.application.schemas.imports import (
    ImportActionResponse,
    ImportListResponse,
    ImportResponse,
    SubmitImportRequest,
)
from recipe_ingest.application.services import ImportEventBroker, ImportService
from recipe_ingest.domain.entities.import_job import ImportStatus
from recipe_ingest.domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    IllegalStageTransitionError,
    InvalidImportUrlError,
)
from recipe_ingest.infrastructure.dependencies import get_event_broker, get_import_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("", response_model=ImportResponse, status_code=status.HTTP_201_CREATED)
async def submit_import(
    data: SubmitImportRequest,
    service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    """Queue a post URL for import; processing starts in the background."""
    try:
        job = await service.submit_import(data.url)
    except InvalidImportUrlError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DuplicateEntityError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "existing_id": e.existing_id},
        )
    return ImportResponse.from_entity(job)


@router.get("", response_model=ImportListResponse)
async def list_imports(
    status_filter: ImportStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    service: ImportService = Depends(get_import_service),
) -> ImportListResponse:
    """List imports, most recent first."""
    jobs = await service.list_imports(status=status_filter, limit=limit)
    return ImportListResponse(imports=[ImportResponse.from_entity(j) for j in jobs])


# ── SSE Streams ──────────────────────────────────────────────────────


@router.get("/events")
async def import_events(
    broker: ImportEventBroker = Depends(get_event_broker),
) -> StreamingResponse:
    """SSE stream of ``import_update`` events for every import."""
    return StreamingResponse(
        broker.subscribe(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.get("/{import_id}/events")
async def import_job_events(
    import_id: str,
    service: ImportService = Depends(get_import_service),
    broker: ImportEventBroker = Depends(get_event_broker),
) -> StreamingResponse:
    """SSE stream for one import: its current state, then live updates until terminal."""
    stream = await broker.follow(import_id, lambda: service.get_import(import_id))
    if stream is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


# ── Single import ────────────────────────────────────────────────────


@router.get("/{import_id}", response_model=ImportResponse)
async def get_import(
    import_id: str,
    service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    """Current stage, progress and outcome of one import."""
    job = await service.get_import(import_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
    return ImportResponse.from_entity(job)


@router.delete("/{import_id}", response_model=ImportActionResponse)
async def cancel_or_delete_import(
    import_id: str,
    permanent: bool = False,
    service: ImportService = Depends(get_import_service),
) -> ImportActionResponse:
    """Cancel a running import, or delete its record with ``?permanent=true``."""
    if permanent:
        if not await service.delete_import(import_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
        return ImportActionResponse(id=import_id, message="Import deleted")

    try:
        await service.cancel_import(import_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IllegalStageTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ImportActionResponse(id=import_id, message="Import cancelled")
