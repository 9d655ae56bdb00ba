"""Stage transitions: the only writer of an import's status and progress.

A transition sets status (and therefore stage and progress) and merges a
metadata patch in one repository update. Which stage comes next is decided
by the pipeline.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.domain.entities.import_job import STAGE_ORDER, ImportJob, ImportStatus
from recipe_ingest.domain.exceptions import IllegalStageTransitionError

logger = logging.getLogger(__name__)

ImportUpdateListener = Callable[[ImportJob], Awaitable[None]]


def is_legal_transition(current: ImportStatus, target: ImportStatus) -> bool:
    """Whether ``current → target`` follows the stage ladder.

    Terminal imports never move. ``failed`` is reachable from any other
    stage. ``scraping`` may be re-entered from any non-terminal stage so an
    interrupted run can start over; every other step must be the immediate
    successor of ``current``.
    """
    if current.is_terminal:
        return False
    if target == ImportStatus.FAILED or target == ImportStatus.SCRAPING:
        return True
    if target not in STAGE_ORDER:
        return False
    return STAGE_ORDER.index(target) == STAGE_ORDER.index(current) + 1


def build_stage_update(
    target: ImportStatus,
    *,
    error: str | None = None,
    recipe_id: str | None = None,
) -> dict[str, Any]:
    """Fields written by a transition into ``target``."""
    fields: dict[str, Any] = {
        "status": target,
        "progress": target.progress,
        "error": error,
    }
    if recipe_id is not None:
        fields["recipe_id"] = recipe_id
    return fields


def stage_metadata(stage: ImportStatus, **extra: Any) -> dict[str, Any]:
    """Stage-start metadata: a ``<stage>_started_at`` timestamp plus stage facts."""
    return {
        f"{stage.value}_started_at": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


class StageTransitions:
    """Validates and persists stage changes, then notifies a listener.

    The listener (normally the SSE event broker) is best-effort: its
    failures are logged and never affect the persisted transition.
    """

    def __init__(
        self,
        repository: ImportJobRepository,
        listener: ImportUpdateListener | None = None,
    ) -> None:
        self._repo = repository
        self._listener = listener

    async def transition(
        self,
        job: ImportJob,
        target: ImportStatus,
        *,
        error: str | None = None,
        recipe_id: str | None = None,
        metadata_patch: dict[str, Any] | None = None,
    ) -> ImportJob:
        """Move ``job`` to ``target`` and return the stored import."""
        if not is_legal_transition(job.status, target):
            raise IllegalStageTransitionError(job.id or "?", job.status.value, target.value)

        fields = build_stage_update(target, error=error, recipe_id=recipe_id)
        updated = await self._repo.update(job.id, fields, metadata_patch)
        logger.debug(
            "Import %s: %s → %s (progress=%d)",
            job.id,
            job.status.value,
            updated.status.value,
            updated.progress,
        )
        await self._notify(updated)
        return updated

    async def _notify(self, job: ImportJob) -> None:
        if self._listener is None:
            return
        try:
            await self._listener(job)
        except Exception:
            logger.exception("Failed to publish update for import %s", job.id)
