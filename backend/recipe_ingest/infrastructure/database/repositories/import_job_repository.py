"""SQLAlchemy implementation of the ImportJobRepository."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recipe_ingest.application.interfaces.import_job_repository import ImportJobRepository
from recipe_ingest.domain.entities.import_job import (
    TERMINAL_STATUSES,
    ImportJob,
    ImportStatus,
)
from recipe_ingest.domain.exceptions import EntityNotFoundError
from recipe_ingest.infrastructure.database.models.import_models import ImportJobModel

_UPDATABLE_FIELDS = frozenset({"status", "progress", "recipe_id", "error"})
_TERMINAL_VALUES = [status.value for status in TERMINAL_STATUSES]


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyImportJobRepository(ImportJobRepository):
    """Concrete import repository backed by SQLite or PostgreSQL via SQLAlchemy.

    Each call runs in its own session and commits before returning, so a
    cancellation written by a request handler is visible to the background
    pipeline on its next read.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_id(self, import_id: str) -> ImportJob | None:
        async with self._session_factory() as session:
            model = await session.get(ImportJobModel, import_id)
            return self._to_domain(model) if model else None

    async def create(self, job: ImportJob) -> ImportJob:
        if not job.id:
            job.id = str(uuid.uuid4())

        model = ImportJobModel(
            id=job.id,
            input_url=job.input_url,
            status=job.status.value,
            progress=job.progress,
            recipe_id=job.recipe_id,
            error=job.error,
            metadata_=dict(job.metadata),
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
        return job

    async def update(
        self,
        import_id: str,
        fields: dict[str, Any],
        metadata_patch: dict[str, Any] | None = None,
    ) -> ImportJob:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update import fields: {sorted(unknown)}")

        async with self._session_factory() as session:
            model = await session.get(ImportJobModel, import_id)
            if model is None:
                raise EntityNotFoundError("ImportJob", import_id)

            for key, value in fields.items():
                if key == "status":
                    value = ImportStatus(value).value
                setattr(model, key, value)
            if metadata_patch:
                # Assign a new dict so the JSON column is flagged dirty.
                model.metadata_ = {**(model.metadata_ or {}), **metadata_patch}
            model.updated_at = datetime.now(timezone.utc)

            job = self._to_domain(model)
            await session.commit()
            return job

    async def list_imports(
        self, status: ImportStatus | None = None, limit: int = 50
    ) -> list[ImportJob]:
        query = select(ImportJobModel)
        if status is not None:
            query = query.where(ImportJobModel.status == status.value)
        query = query.order_by(ImportJobModel.created_at.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [self._to_domain(m) for m in result.scalars().all()]

    async def get_unfinished(self, limit: int = 50) -> list[ImportJob]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ImportJobModel)
                .where(ImportJobModel.status.not_in(_TERMINAL_VALUES))
                .order_by(ImportJobModel.created_at.asc())
                .limit(limit)
            )
            return [self._to_domain(m) for m in result.scalars().all()]

    async def find_pending_by_url(self, input_url: str) -> ImportJob | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ImportJobModel)
                .where(
                    ImportJobModel.input_url == input_url,
                    ImportJobModel.status.not_in(_TERMINAL_VALUES),
                )
                .order_by(ImportJobModel.created_at.desc())
                .limit(1)
            )
            model = result.scalar_one_or_none()
            return self._to_domain(model) if model else None

    async def delete(self, import_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(ImportJobModel).where(ImportJobModel.id == import_id)
            )
            await session.commit()
            return result.rowcount > 0

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: ImportJobModel) -> ImportJob:
        return ImportJob(
            id=model.id,
            input_url=model.input_url,
            status=ImportStatus(model.status),
            progress=model.progress,
            recipe_id=model.recipe_id,
            error=model.error,
            metadata=dict(model.metadata_ or {}),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )
