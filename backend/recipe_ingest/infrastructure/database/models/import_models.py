"""SQLAlchemy ORM models for imports and recipes."""

import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)

from recipe_ingest.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class ImportJobModel(Base):
    """One recipe import tracked through the ingestion stages."""

    __tablename__ = "imports"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    input_url = Column(String(2000), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="queued", index=True)
    progress = Column(Integer, nullable=False, default=0)
    recipe_id = Column(String(36), nullable=True)
    error = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_imports_status_created", "status", "created_at"),
    )


class RecipeModel(Base):
    """A recipe produced by a successful import."""

    __tablename__ = "recipes"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    import_id = Column(String(36), nullable=False, index=True)
    input_url = Column(String(2000), nullable=False, index=True)
    short_code = Column(String(100), nullable=True)
    source_url = Column(String(2000), nullable=True)
    caption = Column(Text, nullable=False, default="")
    hashtags = Column(JSON, nullable=False, default=list)
    owner_username = Column(String(255), nullable=True)
    video_url = Column(Text, nullable=True)
    display_url = Column(Text, nullable=True)
    media_file_uri = Column(Text, nullable=True)
    recipe_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
