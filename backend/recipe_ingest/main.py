"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_ingest.config import get_settings
from recipe_ingest.application.services import ImportRunner
from recipe_ingest.infrastructure.database import Base, engine
from recipe_ingest.infrastructure.database.session import sqlite_directory
from recipe_ingest.infrastructure.dependencies import (
    build_import_pipeline,
    get_event_broker,
    get_import_repository,
    set_import_runner,
)
from recipe_ingest.infrastructure.logging.log_config import setup_logging
from recipe_ingest.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: create tables, start the import runner."""
    settings = get_settings()
    setup_logging()

    # 1. Ensure the SQLite directory exists, then create all tables
    db_dir = sqlite_directory(settings.database_url)
    if db_dir is not None:
        db_dir.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # 2. Start the import runner (resumes unfinished imports)
    runner = ImportRunner(
        pipeline_factory=build_import_pipeline,
        import_repository=get_import_repository(),
        resume_unfinished=settings.resume_queued_on_startup,
    )
    await runner.start()
    set_import_runner(runner)

    yield

    # Shutdown
    set_import_runner(None)
    await runner.stop()
    await get_event_broker().shutdown()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recipe_ingest.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
