"""SQLAlchemy implementation of the RecipeRepository."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recipe_ingest.application.interfaces.recipe_repository import RecipeRepository
from recipe_ingest.domain.entities.recipe import Recipe
from recipe_ingest.infrastructure.database.models.import_models import RecipeModel
from recipe_ingest.infrastructure.database.repositories.import_job_repository import _as_utc


class SQLAlchemyRecipeRepository(RecipeRepository):
    """Concrete recipe repository; one committed session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_id(self, recipe_id: str) -> Recipe | None:
        async with self._session_factory() as session:
            model = await session.get(RecipeModel, recipe_id)
            return self._to_domain(model) if model else None

    async def create(self, recipe: Recipe) -> Recipe:
        if not recipe.id:
            recipe.id = str(uuid.uuid4())

        model = RecipeModel(
            id=recipe.id,
            import_id=recipe.import_id,
            input_url=recipe.input_url,
            short_code=recipe.short_code,
            source_url=recipe.source_url,
            caption=recipe.caption,
            hashtags=list(recipe.hashtags),
            owner_username=recipe.owner_username,
            video_url=recipe.video_url,
            display_url=recipe.display_url,
            media_file_uri=recipe.media_file_uri,
            recipe_data=recipe.recipe_data,
            created_at=recipe.created_at,
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
        return recipe

    async def find_by_input_url(self, input_url: str) -> Recipe | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecipeModel)
                .where(RecipeModel.input_url == input_url)
                .order_by(RecipeModel.created_at.desc())
                .limit(1)
            )
            model = result.scalar_one_or_none()
            return self._to_domain(model) if model else None

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: RecipeModel) -> Recipe:
        return Recipe(
            id=model.id,
            import_id=model.import_id,
            input_url=model.input_url,
            recipe_data=dict(model.recipe_data or {}),
            short_code=model.short_code,
            source_url=model.source_url,
            caption=model.caption or "",
            hashtags=list(model.hashtags or []),
            owner_username=model.owner_username,
            video_url=model.video_url,
            display_url=model.display_url,
            media_file_uri=model.media_file_uri,
            created_at=_as_utc(model.created_at),
        )
