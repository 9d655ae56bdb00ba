"""Recipes API controller: read recipes produced by imports."""

from fastapi import APIRouter, Depends, HTTPException, status

from recipe_ingest.application.schemas.recipe import RecipeResponse
from recipe_ingest.application.services import ImportService
from recipe_ingest.infrastructure.dependencies import get_import_service

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: str,
    service: ImportService = Depends(get_import_service),
) -> RecipeResponse:
    """Retrieve a stored recipe by ID."""
    recipe = await service.get_recipe(recipe_id)
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return RecipeResponse.from_entity(recipe)
