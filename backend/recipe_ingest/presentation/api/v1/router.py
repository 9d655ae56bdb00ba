"""V1 API router: aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from recipe_ingest.presentation.api.v1.endpoints.health import router as health_router
from recipe_ingest.presentation.api.v1.imports_controller import router as imports_router
from recipe_ingest.presentation.api.v1.recipes_controller import router as recipes_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(imports_router)
router.include_router(recipes_router)
