from .imports import (
    ImportActionResponse,
    ImportListResponse,
    ImportResponse,
    SubmitImportRequest,
)
from .recipe import (
    Ingredient,
    Macros,
    RecipeData,
    RecipeResponse,
    Servings,
    Step,
)

__all__ = [
    "ImportActionResponse",
    "ImportListResponse",
    "ImportResponse",
    "SubmitImportRequest",
    "Ingredient",
    "Macros",
    "RecipeData",
    "RecipeResponse",
    "Servings",
    "Step",
]
