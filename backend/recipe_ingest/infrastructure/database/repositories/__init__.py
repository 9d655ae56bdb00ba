from .import_job_repository import SQLAlchemyImportJobRepository
from .recipe_repository import SQLAlchemyRecipeRepository

__all__ = [
    "SQLAlchemyImportJobRepository",
    "SQLAlchemyRecipeRepository",
]
