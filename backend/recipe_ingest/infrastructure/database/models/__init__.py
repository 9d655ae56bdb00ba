from .import_models import ImportJobModel, RecipeModel

__all__ = [
    "ImportJobModel",
    "RecipeModel",
]
