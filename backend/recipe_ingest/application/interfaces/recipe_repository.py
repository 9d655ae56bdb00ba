"""Abstract repository interface (port) for stored recipes."""

from abc import ABC, abstractmethod

from recipe_ingest.domain.entities.recipe import Recipe


class RecipeRepository(ABC):
    """Port for recipe persistence."""

    @abstractmethod
    async def get_by_id(self, recipe_id: str) -> Recipe | None:
        ...

    @abstractmethod
    async def create(self, recipe: Recipe) -> Recipe:
        """Persist a new recipe and return it with its ID."""
        ...

    @abstractmethod
    async def find_by_input_url(self, input_url: str) -> Recipe | None:
        ...
