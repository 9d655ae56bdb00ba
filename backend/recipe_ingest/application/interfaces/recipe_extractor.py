"""Abstract interface (port) for the AI recipe extraction service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from recipe_ingest.domain.entities.recipe import UploadedMedia


@dataclass
class RecipeExtractionRequest:
    """Everything the model sees when extracting a recipe."""

    file_uri: str
    mime_type: str
    caption: str = ""
    hashtags: list[str] = field(default_factory=list)
    owner_username: str | None = None
    latest_comments: list[dict[str, Any]] = field(default_factory=list)


class RecipeExtractor(ABC):
    """Uploads media to the model's file store and extracts structured recipes."""

    @abstractmethod
    async def upload_media(
        self, file_path: str, mime_type: str, display_name: str | None = None
    ) -> UploadedMedia:
        """Upload a local file and wait until the remote copy is ready."""
        ...

    @abstractmethod
    async def extract_recipe(self, request: RecipeExtractionRequest) -> dict[str, Any]:
        """Return validated recipe data as a plain dict."""
        ...
