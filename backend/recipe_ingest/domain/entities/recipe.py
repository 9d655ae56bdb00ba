"""Domain entities for scraped posts, pipeline media artefacts and stored recipes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass
class ScrapedPost:
    """Caption, media references and owner metadata returned by the scraper."""

    id: str
    short_code: str
    input_url: str
    url: str
    caption: str = ""
    hashtags: list[str] = field(default_factory=list)
    mentions: list[str] = field(default_factory=list)
    post_type: str = "Image"
    video_url: str | None = None
    display_url: str | None = None
    images: list[str] = field(default_factory=list)
    owner_username: str | None = None
    owner_id: str | None = None
    latest_comments: list[dict[str, Any]] = field(default_factory=list)
    likes_count: int | None = None
    comments_count: int | None = None
    timestamp: str | None = None


@dataclass
class MediaAsset:
    """The single media reference chosen from a post for extraction."""

    url: str
    media_type: MediaType


@dataclass
class MediaDownload:
    """A media file downloaded to local temporary storage."""

    file_path: str
    size: int
    mime_type: str
    media_type: MediaType


@dataclass
class UploadedMedia:
    """A media file registered with the extraction model's file store."""

    name: str
    uri: str | None = None
    mime_type: str | None = None
    state: str | None = None

    @property
    def reference(self) -> str:
        return self.uri or self.name


@dataclass
class Recipe:
    """The output artefact of a successful import.

    Denormalizes the scraped post next to the structured ``recipe_data``
    produced by extraction.
    """

    import_id: str
    input_url: str
    recipe_data: dict[str, Any]
    id: str | None = None
    short_code: str | None = None
    source_url: str | None = None
    caption: str = ""
    hashtags: list[str] = field(default_factory=list)
    owner_username: str | None = None
    video_url: str | None = None
    display_url: str | None = None
    media_file_uri: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def title(self) -> str | None:
        return self.recipe_data.get("title")
