from .import_job import (
    CANCELLATION_MESSAGE,
    STAGE_ORDER,
    STAGE_PROGRESS,
    TERMINAL_STATUSES,
    ImportJob,
    ImportStatus,
)
from .recipe import (
    MediaAsset,
    MediaDownload,
    MediaType,
    Recipe,
    ScrapedPost,
    UploadedMedia,
)

__all__ = [
    "CANCELLATION_MESSAGE",
    "STAGE_ORDER",
    "STAGE_PROGRESS",
    "TERMINAL_STATUSES",
    "ImportJob",
    "ImportStatus",
    "MediaAsset",
    "MediaDownload",
    "MediaType",
    "Recipe",
    "ScrapedPost",
    "UploadedMedia",
]
