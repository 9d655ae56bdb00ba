"""Abstract interface (port) for downloading post media to local storage."""

from abc import ABC, abstractmethod

from recipe_ingest.domain.entities.recipe import MediaDownload


class MediaDownloader(ABC):
    """Downloads image/video bytes into a temporary file owned by the caller."""

    @abstractmethod
    async def download(self, url: str, filename: str | None = None) -> MediaDownload:
        """Fetch ``url`` to local storage.

        Raises ``MediaDownloadError`` when the content is too large or is
        not an image/video type.
        """
        ...

    @abstractmethod
    async def cleanup(self, file_path: str | None) -> None:
        """Delete a downloaded file. Missing files are not an error."""
        ...
