"""HTTP media downloader: streams post images/videos to a temp directory.

Storage layout:
    <media_dir>/<sanitised filename>      one file per import, removed after use
"""

import logging
import mimetypes
import re
import tempfile
import uuid
from pathlib import Path
from urllib.parse import urlparse

import httpx

from recipe_ingest.application.interfaces.media_downloader import MediaDownloader
from recipe_ingest.domain.entities.recipe import MediaDownload, MediaType
from recipe_ingest.domain.exceptions import MediaDownloadError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".heic", ".heif",
})
VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".mov", ".m4v", ".webm", ".avi", ".mpeg", ".mpg", ".mkv",
})

DEFAULT_MAX_BYTES = 20 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 30.0


def default_media_dir() -> Path:
    return Path(tempfile.gettempdir()) / "recipe-ingest-media"


def _extension(url: str) -> str:
    return Path(urlparse(url).path).suffix.lower()


def detect_media_type(url: str, mime_type: str | None) -> MediaType | None:
    """Classify by MIME type first, then by the URL's file extension."""
    if mime_type:
        if mime_type.startswith("image/"):
            return MediaType.IMAGE
        if mime_type.startswith("video/"):
            return MediaType.VIDEO

    extension = _extension(url)
    if extension in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return None


def sanitise_filename(name: str) -> str:
    """Replace anything outside ``[A-Za-z0-9._-]`` with underscores."""
    return re.sub(r"[^A-Za-z0-9._-]", "_", name)


def _too_large(limit: int) -> MediaDownloadError:
    return MediaDownloadError(
        "FILE_TOO_LARGE", f"Media file exceeds maximum allowed size of {limit} bytes"
    )


class HttpMediaDownloader(MediaDownloader):
    """Infrastructure adapter: downloads media over HTTP with a size cap.

    The size limit is enforced twice: against ``Content-Length`` before
    any bytes are written, and against the running byte count while
    streaming, so servers that lie about (or omit) the length are caught.
    """

    def __init__(
        self,
        media_dir: str | Path | None = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._media_dir = Path(media_dir) if media_dir else default_media_dir()
        self._max_bytes = max_bytes
        self._timeout = timeout
        self._http_client = http_client

    @property
    def media_dir(self) -> Path:
        return self._media_dir

    async def download(self, url: str, filename: str | None = None) -> MediaDownload:
        parsed = urlparse(url or "")
        if not parsed.scheme or not parsed.netloc:
            raise MediaDownloadError("INVALID_URL", f"Invalid media URL: {url}")
        if parsed.scheme not in ("http", "https"):
            raise MediaDownloadError(
                "INVALID_URL", f"Unsupported protocol {parsed.scheme}", retryable=False
            )

        self._media_dir.mkdir(parents=True, exist_ok=True)
        name = sanitise_filename(filename) if filename else f"{uuid.uuid4()}{_extension(url)}"
        file_path = self._media_dir / name

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                async with client.stream("GET", url, follow_redirects=True) as response:
                    if response.status_code != 200:
                        raise MediaDownloadError(
                            "DOWNLOAD_FAILED",
                            f"Failed to download media. HTTP {response.status_code}",
                            status_code=response.status_code,
                        )

                    mime_type = self._resolve_mime_type(url, response)
                    media_type = detect_media_type(url, mime_type)
                    if media_type is None:
                        raise MediaDownloadError(
                            "UNSUPPORTED_MEDIA_TYPE", f"Unsupported media type for url {url}"
                        )

                    content_length = response.headers.get("content-length")
                    if content_length and content_length.isdigit():
                        if int(content_length) > self._max_bytes:
                            raise _too_large(self._max_bytes)

                    size = await self._write_stream(response, file_path)
            except httpx.HTTPError as exc:
                self._remove_partial(file_path)
                raise MediaDownloadError(
                    "NETWORK_ERROR", f"Failed to download media: {exc}"
                ) from exc
        finally:
            if should_close:
                await client.aclose()

        logger.info("Downloaded %s media: %s (%d bytes)", media_type.value, file_path, size)
        return MediaDownload(
            file_path=str(file_path),
            size=size,
            mime_type=mime_type,
            media_type=media_type,
        )

    async def cleanup(self, file_path: str | None) -> None:
        if not file_path:
            return
        try:
            Path(file_path).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise MediaDownloadError(
                "WRITE_FAILED", f"Failed to remove media file {file_path}", retryable=False
            ) from exc

    async def _write_stream(self, response: httpx.Response, file_path: Path) -> int:
        written = 0
        try:
            with file_path.open("wb") as handle:
                async for chunk in response.aiter_bytes():
                    written += len(chunk)
                    if written > self._max_bytes:
                        raise _too_large(self._max_bytes)
                    handle.write(chunk)
        except MediaDownloadError:
            self._remove_partial(file_path)
            raise
        except OSError as exc:
            self._remove_partial(file_path)
            raise MediaDownloadError("WRITE_FAILED", "Failed to write media file") from exc
        except httpx.HTTPError:
            self._remove_partial(file_path)
            raise
        return written

    @staticmethod
    def _resolve_mime_type(url: str, response: httpx.Response) -> str:
        header = response.headers.get("content-type", "")
        mime_type = header.split(";", 1)[0].strip().lower()
        if not mime_type or mime_type == "application/octet-stream":
            guessed = mimetypes.guess_type(urlparse(url).path)[0]
            if guessed:
                return guessed
        return mime_type or "application/octet-stream"

    @staticmethod
    def _remove_partial(file_path: Path) -> None:
        try:
            file_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove partial download %s", file_path)

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)
