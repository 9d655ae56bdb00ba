"""HTTP client for the imports API: request/response calls plus SSE updates."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable

import httpx

from recipe_ingest.client.models import ImportSnapshot

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[ImportSnapshot | None], None]


class ImportApiError(Exception):
    """Raised when the imports API answers with an error status."""

    def __init__(self, status_code: int, message: str, existing_id: str | None = None):
        self.status_code = status_code
        self.message = message
        self.existing_id = existing_id
        super().__init__(f"Imports API error ({status_code}): {message}")


def _raise_for_error(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    detail = None
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        pass

    existing_id = None
    if isinstance(detail, dict):
        existing_id = detail.get("existing_id")
        message = detail.get("message") or response.reason_phrase
    else:
        message = detail if isinstance(detail, str) else response.reason_phrase
    raise ImportApiError(response.status_code, message, existing_id=existing_id)


class ImportApiClient:
    """Talks to ``/api/v1/imports`` over httpx.

    An injected ``http_client`` is used as-is (its base URL is ignored in
    favour of ``base_url``) and never closed by this class.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8020",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout
        self._owns_client = http_client is None

    def _url(self, path: str) -> str:
        return f"{self._base_url}/api/v1/imports{path}"

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def submit(self, url: str) -> ImportSnapshot:
        """Queue ``url`` for import. A 409 carries the existing import/recipe id."""
        response = await self._client().post(self._url(""), json={"url": url})
        _raise_for_error(response)
        return ImportSnapshot.from_payload(response.json())

    async def get(self, import_id: str) -> ImportSnapshot:
        response = await self._client().get(self._url(f"/{import_id}"))
        _raise_for_error(response)
        return ImportSnapshot.from_payload(response.json())

    async def cancel(self, import_id: str) -> None:
        response = await self._client().delete(self._url(f"/{import_id}"))
        _raise_for_error(response)

    async def stream_events(self, import_id: str) -> AsyncIterator[ImportSnapshot]:
        """Yield a snapshot for every ``import_update`` event of one import.

        The server ends the stream after the import's terminal event.
        """
        async with self._client().stream(
            "GET",
            self._url(f"/{import_id}/events"),
            timeout=httpx.Timeout(self._timeout, read=None),
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                _raise_for_error(response)

            event_type = "message"
            data_lines: list[str] = []
            async for line in response.aiter_lines():
                if line.startswith(":"):
                    continue
                if line.startswith("event:"):
                    event_type = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[len("data:"):].strip())
                elif not line and data_lines:
                    if event_type == "import_update":
                        yield ImportSnapshot.from_payload(json.loads("\n".join(data_lines)))
                    event_type = "message"
                    data_lines = []

    def subscribe(self, import_id: str, callback: SnapshotCallback) -> Callable[[], None]:
        """Follow one import in the background; returns an unsubscribe callable.

        ``callback`` receives each snapshot, or ``None`` once when the import
        no longer exists.
        """
        task = asyncio.create_task(
            self._follow(import_id, callback), name=f"import-events-{import_id}"
        )

        def unsubscribe() -> None:
            if not task.done() and task is not asyncio.current_task():
                task.cancel()

        return unsubscribe

    async def _follow(self, import_id: str, callback: SnapshotCallback) -> None:
        try:
            async for snapshot in self.stream_events(import_id):
                callback(snapshot)
        except ImportApiError as exc:
            if exc.status_code == 404:
                callback(None)
            else:
                logger.warning("Event stream for import %s failed: %s", import_id, exc)
        except httpx.HTTPError as exc:
            logger.warning("Event stream for import %s dropped: %s", import_id, exc)
