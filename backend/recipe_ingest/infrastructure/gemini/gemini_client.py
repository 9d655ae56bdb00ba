"""Gemini API client: implements the RecipeExtractor interface.

Talks to the Gemini REST API (https://generativelanguage.googleapis.com)
using httpx: media goes through the resumable Files upload, is polled
until ``ACTIVE``, and is then referenced from a ``generateContent`` call
that must return recipe JSON.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from recipe_ingest.application.interfaces.recipe_extractor import (
    RecipeExtractionRequest,
    RecipeExtractor,
)
from recipe_ingest.application.schemas.recipe import RecipeData, validation_issues
from recipe_ingest.domain.entities.recipe import UploadedMedia
from recipe_ingest.domain.exceptions import MediaUploadError, RecipeExtractionError
from recipe_ingest.infrastructure.gemini.prompts import SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)

FILE_STATE_ACTIVE = "ACTIVE"
FILE_STATE_FAILED = "FAILED"
MAX_OUTPUT_TOKENS = 10000


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text[:300]
    except (ValueError, AttributeError):
        return response.text[:300]


def response_text(data: dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()


def parse_recipe_json(raw: str) -> dict[str, Any]:
    """Parse and validate model output into a plain recipe dict.

    Raises ``RecipeExtractionError`` with INVALID_JSON, NO_RECIPE or
    VALIDATION_FAILED.
    """
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`").removeprefix("json").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecipeExtractionError("INVALID_JSON", f"Model returned invalid JSON: {exc}") from exc

    if payload == {}:
        raise RecipeExtractionError("NO_RECIPE", "No recipe could be extracted from the post")
    if not isinstance(payload, dict):
        raise RecipeExtractionError("VALIDATION_FAILED", "RecipeData must be a JSON object")

    try:
        recipe = RecipeData.model_validate(payload)
    except ValidationError as exc:
        reasons = " | ".join(validation_issues(exc))
        raise RecipeExtractionError(
            "VALIDATION_FAILED", f"RecipeData validation failed: {reasons}"
        ) from exc
    return recipe.model_dump(mode="json")


class GeminiRecipeExtractor(RecipeExtractor):
    """Infrastructure adapter: uploads media to Gemini and extracts recipes."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        model: str = "gemini-2.5-flash",
        temperature: float = 0.2,
        upload_timeout: float = 120.0,
        poll_interval: float = 2.0,
        extraction_attempts: int = 3,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature
        self._upload_timeout = upload_timeout
        self._poll_interval = poll_interval
        self._extraction_attempts = max(1, extraction_attempts)
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock

    def _get_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    # ── Upload ──────────────────────────────────────────────────────

    async def upload_media(
        self, file_path: str, mime_type: str, display_name: str | None = None
    ) -> UploadedMedia:
        if not self._api_key:
            raise MediaUploadError(
                "UPLOAD_FAILED", "GEMINI_API_KEY must be configured", retryable=False
            )

        try:
            content = Path(file_path).read_bytes()
        except OSError as exc:
            raise MediaUploadError(
                "UPLOAD_FAILED", f"Cannot read media file {file_path}", retryable=False
            ) from exc

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            uploaded = await self._upload(client, content, mime_type, display_name)
            logger.info("Uploaded %s to Gemini (%d bytes)", uploaded.name, len(content))
            return await self._wait_until_active(client, uploaded)
        finally:
            if should_close:
                await client.aclose()

    async def _upload(
        self,
        client: httpx.AsyncClient,
        content: bytes,
        mime_type: str,
        display_name: str | None,
    ) -> UploadedMedia:
        start_headers = {
            **self._get_headers(),
            "X-Goog-Upload-Protocol": "resumable",
            "X-Goog-Upload-Command": "start",
            "X-Goog-Upload-Header-Content-Length": str(len(content)),
            "X-Goog-Upload-Header-Content-Type": mime_type,
        }
        metadata = {"file": {"display_name": display_name}} if display_name else {"file": {}}

        try:
            start = await client.post(
                f"{self._base_url}/upload/v1beta/files",
                headers=start_headers,
                json=metadata,
            )
            if start.status_code != 200:
                raise MediaUploadError(
                    "UPLOAD_FAILED",
                    f"Gemini upload start failed: {_error_detail(start)}",
                    status_code=start.status_code,
                    retryable=_is_transient_status(start.status_code),
                )
            upload_url = start.headers.get("x-goog-upload-url")
            if not upload_url:
                raise MediaUploadError("UPLOAD_FAILED", "Gemini did not return an upload URL")

            finish = await client.post(
                upload_url,
                headers={
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                    "Content-Type": mime_type,
                },
                content=content,
            )
        except httpx.HTTPError as exc:
            raise MediaUploadError(
                "UPLOAD_FAILED", f"Failed to upload media to Gemini: {exc}"
            ) from exc

        if finish.status_code != 200:
            raise MediaUploadError(
                "UPLOAD_FAILED",
                f"Gemini upload failed: {_error_detail(finish)}",
                status_code=finish.status_code,
                retryable=_is_transient_status(finish.status_code),
            )

        file_data = finish.json().get("file") or {}
        if not file_data.get("name"):
            raise MediaUploadError("UPLOAD_FAILED", "Gemini upload did not return a file name")
        return self._to_uploaded(file_data)

    async def _wait_until_active(
        self, client: httpx.AsyncClient, uploaded: UploadedMedia
    ) -> UploadedMedia:
        """Poll the file until it is ``ACTIVE``; ``FAILED`` or timeout raise."""
        started = self._clock()
        current = uploaded

        while True:
            if current.state == FILE_STATE_ACTIVE:
                return current
            if current.state == FILE_STATE_FAILED:
                raise MediaUploadError(
                    "FAILED_PROCESSING", "Gemini failed to process file", retryable=False
                )
            if self._clock() - started > self._upload_timeout:
                raise MediaUploadError(
                    "TIMEOUT", "Timed out while waiting for Gemini to process file"
                )

            await self._sleep(self._poll_interval)
            try:
                response = await client.get(
                    f"{self._base_url}/v1beta/{current.name}",
                    headers=self._get_headers(),
                )
            except httpx.HTTPError as exc:
                raise MediaUploadError(
                    "UPLOAD_FAILED", f"Failed to fetch Gemini file state: {exc}"
                ) from exc
            if response.status_code != 200:
                raise MediaUploadError(
                    "UPLOAD_FAILED",
                    f"Failed to fetch Gemini file state: {_error_detail(response)}",
                    status_code=response.status_code,
                )
            data = response.json()
            if data.get("state") == FILE_STATE_FAILED:
                message = (data.get("error") or {}).get("message") or "Gemini failed to process file"
                raise MediaUploadError("FAILED_PROCESSING", message, retryable=False)
            current = self._to_uploaded(data)

    @staticmethod
    def _to_uploaded(data: dict[str, Any]) -> UploadedMedia:
        return UploadedMedia(
            name=data["name"],
            uri=data.get("uri"),
            mime_type=data.get("mimeType"),
            state=data.get("state"),
        )

    # ── Extraction ──────────────────────────────────────────────────

    def _build_payload(self, request: RecipeExtractionRequest) -> dict:
        """Build the generateContent request body."""
        parts: list[dict] = [
            {
                "text": build_user_prompt(
                    caption=request.caption,
                    hashtags=request.hashtags,
                    owner_username=request.owner_username,
                    latest_comments=request.latest_comments,
                )
            }
        ]
        if request.file_uri:
            parts.append({
                "file_data": {
                    "file_uri": request.file_uri,
                    "mime_type": request.mime_type or "application/octet-stream",
                }
            })
        return {
            "contents": [{"role": "user", "parts": parts}],
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "generationConfig": {
                "temperature": self._temperature,
                "responseMimeType": "application/json",
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }

    async def extract_recipe(self, request: RecipeExtractionRequest) -> dict[str, Any]:
        """Generate recipe JSON, retrying malformed or invalid model output.

        Transport failures are raised at once as REQUEST_FAILED; retrying
        those is left to the caller.
        """
        if not self._api_key:
            raise RecipeExtractionError(
                "REQUEST_FAILED", "GEMINI_API_KEY must be configured", retryable=False
            )

        payload = self._build_payload(request)
        url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            for attempt in range(1, self._extraction_attempts + 1):
                raw = await self._generate(client, url, payload)
                try:
                    if not raw:
                        raise RecipeExtractionError("EMPTY_RESPONSE", "Gemini returned an empty response")
                    return parse_recipe_json(raw)
                except RecipeExtractionError as exc:
                    if exc.code == "NO_RECIPE" or attempt >= self._extraction_attempts:
                        raise
                    logger.warning(
                        "Extraction attempt %d/%d rejected (%s): %s",
                        attempt,
                        self._extraction_attempts,
                        exc.code,
                        exc.message,
                    )
        finally:
            if should_close:
                await client.aclose()

        # Unreachable: the final attempt returns or raises.
        raise RecipeExtractionError("VALIDATION_FAILED", "Gemini extraction failed")

    async def _generate(self, client: httpx.AsyncClient, url: str, payload: dict) -> str:
        try:
            response = await client.post(url, headers=self._get_headers(), json=payload)
        except httpx.HTTPError as exc:
            raise RecipeExtractionError("REQUEST_FAILED", f"Gemini request failed: {exc}") from exc

        if response.status_code != 200:
            raise RecipeExtractionError(
                "REQUEST_FAILED",
                f"Gemini API error ({response.status_code}): {_error_detail(response)}",
                status_code=response.status_code,
                retryable=_is_transient_status(response.status_code),
            )
        return response_text(response.json())

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._upload_timeout)
