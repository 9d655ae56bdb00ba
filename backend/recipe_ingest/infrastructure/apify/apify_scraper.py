"""Apify client: implements the PostScraper interface for Instagram posts.

Runs the Apify Instagram post/reel actors synchronously through the
``run-sync-get-dataset-items`` endpoint using httpx and maps the first
dataset item to a ``ScrapedPost``.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from recipe_ingest.application.interfaces.post_scraper import PostScraper
from recipe_ingest.domain.entities.recipe import ScrapedPost
from recipe_ingest.domain.exceptions import ScrapeError

logger = logging.getLogger(__name__)

SHORTCODE_PATTERN = re.compile(r"/(?:p|reel)/([^/?#]+)", re.IGNORECASE)


def normalize_instagram_url(raw_url: str) -> str:
    """Add a scheme when missing, require an instagram host and drop the fragment."""
    url = (raw_url or "").strip()
    if not url:
        raise ScrapeError("INVALID_URL", "Instagram URL is required", retryable=False)
    if not url.startswith("http"):
        url = f"https://{url}"

    parsed = urlparse(url)
    if not parsed.netloc:
        raise ScrapeError("INVALID_URL", f"Invalid Instagram URL: {raw_url}", retryable=False)
    if "instagram." not in (parsed.hostname or ""):
        raise ScrapeError("INVALID_URL", "URL must point to instagram.com", retryable=False)
    return urlunparse(parsed._replace(fragment=""))


def detect_post_type(url: str) -> str:
    """``reel`` for reel URLs, ``post`` for everything else."""
    return "reel" if "/reel/" in normalize_instagram_url(url) else "post"


def extract_short_code(url: str) -> str:
    match = SHORTCODE_PATTERN.search(url)
    return match.group(1) if match else ""


def transform_dataset_item(raw: dict[str, Any], input_url: str, post_type: str) -> ScrapedPost:
    """Map one Apify dataset item to the domain ``ScrapedPost``."""
    if not raw:
        raise ScrapeError("TRANSIENT_ERROR", "Apify returned an empty record")

    short_code = (
        raw.get("shortCode")
        or raw.get("short_code")
        or raw.get("id")
        or extract_short_code(input_url)
    )
    if not short_code:
        raise ScrapeError(
            "TRANSIENT_ERROR", "Unable to determine Instagram shortcode from Apify payload"
        )

    images = [img for img in raw.get("images") or [] if isinstance(img, str) and img]
    if not images:
        images = [
            child["displayUrl"]
            for child in raw.get("childPosts") or []
            if isinstance(child, dict) and child.get("displayUrl")
        ]

    return ScrapedPost(
        id=str(raw.get("id") or short_code),
        short_code=short_code,
        input_url=input_url,
        url=raw.get("url") or input_url,
        caption=raw.get("caption") or "",
        hashtags=list(raw.get("hashtags") or []),
        mentions=list(raw.get("mentions") or []),
        post_type=raw.get("type") or ("Video" if post_type == "reel" else "Image"),
        video_url=raw.get("videoUrl"),
        display_url=raw.get("displayUrl"),
        images=images,
        owner_username=raw.get("ownerUsername"),
        owner_id=raw.get("ownerId"),
        latest_comments=[c for c in raw.get("latestComments") or [] if isinstance(c, dict)],
        likes_count=raw.get("likesCount"),
        comments_count=raw.get("commentsCount"),
        timestamp=raw.get("timestamp"),
    )


def error_from_response(response: httpx.Response) -> ScrapeError:
    """Translate an Apify HTTP error response into a typed ``ScrapeError``."""
    status = response.status_code
    error_type = ""
    try:
        error_type = (response.json().get("error") or {}).get("type", "")
    except (ValueError, AttributeError):
        pass

    if status == 429:
        return ScrapeError("RATE_LIMITED", "Apify rate limit exceeded", status_code=status)
    if status == 403:
        return ScrapeError(
            "PRIVATE_POST", "Instagram post is private or inaccessible", status_code=status
        )
    if status == 402 or error_type == "usage-limit-exceeded":
        return ScrapeError(
            "QUOTA_EXCEEDED", "Apify API quota has been exhausted", status_code=status
        )
    if status >= 500:
        return ScrapeError(
            "TRANSIENT_ERROR", "Apify service is temporarily unavailable", status_code=status
        )
    return ScrapeError(
        "TRANSIENT_ERROR", f"Unexpected Apify error (HTTP {status})", status_code=status
    )


class ApifyPostScraper(PostScraper):
    """Infrastructure adapter: scrapes Instagram posts via Apify actors.

    Retries rate-limited and transient failures a couple of times with
    exponential backoff before surfacing them to the pipeline.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.apify.com/v2",
        post_actor: str = "apify~instagram-post-scraper",
        reel_actor: str = "apify~instagram-reel-scraper",
        timeout: float = 120.0,
        max_retries: int = 2,
        initial_delay: float = 0.2,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        self._actors = {"post": post_actor, "reel": reel_actor}
        self._timeout = timeout
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._http_client = http_client
        self._sleep = sleep

    async def scrape(self, url: str) -> ScrapedPost:
        normalized = normalize_instagram_url(url)
        post_type = detect_post_type(normalized)
        if not self._api_token:
            raise ScrapeError(
                "TRANSIENT_ERROR", "APIFY_API_TOKEN is not configured", retryable=False
            )

        delay = self._initial_delay
        attempt = 0
        while True:
            try:
                item = await self._run_actor(self._actors[post_type], normalized)
                break
            except ScrapeError as exc:
                attempt += 1
                if attempt > self._max_retries or not exc.retryable:
                    raise
                logger.info(
                    "Apify %s (%s), retrying in %.1fs", exc.code, normalized, delay
                )
                if delay > 0:
                    await self._sleep(delay)
                delay *= 2

        return transform_dataset_item(item, normalized, post_type)

    async def _run_actor(self, actor_id: str, post_url: str) -> dict[str, Any]:
        endpoint = f"{self._base_url}/acts/{actor_id}/run-sync-get-dataset-items"
        payload = {"username": [post_url], "resultsLimit": 1}

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.post(
                    endpoint,
                    params={"token": self._api_token, "limit": 1, "clean": "true"},
                    json=payload,
                )
            except httpx.HTTPError as exc:
                raise ScrapeError(
                    "TRANSIENT_ERROR", f"Apify request failed: {exc}"
                ) from exc

            if response.status_code >= 400:
                raise error_from_response(response)

            items = response.json()
            if not isinstance(items, list) or not items:
                raise ScrapeError(
                    "PRIVATE_POST",
                    "Apify returned no data. The Instagram post might be private or unavailable.",
                )
            return items[0]
        finally:
            if should_close:
                await client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)
