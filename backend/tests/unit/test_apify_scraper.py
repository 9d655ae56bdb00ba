"""Unit tests for the ApifyPostScraper."""

import httpx
import pytest

from recipe_ingest.domain.exceptions import ScrapeError
from recipe_ingest.infrastructure.apify.apify_scraper import (
    ApifyPostScraper,
    detect_post_type,
    error_from_response,
    extract_short_code,
    normalize_instagram_url,
    transform_dataset_item,
)

POST_URL = "https://www.instagram.com/p/ABC123/"
REEL_URL = "https://www.instagram.com/reel/XYZ789/"


# ── Helpers ──


def _apify_item(**overrides) -> dict:
    item = {
        "id": "3141592653",
        "shortCode": "ABC123",
        "url": POST_URL,
        "type": "Video",
        "caption": "Garlic butter pasta #pasta",
        "hashtags": ["pasta"],
        "videoUrl": "https://cdn.example.com/video.mp4",
        "displayUrl": "https://cdn.example.com/cover.jpg",
        "ownerUsername": "chef",
        "latestComments": [{"ownerUsername": "chef", "text": "Recipe below"}, "junk"],
        "likesCount": 10,
    }
    item.update(overrides)
    return item


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _scraper(handler, sleep=None, **kwargs) -> ApifyPostScraper:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApifyPostScraper(
        api_token="test-token",
        http_client=client,
        sleep=sleep or RecordingSleep(),
        **kwargs,
    )


# ── URL helpers ──


def test_normalize_adds_scheme_and_drops_fragment():
    assert normalize_instagram_url("instagram.com/p/ABC123/#x") == "https://instagram.com/p/ABC123/"


@pytest.mark.parametrize("raw", ["", "https://example.com/p/ABC123/", "https://"])
def test_normalize_rejects_non_instagram_urls(raw):
    with pytest.raises(ScrapeError) as exc_info:
        normalize_instagram_url(raw)
    assert exc_info.value.code == "INVALID_URL"
    assert exc_info.value.retryable is False


def test_post_type_and_short_code():
    assert detect_post_type(REEL_URL) == "reel"
    assert detect_post_type(POST_URL) == "post"
    assert extract_short_code(REEL_URL) == "XYZ789"
    assert extract_short_code("https://www.instagram.com/chef/") == ""


# ── Payload mapping ──


def test_transform_maps_apify_fields():
    post = transform_dataset_item(_apify_item(), POST_URL, "post")

    assert post.short_code == "ABC123"
    assert post.video_url == "https://cdn.example.com/video.mp4"
    assert post.owner_username == "chef"
    assert post.latest_comments == [{"ownerUsername": "chef", "text": "Recipe below"}]
    assert post.input_url == POST_URL


def test_transform_falls_back_to_child_post_images():
    item = _apify_item(images=[], childPosts=[{"displayUrl": "https://cdn.example.com/1.jpg"}, {}])
    post = transform_dataset_item(item, POST_URL, "post")
    assert post.images == ["https://cdn.example.com/1.jpg"]


def test_transform_uses_url_short_code_when_payload_lacks_one():
    item = _apify_item(shortCode=None, id=None)
    post = transform_dataset_item(item, REEL_URL, "reel")
    assert post.short_code == "XYZ789"


@pytest.mark.parametrize(
    "status, body, code, retryable",
    [
        (429, {}, "RATE_LIMITED", True),
        (403, {}, "PRIVATE_POST", False),
        (402, {}, "QUOTA_EXCEEDED", False),
        (400, {"error": {"type": "usage-limit-exceeded"}}, "QUOTA_EXCEEDED", False),
        (503, {}, "TRANSIENT_ERROR", True),
    ],
)
def test_error_from_response(status, body, code, retryable):
    error = error_from_response(httpx.Response(status, json=body))
    assert error.code == code
    assert error.retryable is retryable
    assert error.status_code == status


# ── Scraping ──


@pytest.mark.asyncio
async def test_scrape_calls_post_actor():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[_apify_item()])

    post = await _scraper(handler).scrape("instagram.com/p/ABC123/")

    assert post.short_code == "ABC123"
    request = requests[0]
    assert request.url.path == "/v2/acts/apify~instagram-post-scraper/run-sync-get-dataset-items"
    assert request.url.params["token"] == "test-token"
    assert b'"resultsLimit": 1' in request.content or b'"resultsLimit":1' in request.content


@pytest.mark.asyncio
async def test_scrape_uses_reel_actor_for_reels():
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[_apify_item(shortCode="XYZ789")])

    await _scraper(handler).scrape(REEL_URL)

    assert "apify~instagram-reel-scraper" in paths[0]


@pytest.mark.asyncio
async def test_empty_dataset_means_private_post():
    scraper = _scraper(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(ScrapeError) as exc_info:
        await scraper.scrape(POST_URL)

    assert exc_info.value.code == "PRIVATE_POST"


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_backoff():
    responses = [httpx.Response(429), httpx.Response(429), httpx.Response(200, json=[_apify_item()])]
    sleep = RecordingSleep()

    post = await _scraper(lambda request: responses.pop(0), sleep=sleep).scrape(POST_URL)

    assert post.short_code == "ABC123"
    assert sleep.delays == [0.2, 0.4]


@pytest.mark.asyncio
async def test_transient_errors_surface_after_internal_retries():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(502)

    with pytest.raises(ScrapeError) as exc_info:
        await _scraper(handler).scrape(POST_URL)

    assert exc_info.value.code == "TRANSIENT_ERROR"
    assert exc_info.value.retryable
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_private_post_is_not_retried():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(403)

    with pytest.raises(ScrapeError):
        await _scraper(handler).scrape(POST_URL)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_network_failure_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ScrapeError) as exc_info:
        await _scraper(handler, max_retries=0).scrape(POST_URL)

    assert exc_info.value.code == "TRANSIENT_ERROR"


@pytest.mark.asyncio
async def test_missing_token_fails_without_retry():
    scraper = ApifyPostScraper(api_token="")

    with pytest.raises(ScrapeError) as exc_info:
        await scraper.scrape(POST_URL)

    assert exc_info.value.retryable is False
