"""Abstract interface (port) for the social-media scraping service."""

from abc import ABC, abstractmethod

from recipe_ingest.domain.entities.recipe import ScrapedPost


class PostScraper(ABC):
    """Fetches caption, media references and owner metadata for a post URL.

    Failures are raised as ``ScrapeError`` with a code; only
    ``RATE_LIMITED`` and ``TRANSIENT_ERROR`` are marked retryable.
    """

    @abstractmethod
    async def scrape(self, url: str) -> ScrapedPost:
        ...
