from .apify_scraper import ApifyPostScraper

__all__ = ["ApifyPostScraper"]
