from .import_job_repository import ImportJobRepository
from .recipe_repository import RecipeRepository
from .post_scraper import PostScraper
from .media_downloader import MediaDownloader
from .recipe_extractor import RecipeExtractionRequest, RecipeExtractor

__all__ = [
    "ImportJobRepository",
    "RecipeRepository",
    "PostScraper",
    "MediaDownloader",
    "RecipeExtractionRequest",
    "RecipeExtractor",
]
