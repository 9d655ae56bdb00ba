from .media_downloader import HttpMediaDownloader

__all__ = ["HttpMediaDownloader"]
