from .api_client import ImportApiClient, ImportApiError
from .models import ImportSnapshot, QueueItem
from .processing_queue import ProcessingQueue
from .progress_poller import ImportProgressPoller, PollObserver

__all__ = [
    "ImportApiClient",
    "ImportApiError",
    "ImportProgressPoller",
    "ImportSnapshot",
    "PollObserver",
    "ProcessingQueue",
    "QueueItem",
]
