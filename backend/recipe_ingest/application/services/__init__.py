from .cancellation import CancellationCheck
from .import_event_broker import ImportEventBroker
from .import_pipeline import ImportPipeline
from .import_runner import ImportRunner
from .import_service import ImportService
from .retry_executor import RetryExecutor
from .stage_transitions import StageTransitions

__all__ = [
    "CancellationCheck",
    "ImportEventBroker",
    "ImportPipeline",
    "ImportRunner",
    "ImportService",
    "RetryExecutor",
    "StageTransitions",
]
