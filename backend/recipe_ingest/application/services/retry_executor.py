"""Bounded retry with linear backoff for pipeline stage operations."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from recipe_ingest.application.services.cancellation import CancellationCheck
from recipe_ingest.domain.exceptions import ImportCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_STAGE_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.5

Sleep = Callable[[float], Awaitable[None]]


def to_error_message(error: BaseException) -> str:
    """Human-readable message for an error, falling back to its type name."""
    message = str(error)
    return message or type(error).__name__


class RetryExecutor:
    """Runs one stage operation up to ``max_attempts`` times.

    The delay before attempt ``n + 1`` is ``n * delay_seconds``. Errors
    whose ``retryable`` attribute is False are raised at once; anything else
    is retried until the attempts run out, then the last error is raised
    unchanged. When a ``CancellationCheck`` is given it runs before every
    attempt, so retries never outlive a cancellation by more than one delay.
    """

    def __init__(
        self,
        max_attempts: int = MAX_STAGE_ATTEMPTS,
        delay_seconds: float = RETRY_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._delay_seconds = delay_seconds
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        return attempt * self._delay_seconds

    async def run(
        self,
        label: str,
        operation: Callable[[], Awaitable[T]],
        *,
        cancellation: CancellationCheck | None = None,
    ) -> T:
        prefix = f"[import {cancellation.import_id}] " if cancellation else ""

        for attempt in range(1, self._max_attempts + 1):
            if cancellation is not None:
                await cancellation.raise_if_cancelled()

            logger.info("%s%s (attempt %d/%d)", prefix, label, attempt, self._max_attempts)
            try:
                result = await operation()
            except ImportCancelledError:
                raise
            except Exception as exc:
                retryable = getattr(exc, "retryable", True)
                logger.warning(
                    "%s%s failed (attempt %d/%d): %s",
                    prefix,
                    label,
                    attempt,
                    self._max_attempts,
                    to_error_message(exc),
                )
                if not retryable or attempt >= self._max_attempts:
                    raise
                await self._sleep(self.delay_for(attempt))
                continue

            if attempt > 1:
                logger.info("%s%s succeeded on attempt %d", prefix, label, attempt)
            return result

        # Unreachable: every iteration returns or raises.
        raise RuntimeError(f"{label} failed after {self._max_attempts} attempts")
