"""Client progress poller: backs off while an import sits in one stage.

Each polled import runs its own asyncio task with its own interval:

    poll → status changed?  → notify, reset interval to 1s
         → terminal?        → stop
         → 60s no change?   → report a local ``failed`` and stop
         → otherwise        → sleep(interval); interval = min(interval * 1.5, 30s)

Fetch errors are reported and then treated like an unchanged status, so
the no-progress timeout is the only thing that ends polling early. The
poller never writes to the server; its timeout failure is local only.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from recipe_ingest.client.models import ImportSnapshot, QueueItem, is_terminal_status

logger = logging.getLogger(__name__)

INITIAL_POLL_INTERVAL = 1.0
MAX_POLL_INTERVAL = 30.0
BACKOFF_MULTIPLIER = 1.5
NO_PROGRESS_TIMEOUT = 60.0

NO_PROGRESS_MESSAGE = "No progress for 60 seconds"

FetchImport = Callable[[str], Awaitable[ImportSnapshot]]


class PollObserver:
    """Receives poller notifications. Override what you need."""

    def on_status_change(self, import_id: str, status: str, snapshot: ImportSnapshot) -> None:
        pass

    def on_error(self, import_id: str, error: Exception) -> None:
        pass

    def on_polling_stop(self, import_id: str) -> None:
        pass


@dataclass
class PollState:
    """Per-import polling state, owned by the poller."""

    interval: float
    last_progress_at: float
    last_status: str | None = None
    consecutive_errors: int = 0
    active: bool = True
    task: asyncio.Task | None = None


class ImportProgressPoller:
    """Polls imports independently until they finish or stall.

    ``clock`` and ``sleep`` are injectable so tests can drive simulated time.
    """

    def __init__(
        self,
        fetch: FetchImport,
        observer: PollObserver | None = None,
        *,
        initial_interval: float = INITIAL_POLL_INTERVAL,
        max_interval: float = MAX_POLL_INTERVAL,
        multiplier: float = BACKOFF_MULTIPLIER,
        no_progress_timeout: float = NO_PROGRESS_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetch = fetch
        self._observer = observer or PollObserver()
        self._initial_interval = initial_interval
        self._max_interval = max_interval
        self._multiplier = multiplier
        self._no_progress_timeout = no_progress_timeout
        self._clock = clock
        self._sleep = sleep
        self._states: dict[str, PollState] = {}
        self._enabled = True

    # ── Lifecycle ───────────────────────────────────────────────────

    def start(self, import_id: str, status: str | None = None) -> asyncio.Task | None:
        """Begin polling ``import_id`` unless disabled, already polled or terminal."""
        if not self._enabled or is_terminal_status(status):
            return None
        existing = self._states.get(import_id)
        if existing is not None:
            return existing.task

        state = PollState(
            interval=self._initial_interval,
            last_progress_at=self._clock(),
            last_status=status,
        )
        self._states[import_id] = state
        state.task = asyncio.create_task(self._run(import_id), name=f"poll-{import_id}")
        return state.task

    def stop(self, import_id: str) -> bool:
        """Stop polling one import. Returns False when it was not being polled."""
        state = self._states.pop(import_id, None)
        if state is None:
            return False
        state.active = False
        if state.task is not None and state.task is not asyncio.current_task():
            state.task.cancel()
        return True

    def sync(self, items: Iterable[QueueItem]) -> None:
        """Poll exactly the items flagged ``is_polling`` that are not terminal."""
        if not self._enabled:
            return
        items = list(items)
        wanted = {item.id for item in items}
        for import_id in list(self._states):
            if import_id not in wanted:
                self.stop(import_id)

        for item in items:
            if item.is_polling and not is_terminal_status(item.status):
                self.start(item.id, item.status)
            elif self.stop(item.id) and is_terminal_status(item.status):
                self._notify_polling_stop(item.id)

    def disable(self) -> None:
        """Stop every poll and drop all per-import state."""
        self._enabled = False
        self._stop_all()

    def enable(self) -> None:
        self._enabled = True

    def dispose(self) -> None:
        self.disable()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_polling(self, import_id: str) -> bool:
        return import_id in self._states

    def state_for(self, import_id: str) -> PollState | None:
        return self._states.get(import_id)

    def _stop_all(self) -> None:
        for import_id in list(self._states):
            self.stop(import_id)

    # ── Poll cycle ──────────────────────────────────────────────────

    async def _run(self, import_id: str) -> None:
        while True:
            delay = await self.poll_once(import_id)
            if delay is None:
                return
            await self._sleep(delay)

    async def poll_once(self, import_id: str) -> float | None:
        """Run one poll cycle. Returns the delay before the next one, or None when done."""
        state = self._states.get(import_id)
        if state is None or not state.active:
            return None

        try:
            snapshot = await self._fetch(import_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._handle_fetch_error(import_id, state, exc)

        if not state.active:
            return None
        state.consecutive_errors = 0

        if snapshot.status != state.last_status:
            state.last_status = snapshot.status
            state.last_progress_at = self._clock()
            state.interval = self._initial_interval
            self._notify_status_change(import_id, snapshot.status, snapshot)

        if snapshot.is_terminal:
            self._finish(import_id)
            return None

        if self._stalled(state):
            self._fail_locally(
                import_id,
                ImportSnapshot(
                    id=snapshot.id,
                    status="failed",
                    stage="failed",
                    progress=snapshot.progress,
                    error=snapshot.error or NO_PROGRESS_MESSAGE,
                    recipe_id=snapshot.recipe_id,
                    input_url=snapshot.input_url,
                    created_at=snapshot.created_at,
                ),
            )
            return None

        return self._next_delay(state)

    def _handle_fetch_error(self, import_id: str, state: PollState, exc: Exception) -> float | None:
        if not state.active:
            return None
        state.consecutive_errors += 1
        self._notify_error(import_id, exc)

        if self._stalled(state):
            self._fail_locally(
                import_id,
                ImportSnapshot(
                    id=import_id,
                    status="failed",
                    stage="failed",
                    error=str(exc) or "Polling error",
                ),
            )
            return None
        return self._next_delay(state)

    def _stalled(self, state: PollState) -> bool:
        return self._clock() - state.last_progress_at >= self._no_progress_timeout

    def _next_delay(self, state: PollState) -> float:
        delay = state.interval
        state.interval = min(state.interval * self._multiplier, self._max_interval)
        return delay

    def _fail_locally(self, import_id: str, snapshot: ImportSnapshot) -> None:
        self.stop(import_id)
        logger.warning("Import %s: no progress for %.0fs, giving up", import_id, self._no_progress_timeout)
        self._notify_status_change(import_id, "failed", snapshot)
        self._notify_polling_stop(import_id)

    def _finish(self, import_id: str) -> None:
        self.stop(import_id)
        self._notify_polling_stop(import_id)

    # ── Observer calls ──────────────────────────────────────────────

    def _notify_status_change(self, import_id: str, status: str, snapshot: ImportSnapshot) -> None:
        try:
            self._observer.on_status_change(import_id, status, snapshot)
        except Exception:
            logger.exception("Status observer failed for import %s", import_id)

    def _notify_error(self, import_id: str, error: Exception) -> None:
        try:
            self._observer.on_error(import_id, error)
        except Exception:
            logger.exception("Error observer failed for import %s", import_id)

    def _notify_polling_stop(self, import_id: str) -> None:
        try:
            self._observer.on_polling_stop(import_id)
        except Exception:
            logger.exception("Stop observer failed for import %s", import_id)
