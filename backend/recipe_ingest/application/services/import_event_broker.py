"""Import event broker: in-process SSE broadcaster for import changes."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass

from recipe_ingest.domain.entities.import_job import ImportJob

logger = logging.getLogger(__name__)

EVENT_TYPE = "import_update"


@dataclass
class _Subscriber:
    queue: asyncio.Queue[str | None]
    import_id: str | None


class ImportEventBroker:
    """Pushes import updates to connected SSE clients.

    Each client gets its own bounded asyncio.Queue. A client may follow all
    imports or a single one; single-import streams end after the import's
    terminal event. A client that falls too far behind is disconnected.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: list[_Subscriber] = []

    def subscribe(self, import_id: str | None = None) -> AsyncGenerator[str, None]:
        """Register a client now and return its stream of SSE messages."""
        subscriber = self._register(import_id)
        return self._stream(subscriber)

    async def follow(
        self,
        import_id: str,
        load: Callable[[], Awaitable[ImportJob | None]],
    ) -> AsyncGenerator[str, None] | None:
        """Open a single-import stream that starts with the import's current state.

        The client is registered before ``load`` runs, so no transition can
        fall between the snapshot and the live events. Returns ``None`` when
        the import does not exist. A terminal snapshot ends the stream right
        after its first event.
        """
        subscriber = self._register(import_id)
        try:
            job = await load()
        except BaseException:
            self._unregister(subscriber)
            raise
        if job is None:
            self._unregister(subscriber)
            return None

        initial = format_sse(EVENT_TYPE, job.public_view())
        if job.is_terminal:
            self._unregister(subscriber)
        return self._stream(subscriber, initial=initial, done=job.is_terminal)

    def _register(self, import_id: str | None) -> _Subscriber:
        subscriber = _Subscriber(
            queue=asyncio.Queue(maxsize=self._max_queue_size),
            import_id=import_id,
        )
        self._subscribers.append(subscriber)
        return subscriber

    def _unregister(self, subscriber: _Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def _stream(
        self,
        subscriber: _Subscriber,
        initial: str | None = None,
        done: bool = False,
    ) -> AsyncGenerator[str, None]:
        try:
            if initial is not None:
                yield initial
                if done:
                    return
            while True:
                event = await subscriber.queue.get()
                if event is None:
                    break
                yield event
        finally:
            self._unregister(subscriber)

    async def publish(self, job: ImportJob) -> None:
        """Broadcast the public view of ``job`` to interested clients."""
        message = format_sse(EVENT_TYPE, job.public_view())
        dead: list[_Subscriber] = []

        for subscriber in self._subscribers:
            if subscriber.import_id is not None and subscriber.import_id != job.id:
                continue
            try:
                subscriber.queue.put_nowait(message)
            except asyncio.QueueFull:
                dead.append(subscriber)
                logger.warning("SSE client queue full, disconnecting")
                continue
            if subscriber.import_id is not None and job.is_terminal:
                dead.append(subscriber)

        for subscriber in dead:
            self._close(subscriber)

    async def shutdown(self) -> None:
        """Disconnect all connected clients."""
        for subscriber in list(self._subscribers):
            self._close(subscriber)
        self._subscribers.clear()

    def _close(self, subscriber: _Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
        queue = subscriber.queue
        while queue.full():
            queue.get_nowait()
        queue.put_nowait(None)

    @property
    def client_count(self) -> int:
        return len(self._subscribers)


def format_sse(event_type: str, data: dict) -> str:
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"
