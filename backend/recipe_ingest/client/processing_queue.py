"""Bounded processing queue: the few most recent imports shown to the user."""

import logging
from collections.abc import Callable

from recipe_ingest.client.models import ImportSnapshot, QueueItem
from recipe_ingest.client.progress_poller import PollObserver

logger = logging.getLogger(__name__)

MAX_QUEUE_SIZE = 3

Unsubscribe = Callable[[], None]
Subscriber = Callable[[str, Callable[[ImportSnapshot | None], None]], Unsubscribe]


class ProcessingQueue(PollObserver):
    """Newest-first list of at most ``capacity`` imports.

    Each tracked import may hold a realtime subscription (see
    ``ImportApiClient.subscribe``). Evicting or removing an item always
    detaches its subscription. The queue also acts as the progress
    poller's observer, so poll results and realtime updates land in the
    same place.
    """

    def __init__(
        self,
        subscribe: Subscriber | None = None,
        capacity: int = MAX_QUEUE_SIZE,
        on_change: Callable[[list[QueueItem]], None] | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._subscribe = subscribe
        self._capacity = capacity
        self._on_change = on_change
        self._items: list[QueueItem] = []
        self._listeners: dict[str, Unsubscribe] = {}

    @property
    def items(self) -> list[QueueItem]:
        return list(self._items)

    @property
    def capacity(self) -> int:
        return self._capacity

    def is_in_queue(self, import_id: str) -> bool:
        return any(item.id == import_id for item in self._items)

    def get(self, import_id: str) -> QueueItem | None:
        return next((item for item in self._items if item.id == import_id), None)

    def is_subscribed(self, import_id: str) -> bool:
        return import_id in self._listeners

    # ── Mutations ───────────────────────────────────────────────────

    def add(
        self,
        snapshot: ImportSnapshot,
        title: str | None = None,
        cover_image_url: str | None = None,
    ) -> bool:
        """Track an import at the front. Returns False if it is already tracked."""
        if self.is_in_queue(snapshot.id):
            return False

        self._items.insert(
            0, QueueItem.from_snapshot(snapshot, title=title, cover_image_url=cover_image_url)
        )
        evicted = self._items[self._capacity:]
        del self._items[self._capacity:]
        for item in evicted:
            logger.debug("Evicting import %s from the processing queue", item.id)
            self._detach(item.id)

        self._attach(snapshot.id)
        self._changed()
        return True

    def remove(self, import_id: str) -> None:
        self._detach(import_id)
        before = len(self._items)
        self._items = [item for item in self._items if item.id != import_id]
        if len(self._items) != before:
            self._changed()

    def apply_update(self, import_id: str, snapshot: ImportSnapshot | None) -> bool:
        """Apply a realtime or polled update.

        Updates for untracked imports are ignored and their subscription is
        torn down. ``None`` means the import no longer exists and removes it.
        """
        item = self.get(import_id)
        if item is None:
            self._detach(import_id)
            return False
        if snapshot is None:
            self.remove(import_id)
            return False

        item.apply(snapshot)
        self._changed()
        return True

    def set_polling(self, import_id: str, polling: bool) -> None:
        item = self.get(import_id)
        if item is not None and item.is_polling != polling:
            item.is_polling = polling
            self._changed()

    def close(self) -> None:
        """Tear down every subscription."""
        for import_id in list(self._listeners):
            self._detach(import_id)

    # ── PollObserver ────────────────────────────────────────────────

    def on_status_change(self, import_id: str, status: str, snapshot: ImportSnapshot) -> None:
        self.apply_update(import_id, snapshot)

    def on_error(self, import_id: str, error: Exception) -> None:
        logger.debug("Polling import %s failed: %s", import_id, error)

    def on_polling_stop(self, import_id: str) -> None:
        self.set_polling(import_id, False)

    # ── Subscriptions ───────────────────────────────────────────────

    def _attach(self, import_id: str) -> None:
        if self._subscribe is None or import_id in self._listeners:
            return
        try:
            self._listeners[import_id] = self._subscribe(
                import_id, lambda snapshot: self.apply_update(import_id, snapshot)
            )
        except Exception:
            logger.exception("Unable to subscribe to import %s", import_id)

    def _detach(self, import_id: str) -> None:
        unsubscribe = self._listeners.pop(import_id, None)
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception:
            logger.exception("Unable to unsubscribe from import %s", import_id)

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.items)
        except Exception:
            logger.exception("Queue change listener failed")
