"""Unit tests for the client-side ImportProgressPoller.

Time is simulated: ``sleep`` advances a fake clock instead of waiting, so a
whole polling session runs inside one awaited task.
"""

import asyncio
import logging

import pytest

from recipe_ingest.client import ImportProgressPoller, ImportSnapshot, PollObserver, QueueItem
from recipe_ingest.client.progress_poller import NO_PROGRESS_MESSAGE


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.delays: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds


class RecordingObserver(PollObserver):
    def __init__(self):
        self.changes: list[tuple[str, str]] = []
        self.snapshots: list[ImportSnapshot] = []
        self.errors: list[Exception] = []
        self.stopped: list[str] = []

    def on_status_change(self, import_id, status, snapshot):
        self.changes.append((import_id, status))
        self.snapshots.append(snapshot)

    def on_error(self, import_id, error):
        self.errors.append(error)

    def on_polling_stop(self, import_id):
        self.stopped.append(import_id)


def _snapshot(status: str, import_id: str = "imp-1") -> ImportSnapshot:
    return ImportSnapshot(id=import_id, status=status, stage=status)


def scripted_fetch(*results):
    """Fetch that returns (or raises) ``results`` in order, repeating the last one."""
    remaining = list(results)
    calls: list[str] = []

    async def fetch(import_id: str) -> ImportSnapshot:
        calls.append(import_id)
        result = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(result, Exception):
            raise result
        return result

    fetch.calls = calls
    return fetch


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


def _poller(fetch, observer, clock, **kwargs) -> ImportProgressPoller:
    return ImportProgressPoller(fetch, observer, clock=clock, sleep=clock.sleep, **kwargs)


@pytest.mark.asyncio
async def test_backoff_grows_then_gives_up_after_no_progress(observer, clock):
    poller = _poller(scripted_fetch(_snapshot("scraping")), observer, clock)

    await poller.start("imp-1", "scraping")

    assert clock.delays == pytest.approx(
        [1.0, 1.5, 2.25, 3.375, 5.0625, 7.59375, 11.390625, 17.0859375, 25.62890625]
    )
    assert observer.changes == [("imp-1", "failed")]
    assert observer.snapshots[-1].error == NO_PROGRESS_MESSAGE
    assert observer.stopped == ["imp-1"]
    assert not poller.is_polling("imp-1")


@pytest.mark.asyncio
async def test_interval_is_capped(observer, clock):
    fetch = scripted_fetch(*([_snapshot("extracting")] * 15), _snapshot("ready"))
    poller = _poller(fetch, observer, clock, no_progress_timeout=10_000)

    await poller.start("imp-1", "extracting")

    assert max(clock.delays) == 30.0
    assert clock.delays[-3:] == [30.0, 30.0, 30.0]
    assert observer.changes == [("imp-1", "ready")]


@pytest.mark.asyncio
async def test_status_change_resets_interval(observer, clock):
    fetch = scripted_fetch(
        _snapshot("scraping"),
        _snapshot("scraping"),
        _snapshot("scraping"),
        _snapshot("downloading_media"),
        _snapshot("downloading_media"),
        _snapshot("ready"),
    )
    poller = _poller(fetch, observer, clock)

    await poller.start("imp-1", "scraping")

    assert clock.delays == pytest.approx([1.0, 1.5, 2.25, 1.0, 1.5])
    assert observer.changes == [("imp-1", "downloading_media"), ("imp-1", "ready")]
    assert observer.stopped == ["imp-1"]


@pytest.mark.asyncio
async def test_first_poll_reports_status_when_unknown(observer, clock):
    poller = _poller(scripted_fetch(_snapshot("failed")), observer, clock)

    await poller.start("imp-1")

    assert observer.changes == [("imp-1", "failed")]
    assert clock.delays == []


def test_terminal_import_is_never_polled(observer, clock):
    poller = _poller(scripted_fetch(_snapshot("ready")), observer, clock)
    assert poller.start("imp-1", "ready") is None
    assert not poller.is_polling("imp-1")


@pytest.mark.asyncio
async def test_fetch_errors_are_reported_and_polling_continues(observer, clock):
    fetch = scripted_fetch(
        ConnectionError("offline"),
        ConnectionError("offline"),
        _snapshot("ready"),
    )
    poller = _poller(fetch, observer, clock)

    await poller.start("imp-1", "scraping")

    assert len(observer.errors) == 2
    assert observer.changes == [("imp-1", "ready")]
    assert clock.delays == pytest.approx([1.0, 1.5])


@pytest.mark.asyncio
async def test_persistent_errors_end_with_local_failure(observer, clock):
    poller = _poller(scripted_fetch(ConnectionError("offline")), observer, clock)

    await poller.start("imp-1", "extracting")

    assert len(observer.errors) == 10
    assert observer.changes == [("imp-1", "failed")]
    assert observer.snapshots[-1].error == "offline"
    assert observer.stopped == ["imp-1"]


@pytest.mark.asyncio
async def test_observer_failures_are_logged_not_raised(clock, caplog):
    class BrokenObserver(PollObserver):
        def on_status_change(self, import_id, status, snapshot):
            raise RuntimeError("render failed")

    poller = _poller(scripted_fetch(_snapshot("ready")), BrokenObserver(), clock)

    with caplog.at_level(logging.ERROR):
        await poller.start("imp-1", "scraping")

    assert "Status observer failed" in caplog.text
    assert not poller.is_polling("imp-1")


@pytest.mark.asyncio
async def test_each_import_has_its_own_interval(observer, clock):
    gate = asyncio.Event()

    async def blocking_fetch(import_id):
        await gate.wait()
        return _snapshot("scraping", import_id)

    blocking = _poller(blocking_fetch, observer, clock)
    blocking.start("imp-1", "scraping")
    blocking.start("imp-2", "scraping")
    blocking.state_for("imp-1").interval = 8.0

    assert blocking.state_for("imp-2").interval == 1.0
    blocking.dispose()


@pytest.mark.asyncio
async def test_poll_once_for_unknown_import_is_a_no_op(observer, clock):
    poller = _poller(scripted_fetch(_snapshot("scraping")), observer, clock)
    assert await poller.poll_once("missing") is None


@pytest.mark.asyncio
async def test_disable_stops_everything_and_blocks_new_polls(observer, clock):
    gate = asyncio.Event()

    async def blocking_fetch(import_id):
        await gate.wait()
        return _snapshot("scraping", import_id)

    poller = _poller(blocking_fetch, observer, clock)
    task = poller.start("imp-1", "scraping")
    await asyncio.sleep(0)

    poller.disable()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not poller.is_polling("imp-1")
    assert poller.start("imp-2", "scraping") is None

    poller.enable()
    assert poller.start("imp-2", "scraping") is not None
    poller.dispose()
    assert not poller.enabled


@pytest.mark.asyncio
async def test_sync_follows_queue_items(observer, clock):
    gate = asyncio.Event()

    async def blocking_fetch(import_id):
        await gate.wait()
        return _snapshot("scraping", import_id)

    poller = _poller(blocking_fetch, observer, clock)
    poller.start("gone", "scraping")

    poller.sync([
        QueueItem(id="imp-1", url="u1", status="scraping", stage="scraping"),
        QueueItem(id="imp-2", url="u2", status="ready", stage="ready", is_polling=False),
        QueueItem(id="imp-3", url="u3", status="queued", stage="queued", is_polling=False),
    ])

    assert poller.is_polling("imp-1")
    assert not poller.is_polling("imp-2")
    assert not poller.is_polling("imp-3")
    assert not poller.is_polling("gone")
    poller.dispose()
