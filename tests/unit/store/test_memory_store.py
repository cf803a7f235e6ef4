"""Tests for the in-memory shared store."""

import pytest

from peerlock.store.base import StoreChange
from peerlock.store.memory import InMemorySharedStore, InMemoryStoreHub


class _Collector:
    def __init__(self) -> None:
        self.changes: list[StoreChange] = []

    async def __call__(self, change: StoreChange) -> None:
        self.changes.append(change)


@pytest.fixture
def hub() -> InMemoryStoreHub:
    return InMemoryStoreHub()


class TestInMemorySharedStore:
    """Tests for InMemorySharedStore."""

    async def test_views_share_data(self, hub: InMemoryStoreHub) -> None:
        a = hub.connect()
        b = hub.connect()

        await a.set("k", "v")

        assert await b.get("k") == "v"
        assert await a.get("missing") is None

    async def test_delete(self, hub: InMemoryStoreHub) -> None:
        a = hub.connect()
        await a.set("k", "v")

        await a.delete("k")

        assert await a.get("k") is None
        assert hub.data == {}

    async def test_other_views_notified(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        reader = hub.connect()
        collector = _Collector()
        await reader.watch(collector)
        await reader.start()

        await writer.set("k", "one")
        await writer.set("k", "two")
        await writer.delete("k")
        await reader.drain()

        assert collector.changes == [
            StoreChange("k", None, "one"),
            StoreChange("k", "one", "two"),
            StoreChange("k", "two", None),
        ]
        await reader.stop()

    async def test_writer_not_notified(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        collector = _Collector()
        await writer.watch(collector)
        await writer.start()

        await writer.set("k", "v")
        await writer.drain()

        assert collector.changes == []
        await writer.stop()

    async def test_delete_missing_key_is_silent(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        reader = hub.connect()
        collector = _Collector()
        await reader.watch(collector)
        await reader.start()

        await writer.delete("nothing")
        await reader.drain()

        assert collector.changes == []
        await reader.stop()

    async def test_stopped_view_not_notified(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        reader = hub.connect()
        collector = _Collector()
        await reader.watch(collector)

        await writer.set("k", "v")

        assert reader._queue.empty()
        assert collector.changes == []

    async def test_unwatch(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        reader = hub.connect()
        collector = _Collector()
        await reader.watch(collector)
        await reader.unwatch(collector)
        await reader.start()

        await writer.set("k", "v")
        await reader.drain()

        assert collector.changes == []
        await reader.stop()

    async def test_failing_handler_does_not_stop_delivery(self, hub: InMemoryStoreHub) -> None:
        writer = hub.connect()
        reader: InMemorySharedStore = hub.connect()
        collector = _Collector()

        async def failing(change: StoreChange) -> None:
            raise RuntimeError("boom")

        await reader.watch(failing)
        await reader.watch(collector)
        await reader.start()

        await writer.set("k", "v")
        await writer.set("k", "w")
        await reader.drain()

        assert [c.new_value for c in collector.changes] == ["v", "w"]
        await reader.stop()

    async def test_start_is_idempotent(self, hub: InMemoryStoreHub) -> None:
        view = hub.connect()
        await view.start()
        task = view._task

        await view.start()

        assert view._task is task
        await view.stop()
        assert not view.running
