"""Tests for the in-memory coordination store."""

import asyncio

import pytest

from zkelect.errors import ErrorCode, StoreConnectionError, StoreOperationError
from zkelect.store.base import EventType, SessionState, WatchEvent
from zkelect.store.memory import MemoryEnsemble


@pytest.fixture
def ensemble() -> MemoryEnsemble:
    ensemble = MemoryEnsemble()
    ensemble.create_path("/root")
    return ensemble


async def _connected(ensemble: MemoryEnsemble):
    session = ensemble.session()
    await session.connect()
    return session


class TestSequentialNodes:
    """Tests for sequential ephemeral creation."""

    @pytest.mark.asyncio
    async def test_suffixes_are_padded_and_increasing(self, ensemble) -> None:
        """Each child gets the next ten-digit suffix."""
        session = await _connected(ensemble)

        paths = [await session.create_sequential_ephemeral("/root") for _ in range(3)]

        assert paths == ["/root/_0000000000", "/root/_0000000001", "/root/_0000000002"]

    @pytest.mark.asyncio
    async def test_suffixes_are_not_reused(self, ensemble) -> None:
        """Deleting a child does not recycle its sequence number."""
        session = await _connected(ensemble)
        first = await session.create_sequential_ephemeral("/root")
        await session.delete(first)

        second = await session.create_sequential_ephemeral("/root", prefix="n-")

        assert second == "/root/n-0000000001"

    @pytest.mark.asyncio
    async def test_missing_parent(self, ensemble) -> None:
        """Creating under a missing parent fails with NO_NODE."""
        session = await _connected(ensemble)

        with pytest.raises(StoreOperationError) as exc_info:
            await session.create_sequential_ephemeral("/absent")

        assert exc_info.value.code == ErrorCode.NO_NODE

    @pytest.mark.asyncio
    async def test_list_children(self, ensemble) -> None:
        """Listing returns every child name."""
        session = await _connected(ensemble)
        await session.create_sequential_ephemeral("/root")
        await session.create_sequential_ephemeral("/root")

        children = await session.list_children("/root")

        assert sorted(children) == ["_0000000000", "_0000000001"]

    @pytest.mark.asyncio
    async def test_list_missing_path(self, ensemble) -> None:
        """Listing a missing path fails with NO_NODE."""
        session = await _connected(ensemble)

        with pytest.raises(StoreOperationError) as exc_info:
            await session.list_children("/absent")

        assert exc_info.value.operation == "list"


class TestSessions:
    """Tests for session lifetime."""

    @pytest.mark.asyncio
    async def test_close_removes_ephemeral_nodes(self, ensemble) -> None:
        """Closing a session removes only the nodes it created."""
        mine = await _connected(ensemble)
        other = await _connected(ensemble)
        await mine.create_sequential_ephemeral("/root")
        kept = await other.create_sequential_ephemeral("/root")

        await mine.close()

        assert ensemble.children("/root") == [kept.rsplit("/", 1)[1]]
        assert mine.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_operations_after_close_fail(self, ensemble) -> None:
        """A closed session refuses further calls."""
        session = await _connected(ensemble)
        await session.close()

        with pytest.raises(StoreConnectionError) as exc_info:
            await session.list_children("/root")

        assert exc_info.value.code == ErrorCode.CLOSING

    @pytest.mark.asyncio
    async def test_operations_before_connect_fail(self, ensemble) -> None:
        """An unconnected session reports connection loss."""
        session = ensemble.session()

        with pytest.raises(StoreConnectionError) as exc_info:
            await session.create_sequential_ephemeral("/root")

        assert exc_info.value.code == ErrorCode.CONNECTION_LOSS

    @pytest.mark.asyncio
    async def test_expiry_notifies_listeners(self, ensemble) -> None:
        """Expiring a session removes its nodes and notifies listeners."""
        session = await _connected(ensemble)
        await session.create_sequential_ephemeral("/root")
        states: list[SessionState] = []
        session.add_session_listener(states.append)

        ensemble.expire_session(session)
        await asyncio.sleep(0)

        assert states == [SessionState.EXPIRED]
        assert ensemble.children("/root") == []

        with pytest.raises(StoreConnectionError):
            await session.connect()


class TestWatches:
    """Tests for one-shot deletion watches."""

    @pytest.mark.asyncio
    async def test_watch_fires_once_on_delete(self, ensemble) -> None:
        """A deletion watch fires exactly once, asynchronously."""
        owner = await _connected(ensemble)
        watcher = await _connected(ensemble)
        path = await owner.create_sequential_ephemeral("/root")
        events: list[WatchEvent] = []

        assert await watcher.watch_deletion(path, events.append) is True
        await owner.close()
        assert events == []  # delivered on the next loop iteration

        await asyncio.sleep(0)

        assert events == [WatchEvent(EventType.DELETED, SessionState.CONNECTED, path)]
        assert ensemble.watch_count(path) == 0

    @pytest.mark.asyncio
    async def test_watch_on_missing_node(self, ensemble) -> None:
        """Watching a node that is already gone installs nothing."""
        session = await _connected(ensemble)

        assert await session.watch_deletion("/root/_0000000007", lambda e: None) is False

    @pytest.mark.asyncio
    async def test_closed_session_gets_no_events(self, ensemble) -> None:
        """Watches die with the session that set them."""
        owner = await _connected(ensemble)
        watcher = await _connected(ensemble)
        path = await owner.create_sequential_ephemeral("/root")
        events: list[WatchEvent] = []
        await watcher.watch_deletion(path, events.append)

        await watcher.close()
        await owner.delete(path)
        await asyncio.sleep(0)

        assert events == []

    @pytest.mark.asyncio
    async def test_delete_with_children_fails(self, ensemble) -> None:
        """Non-empty nodes cannot be deleted."""
        session = await _connected(ensemble)
        await session.create_sequential_ephemeral("/root")

        with pytest.raises(StoreOperationError) as exc_info:
            await session.delete("/root")

        assert exc_info.value.code == ErrorCode.NOT_EMPTY

    @pytest.mark.asyncio
    async def test_delete_missing_node_is_not_an_error(self, ensemble) -> None:
        """Deleting an absent node succeeds quietly."""
        session = await _connected(ensemble)

        await session.delete("/root/_0000000001")
