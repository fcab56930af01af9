"""ZooKeeper coordination store backed by kazoo.

kazoo runs its own connection and callback threads. Every completion and
watch event is handed back to the event loop that created the store with
``call_soon_threadsafe``, so the election code never runs off-loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from kazoo.client import KazooClient, KazooState
from kazoo.exceptions import NoNodeError
from kazoo.protocol.states import KeeperState, WatchedEvent

from zkelect.errors import StoreConnectionError, wrap_store_error
from zkelect.store.base import (
    CoordinationStore,
    EventType,
    SessionState,
    WatchCallback,
    WatchEvent,
)

if TYPE_CHECKING:
    from kazoo.interfaces import IAsyncResult

logger = logging.getLogger(__name__)

_KAZOO_STATES = {
    KazooState.CONNECTED: SessionState.CONNECTED,
    KazooState.SUSPENDED: SessionState.CONNECTING,
    KazooState.LOST: SessionState.EXPIRED,
}

_KEEPER_STATES = {
    KeeperState.CONNECTED: SessionState.CONNECTED,
    KeeperState.CONNECTED_RO: SessionState.CONNECTED,
    KeeperState.CONNECTING: SessionState.CONNECTING,
    KeeperState.EXPIRED_SESSION: SessionState.EXPIRED,
    KeeperState.AUTH_FAILED: SessionState.EXPIRED,
    KeeperState.CLOSED: SessionState.CLOSED,
}


class KazooCoordinationStore(CoordinationStore):
    """ZooKeeper session for election candidates.

    Args:
        hosts: Comma separated ``host:port`` list
        timeout: Session timeout in seconds
        client: Pre-built client (mainly for tests)
    """

    def __init__(
        self,
        hosts: str,
        timeout: float = 1.0,
        client: KazooClient | None = None,
    ):
        super().__init__()
        self.hosts = hosts
        self.timeout = timeout
        self._client = client or KazooClient(hosts=hosts, timeout=timeout, randomize_hosts=True)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

    @property
    def client(self) -> KazooClient:
        return self._client

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    async def _await(self, async_result: IAsyncResult, operation: str) -> Any:
        """Wait for a kazoo async result without blocking the loop."""
        loop = self._get_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def _transfer(result: IAsyncResult) -> None:
            if future.done():
                return
            try:
                future.set_result(result.get_nowait())
            except Exception as exc:
                future.set_exception(exc)

        def _completed(result: IAsyncResult) -> None:
            loop.call_soon_threadsafe(_transfer, result)

        async_result.rawlink(_completed)
        try:
            return await future
        except NoNodeError:
            raise
        except Exception as exc:
            raise wrap_store_error(exc, operation) from exc

    def _on_state(self, state: str) -> None:
        # Runs on a kazoo thread; must not block.
        session_state = _KAZOO_STATES.get(state)
        if session_state is None or self._loop is None or self._closed:
            return
        logger.debug("ZooKeeper session state: %s", state)
        self._loop.call_soon_threadsafe(self._notify_session, session_state)

    async def connect(self) -> None:
        loop = self._get_loop()
        self._client.add_listener(self._on_state)
        logger.debug("Connecting to ZooKeeper at %s", self.hosts)
        try:
            await loop.run_in_executor(None, self._client.start, self.timeout)
        except Exception as exc:
            self._client.remove_listener(self._on_state)
            error = wrap_store_error(exc, "connect")
            raise StoreConnectionError(error.code, error.message, "connect") from exc
        logger.debug("Connected to ZooKeeper at %s", self.hosts)

    async def create_sequential_ephemeral(self, parent_path: str, prefix: str = "_") -> str:
        path = f"{parent_path.rstrip('/')}/{prefix}"
        try:
            result = self._client.create_async(path, b"", ephemeral=True, sequence=True)
            created: str = await self._await(result, "create")
        except NoNodeError as exc:
            raise wrap_store_error(exc, "create") from exc
        return created

    async def list_children(self, path: str) -> list[str]:
        try:
            children = await self._await(self._client.get_children_async(path), "list")
        except NoNodeError as exc:
            raise wrap_store_error(exc, "list") from exc
        return list(children or [])

    async def watch_deletion(self, path: str, callback: WatchCallback) -> bool:
        loop = self._get_loop()

        def _fired(event: WatchedEvent) -> None:
            watch_event = WatchEvent(
                type=EventType(event.type),
                state=_KEEPER_STATES.get(event.state, SessionState.CONNECTED),
                path=event.path,
            )
            loop.call_soon_threadsafe(callback, watch_event)

        try:
            await self._await(self._client.get_async(path, watch=_fired), "watch")
        except NoNodeError:
            return False
        return True

    async def delete(self, path: str) -> None:
        try:
            await self._await(self._client.delete_async(path), "delete")
        except NoNodeError:
            pass

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.remove_listener(self._on_state)
        loop = self._get_loop()
        try:
            await loop.run_in_executor(None, self._client.stop)
        finally:
            self._client.close()
        self._notify_session(SessionState.CLOSED)
