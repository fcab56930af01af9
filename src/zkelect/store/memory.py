"""In-process coordination store.

``MemoryEnsemble`` holds a single node tree shared by any number of
``MemorySession`` clients, mirroring the ZooKeeper semantics the election
relies on:

- sequential children get a ten-digit zero-padded suffix from a per-parent
  counter, so names sort in creation order
- ephemeral nodes vanish when their session closes or expires
- deletion watches are one-shot and delivered asynchronously on the event
  loop that installed them, never to a closed session

Example:
    ensemble = MemoryEnsemble()
    ensemble.create_path("/election")

    session = ensemble.session()
    await session.connect()
    path = await session.create_sequential_ephemeral("/election")
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from itertools import count

from zkelect.errors import ErrorCode, StoreConnectionError, StoreOperationError
from zkelect.store.base import (
    CoordinationStore,
    EventType,
    SessionState,
    WatchCallback,
    WatchEvent,
)

logger = logging.getLogger(__name__)


@dataclass
class _Watch:
    session: MemorySession
    callback: WatchCallback
    loop: asyncio.AbstractEventLoop


@dataclass
class _Node:
    ephemeral_owner: int | None = None
    children: set[str] = field(default_factory=set)
    sequence: int = 0
    watches: list[_Watch] = field(default_factory=list)


def _parent_of(path: str) -> str:
    parent = path.rsplit("/", 1)[0]
    return parent or "/"


def _join(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


class MemoryEnsemble:
    """The shared node tree behind a set of in-memory sessions."""

    def __init__(self) -> None:
        self._nodes: dict[str, _Node] = {"/": _Node()}
        self._session_ids = count(1)
        self._sessions: dict[int, MemorySession] = {}

    def session(self) -> MemorySession:
        """Open a new client session against this ensemble."""
        session = MemorySession(self, next(self._session_ids))
        self._sessions[session.session_id] = session
        return session

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return path in self._nodes

    def children(self, path: str) -> list[str]:
        """Sorted child names of ``path``."""
        return sorted(self._require(path, "children").children)

    def watch_count(self, path: str) -> int:
        """Number of pending watches on ``path`` (0 if the node is gone)."""
        node = self._nodes.get(path)
        return len(node.watches) if node else 0

    def create_path(self, path: str) -> None:
        """Create a persistent node and any missing ancestors."""
        if path in self._nodes:
            return
        parent = _parent_of(path)
        self.create_path(parent)
        self._nodes[path] = _Node()
        self._nodes[parent].children.add(path.rsplit("/", 1)[1])

    def expire_session(self, session: MemorySession) -> None:
        """Expire ``session`` server-side, as if its heartbeats stopped."""
        self._end_session(session, SessionState.EXPIRED)

    # -------------------------------------------------------------------------
    # Operations used by MemorySession
    # -------------------------------------------------------------------------

    def _require(self, path: str, operation: str) -> _Node:
        node = self._nodes.get(path)
        if node is None:
            raise StoreOperationError(int(ErrorCode.NO_NODE), f"no node {path}", operation)
        return node

    def _create_sequential(self, session: MemorySession, parent_path: str, prefix: str) -> str:
        parent = self._require(parent_path, "create")
        name = f"{prefix}{parent.sequence:010d}"
        parent.sequence += 1
        path = _join(parent_path, name)
        self._nodes[path] = _Node(ephemeral_owner=session.session_id)
        parent.children.add(name)
        return path

    def _watch(self, session: MemorySession, path: str, callback: WatchCallback) -> bool:
        node = self._nodes.get(path)
        if node is None:
            return False
        node.watches.append(_Watch(session, callback, asyncio.get_running_loop()))
        return True

    def _delete(self, path: str) -> None:
        node = self._nodes.get(path)
        if node is None:
            return
        if node.children:
            raise StoreOperationError(int(ErrorCode.NOT_EMPTY), f"{path} has children", "delete")

        del self._nodes[path]
        self._nodes[_parent_of(path)].children.discard(path.rsplit("/", 1)[1])

        for watch in node.watches:
            if watch.session.state is not SessionState.CONNECTED:
                continue
            event = WatchEvent(EventType.DELETED, SessionState.CONNECTED, path)
            watch.loop.call_soon(watch.callback, event)

    def _end_session(self, session: MemorySession, state: SessionState) -> None:
        if session.state in (SessionState.CLOSED, SessionState.EXPIRED):
            return
        previous = session.state
        session.state = state
        self._sessions.pop(session.session_id, None)

        for node in self._nodes.values():
            node.watches = [w for w in node.watches if w.session is not session]

        owned = [
            path
            for path, node in self._nodes.items()
            if node.ephemeral_owner == session.session_id
        ]
        for path in owned:
            self._delete(path)
        logger.debug("Session %d %s, removed %d nodes", session.session_id, state.value, len(owned))

        if previous is SessionState.CONNECTED:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                session._notify_session(state)
            else:
                loop.call_soon(session._notify_session, state)


class MemorySession(CoordinationStore):
    """A client session on a ``MemoryEnsemble``."""

    def __init__(self, ensemble: MemoryEnsemble, session_id: int):
        super().__init__()
        self.ensemble = ensemble
        self.session_id = session_id
        self.state = SessionState.CONNECTING

    def __repr__(self) -> str:
        return f"MemorySession(id={self.session_id}, state={self.state.value})"

    async def _enter(self, operation: str) -> None:
        # Yield once so callers observe the same suspension points as with a
        # real network round trip.
        await asyncio.sleep(0)
        if self.state is not SessionState.CONNECTED:
            code = ErrorCode.SESSION_EXPIRED
            if self.state is SessionState.CLOSED:
                code = ErrorCode.CLOSING
            elif self.state is SessionState.CONNECTING:
                code = ErrorCode.CONNECTION_LOSS
            raise StoreConnectionError(int(code), f"session is {self.state.value}", operation)

    async def connect(self) -> None:
        await asyncio.sleep(0)
        if self.state in (SessionState.CLOSED, SessionState.EXPIRED):
            raise StoreConnectionError(
                int(ErrorCode.SESSION_EXPIRED), f"session is {self.state.value}", "connect"
            )
        if self.state is SessionState.CONNECTED:
            return
        self.state = SessionState.CONNECTED
        self._notify_session(SessionState.CONNECTED)

    async def create_sequential_ephemeral(self, parent_path: str, prefix: str = "_") -> str:
        await self._enter("create")
        return self.ensemble._create_sequential(self, parent_path, prefix)

    async def list_children(self, path: str) -> list[str]:
        await self._enter("list")
        return list(self.ensemble._require(path, "list").children)

    async def watch_deletion(self, path: str, callback: WatchCallback) -> bool:
        await self._enter("watch")
        return self.ensemble._watch(self, path, callback)

    async def delete(self, path: str) -> None:
        await self._enter("delete")
        self.ensemble._delete(path)

    async def close(self) -> None:
        await asyncio.sleep(0)
        self.ensemble._end_session(self, SessionState.CLOSED)
