"""Coordination store interface.

The election only needs a handful of store primitives: sequential ephemeral
children, child listing, one-shot deletion watches and session teardown.
Adapters:

- KazooCoordinationStore: ZooKeeper through kazoo
- MemorySession: in-process store for tests and single-process embedding
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class EventType(str, Enum):
    """Watch event kinds, named as ZooKeeper reports them."""

    CREATED = "CREATED"
    DELETED = "DELETED"
    CHANGED = "CHANGED"
    CHILD = "CHILD"
    NONE = "NONE"


class SessionState(str, Enum):
    """Client session states."""

    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    EXPIRED = "EXPIRED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class WatchEvent:
    """A watch firing: event kind, session state at delivery, node path."""

    type: EventType
    state: SessionState
    path: str


WatchCallback = Callable[[WatchEvent], None]
SessionListener = Callable[[SessionState], None]


class CoordinationStore(ABC):
    """Abstract coordination store session.

    All methods are awaited on the event loop that owns the candidates;
    watch callbacks and session listeners are invoked on that same loop.
    """

    def __init__(self) -> None:
        self._session_listeners: list[SessionListener] = []

    @abstractmethod
    async def connect(self) -> None:
        """Establish the session."""
        pass

    @abstractmethod
    async def create_sequential_ephemeral(self, parent_path: str, prefix: str = "_") -> str:
        """Create ``<parent_path>/<prefix><seq>`` and return the full path."""
        pass

    @abstractmethod
    async def list_children(self, path: str) -> list[str]:
        """List child names of ``path``, in no particular order."""
        pass

    @abstractmethod
    async def watch_deletion(self, path: str, callback: WatchCallback) -> bool:
        """Install a one-shot watch on ``path``.

        Returns False, leaving no watch behind, when the node does not exist.
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete one node. A missing node is not an error."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """End the session, removing every ephemeral node it owns."""
        pass

    def add_session_listener(self, listener: SessionListener) -> None:
        """Subscribe to session state changes."""
        self._session_listeners.append(listener)

    def remove_session_listener(self, listener: SessionListener) -> None:
        """Unsubscribe a session listener; unknown listeners are ignored."""
        if listener in self._session_listeners:
            self._session_listeners.remove(listener)

    def _notify_session(self, state: SessionState) -> None:
        for listener in list(self._session_listeners):
            listener(state)
