"""Coordination store sessions for zkelect.

Provides:
- CoordinationStore: the interface the election runs against
- KazooCoordinationStore: ZooKeeper through kazoo
- MemoryEnsemble / MemorySession: in-process store

Example:
    from zkelect.store import KazooCoordinationStore

    store = KazooCoordinationStore("localhost:2181", timeout=1.0)
    await store.connect()
"""

from zkelect.store.base import (
    CoordinationStore,
    EventType,
    SessionListener,
    SessionState,
    WatchCallback,
    WatchEvent,
)
from zkelect.store.kazoo import KazooCoordinationStore
from zkelect.store.memory import MemoryEnsemble, MemorySession

__all__ = [
    "CoordinationStore",
    "EventType",
    "KazooCoordinationStore",
    "MemoryEnsemble",
    "MemorySession",
    "SessionListener",
    "SessionState",
    "WatchCallback",
    "WatchEvent",
]
