"""Leader election over a coordination store.

Each candidate creates one sequential ephemeral node under the election
root. The candidate owning the lowest node leads; every other candidate
watches only the node directly ahead of it, so a departure wakes exactly
one peer instead of the whole group:

1. Register: the store assigns ``<root>/_<seq>``
2. List the current children
3. Rank: lowest node leads, anyone else watches its predecessor
4. When the predecessor goes away, list and rank again

Example:
    candidate = await elect(ElectionSettings(root_path="/election"))
    if candidate.is_leader:
        await run_singleton_work()
    await candidate.close()

    # Or sharing one session between candidates
    store = KazooCoordinationStore("zk1:2181,zk2:2181")
    await store.connect()
    async with CandidateNode(store, settings) as candidate:
        await candidate.wait_for_leadership()
        ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from enum import Enum
from types import TracebackType
from typing import Any

from zkelect.config import ElectionSettings
from zkelect.config import settings as default_settings
from zkelect.errors import (
    CandidateStateError,
    ElectionError,
    ErrorCode,
    StoreConnectionError,
    StoreError,
)
from zkelect.observability.logging import LogContext
from zkelect.observability.metrics import get_metrics
from zkelect.ranking import node_name
from zkelect.reelection import ReelectionHandler
from zkelect.store.base import CoordinationStore, SessionState, WatchCallback
from zkelect.store.kazoo import KazooCoordinationStore


class CandidateState(str, Enum):
    """Lifecycle states of a candidate."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    LEADER = "leader"
    WATCHING = "watching"
    CLOSED = "closed"
    ERRORED = "errored"


class ElectionObserver:
    """Receives election notifications. Override the hooks you need.

    Hooks run on the event loop; exceptions are logged and swallowed so one
    faulty observer cannot stall the election.
    """

    def on_leader(self) -> None:
        """This candidate became leader."""
        pass

    def on_watch(self, predecessor: str) -> None:
        """This candidate is waiting on ``predecessor`` (a node name)."""
        pass

    def on_error(self, error: ElectionError) -> None:
        """An unrecoverable store failure ended this candidacy."""
        pass

    def on_closed(self) -> None:
        """``close()`` finished."""
        pass


class CandidateNode:
    """One participant in a leader election.

    Args:
        store: Connected coordination store session
        settings: Election settings (root path, node prefix, log sink)
        owns_session: Close the store session on ``close()``. When False the
            session is shared and only this candidate's node is deleted.
        observers: Initial notification observers
    """

    def __init__(
        self,
        store: CoordinationStore,
        settings: ElectionSettings | None = None,
        *,
        owns_session: bool = False,
        observers: Iterable[ElectionObserver] = (),
    ):
        self.settings = settings or default_settings
        self.store = store
        self.owns_session = owns_session
        self.log = logging.getLogger(f"{self.settings.log_sink}.election")

        self._root_path = self.settings.root_path
        self._assigned_path: str | None = None
        self._is_leader = False
        self._watching: str | None = None
        self._state = CandidateState.UNREGISTERED
        self._closed = False
        self._closed_event = asyncio.Event()
        self._voting = False
        self._vote_error: ElectionError | None = None
        self._observers: list[ElectionObserver] = list(observers)
        self._on_elected: list[asyncio.Future[bool]] = []
        self._tasks: set[asyncio.Task[Any]] = set()

        self._metrics = get_metrics(self.settings)
        self._metrics.candidates.labels(state=self._state.value).inc()
        self._reelection = ReelectionHandler(self, relist_limit=self.settings.relist_limit)

    def __repr__(self) -> str:
        return (
            f"CandidateNode(root={self._root_path!r}, node={self._assigned_path!r}, "
            f"state={self._state.value})"
        )

    # -------------------------------------------------------------------------
    # Public accessors
    # -------------------------------------------------------------------------

    @property
    def is_leader(self) -> bool:
        """Leadership as of the most recent ranking evaluation."""
        return self._is_leader

    @property
    def state(self) -> CandidateState:
        return self._state

    @property
    def root_path(self) -> str:
        return self._root_path

    @property
    def assigned_path(self) -> str | None:
        """Full path of this candidate's node, None until registered."""
        return self._assigned_path

    @property
    def node_name(self) -> str | None:
        return node_name(self._assigned_path) if self._assigned_path else None

    @property
    def watching(self) -> str | None:
        """Full path of the watched predecessor, None when not watching."""
        return self._watching

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        """Closed or failed: no further state changes or notifications."""
        return self._closed or self._state is CandidateState.ERRORED

    def add_observer(self, observer: ElectionObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: ElectionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # -------------------------------------------------------------------------
    # Election
    # -------------------------------------------------------------------------

    async def vote(self) -> bool:
        """Register with the store and take part in the election.

        Registers a sequential ephemeral node, ranks it among its siblings
        and then either announces leadership or watches the predecessor.
        Store failures are raised as-is; there is no retry.

        Returns:
            True once the first evaluation completed, False if the candidate
            was closed while voting.

        Raises:
            CandidateStateError: vote() was already called, or the
                candidate is closed.
            StoreError: Registration, listing or watch installation failed.
        """
        if self._closed:
            raise CandidateStateError("candidate is closed")
        if self._state is not CandidateState.UNREGISTERED:
            raise CandidateStateError(f"vote() called in state {self._state.value}")

        with LogContext(election=self._root_path):
            self.log.debug("Registering with coordination store (%s)", self._root_path)
            self.store.add_session_listener(self._on_session_state)
            try:
                path = await self.store.create_sequential_ephemeral(
                    self._root_path, self.settings.node_prefix
                )
            except StoreError:
                if self._closed:
                    return False
                self._metrics.store_errors_total.labels(operation="create").inc()
                self._set_state(CandidateState.ERRORED)
                raise

            self._assigned_path = path
            if self._closed:
                # close() ran while the create was in flight
                await self._release(path)
                return False

            self.log.debug("Created (ephemeral) %s", path)
            self._set_state(CandidateState.REGISTERED)
            self._metrics.votes_total.labels(root=self._root_path).inc()

            self._voting = True
            try:
                with LogContext(candidate=node_name(path)):
                    ranking = await self._reelection.evaluate()
            except ElectionError:
                if self._closed:
                    return False
                self._set_state(CandidateState.ERRORED)
                raise
            finally:
                self._voting = False

            if ranking is None:
                if self._closed:
                    return False
                # The session was lost while voting
                assert self._vote_error is not None
                raise self._vote_error
            if not ranking.is_leader:
                self.log.debug("Waiting for reelection (%s)", path)
            return True

    async def close(self) -> None:
        """Leave the election.

        Idempotent. Marks the candidate closed before touching the store, so
        any watch event still in flight becomes a no-op. Teardown problems
        are logged and never raised.
        """
        if self._closed:
            await self._closed_event.wait()
            return

        self._closed = True
        self._is_leader = False
        self._watching = None
        self._set_state(CandidateState.CLOSED)
        self._resolve_waiters(False)
        self.store.remove_session_listener(self._on_session_state)

        self.log.debug("close() %s", self._assigned_path or self._root_path)
        try:
            if self.owns_session:
                await self.store.close()
            elif self._assigned_path is not None:
                await self.store.delete(self._assigned_path)
        except Exception as exc:
            self.log.warning("Error leaving election %s: %s", self._root_path, exc)
        finally:
            self._closed_event.set()

        self.log.debug("Closed")
        self._notify("on_closed")

    async def wait_for_leadership(self, timeout: float | None = None) -> bool:
        """Wait until this candidate becomes the leader.

        Args:
            timeout: Maximum time to wait in seconds (None = wait forever)

        Returns:
            True if leadership was acquired, False on timeout or if the
            candidate was closed or failed first.
        """
        if self._is_leader:
            return True
        if self._closed or self._state is CandidateState.ERRORED:
            return False

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._on_elected.append(future)

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            if future in self._on_elected:
                self._on_elected.remove(future)
            return False

    async def __aenter__(self) -> CandidateNode:
        await self.vote()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Store calls and transitions used by ReelectionHandler
    # -------------------------------------------------------------------------

    async def _list_children(self) -> list[str]:
        self.log.debug("list(%s: %s)", self._assigned_path, self._root_path)
        try:
            children = await self.store.list_children(self._root_path)
        except StoreError:
            self._metrics.store_errors_total.labels(operation="list").inc()
            raise
        return children

    async def _watch(self, path: str, callback: WatchCallback) -> bool:
        self.log.debug("watch(%s)", path)
        try:
            installed = await self.store.watch_deletion(path, callback)
        except StoreError:
            self._metrics.store_errors_total.labels(operation="watch").inc()
            raise
        if installed:
            self._metrics.watches_installed_total.labels(root=self._root_path).inc()
        return installed

    def _become_leader(self) -> None:
        if self.cancelled:
            return
        self._is_leader = True
        self._watching = None
        self._set_state(CandidateState.LEADER)
        self._metrics.leader_elected_total.labels(root=self._root_path).inc()
        self.log.info("Elected leader of %s (%s)", self._root_path, self._assigned_path)
        self._resolve_waiters(True)
        self._notify("on_leader")

    def _become_watching(self, path: str, predecessor: str) -> None:
        if self.cancelled:
            return
        self._is_leader = False
        self._watching = path
        self._set_state(CandidateState.WATCHING)
        self.log.debug("Watching %s", path)
        self._notify("on_watch", predecessor)

    def _fail(self, error: ElectionError) -> None:
        if self._closed or self._state is CandidateState.ERRORED:
            return
        self.log.error("Election failed for %s: %s", self._assigned_path, error)
        self._is_leader = False
        self._watching = None
        self._set_state(CandidateState.ERRORED)
        self._resolve_waiters(False)
        if self._voting:
            # vote() raises this to its caller instead
            self._vote_error = error
            return
        self._notify("on_error", error)

    def _on_session_state(self, state: SessionState) -> None:
        if self._closed or self._state is CandidateState.UNREGISTERED:
            return
        if state is SessionState.EXPIRED:
            code = ErrorCode.SESSION_EXPIRED
        elif state is SessionState.CLOSED:
            code = ErrorCode.CLOSING
        else:
            self.log.debug("Session state %s", state.value)
            return
        self._fail(StoreConnectionError(int(code), f"session {state.value.lower()}", "session"))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _set_state(self, state: CandidateState) -> None:
        if state is self._state:
            return
        self._metrics.candidates.labels(state=self._state.value).dec()
        if state is not CandidateState.CLOSED:
            self._metrics.candidates.labels(state=state.value).inc()
        self._state = state

    def _resolve_waiters(self, elected: bool) -> None:
        for future in self._on_elected:
            if not future.done():
                future.set_result(elected)
        self._on_elected.clear()

    def _notify(self, hook: str, *args: Any) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(*args)
            except Exception:
                self.log.exception("Observer %r failed in %s", observer, hook)

    async def _release(self, path: str) -> None:
        if self.owns_session:
            return
        try:
            await self.store.delete(path)
        except StoreError as exc:
            self.log.warning("Could not remove %s: %s", path, exc)


async def elect(
    settings: ElectionSettings | None = None,
    *,
    store: CoordinationStore | None = None,
    observers: Iterable[ElectionObserver] = (),
) -> CandidateNode:
    """Connect (unless a store is given), register and vote.

    Without ``store`` a dedicated ZooKeeper session is opened for the
    candidate and closed again by ``close()``.

    Raises:
        StoreConnectionError: The session could not be established.
        StoreError: Registration or the first evaluation failed.
    """
    settings = settings or default_settings
    owns_session = store is None
    if store is None:
        store = KazooCoordinationStore(settings.endpoint, timeout=settings.timeout)
        await store.connect()
        logging.getLogger(f"{settings.log_sink}.election").debug(
            "Connected to %s", settings.endpoint
        )

    candidate = CandidateNode(
        store, settings, owns_session=owns_session, observers=observers
    )
    try:
        await candidate.vote()
    except ElectionError:
        await candidate.close()
        raise
    return candidate
