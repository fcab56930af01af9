"""Global pytest configuration and fixtures.

Election tests run against the in-memory store: every candidate gets its
own session on a shared ``MemoryEnsemble``, just as separate processes
would each hold their own ZooKeeper session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from zkelect.candidate import CandidateNode, ElectionObserver
from zkelect.config import ElectionSettings
from zkelect.errors import ElectionError
from zkelect.store.memory import MemoryEnsemble

ROOT = "/election"


class RecordingObserver(ElectionObserver):
    """Observer that records every notification in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def on_leader(self) -> None:
        self.events.append(("leader", None))

    def on_watch(self, predecessor: str) -> None:
        self.events.append(("watch", predecessor))

    def on_error(self, error: ElectionError) -> None:
        self.events.append(("error", error))

    def on_closed(self) -> None:
        self.events.append(("closed", None))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


async def drain(rounds: int = 100) -> None:
    """Let every pending callback and reelection task run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def election_settings() -> ElectionSettings:
    return ElectionSettings(root_path=ROOT, endpoint="memory", relist_limit=16)


@pytest.fixture
def ensemble() -> MemoryEnsemble:
    ensemble = MemoryEnsemble()
    ensemble.create_path(ROOT)
    return ensemble


@pytest.fixture
def make_candidate(
    ensemble: MemoryEnsemble, election_settings: ElectionSettings
) -> Callable[..., Awaitable[tuple[CandidateNode, RecordingObserver]]]:
    """Factory: connect a fresh session and build a candidate on it."""

    async def _make(
        vote: bool = True, settings: ElectionSettings | None = None
    ) -> tuple[CandidateNode, RecordingObserver]:
        session = ensemble.session()
        await session.connect()
        observer = RecordingObserver()
        candidate = CandidateNode(
            session,
            settings or election_settings,
            owns_session=True,
            observers=[observer],
        )
        if vote:
            await candidate.vote()
        return candidate, observer

    return _make


@pytest.fixture
def drain_loop() -> Callable[..., Awaitable[None]]:
    return drain


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()
