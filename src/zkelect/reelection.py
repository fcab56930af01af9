"""Predecessor watch handling.

A follower watches only the sibling directly ahead of it. When that node is
deleted the handler lists the children again, re-ranks, and either promotes
the candidate to leader or moves the watch to the new predecessor.

A predecessor can disappear between the listing and the watch installation.
The store reports that case (``watch_deletion`` returns False and leaves no
watch behind) and the handler simply lists again, bounded by
``relist_limit``. Each retry observes strictly fewer live predecessors, so
the loop only runs long under heavy churn.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from zkelect.errors import ElectionError, ElectionStalledError
from zkelect.ranking import Ranking, evaluate
from zkelect.store.base import EventType, WatchEvent

if TYPE_CHECKING:
    from zkelect.candidate import CandidateNode


class ReelectionHandler:
    """Ranks a candidate and keeps its single predecessor watch in place."""

    def __init__(self, candidate: CandidateNode, relist_limit: int = 16):
        self.candidate = candidate
        self.relist_limit = relist_limit

    @property
    def log(self) -> logging.Logger:
        return self.candidate.log

    def on_watch_event(self, event: WatchEvent) -> None:
        """One-shot watch callback handed to the store."""
        if self.candidate.cancelled:
            return
        task = asyncio.get_running_loop().create_task(self.handle(event))
        self.candidate._track(task)

    async def handle(self, event: WatchEvent) -> bool:
        """React to a watch firing.

        Returns:
            True if a reelection cycle ran to completion.
        """
        candidate = self.candidate
        if candidate.cancelled:
            return False

        self.log.debug(
            "Watch event: type=%s state=%s path=%s",
            event.type.value,
            event.state.value,
            event.path,
        )
        if event.type is not EventType.DELETED:
            self.log.debug("Watch event ignored: %s", event.type.value)
            return False
        if event.path != candidate.watching:
            self.log.debug("Stale watch event for %s", event.path)
            return False

        self.log.debug("Predecessor %s gone, running reelection", event.path)
        try:
            ranking = await self.evaluate()
        except ElectionError as exc:
            candidate._metrics.reelections_total.labels(
                root=candidate.root_path, outcome="error"
            ).inc()
            candidate._fail(exc)
            return False

        if ranking is None:
            return False

        outcome = "leader" if ranking.is_leader else "watch"
        candidate._metrics.reelections_total.labels(
            root=candidate.root_path, outcome=outcome
        ).inc()
        return True

    async def evaluate(self) -> Ranking | None:
        """List, rank, then lead or watch the predecessor.

        Returns None if the candidate was closed, or failed, while waiting on
        the store.

        Raises:
            StoreError: A list or watch call failed.
            CandidateStateError: The candidate's own node is gone.
            ElectionStalledError: No predecessor stayed alive long enough
                to be watched within ``relist_limit`` attempts.
        """
        candidate = self.candidate
        assigned_path = candidate.assigned_path
        if assigned_path is None:
            raise ElectionError("candidate is not registered")

        for attempt in range(1, self.relist_limit + 1):
            children = await candidate._list_children()
            if candidate.cancelled:
                return None

            ranking = evaluate(assigned_path, children)
            self.log.debug(
                "Rank %d of %d (attempt %d)", ranking.rank, len(ranking.children), attempt
            )
            if ranking.is_leader:
                candidate._become_leader()
                return ranking

            assert ranking.predecessor is not None
            target = f"{candidate.root_path.rstrip('/')}/{ranking.predecessor}"
            installed = await candidate._watch(target, self.on_watch_event)
            if candidate.cancelled:
                return None
            if installed:
                candidate._become_watching(target, ranking.predecessor)
                return ranking

            self.log.debug("Predecessor %s vanished before the watch was set", target)

        raise ElectionStalledError(self.relist_limit)
