"""Sibling ranking for herd-free leader election.

Each candidate owns one sequential node under the election root. Ranking
sorts the current children, finds the candidate's own node and derives:

- rank: 0-based position in the sorted children
- leadership: rank == 0
- predecessor: the sibling at rank - 1, the only node a follower watches

ZooKeeper pads sequence suffixes to ten digits, so plain string order equals
creation order. ``sort_children`` orders by (prefix, numeric suffix, name),
which matches string order for padded suffixes and still holds for a store
that does not pad.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from zkelect.errors import CandidateStateError

_SEQUENCE_RE = re.compile(r"^(.*?)(\d+)$")


def node_name(path: str) -> str:
    """Last path component: ``/election/_0000000003`` -> ``_0000000003``."""
    return path.rsplit("/", 1)[-1]


def sequence_of(name: str) -> int | None:
    """Numeric sequence suffix of a node name, or None if it has none."""
    match = _SEQUENCE_RE.match(name)
    return int(match.group(2)) if match else None


def _sort_key(name: str) -> tuple[str, int, str]:
    match = _SEQUENCE_RE.match(name)
    if match is None:
        return (name, -1, name)
    return (match.group(1), int(match.group(2)), name)


def sort_children(children: Iterable[str]) -> list[str]:
    """Sort sibling names into election order."""
    return sorted(children, key=_sort_key)


@dataclass(frozen=True)
class Ranking:
    """Result of one ranking evaluation."""

    name: str
    rank: int
    children: tuple[str, ...]
    predecessor: str | None

    @property
    def is_leader(self) -> bool:
        return self.rank == 0


def evaluate(assigned_path: str, children: Iterable[str]) -> Ranking:
    """Rank the candidate at ``assigned_path`` among ``children``.

    Raises:
        CandidateStateError: The candidate's own node is not among the
            children, which means its session (and node) is gone.
    """
    name = node_name(assigned_path)
    ordered = tuple(sort_children(children))
    try:
        rank = ordered.index(name)
    except ValueError:
        raise CandidateStateError(f"{assigned_path} is not registered") from None

    predecessor = ordered[rank - 1] if rank > 0 else None
    return Ranking(name=name, rank=rank, children=ordered, predecessor=predecessor)
