"""Herd-free leader election over ZooKeeper.

Provides:
- CandidateNode: one election participant (vote, close, is_leader)
- elect(): connect, register and vote in one call
- ElectionObserver: leader / watch / error / closed notifications

Example:
    from zkelect import ElectionSettings, elect

    candidate = await elect(ElectionSettings(endpoint="zk:2181", root_path="/jobs"))
    if candidate.is_leader:
        ...
    await candidate.close()
"""

from zkelect.candidate import CandidateNode, CandidateState, ElectionObserver, elect
from zkelect.config import ElectionSettings
from zkelect.errors import (
    CandidateStateError,
    ElectionError,
    ElectionStalledError,
    ErrorCode,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
)
from zkelect.ranking import Ranking

__all__ = [
    "CandidateNode",
    "CandidateState",
    "CandidateStateError",
    "ElectionError",
    "ElectionObserver",
    "ElectionSettings",
    "ElectionStalledError",
    "ErrorCode",
    "Ranking",
    "StoreConnectionError",
    "StoreError",
    "StoreOperationError",
    "elect",
]

__version__ = "0.1.0"
