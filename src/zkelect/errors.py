"""Error types for zkelect.

Every failed call against the coordination store is normalised into a
single structured error carrying the store's own result ``code`` and
``message``:

- StoreConnectionError: session establishment failed or the session was lost
- StoreOperationError: one create/list/watch/delete call failed

Codes are passed through as the store reports them. ``ErrorCode`` names the
ZooKeeper result codes the package raises itself (in-memory store) so callers
can compare against them, but nothing in the election interprets them.
"""

from __future__ import annotations

from enum import IntEnum

from kazoo.exceptions import (
    ConnectionClosedError,
    ConnectionLoss,
    KazooException,
    SessionExpiredError,
)
from kazoo.handlers.threading import KazooTimeoutError


class ErrorCode(IntEnum):
    """ZooKeeper result codes."""

    OK = 0
    SYSTEM_ERROR = -1
    CONNECTION_LOSS = -4
    OPERATION_TIMEOUT = -7
    NO_NODE = -101
    NODE_EXISTS = -110
    NOT_EMPTY = -111
    SESSION_EXPIRED = -112
    CLOSING = -116


class ElectionError(Exception):
    """Base exception for election errors."""

    pass


class StoreError(ElectionError):
    """A coordination store call reported a non-success result."""

    def __init__(self, code: int, message: str = "", operation: str | None = None):
        super().__init__(message or f"store error {code}")
        self.code = code
        self.message = message
        self.operation = operation

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, "
            f"operation={self.operation!r})"
        )


class StoreConnectionError(StoreError):
    """Session could not be established, or was lost."""

    pass


class StoreOperationError(StoreError):
    """A single store operation failed."""

    pass


class CandidateStateError(ElectionError):
    """Candidate used out of order, or its own node vanished."""

    pass


class ElectionStalledError(ElectionError):
    """Predecessors kept vanishing faster than the candidate could watch them."""

    def __init__(self, attempts: int):
        super().__init__(f"no stable predecessor after {attempts} attempts")
        self.attempts = attempts


_CONNECTION_ERRORS = (ConnectionLoss, SessionExpiredError, ConnectionClosedError)


def wrap_store_error(exc: BaseException, operation: str | None = None) -> StoreError:
    """Convert an exception raised by the store client into a StoreError.

    Already-wrapped errors are returned unchanged. The store's numeric code
    is kept as-is; exceptions without one get ``ErrorCode.SYSTEM_ERROR``.
    """
    if isinstance(exc, StoreError):
        return exc

    message = str(exc) or type(exc).__name__
    if isinstance(exc, KazooTimeoutError):
        return StoreConnectionError(int(ErrorCode.OPERATION_TIMEOUT), message, operation)

    code = getattr(exc, "code", None)
    if not isinstance(code, int):
        code = int(ErrorCode.SYSTEM_ERROR)

    if isinstance(exc, _CONNECTION_ERRORS):
        return StoreConnectionError(code, message, operation)
    if not isinstance(exc, KazooException):
        message = f"{type(exc).__name__}: {message}"
    return StoreOperationError(code, message, operation)
