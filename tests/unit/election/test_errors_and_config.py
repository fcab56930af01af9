"""Tests for error wrapping and election settings."""

import pytest
from kazoo.exceptions import NoNodeError, NodeExistsError, SessionExpiredError
from kazoo.handlers.threading import KazooTimeoutError
from pydantic import ValidationError

from zkelect.config import ElectionSettings
from zkelect.errors import (
    ElectionError,
    ErrorCode,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
    wrap_store_error,
)


class TestWrapStoreError:
    """Tests for wrap_store_error."""

    def test_operation_error_keeps_code(self) -> None:
        """Store result codes are passed through untouched."""
        error = wrap_store_error(NodeExistsError(), operation="create")

        assert isinstance(error, StoreOperationError)
        assert error.code == ErrorCode.NODE_EXISTS
        assert error.operation == "create"
        assert error.message

    def test_session_expiry_is_connection_error(self) -> None:
        """Session-level failures become StoreConnectionError."""
        error = wrap_store_error(SessionExpiredError(), operation="list")

        assert isinstance(error, StoreConnectionError)
        assert error.code == ErrorCode.SESSION_EXPIRED

    def test_timeout_is_connection_error(self) -> None:
        """Client timeouts carry the operation-timeout code."""
        error = wrap_store_error(KazooTimeoutError("Connection time-out"))

        assert isinstance(error, StoreConnectionError)
        assert error.code == ErrorCode.OPERATION_TIMEOUT
        assert error.message == "Connection time-out"

    def test_unknown_exception(self) -> None:
        """Exceptions without a code get SYSTEM_ERROR."""
        error = wrap_store_error(ValueError("bad"), operation="watch")

        assert isinstance(error, StoreOperationError)
        assert error.code == ErrorCode.SYSTEM_ERROR
        assert "ValueError" in error.message

    def test_wrapped_errors_pass_through(self) -> None:
        """Wrapping an already wrapped error is a no-op."""
        original = StoreOperationError(int(ErrorCode.NO_NODE), "gone", "list")

        assert wrap_store_error(original) is original

    def test_hierarchy(self) -> None:
        """All store errors are election errors."""
        error = wrap_store_error(NoNodeError())

        assert isinstance(error, StoreError)
        assert isinstance(error, ElectionError)
        assert "code=-101" in repr(error)


class TestElectionSettings:
    """Tests for ElectionSettings."""

    def test_defaults(self) -> None:
        """Defaults match a local ZooKeeper and the /election namespace."""
        settings = ElectionSettings()

        assert settings.endpoint == "localhost:2181"
        assert settings.timeout == 1.0
        assert settings.root_path == "/election"
        assert settings.node_prefix == "_"
        assert settings.log_sink == "zkelect"
        assert settings.relist_limit == 16

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Settings are read from ZKELECT_* variables."""
        monkeypatch.setenv("ZKELECT_ENDPOINT", "zk1:2181,zk2:2181")
        monkeypatch.setenv("ZKELECT_ROOT_PATH", "/jobs/cleanup")
        monkeypatch.setenv("ZKELECT_TIMEOUT", "2.5")

        settings = ElectionSettings()

        assert settings.endpoint == "zk1:2181,zk2:2181"
        assert settings.root_path == "/jobs/cleanup"
        assert settings.timeout == 2.5

    def test_zookeeper_hosts_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ZOOKEEPER_HOSTS is accepted for the endpoint."""
        monkeypatch.setenv("ZOOKEEPER_HOSTS", "zk3:2181")

        assert ElectionSettings().endpoint == "zk3:2181"

    @pytest.mark.parametrize("root_path", ["election", "/election/"])
    def test_invalid_root_path(self, root_path: str) -> None:
        """Root paths must be absolute without a trailing slash."""
        with pytest.raises(ValidationError):
            ElectionSettings(root_path=root_path)

    def test_invalid_timeout(self) -> None:
        """Timeouts must be positive."""
        with pytest.raises(ValidationError):
            ElectionSettings(timeout=0)

    def test_invalid_prefix(self) -> None:
        """Node prefixes cannot contain a path separator."""
        with pytest.raises(ValidationError):
            ElectionSettings(node_prefix="a/b")

    def test_log_level_is_normalised(self) -> None:
        """Log levels are upper-cased and validated."""
        assert ElectionSettings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            ElectionSettings(log_level="chatty")
