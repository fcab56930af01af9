from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ElectionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ZKELECT_", env_file=".env", extra="ignore")

    # Coordination store
    endpoint: str = Field(
        default="localhost:2181",
        validation_alias=AliasChoices("ZKELECT_ENDPOINT", "ZOOKEEPER_HOSTS", "endpoint"),
    )
    timeout: float = Field(default=1.0, gt=0)  # Session timeout, seconds

    # Election namespace
    root_path: str = "/election"
    node_prefix: str = "_"
    relist_limit: int = Field(default=16, ge=1)

    # Observability
    log_sink: str = "zkelect"
    log_level: str = "INFO"
    log_json: bool = False
    enable_metrics: bool = True

    @field_validator("root_path")
    @classmethod
    def _check_root_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("root_path must be absolute")
        if len(value) > 1 and value.endswith("/"):
            raise ValueError("root_path must not end with '/'")
        return value

    @field_validator("node_prefix")
    @classmethod
    def _check_node_prefix(cls, value: str) -> str:
        if "/" in value:
            raise ValueError("node_prefix must not contain '/'")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


settings = ElectionSettings()
