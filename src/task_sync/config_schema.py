"""Unified configuration schema for task_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the remote authority, the sync engine, local storage and
logging.  Includes a helper that flattens the sections into the fallback
values consumed by ``config.load_config``.

Usage:
    from task_sync.config_schema import (
        UnifiedConfig, build_config, yaml_fallbacks,
    )

    raw = load_hierarchical_config()
    fallbacks = yaml_fallbacks(build_config(raw))
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ConflictStrategy = Literal["last-write-wins", "local-wins", "remote-wins"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote authority connection settings.

    ``url`` is optional so env vars and CLI args can supply it at runtime.
    """

    url: str | None = Field(
        default=None, description="Base URL of the remote authority API"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    probe_timeout: float = Field(
        default=5.0,
        gt=0,
        le=120,
        description="Timeout in seconds for the /health connectivity probe",
    )
    batch_timeout: float = Field(
        default=8.0,
        gt=0,
        le=600,
        description="Timeout in seconds for one /sync/batch request",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync engine tuning.

    Attributes:
        batch_size: Queue entries per remote batch call.
        max_retries: Failures tolerated before an entry leaves the queue.
        conflict_strategy: Conflict resolver to use.
        dead_letter: Keep expired entries in the dead-entry table instead
            of deleting them.
    """

    batch_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Queue entries per batch (1-1000)",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=100,
        description="Retries before an entry is dropped (0-100)",
    )
    conflict_strategy: ConflictStrategy = Field(
        default="last-write-wins",
        description="Conflict resolution strategy",
    )
    dead_letter: bool = Field(
        default=True,
        description="Move expired entries to the dead-entry table",
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Local SQLite storage location."""

    db_path: str | None = Field(
        default=None, description="Path to the SQLite database file"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the sections into the keyword names ``load_config`` expects.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    flat = {
        "url": unified.remote.url,
        "insecure": unified.remote.insecure,
        "debug": unified.remote.debug,
        "probe_timeout": unified.remote.probe_timeout,
        "batch_timeout": unified.remote.batch_timeout,
        "batch_size": unified.sync.batch_size,
        "max_retries": unified.sync.max_retries,
        "conflict_strategy": unified.sync.conflict_strategy,
        "dead_letter": unified.sync.dead_letter,
        "db_path": unified.storage.db_path,
    }
    return {k: v for k, v in flat.items() if v is not None}


