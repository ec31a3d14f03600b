"""Unified configuration schema for brain_cli.

Defines Pydantic models for the unified config structure with dedicated
sections for the Notion connection, document sync and logging, plus a
helper that flattens the connection-related values into the fallback
dict consumed by ``load_config()``.

Usage:
    from brain_cli.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class NotionConfig(BaseModel):
    """Notion API connection settings.

    All fields are optional to support zero-config: env vars, the key file
    and CLI args can supply them at runtime instead.
    """

    api_key: str | None = Field(
        default=None, description="Notion integration token"
    )
    notion_version: str | None = Field(
        default=None, description="Value sent in the Notion-Version header"
    )
    requests_per_second: float | None = Field(
        default=None,
        gt=0,
        le=50,
        description="Client-side request rate limit",
    )

    model_config = {"frozen": True}


class CollectionConfig(BaseModel):
    """A Notion database that holds one type of document.

    Attributes:
        database_id: Notion database id (dashed or undashed).
        title_property: Name of the database's title property.
        status_property: Name of the status property, or None when the
            database has no status column.
        status_type: Whether the status property is a ``select`` or a
            native ``status`` property.
    """

    database_id: str = Field(description="Notion database id")
    title_property: str = Field(default="Name")
    status_property: str | None = Field(default="Status")
    status_type: Literal["select", "status"] = Field(default="select")

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Document sync settings.

    Attributes:
        store_dir: Directory holding ``<slug>.md`` documents.
        state_dir: Directory for ``ledger.json`` and ``conflicts.md``.
        default_type: Collection used when a new document has no ``type``.
        collections: Mapping of document type name to its database.
    """

    store_dir: str | None = Field(default=None)
    state_dir: str | None = Field(default=None)
    default_type: str = Field(default="notes")
    collections: dict[str, CollectionConfig] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_default_type(self) -> SyncConfig:
        if self.collections and self.default_type not in self.collections:
            raise ValueError(
                f"default_type '{self.default_type}' is not one of the "
                f"configured collections: {', '.join(self.collections)}"
            )
        return self


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

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    notion: NotionConfig = Field(default_factory=NotionConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the non-None ``notion`` and path values of *unified*.

    The result is passed to ``load_config(yaml_fallbacks=...)`` so YAML
    values sit below CLI args and environment variables.
    """
    values: dict[str, Any] = {
        k: v for k, v in unified.notion.model_dump().items() if v is not None
    }
    if unified.sync.store_dir:
        values["store_dir"] = unified.sync.store_dir
    if unified.sync.state_dir:
        values["state_dir"] = unified.sync.state_dir
    return values
