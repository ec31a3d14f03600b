"""Startup: merge configuration sources and open the Notion connection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, yaml_fallbacks
from .core.client import NotionClient
from .sync.ledger import SyncLedger
from .sync.store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a command needs, built once per invocation."""

    config: Config
    settings: UnifiedConfig
    store: LocalStore
    ledger: SyncLedger
    client: NotionClient | None = None


def load_settings() -> UnifiedConfig:
    """Load the YAML config files (if any) into a ``UnifiedConfig``."""
    return build_config(load_hierarchical_config())


def load_context(
    overrides: dict[str, Any] | None = None,
    connect: bool = True,
    settings: UnifiedConfig | None = None,
) -> AppContext:
    """
    Build the application context for a command.

    Steps:
    - Load YAML config files if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
      (the .env file itself is loaded once by ``cli.run``)
    - When *connect* is set, create the NotionClient and validate the token

    Args:
        overrides: Optional dict with config values from CLI
            (api_key, store_dir, state_dir, debug).
        connect: Whether the command talks to Notion. Offline commands
            skip the API key requirement and the connection check.
        settings: Already loaded YAML settings, to avoid reading the
            files twice.

    Returns:
        The populated AppContext.

    Raises:
        RuntimeError: If configuration is invalid or the Notion connection
            fails. The original exception is chained as ``__cause__``.
    """
    try:
        # 1. Load YAML config if present
        sources = []
        config_files = discover_config_files()
        if settings is None:
            settings = load_settings()
        if config_files:
            sources.append(f"config file: {config_files[0]}")

        # 2. Single call to load_config with all sources merged
        overrides = overrides or {}
        config = load_config(
            api_key=overrides.get("api_key"),
            store_dir=overrides.get("store_dir"),
            state_dir=overrides.get("state_dir"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks(settings),
            require_api_key=connect,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        logger.info("Configuration loaded from: %s", ", ".join(sources))
        logger.info("Store: %s, state: %s", config.store_dir, config.state_dir)
    except ValueError as e:
        logger.debug("Configuration error: %s", e)
        raise RuntimeError(f"Configuration error: {e}") from e

    context = AppContext(
        config=config,
        settings=settings,
        store=LocalStore(config.store_dir),
        ledger=SyncLedger(config.state_dir),
    )
    if not connect:
        return context

    logger.info("Validating Notion connection...")
    try:
        client = NotionClient(config)
        user = client.validate_connection()
    except Exception as e:
        logger.debug("Failed to connect to Notion: %s", e)
        raise RuntimeError(f"Notion connection failed: {e}") from e

    logger.info("Connected to Notion as %s", user)
    context.client = client
    return context
