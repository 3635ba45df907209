"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import load_layered_config
from ..core.async_utils import run_sync
from ..errors import StoreError
from ..store import JsonFileStore

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Merge config sources: CLI > env vars > .env > YAML > defaults
    - Open the workspace store and read it once
    - Fail fast if the workspace file is unreadable

    Args:
        config_overrides: Optional dict with config values from CLI
            (store_path, collection).

    Yields:
        Dict with 'store' (the opened ``JsonFileStore``) and 'config'.

    Raises:
        RuntimeError: If configuration is invalid or the workspace cannot
            be read.
    """
    logger.info("MCP server starting...")
    _stderr_print("cms-json-sync MCP server starting...")

    try:
        load_dotenv()
        config, sources = load_layered_config(config_overrides)
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  Workspace: {config.store_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    store = JsonFileStore(Path(config.store_path).expanduser())
    try:
        collections = await run_sync(store.list_collections)
    except (OSError, StoreError) as e:
        logger.error("Failed to open workspace %s: %s", store.path, e)
        _stderr_print(f"ERROR: Cannot read workspace {store.path}")
        _stderr_print(f"  {e}")
        raise RuntimeError(f"Cannot read workspace {store.path}: {e}") from e

    logger.info("Workspace %s has %d collections", store.path, len(collections))
    _stderr_print(f"  Collections: {len(collections)}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"store": store, "config": config}

    logger.info("MCP server shutting down")
    _stderr_print("cms-json-sync MCP server shutting down.")
