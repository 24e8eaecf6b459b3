"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config_loader import discover_config_files
from ..core.async_utils import run_sync
from ..errors import ConfigurationError, OmnivoreSyncError
from ..logger import apply_logging_config
from ..service import SyncService

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
    - Load .env, the YAML config hierarchy and env vars via SyncService
    - Validate the API key if one is configured (a bad key is only a warning;
      the sync tools report it to the agent)
    - Start the scheduler (interval job + config watcher)

    On shutdown:
    - Shut the scheduler down, waiting for a run in progress

    Args:
        config_overrides: Optional dict with config values from CLI (api_key, endpoint)

    Yields:
        Dict with 'service' key containing the started SyncService

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Omnivore Sync MCP Server starting...")

    try:
        service = SyncService.from_environment(config_overrides)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: {e}")
        raise RuntimeError(str(e)) from e

    apply_logging_config(level=service.config.logging.level)

    config_files = discover_config_files()
    source_desc = (
        f"config file: {config_files[0]}" if config_files else "defaults"
    )
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(f"  Notes directory: {service.settings.notes_dir}")

    if service.connection.api_key:
        try:
            user = await run_sync(service.validate_connection)
            logger.info("Connected to Omnivore as %s", user)
            _stderr_print(f"  Connected to Omnivore as {user}")
        except OmnivoreSyncError as e:
            logger.warning("Omnivore connection check failed: %s", e)
            _stderr_print(f"  WARNING: Omnivore connection check failed: {e}")
    else:
        logger.warning("Omnivore API key not set")
        _stderr_print("  WARNING: Omnivore API key not set (OMNIVORE_API_KEY).")

    service.start()
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"service": service}
    finally:
        service.stop()
        logger.info("MCP server shutting down")
        _stderr_print("Omnivore Sync MCP Server shutting down.")
