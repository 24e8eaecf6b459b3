"""Unified configuration schema for omnivore_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the Omnivore connection, sync behaviour and logging.
Includes an adapter to the ``Config`` dataclass used by the API client.

Usage:
    from omnivore_sync.config_schema import (
        UnifiedConfig, build_config, to_connection_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_connection_config(unified, cli_overrides={"api_key": "..."})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, field_validator

from .validators import validate_note_title, validate_timezone

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class OmnivoreConfig(BaseModel):
    """Omnivore API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    api_key: str | None = Field(
        default=None, description="Omnivore API key"
    )
    endpoint: str | None = Field(
        default=None, description="GraphQL endpoint URL"
    )
    page_size: int = Field(
        default=50, ge=1, le=100, description="Items per search page"
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Read timeout in seconds"
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for rate-limited or 5xx responses",
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """What to sync and where to put it.

    A frozen snapshot of these settings is taken at the start of each run;
    edits made while a run is in progress only affect the next run.
    """

    sync_type: Literal["all", "articles", "highlights"] = Field(
        default="all",
        description="Articles, highlights and annotations / articles only / highlights only",
    )
    sync_interval: int = Field(
        default=0,
        ge=0,
        description="Minutes between automatic syncs (0 for manual sync only)",
    )
    target_notebook: str = Field(
        default="Omnivore",
        description="Name of the notebook to sync Omnivore articles to",
    )
    user_timezone: str = Field(
        default="local",
        description='Timezone for highlight dates ("local" or e.g. "Europe/London")',
    )
    highlight_template: Literal["default", "minimal"] = Field(
        default="default",
        description="Template used to format highlights",
    )
    highlight_sync_period: int = Field(
        default=14,
        ge=1,
        description="Number of days to look back for new highlights",
    )
    highlight_title_prefix: str = Field(
        default="Omnivore Highlights",
        description="Prefix for highlight note titles (followed by the date)",
    )
    notes_dir: str = Field(
        default="~/OmnivoreNotes",
        description="Root directory of the file-backed note store",
    )
    state_dir: str = Field(
        default=".omnivore_sync",
        description="Directory holding the persisted sync state",
    )

    model_config = {"frozen": True}

    @field_validator("user_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        ok, reason = validate_timezone(value)
        if not ok:
            raise ValueError(reason)
        return value.strip()

    @field_validator("target_notebook", "highlight_title_prefix")
    @classmethod
    def _check_title(cls, value: str) -> str:
        ok, reason = validate_note_title(value)
        if not ok:
            raise ValueError(reason)
        return value.strip()

    @property
    def syncs_articles(self) -> bool:
        return self.sync_type in ("all", "articles")

    @property
    def syncs_highlights(self) -> bool:
        return self.sync_type in ("all", "highlights")


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (error, warn, info, debug).
        file: Optional log file path.
    """

    level: Literal["error", "warn", "warning", "info", "debug"] = Field(
        default="warn", description="Log level"
    )
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}

    @field_validator("level", mode="before")
    @classmethod
    def _lower(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    omnivore: OmnivoreConfig = Field(default_factory=OmnivoreConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.
    Sections set to ``null`` in YAML are treated as absent.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    cleaned = {k: v for k, v in raw_data.items() if v is not None}
    return UnifiedConfig(**cleaned)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_connection_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the client ``Config`` dataclass,
    applying environment variables and CLI overrides on top.

    The precedence applied here is:
        CLI override > env var > unified config value > default

    CLI overrides dict keys: api_key, endpoint.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        Validated ``Config`` dataclass instance.
    """
    from .config import load_config

    overrides = cli_overrides or {}
    fallbacks = {
        k: v
        for k, v in unified.omnivore.model_dump().items()
        if v is not None
    }
    return load_config(
        api_key=overrides.get("api_key"),
        endpoint=overrides.get("endpoint"),
        yaml_fallbacks=fallbacks,
    )
