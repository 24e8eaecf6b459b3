"""Host adapter between the operator surfaces and the sync engine.

``SyncService`` is the only object the CLI, the daemon and the MCP tools
talk to.  It owns the loaded configuration, the ``SyncEngine`` and the
``SyncScheduler``, and turns config-file edits into a reload plus a
scheduler reconfiguration.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .config import Config
from .config_loader import ConfigWatcher, load_hierarchical_config
from .config_schema import (
    SyncSettings,
    UnifiedConfig,
    build_config,
    to_connection_config,
)
from .core.client import OmnivoreClient
from .errors import ConfigurationError, CorruptStateError
from .notes.store import FileNoteStore, NoteStore
from .scheduler import SyncScheduler
from .sync.engine import MISSING_KEY_MESSAGE, SyncEngine
from .sync.models import RunResult, RunStatus
from .sync.state import SyncStateStore

logger = logging.getLogger(__name__)

RESET_CONFIRMATION = (
    "Are you sure you want to reset the Omnivore sync data? This will clear "
    "the last sync date, all synced item IDs, and synced highlights. The "
    "next sync will fetch all articles and highlights again."
)


def load_unified_config(
    cli_overrides: dict | None = None,
) -> tuple[UnifiedConfig, Config]:
    """Load ``.env``, the YAML hierarchy and env vars.

    Returns:
        The unified config and the resolved connection ``Config``.

    Raises:
        ConfigurationError: If any source holds an invalid value.
    """
    load_dotenv()
    try:
        unified = build_config(load_hierarchical_config())
        connection = to_connection_config(unified, cli_overrides)
    except (ValueError, OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    return unified, connection


class SyncService:
    """Run, reset and schedule syncs for one configuration.

    Args:
        unified: Loaded unified configuration.
        connection: Resolved Omnivore connection settings.
        cli_overrides: CLI values re-applied on every reload.
        note_store: Host note store (``FileNoteStore`` under
            ``sync.notes_dir`` by default).
        scheduler: Injected scheduler (a new ``SyncScheduler`` by default).
        watcher: Config watcher (a new ``ConfigWatcher`` by default).
    """

    def __init__(
        self,
        unified: UnifiedConfig,
        connection: Config,
        cli_overrides: dict | None = None,
        note_store: NoteStore | None = None,
        scheduler: SyncScheduler | None = None,
        watcher: ConfigWatcher | None = None,
    ) -> None:
        self._unified = unified
        self._connection = connection
        self._cli_overrides = cli_overrides or {}
        self._reload_lock = threading.Lock()

        settings = unified.sync
        self.engine = SyncEngine(
            state_store=SyncStateStore(Path(settings.state_dir).expanduser()),
            note_store=note_store
            or FileNoteStore(Path(settings.notes_dir)),
            client_factory=self._make_client,
        )

        self.watcher = watcher or ConfigWatcher()
        self.watcher.subscribe(self.reload)
        self.scheduler = scheduler or SyncScheduler(
            run_sync=self._scheduled_run, watcher=self.watcher
        )

    @classmethod
    def from_environment(cls, cli_overrides: dict | None = None, **kwargs: Any):
        """Build a service from ``.env``, config files and env vars."""
        unified, connection = load_unified_config(cli_overrides)
        return cls(unified, connection, cli_overrides=cli_overrides, **kwargs)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def settings(self) -> SyncSettings:
        """Current sync settings (a frozen snapshot)."""
        return self._unified.sync

    @property
    def config(self) -> UnifiedConfig:
        return self._unified

    @property
    def connection(self) -> Config:
        return self._connection

    def _make_client(self, api_key: str) -> OmnivoreClient:
        return OmnivoreClient(replace(self._connection, api_key=api_key))

    def reload(self) -> bool:
        """Re-read configuration and apply it.

        An invalid configuration is logged and the previous one is kept.
        Runs already in progress keep their settings snapshot.

        Returns:
            ``True`` if the new configuration was applied.
        """
        with self._reload_lock:
            try:
                unified, connection = load_unified_config(self._cli_overrides)
            except ConfigurationError as exc:
                logger.error("Keeping previous configuration: %s", exc)
                return False

            old = self._unified.sync
            new = unified.sync
            self._unified = unified
            self._connection = connection

            if new.state_dir != old.state_dir:
                self.engine.state_store = SyncStateStore(
                    Path(new.state_dir).expanduser()
                )
            if new.notes_dir != old.notes_dir and isinstance(
                self.engine.note_store, FileNoteStore
            ):
                self.engine.note_store = FileNoteStore(Path(new.notes_dir))
            if new.sync_interval != self.scheduler.interval:
                self.scheduler.reconfigure(new.sync_interval)

        logger.info("Configuration reloaded")
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def run_now(self) -> RunResult:
        """Run one sync with the current settings."""
        return self.engine.run(self.settings, self._connection.api_key)

    def _scheduled_run(self) -> str:
        result = self.run_now()
        if result.status is RunStatus.SKIPPED:
            logger.info("Scheduled sync skipped: %s", result.message)
        return result.status.value

    def validate_connection(self) -> str:
        """Check the API key against Omnivore and return the user name."""
        if not self._connection.api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        return self._make_client(self._connection.api_key).validate_connection()

    def reset(self, confirm: bool = False) -> RunResult:
        """Clear all sync state once *confirm* is given.

        Args:
            confirm: Must be ``True``; the operator's explicit confirmation.
        """
        if not confirm:
            return RunResult(
                status=RunStatus.SKIPPED,
                message="Reset cancelled: confirmation required.",
                started_at=datetime.now(timezone.utc).isoformat(),
            )
        result = self.engine.reset()
        if result.status is RunStatus.SUCCEEDED:
            logger.info("Sync data reset by operator")
        return result

    def status(self) -> dict:
        """Describe the persisted state, the engine and the schedule."""
        store = self.engine.state_store
        info: dict[str, Any] = {
            "state_file": str(store.path),
            "notes_dir": str(Path(self.settings.notes_dir).expanduser()),
            "sync_type": self.settings.sync_type,
            "api_key_configured": bool(self._connection.api_key),
            "running": self.engine.is_running,
            "phase": self.engine.phase.value,
            "schedule": self.scheduler.status(),
        }
        try:
            state = store.load()
        except CorruptStateError as exc:
            info.update(
                state_ok=False,
                state_error=str(exc),
                last_sync_date=None,
                synced_items=0,
                synced_highlights=0,
            )
            return info

        info.update(
            state_ok=True,
            last_sync_date=(
                state.last_sync_date.isoformat()
                if state.last_sync_date
                else None
            ),
            synced_items=len(state.synced_items),
            synced_highlights=len(state.synced_highlights),
        )
        return info

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the scheduler with the configured interval."""
        self.scheduler.reconfigure(self.settings.sync_interval)
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.shutdown()
