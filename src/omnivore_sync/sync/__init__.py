"""One-way Omnivore sync engine.

Public API for materialising an Omnivore library (articles and
highlights) as notes in a host note store.

Architecture
------------
Articles are fetched **incrementally** from a persisted cursor
(``lastSyncDate``) and written one note per article.  Highlights are
re-scanned over a rolling **look-back window** instead, because they can
attach to articles older than the cursor; each is merged into a
date-bucketed *period note*.  Idempotence comes from the persisted
synced sets, not from the remote query.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a sync run.
- ``state``     -- ``SyncState`` / ``SyncStateStore``: atomic JSON state.
- ``mapper``    -- ``NoteMapper``: article notes, period keys, templates.
- ``merger``    -- Read-merge-write of highlight blocks.
- ``models``    -- ``RemoteArticle``, ``RemoteHighlight``, ``Note``,
  ``SyncPhase``, ``SyncAction``, ``RunStatus``, ``SyncResult``,
  ``RunResult``: core data contracts.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from omnivore_sync.config_schema import SyncSettings
    from omnivore_sync.notes import FileNoteStore
    from omnivore_sync.sync import SyncEngine, SyncStateStore, format_run_report

    settings = SyncSettings(sync_type="all", user_timezone="Europe/London")
    engine = SyncEngine(
        state_store=SyncStateStore(Path(".omnivore_sync")),
        note_store=FileNoteStore(Path("~/OmnivoreNotes")),
        client_factory=lambda key: OmnivoreClient(Config(api_key=key)),
    )

    result = engine.run(settings, api_key)
    print(format_run_report(result))
"""

from .engine import SyncEngine
from .mapper import NoteMapper
from .merger import merge_highlight_blocks
from .models import (
    Note,
    RemoteArticle,
    RemoteHighlight,
    RunResult,
    RunStatus,
    SyncAction,
    SyncPhase,
    SyncResult,
)
from .reporter import format_run_report, result_to_json
from .state import HighlightRecord, SyncState, SyncStateStore, content_signature

__all__ = [
    "HighlightRecord",
    "Note",
    "NoteMapper",
    "RemoteArticle",
    "RemoteHighlight",
    "RunResult",
    "RunStatus",
    "SyncAction",
    "SyncEngine",
    "SyncPhase",
    "SyncResult",
    "SyncState",
    "SyncStateStore",
    "content_signature",
    "format_run_report",
    "merge_highlight_blocks",
    "result_to_json",
]
