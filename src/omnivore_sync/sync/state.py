"""Sync state persistence layer.

Manages the JSON file that records what has already been materialised as
notes: the article cursor (``lastSyncDate``), the set of synced article
ids (``syncedItems``) and the synced highlight records
(``syncedHighlights``).

Key design choices:

* **Atomic writes** -- ``commit()`` writes to a temp file then calls
  ``os.replace()`` so a concurrent ``load()`` never sees partial data.
* **Content signatures** -- ``content_signature()`` normalises text (BOM,
  line-endings, trailing whitespace) before SHA-256 so an edited
  highlight is detected and a re-fetched identical one is not.
* **Load once, commit once** -- the engine mutates a ``SyncState`` in
  memory during a run and commits it at the end.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from ..errors import CorruptStateError

logger = logging.getLogger(__name__)

STATE_VERSION = 1
STATE_FILENAME = "sync_state.json"


def _normalise(text: str) -> str:
    text = text.lstrip("\ufeff").replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)


def content_signature(quote: str, annotation: str | None) -> str:
    """Compute the content signature of a highlight.

    Quote and annotation are normalised (BOM stripped, CRLF -> LF, each
    line right-stripped, trailing empty lines dropped) and hashed together
    with SHA-256.  A missing annotation and an empty one are equivalent.
    """
    payload = _normalise(quote or "") + "\x00" + _normalise(annotation or "")
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class HighlightRecord:
    """Where a highlight was written and what it looked like."""

    note_title: str
    signature: str
    synced_at: str = ""

    def to_dict(self) -> dict:
        return {
            "noteTitle": self.note_title,
            "signature": self.signature,
            "syncedAt": self.synced_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> HighlightRecord:
        return cls(
            note_title=str(data["noteTitle"]),
            signature=str(data["signature"]),
            synced_at=str(data.get("syncedAt", "")),
        )


@dataclass
class SyncState:
    """In-memory sync state for one run.

    Attributes:
        last_sync_date: Article cursor; ``None`` means "full sync".
        synced_items: Article ids already written as notes.
        synced_highlights: Highlight id -> record of the note it went into.
    """

    last_sync_date: datetime | None = None
    synced_items: set[str] = field(default_factory=set)
    synced_highlights: dict[str, HighlightRecord] = field(
        default_factory=dict
    )

    def is_empty(self) -> bool:
        return (
            self.last_sync_date is None
            and not self.synced_items
            and not self.synced_highlights
        )

    def to_dict(self) -> dict:
        return {
            "version": STATE_VERSION,
            "lastSyncDate": (
                self.last_sync_date.isoformat() if self.last_sync_date else ""
            ),
            "syncedItems": sorted(self.synced_items),
            "syncedHighlights": {
                hid: record.to_dict()
                for hid, record in sorted(self.synced_highlights.items())
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> SyncState:
        """Decode the persisted form.

        Raises:
            CorruptStateError: If any field has the wrong shape.
        """
        if not isinstance(data, dict):
            raise CorruptStateError(
                f"State root must be an object, got {type(data).__name__}"
            )
        try:
            raw_date = data.get("lastSyncDate") or ""
            last_sync = datetime.fromisoformat(raw_date) if raw_date else None
            if last_sync is not None and last_sync.tzinfo is None:
                last_sync = last_sync.replace(tzinfo=timezone.utc)

            items = data.get("syncedItems", [])
            if not isinstance(items, list):
                raise TypeError("syncedItems must be a list")

            highlights = data.get("syncedHighlights", {})
            if not isinstance(highlights, dict):
                raise TypeError("syncedHighlights must be an object")

            return cls(
                last_sync_date=last_sync,
                synced_items={str(i) for i in items},
                synced_highlights={
                    str(hid): HighlightRecord.from_dict(rec)
                    for hid, rec in highlights.items()
                },
            )
        except (TypeError, ValueError, KeyError) as exc:
            raise CorruptStateError(f"Invalid sync state: {exc}") from exc


class SyncStateStore:
    """Load, commit, and reset the persisted sync state.

    Args:
        state_dir: Directory where the state file is stored
            (typically ``.omnivore_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILENAME

    def load(self) -> SyncState:
        """Load sync state from disk.

        Returns:
            The persisted state, or an empty state if no file exists.

        Raises:
            CorruptStateError: If the file exists but cannot be decoded.
        """
        path = self.path
        if not path.exists():
            return SyncState()
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptStateError(
                f"Cannot read sync state {path}: {exc}"
            ) from exc
        return SyncState.from_dict(data)

    def commit(self, state: SyncState) -> None:
        """Persist *state* atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state.to_dict(), fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(
            "Committed sync state: %d articles, %d highlights",
            len(state.synced_items),
            len(state.synced_highlights),
        )

    def reset(self) -> None:
        """Clear cursor, synced items and synced highlights in one write."""
        self.commit(SyncState())
        logger.info("Sync state reset: %s", self.path)
