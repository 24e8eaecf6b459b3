"""Pydantic models for the one-way sync engine.

Defines the core data contracts used across all sync modules:

- ``RemoteArticle`` / ``RemoteHighlight``: read-only input from Omnivore.
- ``Note``: a note the engine asks the host note store to write.
- ``SyncPhase``: the engine's state machine.
- ``SyncAction``: what happened to one note.
- ``RunStatus``: terminal outcome of a run.
- ``SyncResult``: outcome of writing one note.
- ``RunResult``: aggregate results for a full sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from .state import content_signature


class SyncPhase(str, Enum):
    """States of a sync run.  Transitions are strictly sequential."""

    IDLE = "idle"
    FETCHING_ARTICLES = "fetching_articles"
    CONVERTING_ARTICLES = "converting_articles"
    FETCHING_HIGHLIGHTS = "fetching_highlights"
    MERGING_HIGHLIGHTS = "merging_highlights"
    COMMITTING = "committing"
    FAILED = "failed"


class SyncAction(str, Enum):
    """Possible outcomes for a single note."""

    SKIP = "skip"
    CREATE_NOTE = "create_note"
    UPDATE_NOTE = "update_note"
    MERGE_HIGHLIGHTS = "merge_highlights"


class RunStatus(str, Enum):
    """Terminal outcome of a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RemoteArticle(BaseModel):
    """An Omnivore library item.

    Attributes:
        id: Opaque identifier, stable across fetches.
        title: Article title.
        url: Canonical URL of the original page.
        content: Rich HTML body.
        saved_at: When the article was saved to the library.
        updated_at: Last update time; the article cursor is based on this.
        labels: Label names attached to the article.
    """

    id: str
    title: str
    url: str = ""
    content: str = ""
    saved_at: datetime
    updated_at: datetime
    labels: list[str] = []
    author: str | None = None
    description: str | None = None
    published_at: datetime | None = None
    slug: str | None = None

    model_config = {"frozen": True}


class RemoteHighlight(BaseModel):
    """A highlight or annotation attached to an article.

    Attributes:
        id: Opaque identifier.
        article_id: Identifier of the parent article.
        quote: The highlighted text (empty for article-level notes).
        annotation: Optional note text attached by the reader.
        created_at: Creation time; decides the period-note bucket.
        updated_at: Last edit time, if the highlight was edited.
        position_percent: Position within the article (0-100).
        position_anchor_index: Anchor index within the article.
        article_title: Parent article title, used for attribution.
        article_url: Parent article URL, used for attribution.
        highlight_type: Omnivore highlight type (HIGHLIGHT, NOTE, ...).
    """

    id: str
    article_id: str
    quote: str = ""
    annotation: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    position_percent: float = 0.0
    position_anchor_index: int = 0
    article_title: str = ""
    article_url: str = ""
    highlight_type: str = "HIGHLIGHT"

    model_config = {"frozen": True}

    @property
    def signature(self) -> str:
        """Content signature used to tell edits from duplicates."""
        return content_signature(self.quote, self.annotation)

    @property
    def sort_key(self) -> tuple:
        """Ascending creation time, then position within the article."""
        return (
            self.created_at,
            self.position_anchor_index,
            self.position_percent,
            self.id,
        )


class Note(BaseModel):
    """A note destined for the host note store."""

    notebook: str
    title: str
    body: str

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of writing one note.

    Attributes:
        title: Note title.
        action: Sync action that was performed.
        success: Whether the note write succeeded.
        item_ids: Article or highlight identifiers carried by the note.
        error: Error message if the operation failed.
    """

    title: str
    action: SyncAction
    success: bool
    item_ids: list[str] = []
    error: str | None = None

    model_config = {"frozen": True}


class RunResult(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        status: Terminal outcome of the run.
        phase: Last phase reached (``IDLE`` on success, ``FAILED`` on abort).
        sync_type: Effective scope of the run.
        results: Per-note results.
        articles_skipped: Articles already present in the synced set.
        highlights_skipped: Highlights whose signature was unchanged.
        last_sync_date: Cursor committed by this run (ISO 8601), if any.
        message: Operator-facing message for failed or skipped runs.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run ended.
    """

    status: RunStatus
    phase: SyncPhase = SyncPhase.IDLE
    sync_type: str = "all"
    results: list[SyncResult] = []
    articles_skipped: int = 0
    highlights_skipped: int = 0
    last_sync_date: str | None = None
    message: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def article_notes(self) -> list[SyncResult]:
        """Successful article note writes."""
        return [
            r
            for r in self.results
            if r.success
            and r.action in (SyncAction.CREATE_NOTE, SyncAction.UPDATE_NOTE)
        ]

    @property
    def highlight_notes(self) -> list[SyncResult]:
        """Successful period-note writes."""
        return [
            r
            for r in self.results
            if r.success and r.action == SyncAction.MERGE_HIGHLIGHTS
        ]

    @property
    def highlights_merged(self) -> int:
        return sum(len(r.item_ids) for r in self.highlight_notes)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def notes_written(self) -> int:
        return len(self.article_notes) + len(self.highlight_notes)

    def summary(self) -> str:
        """Format a one-paragraph summary of the run."""
        lines = [
            f"Omnivore sync {self.status.value} ({self.sync_type})",
            f"  Article notes:     {len(self.article_notes)}",
            f"  Highlight notes:   {len(self.highlight_notes)}",
            f"  Highlights merged: {self.highlights_merged}",
            f"  Skipped articles:  {self.articles_skipped}",
            f"  Skipped highlights: {self.highlights_skipped}",
            f"  Errors:            {len(self.errors)}",
        ]
        if self.message:
            lines.append(f"  Message: {self.message}")
        return "\n".join(lines)
