"""Core sync engine that orchestrates a one-way Omnivore sync run.

The ``SyncEngine`` ties together the client, converter, mapper, merger
and state store into a complete run.  It:

1. Refuses to start without an API key (no network call is made).
2. Loads persisted sync state; corrupt state is treated as a first run.
3. Fetches articles updated since the cursor and writes one note each,
   skipping articles already in ``synced_items``.  Two articles never
   share a note: a title owned by another note gets an id suffix.
4. Fetches highlights inside the look-back window, skips those whose
   content signature is unchanged, and merges the rest into period notes
   with one read-merge-write per note.
5. Advances the cursor over the contiguous prefix of successfully
   processed articles and commits the state once.

The engine is the only place that decides between aborting a run and
recording a per-item failure: a fetch failure aborts without committing,
a note-write failure is recorded and the run continues.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from ..config_schema import SyncSettings
from ..converters import html_to_markdown
from ..errors import (
    CorruptStateError,
    NoteWriteError,
    OmnivoreSyncError,
    TransientError,
    UnauthorizedError,
)
from ..notes.store import NoteStore
from .mapper import NoteMapper, article_owner
from .merger import merge_highlight_blocks
from .models import (
    RemoteArticle,
    RemoteHighlight,
    RunResult,
    RunStatus,
    SyncAction,
    SyncPhase,
    SyncResult,
)
from .state import HighlightRecord, SyncState, SyncStateStore

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "Omnivore API key is not set. Please configure it in the settings."
)
BUSY_MESSAGE = "A sync is already in progress."
RESET_MESSAGE = (
    "Omnivore sync data has been reset. "
    "The next sync will fetch all articles and highlights."
)

# Room left for an id suffix under the note store's title length limit.
_SUFFIXED_TITLE_BASE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RunContext:
    """Mutable bookkeeping for one run."""

    def __init__(self, settings: SyncSettings, started_at: str) -> None:
        self.settings = settings
        self.started_at = started_at
        self.results: list[SyncResult] = []
        self.articles_skipped = 0
        self.highlights_skipped = 0


class SyncEngine:
    """Run one-way syncs from Omnivore into a note store.

    Args:
        state_store: Persisted sync state.
        note_store: Host note store that receives the notes.
        client_factory: Builds an Omnivore client for an API key.
        converter: HTML to Markdown conversion function.
        clock: Returns the current aware datetime; the look-back window
            is measured from it.
    """

    def __init__(
        self,
        state_store: SyncStateStore,
        note_store: NoteStore,
        client_factory: Callable[[str], Any],
        converter: Callable[[str], str] = html_to_markdown,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.state_store = state_store
        self.note_store = note_store
        self.client_factory = client_factory
        self.converter = converter
        self.clock = clock

        self._lock = threading.Lock()
        self._phase = SyncPhase.IDLE

    @property
    def phase(self) -> SyncPhase:
        """Phase of the run in progress (``IDLE`` when none)."""
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _set_phase(self, phase: SyncPhase) -> None:
        logger.debug("Sync phase: %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    def run(self, settings: SyncSettings, api_key: str | None) -> RunResult:
        """Execute one sync run.

        Only one run (or reset) may be active at a time; a call made
        while another is active returns immediately with
        ``RunStatus.SKIPPED``.

        Args:
            settings: Settings snapshot used for the whole run.
            api_key: Omnivore API key.

        Returns:
            A ``RunResult`` describing what was written.
        """
        started_at = _utcnow().isoformat()
        if not self._lock.acquire(blocking=False):
            logger.info("Sync already in progress, skipping this trigger")
            return RunResult(
                status=RunStatus.SKIPPED,
                phase=self._phase,
                sync_type=settings.sync_type,
                message=BUSY_MESSAGE,
                started_at=started_at,
                completed_at=_utcnow().isoformat(),
            )
        try:
            return self._run(settings, api_key, started_at)
        finally:
            self._phase = SyncPhase.IDLE
            self._lock.release()

    def reset(self) -> RunResult:
        """Clear the cursor and both synced sets in one atomic write."""
        started_at = _utcnow().isoformat()
        if not self._lock.acquire(blocking=False):
            logger.info("Sync in progress, refusing to reset sync data")
            return RunResult(
                status=RunStatus.SKIPPED,
                phase=self._phase,
                message=BUSY_MESSAGE,
                started_at=started_at,
                completed_at=_utcnow().isoformat(),
            )
        try:
            self.state_store.reset()
        finally:
            self._lock.release()
        return RunResult(
            status=RunStatus.SUCCEEDED,
            message=RESET_MESSAGE,
            started_at=started_at,
            completed_at=_utcnow().isoformat(),
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _run(
        self, settings: SyncSettings, api_key: str | None, started_at: str
    ) -> RunResult:
        ctx = _RunContext(settings, started_at)

        if not api_key or not api_key.strip():
            logger.error(MISSING_KEY_MESSAGE)
            return self._failed(ctx, MISSING_KEY_MESSAGE)

        state = self._load_state()
        client = self.client_factory(api_key.strip())
        mapper = NoteMapper(settings)
        now = self.clock()

        try:
            if settings.syncs_articles:
                state.last_sync_date = self._sync_articles(
                    client, mapper, state, ctx
                )
            if settings.syncs_highlights:
                self._sync_highlights(client, mapper, state, ctx, now)
        except UnauthorizedError as exc:
            logger.error("Omnivore sync failed: %s", exc)
            return self._failed(ctx, str(exc))
        except TransientError as exc:
            logger.warning(
                "Omnivore sync aborted, will retry on the next run: %s", exc
            )
            return self._failed(ctx, str(exc))
        except OmnivoreSyncError as exc:
            logger.error("Omnivore sync failed: %s", exc)
            return self._failed(ctx, str(exc))

        self._set_phase(SyncPhase.COMMITTING)
        try:
            self.state_store.commit(state)
        except OSError as exc:
            logger.error("Failed to commit sync state: %s", exc)
            return self._failed(ctx, f"Failed to save sync state: {exc}")

        failures = sum(1 for r in ctx.results if not r.success)
        message = None
        if failures:
            message = (
                f"{failures} note(s) could not be written; "
                "they will be retried on the next sync."
            )
        logger.info(
            "Omnivore sync finished: %d note(s) written, %d failed",
            len(ctx.results) - failures,
            failures,
        )
        return RunResult(
            status=RunStatus.SUCCEEDED,
            phase=SyncPhase.IDLE,
            sync_type=settings.sync_type,
            results=ctx.results,
            articles_skipped=ctx.articles_skipped,
            highlights_skipped=ctx.highlights_skipped,
            last_sync_date=(
                state.last_sync_date.isoformat()
                if state.last_sync_date
                else None
            ),
            message=message,
            started_at=ctx.started_at,
            completed_at=_utcnow().isoformat(),
        )

    def _load_state(self) -> SyncState:
        try:
            return self.state_store.load()
        except CorruptStateError as exc:
            logger.error(
                "Sync state is corrupt, starting from scratch: %s", exc
            )
            return SyncState()

    def _failed(self, ctx: _RunContext, message: str) -> RunResult:
        self._set_phase(SyncPhase.FAILED)
        return RunResult(
            status=RunStatus.FAILED,
            phase=SyncPhase.FAILED,
            sync_type=ctx.settings.sync_type,
            results=ctx.results,
            articles_skipped=ctx.articles_skipped,
            highlights_skipped=ctx.highlights_skipped,
            message=message,
            started_at=ctx.started_at,
            completed_at=_utcnow().isoformat(),
        )

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def _sync_articles(
        self,
        client: Any,
        mapper: NoteMapper,
        state: SyncState,
        ctx: _RunContext,
    ) -> datetime | None:
        """Write new articles and return the advanced cursor."""
        self._set_phase(SyncPhase.FETCHING_ARTICLES)
        articles: list[RemoteArticle] = list(
            client.iter_articles(since=state.last_sync_date)
        )
        articles.sort(key=lambda a: a.updated_at)
        logger.info("Fetched %d candidate article(s)", len(articles))

        self._set_phase(SyncPhase.CONVERTING_ARTICLES)
        cursor = state.last_sync_date
        prefix_intact = True

        for article in articles:
            if article.id in state.synced_items:
                ctx.articles_skipped += 1
            else:
                result = self._write_article(article, mapper)
                ctx.results.append(result)
                if result.success:
                    state.synced_items.add(article.id)
                else:
                    prefix_intact = False

            if prefix_intact and (
                cursor is None or article.updated_at > cursor
            ):
                cursor = article.updated_at

        return cursor

    def _write_article(
        self, article: RemoteArticle, mapper: NoteMapper
    ) -> SyncResult:
        note = mapper.article_note(article, self.converter(article.content))
        title = note.title
        action = SyncAction.CREATE_NOTE
        try:
            title, existing = self._claim_title(
                note.notebook, note.title, article.id
            )
            if existing is not None:
                action = SyncAction.UPDATE_NOTE
            self.note_store.upsert_note(note.notebook, title, note.body)
        except (NoteWriteError, OSError) as exc:
            logger.error("Failed to write article %s: %s", article.id, exc)
            return SyncResult(
                title=title,
                action=action,
                success=False,
                item_ids=[article.id],
                error=str(exc),
            )

        logger.debug("%s '%s'", action.value, title)
        return SyncResult(
            title=title,
            action=action,
            success=True,
            item_ids=[article.id],
        )

    def _claim_title(
        self, notebook: str, title: str, article_id: str
    ) -> tuple[str, str | None]:
        """Pick a note title that only *article_id* writes to.

        A note is reused only when it carries this article's marker; any
        other existing note under the title (another article, a period
        note, or the user's own) moves the article to an id-suffixed
        title.

        Returns:
            The title and the body currently stored under it.

        Raises:
            NoteWriteError: If every candidate title is taken.
        """
        base = title[:_SUFFIXED_TITLE_BASE].rstrip()
        candidates = dict.fromkeys(
            [title, f"{base} ({article_id[:8]})", f"{base} ({article_id})"]
        )
        for candidate in candidates:
            body = self.note_store.get_note_body(notebook, candidate)
            if body is None or article_owner(body) == article_id:
                return candidate, body
        raise NoteWriteError(
            notebook, title, "title is already used by other notes"
        )

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def _sync_highlights(
        self,
        client: Any,
        mapper: NoteMapper,
        state: SyncState,
        ctx: _RunContext,
        now: datetime,
    ) -> None:
        settings = ctx.settings
        self._set_phase(SyncPhase.FETCHING_HIGHLIGHTS)
        window_start = now - timedelta(days=settings.highlight_sync_period)

        # Last occurrence wins if a highlight is returned twice.
        by_id: dict[str, RemoteHighlight] = {}
        for highlight in client.iter_highlights(since=window_start):
            by_id[highlight.id] = highlight
        logger.info(
            "Fetched %d highlight(s) since %s",
            len(by_id),
            window_start.isoformat(),
        )

        self._set_phase(SyncPhase.MERGING_HIGHLIGHTS)
        groups: dict[str, list[RemoteHighlight]] = {}
        for highlight in sorted(by_id.values(), key=lambda h: h.sort_key):
            record = state.synced_highlights.get(highlight.id)
            if record is not None and record.signature == highlight.signature:
                ctx.highlights_skipped += 1
                continue
            # Edited highlights stay in the note they were first written to.
            key = record.note_title if record else mapper.period_key(highlight)
            groups.setdefault(key, []).append(highlight)

        for title, members in groups.items():
            result = self._merge_period_note(
                settings.target_notebook, title, members, mapper
            )
            ctx.results.append(result)
            if not result.success:
                continue
            synced_at = now.isoformat()
            for highlight in members:
                state.synced_highlights[highlight.id] = HighlightRecord(
                    note_title=title,
                    signature=highlight.signature,
                    synced_at=synced_at,
                )

    def _merge_period_note(
        self,
        notebook: str,
        title: str,
        members: list[RemoteHighlight],
        mapper: NoteMapper,
    ) -> SyncResult:
        ids = [h.id for h in members]
        blocks = [(h.id, mapper.render_highlight(h)) for h in members]
        try:
            existing = self.note_store.get_note_body(notebook, title)
            body = merge_highlight_blocks(existing, blocks)
            self.note_store.upsert_note(notebook, title, body)
        except (NoteWriteError, OSError) as exc:
            logger.error("Failed to write period note '%s': %s", title, exc)
            return SyncResult(
                title=title,
                action=SyncAction.MERGE_HIGHLIGHTS,
                success=False,
                item_ids=ids,
                error=str(exc),
            )

        logger.debug("Merged %d highlight(s) into '%s'", len(ids), title)
        return SyncResult(
            title=title,
            action=SyncAction.MERGE_HIGHLIGHTS,
            success=True,
            item_ids=ids,
        )
