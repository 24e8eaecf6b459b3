"""Map remote Omnivore items to host notes.

Articles map 1:1 to notes titled after the article; the first line of
each article note is an HTML comment naming the article id, so a note is
only ever overwritten by the article that wrote it.  Highlights map
many-to-one into *period notes* titled ``"<prefix> YYYY-MM-DD"``, where
the date is the highlight's creation day in the configured timezone.

Each rendered highlight is wrapped in HTML comment markers carrying its
id, so a later edit can be replaced in place inside the period note (see
``merger``).
"""

from __future__ import annotations

import re
from datetime import date, datetime

import pytz

from ..config_schema import SyncSettings
from .models import Note, RemoteArticle, RemoteHighlight

BLOCK_START = "<!-- omnivore-highlight:{id} -->"
BLOCK_END = "<!-- /omnivore-highlight -->"
ARTICLE_MARKER = "<!-- omnivore-article:{id} -->"

_ARTICLE_PATTERN = re.compile(r"\s*<!-- omnivore-article:(?P<id>[^\s>]+) -->")


def to_local_date(dt: datetime, zone: str) -> date:
    """Return the calendar day of *dt* in *zone*.

    ``"local"`` uses the host system's zone.
    """
    if zone == "local":
        return dt.astimezone().date()
    return dt.astimezone(pytz.timezone(zone)).date()


def article_owner(body: str) -> str | None:
    """Return the id of the article that wrote *body*, if any."""
    match = _ARTICLE_PATTERN.match(body)
    return match.group("id") if match else None


def _quote(text: str) -> str:
    return "\n".join(
        f"> {line}" if line.strip() else ">" for line in text.splitlines()
    )


class NoteMapper:
    """Build notes and highlight blocks for one run's settings."""

    def __init__(self, settings: SyncSettings) -> None:
        self.settings = settings

    def article_note(self, article: RemoteArticle, markdown: str) -> Note:
        """Build the note for *article* from its converted body."""
        header = []
        if article.url:
            header.append(f"Source: [{article.url}]({article.url})")
        if article.author:
            header.append(f"Author: {article.author}")
        header.append(
            "Saved: "
            + to_local_date(
                article.saved_at, self.settings.user_timezone
            ).isoformat()
        )
        if article.labels:
            header.append("Labels: " + ", ".join(article.labels))

        body = (
            ARTICLE_MARKER.format(id=article.id)
            + "\n"
            + "  \n".join(header)
            + "\n\n---\n\n"
            + markdown
        )
        return Note(
            notebook=self.settings.target_notebook,
            title=article.title.strip() or "Untitled",
            body=body.rstrip("\n") + "\n",
        )

    def period_key(self, highlight: RemoteHighlight) -> str:
        """Title of the period note *highlight* belongs to."""
        day = to_local_date(highlight.created_at, self.settings.user_timezone)
        return f"{self.settings.highlight_title_prefix} {day.isoformat()}"

    def render_highlight(self, highlight: RemoteHighlight) -> str:
        """Render *highlight* with the configured template, wrapped in markers."""
        if self.settings.highlight_template == "minimal":
            content = self._render_minimal(highlight)
        else:
            content = self._render_default(highlight)
        return (
            BLOCK_START.format(id=highlight.id)
            + "\n"
            + content
            + "\n"
            + BLOCK_END
        )

    @staticmethod
    def _render_default(highlight: RemoteHighlight) -> str:
        parts = []
        if highlight.quote:
            parts.append(_quote(highlight.quote))
        if highlight.annotation:
            parts.append(highlight.annotation)
        title = highlight.article_title or "Untitled"
        if highlight.article_url:
            parts.append(f"Source: [{title}]({highlight.article_url})")
        else:
            parts.append(f"Source: {title}")
        return "\n\n".join(parts)

    @staticmethod
    def _render_minimal(highlight: RemoteHighlight) -> str:
        lines = []
        if highlight.quote:
            lines.append(_quote(highlight.quote))
        if highlight.annotation:
            lines.append(highlight.annotation)
        return "\n".join(lines)
