"""Host note store interface and the default file-backed implementation.

The sync engine only needs two operations from the host:

- ``upsert_note(notebook, title, body) -> note_id``
- ``get_note_body(notebook, title) -> body | None``

``FileNoteStore`` keeps one directory per notebook and one Markdown file
per note, named after the (sanitised) note title.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from ..errors import NoteWriteError
from ..file_handler import read_file_with_encoding, validate_within, write_file
from ..validators import sanitize_title

logger = logging.getLogger(__name__)


class NoteStore(Protocol):
    """Protocol that host note stores must satisfy."""

    def upsert_note(self, notebook: str, title: str, body: str) -> str:
        """Create the note or replace its body.

        Returns:
            The host's identifier for the note.

        Raises:
            NoteWriteError: If the note could not be written.
        """
        ...  # pragma: no cover

    def get_note_body(self, notebook: str, title: str) -> str | None:
        """Return the note body, or ``None`` if the note does not exist."""
        ...  # pragma: no cover


class FileNoteStore:
    """Store notes as ``<root>/<notebook>/<title>.md`` files.

    Args:
        root: Root directory of the store; created on first write.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser()

    def note_path(self, notebook: str, title: str) -> Path:
        """Return the file path for a note, guarding against traversal."""
        path = (
            self.root / sanitize_title(notebook) / f"{sanitize_title(title)}.md"
        )
        return validate_within(path, self.root)

    def upsert_note(self, notebook: str, title: str, body: str) -> str:
        try:
            path = self.note_path(notebook, title)
            existed = path.exists()
            write_file(path, body)
        except (OSError, ValueError) as exc:
            raise NoteWriteError(notebook, title, str(exc)) from exc

        logger.debug(
            "%s note %s", "Updated" if existed else "Created", path
        )
        return str(path.relative_to(self.root.resolve()))

    def get_note_body(self, notebook: str, title: str) -> str | None:
        path = self.note_path(notebook, title)
        if not path.is_file():
            return None
        content, _ = read_file_with_encoding(path)
        return content

    def has_note(self, notebook: str, title: str) -> bool:
        return self.note_path(notebook, title).is_file()
