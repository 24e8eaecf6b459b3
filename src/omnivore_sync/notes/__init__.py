"""Host note store abstraction."""

from .store import FileNoteStore, NoteStore

__all__ = ["FileNoteStore", "NoteStore"]
