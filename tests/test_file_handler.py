"""Tests for file_handler and the file-backed note store."""

from pathlib import Path

import pytest

from omnivore_sync.errors import NoteWriteError
from omnivore_sync.file_handler import read_file_with_encoding, validate_within, write_file
from omnivore_sync.notes.store import FileNoteStore

# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------


class TestValidateWithin:
    def test_inside(self, tmp_path):
        path = validate_within(tmp_path / "a" / "b.md", tmp_path)
        assert path == (tmp_path / "a" / "b.md").resolve()

    def test_escape_raises(self, tmp_path):
        with pytest.raises(ValueError, match="outside base directory"):
            validate_within(tmp_path / ".." / "x.md", tmp_path)

    def test_symlink_escape_raises(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(outside)

        with pytest.raises(ValueError):
            validate_within(root / "link" / "x.md", root)


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


class TestReadFileWithEncoding:
    def test_utf8_file(self, tmp_path):
        text = "Café naïve über, déjà vu.\n" * 10
        path = tmp_path / "note.md"
        path.write_bytes(text.encode("utf-8"))

        content, encoding = read_file_with_encoding(path)

        assert content == text
        assert encoding.replace("_", "-").lower() == "utf-8"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.md"
        path.write_bytes(b"")
        assert read_file_with_encoding(path) == ("", "utf-8")

    def test_ascii_reported_as_utf8(self, tmp_path):
        path = tmp_path / "plain.md"
        path.write_bytes(b"plain text only\n")
        assert read_file_with_encoding(path)[1] == "utf-8"


class TestWriteFile:
    def test_write_basic(self, tmp_path):
        path = tmp_path / "out.md"
        written = write_file(path, "hello\n")
        assert written == 6
        assert path.read_text() == "hello\n"

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "a" / "b" / "out.md"
        write_file(path, "x")
        assert path.exists()

    def test_replaces_and_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "out.md"
        write_file(path, "first")
        write_file(path, "second")

        assert path.read_text() == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["out.md"]


# ---------------------------------------------------------------------------
# FileNoteStore
# ---------------------------------------------------------------------------


class TestFileNoteStore:
    def test_upsert_creates_note(self, tmp_path):
        store = FileNoteStore(tmp_path)

        note_id = store.upsert_note("Omnivore", "A Title", "body\n")

        assert note_id == str(Path("Omnivore") / "A Title.md")
        assert (tmp_path / "Omnivore" / "A Title.md").read_text() == "body\n"
        assert store.has_note("Omnivore", "A Title")

    def test_upsert_replaces_body(self, tmp_path):
        store = FileNoteStore(tmp_path)
        store.upsert_note("Omnivore", "A Title", "old\n")
        store.upsert_note("Omnivore", "A Title", "new\n")
        assert store.get_note_body("Omnivore", "A Title") == "new\n"

    def test_missing_note_is_none(self, tmp_path):
        store = FileNoteStore(tmp_path)
        assert store.get_note_body("Omnivore", "Nope") is None
        assert not store.has_note("Omnivore", "Nope")

    def test_hostile_title_stays_inside_root(self, tmp_path):
        store = FileNoteStore(tmp_path / "notes")

        store.upsert_note("Omnivore", "../../escape: a/b", "x\n")

        written = list((tmp_path / "notes").rglob("*.md"))
        assert len(written) == 1
        assert written[0].parent == (tmp_path / "notes" / "Omnivore").resolve()
        assert store.get_note_body("Omnivore", "../../escape: a/b") == "x\n"

    def test_write_failure_raises_note_write_error(self, tmp_path):
        blocker = tmp_path / "notes"
        blocker.write_text("not a directory")
        store = FileNoteStore(blocker)

        with pytest.raises(NoteWriteError) as excinfo:
            store.upsert_note("Omnivore", "Title", "x\n")

        assert excinfo.value.title == "Title"
        assert "Failed to write note 'Title'" in str(excinfo.value)
