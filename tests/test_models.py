"""Unit tests for nocturne.models: Note and NoteCollection."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from itertools import count
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from nocturne.errors import CorruptStoreError
from nocturne.models import Note, NoteCollection, millis

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ticking_clock(step: timedelta = timedelta(seconds=1)):
    """Return a utcnow replacement that advances by ``step`` per call."""
    ticks = count()
    return lambda: BASE + step * next(ticks)


def _note(note_id: int, minutes: int, title: str = "t") -> Note:
    stamp = BASE + timedelta(minutes=minutes)
    return Note(id=note_id, title=title, content="c", created_at=stamp, updated_at=stamp)


def _is_sorted(collection: NoteCollection) -> bool:
    stamps = [note.updated_at for note in collection.notes]
    return stamps == sorted(stamps, reverse=True)


# ---------------------------------------------------------------------------
# Note
# ---------------------------------------------------------------------------


class TestNoteModel:
    def test_new_note_defaults(self) -> None:
        with patch("nocturne.models.utcnow", return_value=BASE):
            note = Note.new("Hello", "World")
        assert note.id == millis(BASE)
        assert note.title == "Hello"
        assert note.content == "World"
        assert note.created_at == note.updated_at == BASE

    def test_explicit_id(self) -> None:
        assert Note.new("a", "b", note_id=42).id == 42

    def test_empty_title_and_content_allowed(self) -> None:
        note = Note.new("", "")
        assert note.title == ""
        assert note.content == ""

    def test_id_is_immutable(self) -> None:
        note = Note.new("a", "b", note_id=1)
        with pytest.raises(ValidationError):
            note.id = 2

    def test_id_must_fit_u64(self) -> None:
        with pytest.raises(ValidationError):
            _note(2**64, 0)
        with pytest.raises(ValidationError):
            _note(-1, 0)

    def test_touch_advances(self) -> None:
        note = _note(1, 0)
        with patch("nocturne.models.utcnow", return_value=BASE + timedelta(hours=1)):
            note.touch()
        assert note.updated_at == BASE + timedelta(hours=1)
        assert note.created_at == BASE

    def test_touch_never_goes_backwards(self) -> None:
        note = _note(1, 0)
        with patch("nocturne.models.utcnow", return_value=BASE - timedelta(days=1)):
            note.touch()
        assert note.updated_at == BASE

    def test_as_text(self) -> None:
        note = Note.new("Groceries", "milk\neggs")
        assert note.as_text() == "Title: Groceries\n\nContent:\nmilk\neggs"


# ---------------------------------------------------------------------------
# NoteCollection
# ---------------------------------------------------------------------------


class TestNoteCollection:
    def test_empty(self) -> None:
        collection = NoteCollection()
        assert collection.notes == []
        assert len(collection) == 0

    def test_add_sorts_newest_first(self) -> None:
        collection = NoteCollection()
        collection.add(_note(1, 0))
        collection.add(_note(2, 10))
        collection.add(_note(3, 5))
        assert [n.id for n in collection.notes] == [2, 3, 1]

    def test_equal_timestamps_keep_insertion_order(self) -> None:
        collection = NoteCollection()
        collection.add(_note(1, 0))
        collection.add(_note(2, 0))
        assert [n.id for n in collection.notes] == [1, 2]

    def test_update_refreshes_and_resorts(self) -> None:
        collection = NoteCollection()
        collection.add(_note(1, 0))
        collection.add(_note(2, 10))
        with patch("nocturne.models.utcnow", return_value=BASE + timedelta(hours=1)):
            assert collection.update(1, "new", "body") is True
        first = collection.notes[0]
        assert first.id == 1
        assert first.title == "new"
        assert first.content == "body"
        assert first.updated_at == BASE + timedelta(hours=1)

    def test_update_missing_is_noop(self) -> None:
        collection = NoteCollection(notes=[_note(1, 0)])
        assert collection.update(99, "x", "y") is False
        assert collection.notes[0].title == "t"

    def test_delete(self) -> None:
        collection = NoteCollection(notes=[_note(1, 0), _note(2, 1)])
        assert collection.delete(1) is True
        assert [n.id for n in collection.notes] == [2]
        assert collection.delete(1) is False

    def test_find(self) -> None:
        collection = NoteCollection(notes=[_note(1, 0, title="one")])
        assert collection.find(1).title == "one"
        assert collection.find(2) is None

    def test_iterates_notes_in_order(self) -> None:
        collection = NoteCollection()
        collection.add(_note(1, 0))
        collection.add(_note(2, 10))
        notes = list(collection)
        assert all(isinstance(n, Note) for n in notes)
        assert [n.id for n in notes] == [2, 1]

    def test_add_does_not_deduplicate(self) -> None:
        collection = NoteCollection()
        collection.add(_note(7, 0))
        collection.add(_note(7, 1))
        assert len(collection) == 2

    def test_merge_appends_everything(self) -> None:
        ours = NoteCollection(notes=[_note(1, 0)])
        theirs = NoteCollection(notes=[_note(1, 3), _note(2, 2)])
        assert ours.merge(theirs) == 2
        assert [n.id for n in ours.notes] == [1, 2, 1]
        assert _is_sorted(ours)

    def test_stays_sorted_after_mixed_operations(self) -> None:
        collection = NoteCollection()
        with patch("nocturne.models.utcnow", _ticking_clock()):
            for i in range(5):
                collection.add(Note.new(f"n{i}", "", note_id=i))
            for note_id in (2, 0, 4, 2):
                collection.update(note_id, "u", "u")
                assert _is_sorted(collection)
        assert [n.id for n in collection.notes][:3] == [2, 4, 0]


class TestSerialization:
    def test_round_trip(self) -> None:
        collection = NoteCollection(notes=[_note(1, 5, "a"), _note(2, 0, "b")])
        restored = NoteCollection.from_bytes(collection.to_bytes())
        assert restored == collection
        assert restored.notes[0].updated_at.tzinfo is not None

    def test_encoding_is_deterministic(self) -> None:
        collection = NoteCollection(notes=[_note(1, 5, "ü"), _note(2, 0)])
        assert collection.to_bytes() == collection.to_bytes()

    def test_from_bytes_sorts(self) -> None:
        unsorted = NoteCollection(notes=[_note(1, 0), _note(2, 10)])
        restored = NoteCollection.from_bytes(unsorted.to_bytes())
        assert [n.id for n in restored.notes] == [2, 1]

    @pytest.mark.parametrize("data", [b"", b"not json", b'{"notes": [{"id": "x"}]}', b"\xff\xfe"])
    def test_garbage_raises_corrupt_store(self, data: bytes) -> None:
        with pytest.raises(CorruptStoreError):
            NoteCollection.from_bytes(data)
