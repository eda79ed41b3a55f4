"""Pydantic models for the encrypted note store."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterator, Optional

from pydantic import BaseModel, Field, ValidationError

from nocturne.errors import CorruptStoreError

MAX_NOTE_ID = 2**64 - 1


def utcnow() -> datetime:
    return datetime.now(UTC)


def millis(moment: datetime) -> int:
    """Epoch milliseconds for ``moment``."""
    return int(moment.timestamp() * 1000)


class Note(BaseModel):
    """A single note with metadata."""

    id: int = Field(..., ge=0, le=MAX_NOTE_ID, frozen=True, description="Epoch-millis id")
    title: str = Field(..., description="Note title")
    content: str = Field(..., description="Note content")
    created_at: datetime = Field(..., description="UTC creation timestamp")
    updated_at: datetime = Field(..., description="UTC last update timestamp")

    @classmethod
    def new(cls, title: str, content: str, note_id: Optional[int] = None) -> "Note":
        """Create a note stamped with the current time.

        The id defaults to the creation time in epoch milliseconds.
        """
        now = utcnow()
        return cls(
            id=millis(now) if note_id is None else note_id,
            title=title,
            content=content,
            created_at=now,
            updated_at=now,
        )

    def touch(self) -> None:
        """Refresh ``updated_at`` without ever moving it backwards."""
        self.updated_at = max(utcnow(), self.updated_at)

    def as_text(self) -> str:
        """Plain-text rendering used for single-note export."""
        return f"Title: {self.title}\n\nContent:\n{self.content}"


class NoteCollection(BaseModel):
    """Notes ordered by ``updated_at``, most recent first.

    Ids are not de-duplicated on insertion.
    """

    notes: list[Note] = Field(default_factory=list)

    def _sort(self) -> None:
        self.notes.sort(key=lambda note: note.updated_at, reverse=True)

    def add(self, note: Note) -> None:
        self.notes.append(note)
        self._sort()

    def update(self, note_id: int, title: str, content: str) -> bool:
        """Change a note's title and content; False if the id is absent."""
        note = self.find(note_id)
        if note is None:
            return False
        note.title = title
        note.content = content
        note.touch()
        self._sort()
        return True

    def delete(self, note_id: int) -> bool:
        """Remove every note with ``note_id``; False if none matched."""
        remaining = [note for note in self.notes if note.id != note_id]
        if len(remaining) == len(self.notes):
            return False
        self.notes = remaining
        return True

    def find(self, note_id: int) -> Optional[Note]:
        return next((note for note in self.notes if note.id == note_id), None)

    def merge(self, other: "NoteCollection") -> int:
        """Add every note from ``other``; returns how many were added."""
        for note in other.notes:
            self.add(note)
        return len(other.notes)

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[Note]:  # type: ignore[override]
        return iter(self.notes)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "NoteCollection":
        """Parse decrypted store plaintext.

        Raises:
            CorruptStoreError: if ``data`` is not a serialized collection.
        """
        try:
            collection = cls.model_validate_json(data)
        except ValidationError as exc:
            raise CorruptStoreError(
                f"Decrypted data is not a note collection ({exc.error_count()} errors)"
            ) from None
        collection._sort()
        return collection
