"""Store manager: unlock lifecycle, CRUD, and encrypted export/import.

The manager owns the decrypted :class:`NoteCollection` and the session key
material. It starts locked and becomes unlocked exactly once. Every
mutation rewrites the whole store file under the session key with a fresh
nonce.

All public methods take the manager's lock, so one instance can be shared
between threads as long as callers accept that operations run one at a time.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from nocturne import container, crypto
from nocturne.config import settings
from nocturne.errors import (
    ApplicationLockedError,
    AuthenticationError,
    CorruptStoreError,
    NoteNotFoundError,
    StoreIOError,
    WrongPasswordOrCorruptDataError,
)
from nocturne.models import MAX_NOTE_ID, Note, NoteCollection, millis, utcnow
from nocturne.sensitive import SecretBytes

logger = logging.getLogger(__name__)

PasswordLike = Union[str, bytes, bytearray, SecretBytes]


@dataclass(frozen=True)
class Session:
    """Key material for one unlocked store, fixed for the process lifetime."""

    key: SecretBytes
    salt: bytes

    def wipe(self) -> None:
        self.key.wipe()


def _as_secret(password: PasswordLike) -> SecretBytes:
    if isinstance(password, SecretBytes):
        return SecretBytes(password.reveal())
    return SecretBytes(password)


def _read_container(path: Path) -> container.Container:
    """Read and split a container file. ``FileNotFoundError`` propagates."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise StoreIOError(f"Failed to read {path}: {exc}") from exc
    return container.decode(data)


def _write_atomic(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` in one step.

    The bytes go to a temporary sibling first, so a failed write leaves the
    previous file intact.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
    except OSError as exc:
        raise StoreIOError(f"Failed to write {path}: {exc}") from exc


class StoreManager:
    """Owns the encrypted store file, the session key, and the notes."""

    def __init__(self, data_path: Optional[Path] = None) -> None:
        self._path = Path(data_path) if data_path is not None else settings.store_path
        self._session: Optional[Session] = None
        self._collection = NoteCollection()
        self._last_id = 0
        self._lock = threading.RLock()

    @property
    def data_path(self) -> Path:
        return self._path

    def is_unlocked(self) -> bool:
        return self._session is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def unlock(self, password: PasswordLike) -> None:
        """Open the store, creating it on first run.

        Raises:
            WrongPasswordOrCorruptDataError: the password is wrong or the
                file was altered. The file is not touched.
            MalformedContainerError: the file is shorter than a header.
            StoreIOError: the file exists but cannot be read, or a new
                store cannot be written.
        """
        with self._lock, _as_secret(password) as secret:
            if self._session is not None:
                return

            try:
                sealed = _read_container(self._path)
            except FileNotFoundError:
                self._initialize(secret)
                return

            key = crypto.derive_key(secret, sealed.header.salt)
            try:
                plaintext = crypto.decrypt(key, sealed)
            except AuthenticationError:
                key.wipe()
                logger.warning("Unlock failed for %s", self._path)
                raise WrongPasswordOrCorruptDataError() from None

            try:
                collection = NoteCollection.from_bytes(plaintext)
            except CorruptStoreError:
                key.wipe()
                raise

            self._install(Session(key=key, salt=sealed.header.salt), collection)
            logger.info("Unlocked %s (%d notes)", self._path, len(collection))

    def _initialize(self, secret: SecretBytes) -> None:
        salt = crypto.generate_salt()
        key = crypto.derive_key(secret, salt)
        session = Session(key=key, salt=salt)
        collection = NoteCollection()
        try:
            self._persist(session, collection, self._path)
        except StoreIOError:
            key.wipe()
            raise
        self._install(session, collection)
        logger.info("Created new store at %s", self._path)

    def _install(self, session: Session, collection: NoteCollection) -> None:
        self._session = session
        self._collection = collection
        self._last_id = max((note.id for note in collection.notes), default=0)

    def close(self) -> None:
        """Wipe the session key. Intended for process shutdown."""
        with self._lock:
            if self._session is not None:
                self._session.wipe()

    def __enter__(self) -> "StoreManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _require_session(self) -> Session:
        if self._session is None:
            raise ApplicationLockedError()
        return self._session

    @staticmethod
    def _persist(session: Session, collection: NoteCollection, path: Path) -> None:
        plaintext = collection.to_bytes()
        sealed = crypto.encrypt(session.key, session.salt, plaintext)
        _write_atomic(path, sealed.to_bytes())
        logger.debug("Wrote %d notes (%d bytes) to %s", len(collection), len(plaintext), path)

    def save(self) -> None:
        """Write the in-memory notes to the store file.

        Mutations call this themselves; call it again to retry after a
        :class:`StoreIOError`.
        """
        with self._lock:
            self._persist(self._require_session(), self._collection, self._path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_notes(self) -> list[Note]:
        """Snapshot of all notes, most recently updated first."""
        with self._lock:
            self._require_session()
            return [note.model_copy(deep=True) for note in self._collection.notes]

    def get_note(self, note_id: int) -> Note:
        with self._lock:
            self._require_session()
            note = self._collection.find(note_id)
            if note is None:
                raise NoteNotFoundError(note_id)
            return note.model_copy(deep=True)

    def search_notes(self, query: str) -> list[Note]:
        """Notes whose title or content contains ``query`` (case-insensitive)."""
        with self._lock:
            self._require_session()
            q = query.lower()
            return [
                note.model_copy(deep=True)
                for note in self._collection.notes
                if q in note.title.lower() or q in note.content.lower()
            ]

    def export_note_text(self, note_id: int) -> str:
        with self._lock:
            self._require_session()
            note = self._collection.find(note_id)
            if note is None:
                raise NoteNotFoundError(note_id)
            return note.as_text()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _next_id(self) -> int:
        now = millis(utcnow())
        candidate = max(now, self._last_id + 1)
        taken = {note.id for note in self._collection.notes}
        while candidate in taken:
            candidate += 1
        if candidate <= MAX_NOTE_ID:
            self._last_id = candidate
            return candidate

        # Ids above the clock are used up; take the highest free one below it.
        candidate = min(now, MAX_NOTE_ID)
        while candidate in taken:
            candidate -= 1
        return candidate

    def create_note(self, title: str, content: str) -> Note:
        with self._lock:
            self._require_session()
            note = Note.new(title, content, note_id=self._next_id())
            self._collection.add(note)
            logger.info("Created note %d", note.id)
            self.save()
            return note.model_copy(deep=True)

    def update_note(self, note_id: int, title: str, content: str) -> Note:
        with self._lock:
            self._require_session()
            if not self._collection.update(note_id, title, content):
                raise NoteNotFoundError(note_id)
            logger.info("Updated note %d", note_id)
            self.save()
            return self._collection.find(note_id).model_copy(deep=True)

    def delete_note(self, note_id: int) -> None:
        with self._lock:
            self._require_session()
            if not self._collection.delete(note_id):
                raise NoteNotFoundError(note_id)
            logger.info("Deleted note %d", note_id)
            self.save()

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_all(self, path: Union[str, Path]) -> None:
        """Write every note to ``path`` as an independent store file.

        The export is sealed with the current session key and salt, so it
        opens with the same master password.
        """
        with self._lock:
            session = self._require_session()
            target = Path(path)
            self._persist(session, self._collection, target)
            logger.info("Exported %d notes to %s", len(self._collection), target)

    def import_notes(self, path: Union[str, Path], password: PasswordLike) -> int:
        """Merge the notes of another store file into this one.

        The source is opened with ``password`` and its own salt. Imported
        notes are appended as-is, so ids already present are duplicated.
        Returns the number of imported notes.

        Raises:
            StoreIOError: the source cannot be read (including missing).
            WrongPasswordOrCorruptDataError: the source does not decrypt.
        """
        with self._lock, _as_secret(password) as secret:
            self._require_session()
            source = Path(path)
            try:
                sealed = _read_container(source)
            except FileNotFoundError as exc:
                raise StoreIOError(f"Failed to read import file {source}: {exc}") from exc

            with crypto.derive_key(secret, sealed.header.salt) as key:
                try:
                    plaintext = crypto.decrypt(key, sealed)
                except AuthenticationError:
                    logger.warning("Import failed for %s", source)
                    raise WrongPasswordOrCorruptDataError() from None

            imported = NoteCollection.from_bytes(plaintext)
            count = self._collection.merge(imported)
            self._last_id = max(self._last_id, max((n.id for n in imported.notes), default=0))
            logger.info("Imported %d notes from %s", count, source)
            self.save()
            return count
