"""Exception hierarchy for the note store.

Every error carries a short ``kind`` string so surfaces (the MCP tool
server, tests) can report it without matching on class names.
"""

from __future__ import annotations


class NocturneError(Exception):
    """Base class for all recoverable note store errors."""

    kind = "error"


class StoreIOError(NocturneError):
    """Reading, writing, or creating the store location failed."""

    kind = "io"


class MalformedContainerError(NocturneError):
    """The container is shorter than the fixed header."""

    kind = "malformed_container"


class AuthenticationError(NocturneError):
    """AEAD tag verification failed.

    Deliberately opaque: a wrong key and tampered data are indistinguishable.
    """

    kind = "authentication_failure"

    def __init__(self, message: str = "Decryption failed: authentication tag mismatch") -> None:
        super().__init__(message)


class WrongPasswordOrCorruptDataError(AuthenticationError):
    """User-facing unlock failure."""

    def __init__(self, message: str = "Invalid password or corrupted data.") -> None:
        super().__init__(message)


class KeyDerivationError(NocturneError):
    """The password KDF rejected its inputs."""

    kind = "key_derivation_failure"


class CorruptStoreError(NocturneError):
    """Authentic plaintext that does not decode to a note collection."""

    kind = "corrupt_store"


class ApplicationLockedError(NocturneError):
    """A data operation was attempted before unlock."""

    kind = "application_locked"

    def __init__(self, message: str = "Application is locked") -> None:
        super().__init__(message)


class NoteNotFoundError(NocturneError, LookupError):
    """No note with the requested id exists."""

    kind = "not_found"

    def __init__(self, note_id: int) -> None:
        super().__init__(f"Note with ID {note_id} not found")
        self.note_id = note_id
