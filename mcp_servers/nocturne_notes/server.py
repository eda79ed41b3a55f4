"""
Nocturne Notes MCP Server

Exposes the encrypted note store (unlock, CRUD, export/import) as tools via
the Model Context Protocol. Runs with SSE transport on the host and port
from ``nocturne.config.settings``.

The server holds no data of its own. Every tool forwards to one
``StoreManager`` on a worker thread, so waiting on the manager lock never
blocks the event loop. Manager errors become ``{"status": "error"}`` payloads.
"""

import logging
from datetime import UTC, datetime

import anyio.to_thread
from mcp.server.fastmcp import FastMCP

from nocturne.config import settings
from nocturne.errors import NocturneError
from nocturne.manager import StoreManager
from nocturne.models import Note

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("nocturne_notes")

# ---------------------------------------------------------------------------
# MCP server + store
# ---------------------------------------------------------------------------
mcp = FastMCP("nocturne-notes", host=settings.server_host, port=settings.server_port)
manager = StoreManager()


def _note_dict(note: Note) -> dict:
    return note.model_dump(mode="json")


def _error(exc: NocturneError) -> dict:
    return {"error": str(exc), "kind": exc.kind, "status": "error"}


_EMPTY_PASSWORD = {
    "error": "Password cannot be empty.",
    "kind": "empty_password",
    "status": "error",
}


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def unlock(password: str) -> dict:
    """Unlock the note store with the master password.

    Creates a new, empty store if none exists yet. An empty password is
    refused before the store is touched.

    Args:
        password: The master password.

    Returns:
        Dictionary with the unlock status and the number of notes.
    """
    logger.info("Tool unlock invoked")
    if not password:
        return dict(_EMPTY_PASSWORD)
    try:
        await anyio.to_thread.run_sync(manager.unlock, password)
        notes = await anyio.to_thread.run_sync(manager.list_notes)
        return {"notes": len(notes), "status": "success"}
    except NocturneError as e:
        return _error(e)


@mcp.tool()
async def list_notes() -> dict:
    """List every note, most recently updated first.

    Returns:
        Dictionary with the notes and their count.
    """
    try:
        notes = await anyio.to_thread.run_sync(manager.list_notes)
    except NocturneError as e:
        return _error(e)
    logger.info("Tool list_notes invoked, found=%d", len(notes))
    return {"count": len(notes), "notes": [_note_dict(n) for n in notes], "status": "success"}


@mcp.tool()
async def search_notes(query: str) -> dict:
    """Search notes by keyword (substring match on title and content).

    Args:
        query: The search string.

    Returns:
        Dictionary with matching notes and their count.
    """
    try:
        notes = await anyio.to_thread.run_sync(manager.search_notes, query)
    except NocturneError as e:
        return _error(e)
    logger.info("Tool search_notes invoked, found=%d", len(notes))
    return {"count": len(notes), "notes": [_note_dict(n) for n in notes], "status": "success"}


@mcp.tool()
async def create_note(title: str, content: str) -> dict:
    """Create a note and save the store.

    Args:
        title: Short descriptive title.
        content: The note body.

    Returns:
        Dictionary with the new note.
    """
    try:
        note = await anyio.to_thread.run_sync(manager.create_note, title, content)
    except NocturneError as e:
        return _error(e)
    logger.info("Tool create_note invoked, id=%d", note.id)
    return {"note": _note_dict(note), "status": "success"}


@mcp.tool()
async def update_note(note_id: int, title: str, content: str) -> dict:
    """Replace the title and content of an existing note.

    Args:
        note_id: Id of the note to change.
        title: New title.
        content: New body.

    Returns:
        Dictionary with the updated note.
    """
    logger.info("Tool update_note invoked, id=%d", note_id)
    try:
        note = await anyio.to_thread.run_sync(manager.update_note, note_id, title, content)
    except NocturneError as e:
        return _error(e)
    return {"note": _note_dict(note), "status": "success"}


@mcp.tool()
async def delete_note(note_id: int) -> dict:
    """Delete a note.

    Args:
        note_id: Id of the note to remove.
    """
    logger.info("Tool delete_note invoked, id=%d", note_id)
    try:
        await anyio.to_thread.run_sync(manager.delete_note, note_id)
    except NocturneError as e:
        return _error(e)
    return {"note_id": note_id, "status": "success"}


@mcp.tool()
async def export_note_text(note_id: int) -> dict:
    """Render one note as plain, unencrypted text."""
    logger.info("Tool export_note_text invoked, id=%d", note_id)
    try:
        text = await anyio.to_thread.run_sync(manager.export_note_text, note_id)
    except NocturneError as e:
        return _error(e)
    return {"text": text, "status": "success"}


@mcp.tool()
async def export_all(path: str) -> dict:
    """Write all notes to ``path`` as an encrypted store file.

    The export opens with the same master password as this store.
    """
    logger.info("Tool export_all invoked, path=%s", path)
    try:
        await anyio.to_thread.run_sync(manager.export_all, path)
    except NocturneError as e:
        return _error(e)
    return {"path": path, "status": "success"}


@mcp.tool()
async def import_notes(path: str, password: str) -> dict:
    """Merge the notes of another encrypted store file into this one.

    Args:
        path: Store file to import.
        password: Master password of the file being imported.

    Returns:
        Dictionary with the number of imported notes.
    """
    logger.info("Tool import_notes invoked, path=%s", path)
    if not password:
        return dict(_EMPTY_PASSWORD)
    try:
        count = await anyio.to_thread.run_sync(manager.import_notes, path, password)
    except NocturneError as e:
        return _error(e)
    return {"imported": count, "status": "success"}


@mcp.tool()
def health_check() -> dict:
    """Check whether the Nocturne Notes server is healthy.

    Returns:
        Dictionary with server status, lock state, and timestamp.
    """
    logger.info("Tool health_check invoked")
    return {
        "status": "healthy",
        "server": "nocturne-notes",
        "unlocked": manager.is_unlocked(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info(
        "Starting Nocturne Notes MCP server on %s:%d ...",
        settings.server_host,
        settings.server_port,
    )
    mcp.run(transport="sse")
