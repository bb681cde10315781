"""
Storage adapters backed by the watcher's SQLite database and the filesystem.

Neither blocks the event loop: SQLite goes through aiosqlite and file
reads run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from .errors import ContentReadError, CoordinatorError
from .models import SessionRecord

logger = logging.getLogger(__name__)

SESSION_QUERY = (
    "SELECT provider, file_path, session_id FROM agent_sessions "
    "WHERE session_id = ? LIMIT 1"
)


class SqliteSessionLookup:
    """
    Resolve session ids against the `agent_sessions` table.

    Opens a short-lived connection per lookup; the watcher owns writes.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    async def get_session(self, session_id: str) -> SessionRecord | None:
        async with aiosqlite.connect(str(self.db_path)) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(SESSION_QUERY, (session_id,)) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None

        try:
            return SessionRecord.model_validate(dict(row))
        except ValidationError as e:
            raise CoordinatorError(
                f"Unusable agent_sessions row for session {session_id}: {e}",
                session_id=session_id,
            ) from e


class FileContentReader:
    """Read transcript files from disk as UTF-8 text."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    async def read_content(self, record: SessionRecord) -> str:
        return await asyncio.to_thread(self._read, record)

    def _read(self, record: SessionRecord) -> str:
        path = Path(record.file_path).expanduser()
        try:
            return path.read_text(encoding=self.encoding)
        except FileNotFoundError as e:
            raise ContentReadError(
                f"Transcript not found: {path}", session_id=record.session_id
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ContentReadError(
                f"Cannot read transcript {path}: {e}", session_id=record.session_id
            ) from e
