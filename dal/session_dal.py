"""Async Data Access Layer for the SESSION table."""

from __future__ import annotations

from typing import Optional

from models.session_models import SessionRecord
from utils.database_init import AsyncDatabaseInitializer
from utils.time_utils import format_timestamp


class SessionDAL:
    """Data access layer for SESSION records."""

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        """Return the SessionRecord for `session_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT id, created_at FROM SESSION WHERE id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            return SessionRecord(id=row[0], created_at=row[1]) if row else None

    async def ensure_session(self, session_id: str) -> bool:
        """Create the session if it does not exist yet.

        Concurrent creators are arbitrated by SQLite's INSERT OR IGNORE.

        Returns:
            True if a new row was inserted, False if it already existed.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "INSERT OR IGNORE INTO SESSION (id, created_at) VALUES (?, ?)",
                (session_id, format_timestamp()),
            )
            await conn.commit()
            return cur.rowcount > 0
