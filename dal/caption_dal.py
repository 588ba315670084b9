"""Async Data Access Layer for the CAPTION table.

Provides CaptionDAL with insert, lookup and cursor-paginated listing,
compatible with `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.caption_record import CaptionRecord
from utils.database_init import AsyncDatabaseInitializer


class CaptionDAL:
    """Data access layer for CAPTION records.

    Rows are immutable once written; there are no update or delete helpers.
    """

    _COLUMNS = (
        "id",
        "session_id",
        "timestamp",
        "image_path",
        "image_url",
        "caption",
        "thoughts",
        "observations",
        "raw_caption",
        "model",
        "prompt",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_caption(self, record: CaptionRecord) -> str:
        """Insert a new CAPTION row and return its id."""
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO CAPTION ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS})",
                (
                    record.id,
                    record.session_id,
                    record.timestamp,
                    record.image_path,
                    record.image_url,
                    record.caption,
                    record.thoughts,
                    record.observations,
                    record.raw_caption,
                    record.model,
                    record.prompt,
                ),
            )
            await conn.commit()
        return record.id

    async def get_caption_by_id(self, caption_id: str) -> Optional[CaptionRecord]:
        """Return CaptionRecord for `caption_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM CAPTION WHERE id = ?",
                (caption_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_captions(
        self, session_id: str, limit: int = 20, cursor: Optional[str] = None
    ) -> List[CaptionRecord]:
        """List a session's captions newest first.

        Rows are ordered by `timestamp DESC, id DESC`. With a cursor, only
        rows strictly after the cursor row in that order are returned; a
        cursor that does not name a caption of this session yields no rows.

        Args:
            session_id: Owning session.
            limit: Maximum number of rows to return.
            cursor: Id of the last row of the previous page.
        """
        async with self._db.connection() as conn:
            if cursor is None:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM CAPTION WHERE session_id = ? "
                    "ORDER BY timestamp DESC, id DESC LIMIT ?",
                    (session_id, limit),
                )
            else:
                anchor_cur = await conn.execute(
                    "SELECT timestamp FROM CAPTION WHERE id = ? AND session_id = ?",
                    (cursor, session_id),
                )
                anchor = await anchor_cur.fetchone()
                if anchor is None:
                    return []
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM CAPTION WHERE session_id = ? "
                    "AND (timestamp < ? OR (timestamp = ? AND id < ?)) "
                    "ORDER BY timestamp DESC, id DESC LIMIT ?",
                    (session_id, anchor[0], anchor[0], cursor, limit),
                )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> CaptionRecord:
        """Convert a DB row tuple into a CaptionRecord."""
        return CaptionRecord(
            id=row[0],
            session_id=row[1],
            timestamp=row[2],
            image_path=row[3],
            image_url=row[4],
            caption=row[5],
            thoughts=row[6],
            observations=row[7],
            raw_caption=row[8],
            model=row[9],
            prompt=row[10],
        )
