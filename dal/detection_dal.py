"""Async Data Access Layer for the DETECTION table.

Provides DetectionDAL with the async operations used by the detections
backend, on top of `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from models.detection_record import DetectionRecord
from utils.database_init import AsyncDatabaseInitializer


class DetectionDAL:
    """Data access layer for DETECTION records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = ("id", "original_filename", "mime_type", "result_text", "created_at")
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_detection(self, record: DetectionRecord) -> int:
        """Insert a new DETECTION row and return the new id.

        Args:
            record: DetectionRecord with `id=None` and fields to insert.
        """
        created_at = record.created_at or datetime.now(timezone.utc).isoformat()

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO DETECTION ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?)",
                (record.original_filename, record.mime_type, record.result_text, created_at),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_detection_by_id(self, detection_id: int) -> Optional[DetectionRecord]:
        """Return DetectionRecord for `detection_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM DETECTION WHERE id = ?",
                (detection_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_detections(self, limit: int = 50, offset: int = 0) -> List[DetectionRecord]:
        """List DETECTION rows, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM DETECTION ORDER BY id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> DetectionRecord:
        return DetectionRecord(
            id=row[0],
            original_filename=row[1],
            mime_type=row[2],
            result_text=row[3],
            created_at=row[4],
        )
