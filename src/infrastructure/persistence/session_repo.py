"""
infrastructure.persistence.session_repo - SQLite pain session repository.

Database errors are re-raised as RepositoryError so the pain log service
can tell a storage failure from a programming error.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import aiosqlite

from domain.entities import PainSession
from domain.exceptions import RepositoryError
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.pain_log_repo import from_db_time, to_db_time

logger = logging.getLogger(__name__)


class SQLitePainSessionRepository:
    """Async SQLite implementation of PainSessionRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get_open(self, user_id: str) -> Optional[PainSession]:
        try:
            async with self._conn.acquire() as conn:
                rows = await conn.execute_fetchall(
                    """SELECT * FROM pain_sessions
                       WHERE user_id = ? AND resolved_at IS NULL
                       ORDER BY started_at DESC LIMIT 1""",
                    (user_id,),
                )
        except aiosqlite.Error as exc:
            raise RepositoryError(f"Could not read pain sessions: {exc}") from exc
        return self._row_to_entity(rows[0]) if rows else None

    async def start(self, session: PainSession) -> PainSession:
        try:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    """INSERT INTO pain_sessions
                       (id, user_id, started_at, resolved_at, start_level, end_level)
                       VALUES (?, ?, ?, NULL, ?, NULL)""",
                    (session.id, session.user_id, to_db_time(session.started_at),
                     session.start_level),
                )
        except aiosqlite.Error as exc:
            raise RepositoryError(f"Could not start pain session: {exc}") from exc
        return session

    async def resolve(
        self, session_id: str, end_level: Optional[int], resolved_at: datetime,
    ) -> Optional[PainSession]:
        try:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    """UPDATE pain_sessions SET resolved_at = ?, end_level = ?
                       WHERE id = ? AND resolved_at IS NULL""",
                    (to_db_time(resolved_at), end_level, session_id),
                )
                rows = await conn.execute_fetchall(
                    "SELECT * FROM pain_sessions WHERE id = ?", (session_id,),
                )
        except aiosqlite.Error as exc:
            raise RepositoryError(f"Could not resolve pain session: {exc}") from exc
        return self._row_to_entity(rows[0]) if rows else None

    async def list_recent(self, user_id: str, limit: int = 20) -> list[PainSession]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM pain_sessions WHERE user_id = ?
                   ORDER BY started_at DESC LIMIT ?""",
                (user_id, limit),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> PainSession:
        return PainSession(
            id=row["id"],
            user_id=row["user_id"],
            started_at=from_db_time(row["started_at"]),
            resolved_at=from_db_time(row["resolved_at"]) if row["resolved_at"] else None,
            start_level=row["start_level"],
            end_level=row["end_level"],
        )
