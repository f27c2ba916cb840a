"""
infrastructure.persistence.chat_repo - SQLite storage for companion chats.

Conversation metadata (id, title, last activity) and the individual
user/assistant turns. Rows are soft-deleted by the retention purge.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.entities import ChatMessage, Conversation
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_LIVE = "(deleted_at = '' OR deleted_at IS NULL)"


def _now() -> str:
    return datetime.now().isoformat()


class SQLiteConversationRepository:
    """Async SQLite implementation of ConversationRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, conversation: Conversation) -> int:
        now = _now()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO conversations
                   (user_id, conversation_id, title, last_message_at,
                    created_at, updated_at, deleted_at)
                   VALUES (?, ?, ?, ?, ?, ?, '')""",
                (conversation.user_id, conversation.conversation_id,
                 conversation.title, now, now, now),
            )
            return cursor.lastrowid

    async def get_by_user(self, user_id: str) -> list[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM conversations
                    WHERE user_id = ? AND {_LIVE}
                    ORDER BY last_message_at DESC""",
                (user_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    async def get_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"SELECT * FROM conversations WHERE conversation_id = ? AND {_LIVE}",
                (conversation_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def update_last_message(self, conversation_id: str) -> None:
        now = _now()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE conversations SET last_message_at = ?, updated_at = ?
                   WHERE conversation_id = ?""",
                (now, now, conversation_id),
            )

    async def update_title(self, conversation_id: str, title: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE conversation_id = ?",
                (title, _now(), conversation_id),
            )

    async def delete_old_for_user(self, user_id: str, cutoff_iso: str) -> int:
        """Soft-delete conversations idle since before *cutoff_iso*; return the count."""
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                f"""UPDATE conversations SET deleted_at = ?
                    WHERE user_id = ? AND {_LIVE} AND last_message_at < ?""",
                (_now(), user_id, cutoff_iso),
            )
            return cursor.rowcount

    @staticmethod
    def _row_to_entity(row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"] or "",
            conversation_id=row["conversation_id"] or "",
            title=row["title"] or "",
            last_message_at=row["last_message_at"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            deleted_at=row["deleted_at"] or "",
        )


class SQLiteChatMessageRepository:
    """Async SQLite implementation of ChatMessageRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, message: ChatMessage) -> int:
        now = _now()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO chat_messages
                   (user_id, conversation_id, role, content,
                    created_at, updated_at, deleted_at)
                   VALUES (?, ?, ?, ?, ?, ?, '')""",
                (message.user_id, message.conversation_id,
                 message.role, message.content, now, now),
            )
            return cursor.lastrowid

    async def get_by_conversation(self, conversation_id: str) -> list[ChatMessage]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM chat_messages
                    WHERE conversation_id = ? AND {_LIVE}
                    ORDER BY created_at ASC, id ASC""",
                (conversation_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    async def delete_old_for_user(self, user_id: str, cutoff_iso: str) -> int:
        """Soft-delete messages created before *cutoff_iso*; return the count."""
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                f"""UPDATE chat_messages SET deleted_at = ?
                    WHERE user_id = ? AND {_LIVE} AND created_at < ?""",
                (_now(), user_id, cutoff_iso),
            )
            return cursor.rowcount

    @staticmethod
    def _row_to_entity(row) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            user_id=row["user_id"] or "",
            conversation_id=row["conversation_id"] or "",
            role=row["role"] or "",
            content=row["content"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            deleted_at=row["deleted_at"] or "",
        )
