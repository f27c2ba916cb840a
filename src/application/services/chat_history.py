"""
application.services.chat_history - Companion chat transcripts.

A chat session (WebSocket or CLI) opens a conversation, reusing the
user's latest one while it is still warm, then records every turn:
the greeting, each user message and each reply. Transcripts that fall
outside the reuse window are soft-deleted when the next session opens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import uuid4

from application.context import SessionContext
from domain.entities import ChatMessage, Conversation
from domain.ports import ChatMessageRepository, ConversationRepository

logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"
TITLE_LENGTH = 60


def conversation_title(text: str) -> str:
    """Opening user message, whitespace collapsed, cut at TITLE_LENGTH."""
    text = " ".join(text.split())
    if len(text) <= TITLE_LENGTH:
        return text
    return text[:TITLE_LENGTH].rstrip() + "…"


class ChatHistoryService:
    """Transcript storage for companion chats.

    Timestamps are compared as ISO strings, so *clock* must produce the
    same naive local time the repositories write.
    """

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: ChatMessageRepository,
        reuse_hours: int = 48,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._conversations = conversation_repo
        self._messages = message_repo
        self._reuse_hours = reuse_hours
        self._clock = clock

    def _hours_ago(self, hours: int) -> str:
        return (self._clock() - timedelta(hours=hours)).isoformat()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def open_conversation(self, user_id: str) -> str:
        """Conversation id for a new chat session of *user_id*.

        The latest conversation is reused when its last message is inside
        the reuse window. Older transcripts are purged, then a fresh
        conversation is created if none was reused.
        """
        cutoff = self._hours_ago(self._reuse_hours)
        latest = await self.latest_conversation(user_id)
        await self.purge_before(user_id, cutoff)

        if latest is not None and latest.last_message_at >= cutoff:
            logger.info("Reusing conversation %s for user %s", latest.conversation_id, user_id)
            return latest.conversation_id

        conversation_id = uuid4().hex
        await self._conversations.save(
            Conversation(user_id=user_id, conversation_id=conversation_id),
        )
        logger.info("Opened conversation %s for user %s", conversation_id, user_id)
        return conversation_id

    async def record(self, ctx: SessionContext, role: str, content: str) -> Optional[int]:
        """Append one message to the session's transcript.

        Blank content is skipped. The first user message names the
        conversation.
        """
        if role not in (USER, ASSISTANT):
            raise ValueError(f"Unknown chat role: {role!r}")
        content = content.strip()
        if not content:
            return None

        message_id = await self._messages.save(ChatMessage(
            user_id=ctx.user_id,
            conversation_id=ctx.conversation_id,
            role=role,
            content=content,
        ))
        await self._conversations.update_last_message(ctx.conversation_id)

        if role == USER:
            conversation = await self._conversations.get_by_conversation_id(ctx.conversation_id)
            if conversation is not None and not conversation.title:
                await self._conversations.update_title(
                    ctx.conversation_id, conversation_title(content),
                )
        return message_id

    async def purge_before(self, user_id: str, cutoff_iso: str) -> int:
        """Soft-delete the user's messages and conversations older than *cutoff_iso*.

        Returns how many rows were hidden. A failure is logged and reported
        as 0 so opening a chat never fails on housekeeping.
        """
        try:
            messages = await self._messages.delete_old_for_user(user_id, cutoff_iso)
            conversations = await self._conversations.delete_old_for_user(user_id, cutoff_iso)
        except Exception:
            logger.exception("Purging chat data for user %s failed", user_id)
            return 0
        if messages or conversations:
            logger.info(
                "Purged %d message(s) and %d conversation(s) for user %s",
                messages, conversations, user_id,
            )
        return messages + conversations

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        """Newest activity first."""
        return await self._conversations.get_by_user(user_id)

    async def latest_conversation(self, user_id: str) -> Optional[Conversation]:
        conversations = await self.list_conversations(user_id)
        return conversations[0] if conversations else None

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self._conversations.get_by_conversation_id(conversation_id)

    async def messages(self, conversation_id: str) -> list[ChatMessage]:
        """Whole transcript, oldest first."""
        return await self._messages.get_by_conversation(conversation_id)

    async def recent_transcript(
        self, user_id: str, hours: int,
    ) -> tuple[Optional[str], list[ChatMessage]]:
        """The latest conversation's messages from the last *hours*.

        Lets a reconnecting client redraw the exchange it left. Returns
        (None, []) when the user has never chatted.
        """
        latest = await self.latest_conversation(user_id)
        if latest is None:
            return None, []
        cutoff = self._hours_ago(hours)
        if latest.last_message_at < cutoff:
            return latest.conversation_id, []
        recent = [m for m in await self.messages(latest.conversation_id) if m.created_at >= cutoff]
        return latest.conversation_id, recent
