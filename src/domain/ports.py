"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the core needs without specifying HOW. Infrastructure
modules provide concrete implementations; application services depend
only on these protocols.

Using typing.Protocol (structural typing) instead of ABC: any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Protocol, runtime_checkable

from domain.entities import (
    ChatMessage,
    Conversation,
    PainLogEntry,
    PainSession,
    ProfileMedication,
    UserProfile,
)
from domain.models import ChangeEvent, ChatReply, ReplyRequest

ChangeCallback = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


# ---------------------------------------------------------------------------
# Store Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class LogStore(Protocol):
    """Pain log storage with a time-range query and change notifications.

    Writes report success as a bool; they do not raise on store failure.
    """

    async def fetch_range(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[PainLogEntry]: ...
    async def get(self, entry_id: str) -> PainLogEntry | None: ...
    async def save(self, entry: PainLogEntry) -> bool: ...
    async def update(self, entry_id: str, patch: dict[str, Any]) -> bool: ...
    async def delete(self, entry_id: str) -> bool: ...
    def subscribe_to_changes(self, callback: ChangeCallback) -> Unsubscribe: ...


@runtime_checkable
class ProfileStore(Protocol):
    """User profile reads plus the one write the core is allowed to make."""

    async def get_profile(self, user_id: str) -> UserProfile | None: ...
    async def save_profile(self, profile: UserProfile) -> None: ...
    async def append_medication(
        self, user_id: str, medication: ProfileMedication,
    ) -> bool: ...


@runtime_checkable
class PainSessionRepository(Protocol):
    """Open/resolve pain episodes."""

    async def get_open(self, user_id: str) -> PainSession | None: ...
    async def start(self, session: PainSession) -> PainSession: ...
    async def resolve(
        self, session_id: str, end_level: int | None, resolved_at: datetime,
    ) -> PainSession | None: ...
    async def list_recent(self, user_id: str, limit: int = 20) -> list[PainSession]: ...


@runtime_checkable
class ConversationRepository(Protocol):
    """CRUD for Conversation metadata."""

    async def save(self, conversation: Conversation) -> int: ...
    async def get_by_user(self, user_id: str) -> list[Conversation]: ...
    async def get_by_conversation_id(self, conversation_id: str) -> Conversation | None: ...
    async def update_last_message(self, conversation_id: str) -> None: ...
    async def update_title(self, conversation_id: str, title: str) -> None: ...
    async def delete_old_for_user(self, user_id: str, cutoff_iso: str) -> int: ...


@runtime_checkable
class ChatMessageRepository(Protocol):
    """CRUD for ChatMessage entities."""

    async def save(self, message: ChatMessage) -> int: ...
    async def get_by_conversation(self, conversation_id: str) -> list[ChatMessage]: ...
    async def delete_old_for_user(self, user_id: str, cutoff_iso: str) -> int: ...


# ---------------------------------------------------------------------------
# Collaborator Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ResponseGenerator(Protocol):
    """Word the reply for an intent the conversation policy picked."""

    async def render(self, request: ReplyRequest) -> ChatReply: ...


@runtime_checkable
class Navigator(Protocol):
    """UI navigation, invoked by destination name (e.g. "insights")."""

    def navigate(self, destination: str) -> None: ...
