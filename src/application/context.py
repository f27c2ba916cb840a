"""
application.context - Session-scoped context.

Every service call receives its context explicitly. Two concurrent users
get two different SessionContext instances, so no state is shared between
them through module globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

from domain.entities import PainLogEntry, UserProfile


@dataclass
class SessionContext:
    """Per-session context passed through all layers.

    Attributes:
        user_id:          User id (provided by the adapter).
        conversation_id:  Unique per conversation session.
        profile:          Profile snapshot loaded at session start, if any.
        history:          Recent pain entries used to personalize replies.
        request_id:       Unique per request, for tracing/logging.
    """
    user_id: str
    conversation_id: str = ""
    profile: Optional[UserProfile] = None
    history: list[PainLogEntry] = field(default_factory=list)
    request_id: str = field(default_factory=lambda: uuid4().hex)

    def new_request(self) -> None:
        """Start a new request within the same session."""
        self.request_id = uuid4().hex

    def remember(self, entry: PainLogEntry) -> None:
        """Add a freshly saved entry to the in-session history."""
        self.history.append(entry)
