"""
Shared fixtures for the functionality tests.

In-memory implementations of the store ports, plus a small entry builder.
The in-memory log store publishes change events through the same
ChangeNotifier the SQLite repository uses.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest

from application.context import SessionContext
from application.services.pain_log import PainLogService
from application.services.responses import ScriptedResponseGenerator
from domain.entities import PainLogEntry, PainSession, ProfileMedication, UserProfile
from domain.models import ChangeEvent, ChangeKind
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.notifier import ChangeNotifier

USER = "u1"
# A Wednesday afternoon.
NOW = datetime(2025, 3, 5, 15, 0, tzinfo=timezone.utc)


def make_entry(
    level: Optional[int],
    at: datetime,
    user_id: str = USER,
    **fields: Any,
) -> PainLogEntry:
    return PainLogEntry(user_id=user_id, logged_at=at, pain_level=level, **fields)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A UTC instant in March 2025."""
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# In-memory ports
# ---------------------------------------------------------------------------

class InMemoryLogStore:
    """LogStore fake with switchable failures and per-range latency."""

    def __init__(self) -> None:
        self.entries: dict[str, PainLogEntry] = {}
        self.notifier = ChangeNotifier()
        self.failing_saves = 0
        self.save_calls = 0
        self.fail_fetch = False
        self.delay_for: Callable[[datetime, datetime], float] = lambda start, end: 0.0

    async def fetch_range(self, user_id: str, start: datetime, end: datetime) -> list[PainLogEntry]:
        delay = self.delay_for(start, end)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_fetch:
            raise ConnectionError("store offline")
        found = [
            e for e in self.entries.values()
            if e.user_id == user_id and start <= e.logged_at < end
        ]
        return sorted(found, key=lambda e: e.logged_at)

    async def get(self, entry_id: str) -> Optional[PainLogEntry]:
        return self.entries.get(entry_id)

    async def save(self, entry: PainLogEntry) -> bool:
        self.save_calls += 1
        if self.failing_saves:
            self.failing_saves -= 1
            return False
        self.entries[entry.id] = replace(entry)
        self.notifier.publish(ChangeEvent(ChangeKind.INSERT, entry.user_id, entry.id))
        return True

    async def update(self, entry_id: str, patch: dict[str, Any]) -> bool:
        entry = self.entries.get(entry_id)
        if entry is None:
            return False
        self.entries[entry_id] = replace(entry, **patch)
        self.notifier.publish(ChangeEvent(ChangeKind.UPDATE, entry.user_id, entry_id))
        return True

    async def delete(self, entry_id: str) -> bool:
        entry = self.entries.pop(entry_id, None)
        if entry is None:
            return False
        self.notifier.publish(ChangeEvent(ChangeKind.DELETE, entry.user_id, entry_id))
        return True

    def subscribe_to_changes(self, callback):
        return self.notifier.subscribe(callback)


class InMemoryProfileStore:
    def __init__(self, *profiles: UserProfile) -> None:
        self.profiles = {p.user_id: p for p in profiles}

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def save_profile(self, profile: UserProfile) -> None:
        self.profiles[profile.user_id] = profile

    async def append_medication(self, user_id: str, medication: ProfileMedication) -> bool:
        profile = self.profiles.setdefault(user_id, UserProfile(user_id=user_id))
        if profile.has_medication(medication.name):
            return False
        profile.current_medications.append(medication)
        return True


class InMemorySessionRepository:
    def __init__(self) -> None:
        self.sessions: dict[str, PainSession] = {}

    async def get_open(self, user_id: str) -> Optional[PainSession]:
        open_ = [s for s in self.sessions.values() if s.user_id == user_id and s.is_open]
        return max(open_, key=lambda s: s.started_at) if open_ else None

    async def start(self, session: PainSession) -> PainSession:
        self.sessions[session.id] = session
        return session

    async def resolve(self, session_id, end_level, resolved_at) -> Optional[PainSession]:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        if session.is_open:
            session.end_level = end_level
            session.resolved_at = resolved_at
        return session

    async def list_recent(self, user_id: str, limit: int = 20) -> list[PainSession]:
        found = [s for s in self.sessions.values() if s.user_id == user_id]
        return sorted(found, key=lambda s: s.started_at, reverse=True)[:limit]


class RecordingNavigator:
    def __init__(self) -> None:
        self.destinations: list[str] = []

    def navigate(self, destination: str) -> None:
        self.destinations.append(destination)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def log_store() -> InMemoryLogStore:
    return InMemoryLogStore()


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def session_repo() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def pain_log(log_store, session_repo, profile_store) -> PainLogService:
    return PainLogService(log_store, session_repo, profile_store)


@pytest.fixture
def responder() -> ScriptedResponseGenerator:
    return ScriptedResponseGenerator(random.Random(7))


@pytest.fixture
def ctx() -> SessionContext:
    return SessionContext(user_id=USER, conversation_id="conv-1")


@pytest.fixture
async def sqlite_connection(tmp_path) -> AsyncSQLiteConnection:
    connection = AsyncSQLiteConnection(str(tmp_path / "lila-test.db"))
    await run_migrations(connection)
    return connection
