"""
Test Persistence

SQLite repositories against a temporary database file.
"""

from datetime import datetime, timedelta

import pytest

from application.context import SessionContext
from application.services.chat_history import (
    ASSISTANT,
    TITLE_LENGTH,
    USER as USER_ROLE,
    ChatHistoryService,
    conversation_title,
)
from conftest import USER, at, make_entry
from domain.entities import PainSession, ProfileMedication, UserProfile
from domain.models import ChangeKind, FunctionalImpact, MedicationMention
from infrastructure.persistence.chat_repo import (
    SQLiteChatMessageRepository,
    SQLiteConversationRepository,
)
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.pain_log_repo import SQLitePainLogRepository, to_db_time
from infrastructure.persistence.profile_repo import SQLiteProfileRepository
from infrastructure.persistence.session_repo import SQLitePainSessionRepository


@pytest.fixture
def pain_logs(sqlite_connection):
    return SQLitePainLogRepository(sqlite_connection)


@pytest.fixture
def events(pain_logs):
    received = []
    pain_logs.subscribe_to_changes(received.append)
    return received


# ---------------------------------------------------------------------------
# Pain logs
# ---------------------------------------------------------------------------

async def test_round_trip(pain_logs, events):
    entry = make_entry(
        6, at(4, 9, 30),
        locations=["head", "neck"],
        medications=["ibuprofen", {"name": "aspirin", "effective": False}],
        functional_impact="stopped",
        impact_tags=["work"],
        rx_taken=True,
    )
    assert await pain_logs.save(entry)

    [loaded] = await pain_logs.fetch_range(USER, at(4, 0), at(5, 0))
    assert loaded.id == entry.id
    assert loaded.logged_at == at(4, 9, 30)
    assert loaded.locations == ["head", "neck"]
    assert loaded.medications == [
        MedicationMention("ibuprofen"), MedicationMention("aspirin", effective=False),
    ]
    assert loaded.functional_impact is FunctionalImpact.STOPPED
    assert loaded.rx_taken is True
    assert loaded.created_at
    assert [(e.kind, e.entry_id) for e in events] == [(ChangeKind.INSERT, entry.id)]


async def test_save_is_idempotent(pain_logs):
    entry = make_entry(6, at(4, 9))
    assert await pain_logs.save(entry)
    assert await pain_logs.save(entry)
    assert len(await pain_logs.fetch_range(USER, at(1, 0), at(8, 0))) == 1


async def test_range_end_is_exclusive(pain_logs):
    await pain_logs.save(make_entry(3, at(4, 0)))
    await pain_logs.save(make_entry(4, at(5, 0)))
    await pain_logs.save(make_entry(5, at(4, 12), user_id="other"))
    found = await pain_logs.fetch_range(USER, at(4, 0), at(5, 0))
    assert [e.pain_level for e in found] == [3]


async def test_update(pain_logs, events):
    entry = make_entry(6, at(4, 9))
    await pain_logs.save(entry)

    assert await pain_logs.update(entry.id, {"pain_level": 3, "triggers": ["stress"]})
    loaded = await pain_logs.get(entry.id)
    assert (loaded.pain_level, loaded.triggers) == (3, ["stress"])
    assert events[-1].kind is ChangeKind.UPDATE

    assert not await pain_logs.update(entry.id, {"user_id": "someone-else"})
    assert not await pain_logs.update(entry.id, {"pain_level": 11})
    assert not await pain_logs.update("missing", {"pain_level": 2})


async def test_delete_is_soft(pain_logs, events, sqlite_connection):
    entry = make_entry(6, at(4, 9))
    await pain_logs.save(entry)

    assert await pain_logs.delete(entry.id)
    assert await pain_logs.get(entry.id) is None
    assert await pain_logs.fetch_range(USER, at(1, 0), at(8, 0)) == []
    assert not await pain_logs.delete(entry.id)
    assert events[-1].kind is ChangeKind.DELETE

    async with sqlite_connection.acquire() as conn:
        rows = await conn.execute_fetchall("SELECT deleted_at FROM pain_logs")
    assert rows[0]["deleted_at"]


async def test_legacy_rows_are_normalized(pain_logs, sqlite_connection):
    async with sqlite_connection.acquire() as conn:
        await conn.execute(
            """INSERT INTO pain_logs (id, user_id, logged_at, pain_level, locations, medications)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                "legacy-1", USER, to_db_time(at(4, 9)), 5,
                "head, neck",
                '["ibuprofen", {"name": "aspirin", "effective": 0}, {"dose": "2"}]',
            ),
        )

    loaded = await pain_logs.get("legacy-1")
    assert loaded.locations == ["head", "neck"]
    assert loaded.medications == [
        MedicationMention("ibuprofen"), MedicationMention("aspirin", effective=False),
    ]
    assert loaded.notes == ""
    assert loaded.functional_impact is None


async def test_failed_write_returns_false(tmp_path):
    # no migrations: the table does not exist
    repo = SQLitePainLogRepository(AsyncSQLiteConnection(str(tmp_path / "empty.db")))
    events = []
    repo.subscribe_to_changes(events.append)
    assert not await repo.save(make_entry(4, at(4, 9)))
    assert events == []


# ---------------------------------------------------------------------------
# Profiles and sessions
# ---------------------------------------------------------------------------

async def test_profile_round_trip(sqlite_connection):
    repo = SQLiteProfileRepository(sqlite_connection)
    assert await repo.get_profile(USER) is None

    await repo.save_profile(UserProfile(
        user_id=USER,
        diagnosis="migraine",
        pain_is_consistent=True,
        default_pain_locations=["head", "temples"],
        current_medications=[ProfileMedication("sumatriptan", "50mg", "as needed")],
    ))
    assert await repo.append_medication(USER, ProfileMedication("ibuprofen"))
    assert not await repo.append_medication(USER, ProfileMedication("Ibuprofen"))

    profile = await repo.get_profile(USER)
    assert profile.pain_is_consistent is True
    assert profile.default_pain_locations == ["head", "temples"]
    assert [m.name for m in profile.current_medications] == ["sumatriptan", "ibuprofen"]
    assert profile.current_medications[0].dosage == "50mg"


async def test_append_medication_creates_profile(sqlite_connection):
    repo = SQLiteProfileRepository(sqlite_connection)
    assert await repo.append_medication(USER, ProfileMedication("turmeric"))
    profile = await repo.get_profile(USER)
    assert profile.pain_is_consistent is False
    assert profile.has_medication("turmeric")


async def test_session_lifecycle(sqlite_connection):
    repo = SQLitePainSessionRepository(sqlite_connection)
    session = await repo.start(PainSession(user_id=USER, start_level=7, started_at=at(4, 9)))

    open_ = await repo.get_open(USER)
    assert open_.id == session.id and open_.is_open

    resolved = await repo.resolve(session.id, 2, at(4, 15))
    assert (resolved.end_level, resolved.resolved_at) == (2, at(4, 15))
    assert await repo.get_open(USER) is None

    again = await repo.resolve(session.id, 5, at(4, 18))
    assert again.end_level == 2
    assert [s.id for s in await repo.list_recent(USER)] == [session.id]


# ---------------------------------------------------------------------------
# Chat history
# ---------------------------------------------------------------------------

@pytest.fixture
def chat_repos(sqlite_connection):
    return (
        SQLiteConversationRepository(sqlite_connection),
        SQLiteChatMessageRepository(sqlite_connection),
    )


@pytest.fixture
def chat_history(chat_repos):
    return ChatHistoryService(*chat_repos)


async def test_open_conversation_creates_then_reuses(chat_history):
    conversation_id = await chat_history.open_conversation(USER)
    conversation = await chat_history.get_conversation(conversation_id)
    assert conversation.user_id == USER
    assert conversation.title == ""

    assert await chat_history.open_conversation(USER) == conversation_id
    assert len(await chat_history.list_conversations(USER)) == 1


async def test_transcript_keeps_greeting_and_titles_from_user(chat_history):
    conversation_id = await chat_history.open_conversation(USER)
    ctx = SessionContext(user_id=USER, conversation_id=conversation_id)

    await chat_history.record(ctx, ASSISTANT, "How are you feeling today?")
    assert (await chat_history.get_conversation(conversation_id)).title == ""

    await chat_history.record(ctx, USER_ROLE, "  My head hurts, it's a 7 ")
    await chat_history.record(ctx, ASSISTANT, "Got it!")
    assert await chat_history.record(ctx, USER_ROLE, "   ") is None

    messages = await chat_history.messages(conversation_id)
    assert [(m.role, m.content) for m in messages] == [
        ("assistant", "How are you feeling today?"),
        ("user", "My head hurts, it's a 7"),
        ("assistant", "Got it!"),
    ]
    assert (await chat_history.get_conversation(conversation_id)).title == "My head hurts, it's a 7"

    assert await chat_history.recent_transcript(USER, hours=24) == (conversation_id, messages)
    assert await chat_history.recent_transcript("nobody", hours=24) == (None, [])


async def test_record_rejects_unknown_role(chat_history):
    ctx = SessionContext(user_id=USER, conversation_id="conv-1")
    with pytest.raises(ValueError):
        await chat_history.record(ctx, "system", "hi")


def test_long_titles_are_cut():
    title = conversation_title("word " * 30)
    assert len(title) == TITLE_LENGTH
    assert title.endswith("…")
    assert conversation_title("a\n  b") == "a b"


async def test_stale_conversation_is_replaced_and_purged(chat_history, chat_repos):
    stale_id = await chat_history.open_conversation(USER)
    await chat_history.record(SessionContext(user_id=USER, conversation_id=stale_id), USER_ROLE, "hello")

    three_days_on = ChatHistoryService(
        *chat_repos, reuse_hours=48, clock=lambda: datetime.now() + timedelta(days=3),
    )
    fresh_id = await three_days_on.open_conversation(USER)

    assert fresh_id != stale_id
    assert await three_days_on.messages(stale_id) == []
    assert [c.conversation_id for c in await three_days_on.list_conversations(USER)] == [fresh_id]


async def test_purge_before_hides_everything_older(chat_history):
    conversation_id = await chat_history.open_conversation(USER)
    await chat_history.record(SessionContext(user_id=USER, conversation_id=conversation_id), USER_ROLE, "hello")

    assert await chat_history.purge_before(USER, "9999-01-01T00:00:00") == 2
    assert await chat_history.messages(conversation_id) == []
    assert await chat_history.list_conversations(USER) == []
