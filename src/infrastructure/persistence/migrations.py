"""
infrastructure.persistence.migrations - Database schema creation.

Called once at startup by the factory (or the CLI init command).
Timestamps are ISO-8601 text; pain_logs.logged_at is always UTC with
microseconds so string comparison orders it correctly.
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_TABLES = [
    """CREATE TABLE IF NOT EXISTS profiles (
        user_id TEXT PRIMARY KEY,
        diagnosis TEXT,
        pain_is_consistent INTEGER DEFAULT 0,
        default_pain_locations TEXT,
        current_medications TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS pain_logs (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        logged_at TEXT NOT NULL,
        pain_level INTEGER CHECK (pain_level IS NULL OR pain_level BETWEEN 0 AND 10),
        locations TEXT,
        triggers TEXT,
        medications TEXT,
        symptoms TEXT,
        notes TEXT,
        functional_impact TEXT,
        impact_tags TEXT,
        side_effects TEXT,
        pain_strategies TEXT,
        journal_entry TEXT,
        rx_taken INTEGER DEFAULT 0,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT
    )""",
    """CREATE INDEX IF NOT EXISTS idx_pain_logs_user_time
        ON pain_logs (user_id, logged_at)""",
    """CREATE TABLE IF NOT EXISTS pain_sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        started_at TEXT NOT NULL,
        resolved_at TEXT,
        start_level INTEGER,
        end_level INTEGER
    )""",
    """CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        conversation_id TEXT UNIQUE,
        title TEXT,
        last_message_at TEXT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS chat_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        conversation_id TEXT,
        role TEXT,
        content TEXT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        FOREIGN KEY (conversation_id) REFERENCES conversations(conversation_id)
    )""",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
    logger.info("All tables created (or already exist).")
