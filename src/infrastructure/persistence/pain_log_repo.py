"""
infrastructure.persistence.pain_log_repo - SQLite pain log store.

Implements the LogStore port. Collections are stored as JSON text;
medications are normalized to {name, effective?} on the way in and on
the way out, so rows written by older clients as plain strings read back
in the same shape as everything else.

Writes return False instead of raising when the database rejects them,
and publish a ChangeEvent once committed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiosqlite

from domain.entities import PainLogEntry
from domain.exceptions import DomainError
from domain.models import (
    ChangeEvent,
    ChangeKind,
    FunctionalImpact,
    MedicationMention,
    ensure_aware,
    normalize_medications,
)
from domain.ports import ChangeCallback, Unsubscribe
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.notifier import ChangeNotifier

logger = logging.getLogger(__name__)

_JSON_FIELDS = ("locations", "triggers", "symptoms", "impact_tags", "pain_strategies")
_TEXT_FIELDS = ("notes", "side_effects", "journal_entry")
_UPDATABLE = frozenset(
    _JSON_FIELDS + _TEXT_FIELDS
    + ("pain_level", "medications", "functional_impact", "rx_taken", "logged_at")
)
_LIVE = "(deleted_at IS NULL OR deleted_at = '')"


def to_db_time(ts: datetime) -> str:
    return ensure_aware(ts).astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    return ensure_aware(datetime.fromisoformat(value))


def _now() -> str:
    return to_db_time(datetime.now(timezone.utc))


def _dump_medications(meds: Any) -> str:
    return json.dumps([m.to_dict() for m in normalize_medications(meds)])


def _load_json_list(value: Optional[str]) -> list:
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError:
        # legacy comma-separated text
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(loaded, list):
        return loaded
    return [loaded]


def _column_value(key: str, value: Any) -> Any:
    """Convert one domain value into its column representation."""
    if key in _JSON_FIELDS:
        return json.dumps(list(value or []))
    if key == "medications":
        return _dump_medications(value)
    if key == "functional_impact":
        if value is None or value == "":
            return None
        return FunctionalImpact(value).value
    if key == "logged_at":
        return to_db_time(value)
    if key == "rx_taken":
        return int(bool(value))
    if key in _TEXT_FIELDS:
        return value or ""
    return value


class SQLitePainLogRepository:
    """Async SQLite implementation of the LogStore port."""

    def __init__(
        self,
        connection: AsyncSQLiteConnection,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self._conn = connection
        self._notifier = notifier or ChangeNotifier()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_range(
        self, user_id: str, start: datetime, end: datetime,
    ) -> list[PainLogEntry]:
        """Entries with start <= logged_at < end, oldest first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM pain_logs
                    WHERE user_id = ? AND logged_at >= ? AND logged_at < ? AND {_LIVE}
                    ORDER BY logged_at ASC""",
                (user_id, to_db_time(start), to_db_time(end)),
            )
            return [self._row_to_entity(r) for r in rows]

    async def get(self, entry_id: str) -> Optional[PainLogEntry]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"SELECT * FROM pain_logs WHERE id = ? AND {_LIVE}",
                (entry_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def fetch_recent(self, user_id: str, limit: int = 10) -> list[PainLogEntry]:
        """Newest *limit* entries, returned oldest first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM pain_logs WHERE user_id = ? AND {_LIVE}
                    ORDER BY logged_at DESC LIMIT ?""",
                (user_id, limit),
            )
            return [self._row_to_entity(r) for r in reversed(list(rows))]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, entry: PainLogEntry) -> bool:
        """Insert the entry, or overwrite it if the id already exists.

        Saving the same entry twice (a retry after an unclear failure)
        leaves one row.
        """
        now = _now()
        params = (
            entry.id, entry.user_id, to_db_time(entry.logged_at), entry.pain_level,
            _column_value("locations", entry.locations),
            _column_value("triggers", entry.triggers),
            _dump_medications(entry.medications),
            _column_value("symptoms", entry.symptoms),
            entry.notes,
            _column_value("functional_impact", entry.functional_impact),
            _column_value("impact_tags", entry.impact_tags),
            entry.side_effects,
            _column_value("pain_strategies", entry.pain_strategies),
            entry.journal_entry,
            int(entry.rx_taken),
            entry.created_at or now,
            now,
        )
        try:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    """INSERT INTO pain_logs
                       (id, user_id, logged_at, pain_level, locations, triggers,
                        medications, symptoms, notes, functional_impact, impact_tags,
                        side_effects, pain_strategies, journal_entry, rx_taken,
                        created_at, updated_at, deleted_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
                       ON CONFLICT(id) DO UPDATE SET
                        logged_at = excluded.logged_at,
                        pain_level = excluded.pain_level,
                        locations = excluded.locations,
                        triggers = excluded.triggers,
                        medications = excluded.medications,
                        symptoms = excluded.symptoms,
                        notes = excluded.notes,
                        functional_impact = excluded.functional_impact,
                        impact_tags = excluded.impact_tags,
                        side_effects = excluded.side_effects,
                        pain_strategies = excluded.pain_strategies,
                        journal_entry = excluded.journal_entry,
                        rx_taken = excluded.rx_taken,
                        updated_at = excluded.updated_at,
                        deleted_at = NULL""",
                    params,
                )
        except aiosqlite.Error:
            logger.exception("Failed to save pain entry %s", entry.id)
            return False

        entry.created_at = entry.created_at or now
        entry.updated_at = now
        self._notifier.publish(ChangeEvent(ChangeKind.INSERT, entry.user_id, entry.id))
        return True

    async def update(self, entry_id: str, patch: dict[str, Any]) -> bool:
        """Apply *patch* to one entry. False if missing, invalid or failed."""
        unknown = set(patch) - _UPDATABLE
        if unknown:
            logger.warning("Rejected update of %s: unknown fields %s", entry_id, sorted(unknown))
            return False
        if not patch:
            return True

        try:
            values = {key: _column_value(key, value) for key, value in patch.items()}
        except (ValueError, TypeError, DomainError):
            logger.warning("Rejected update of %s: invalid values", entry_id)
            return False
        if "pain_level" in values and values["pain_level"] is not None:
            if not 0 <= int(values["pain_level"]) <= 10:
                logger.warning("Rejected update of %s: pain level out of range", entry_id)
                return False

        assignments = ", ".join(f"{key} = ?" for key in values)
        try:
            async with self._conn.acquire() as conn:
                rows = await conn.execute_fetchall(
                    f"SELECT user_id FROM pain_logs WHERE id = ? AND {_LIVE}",
                    (entry_id,),
                )
                if not rows:
                    return False
                user_id = rows[0]["user_id"]
                await conn.execute(
                    f"UPDATE pain_logs SET {assignments}, updated_at = ? WHERE id = ?",
                    (*values.values(), _now(), entry_id),
                )
        except aiosqlite.Error:
            logger.exception("Failed to update pain entry %s", entry_id)
            return False

        self._notifier.publish(ChangeEvent(ChangeKind.UPDATE, user_id, entry_id))
        return True

    async def delete(self, entry_id: str) -> bool:
        try:
            async with self._conn.acquire() as conn:
                rows = await conn.execute_fetchall(
                    f"SELECT user_id FROM pain_logs WHERE id = ? AND {_LIVE}",
                    (entry_id,),
                )
                if not rows:
                    return False
                user_id = rows[0]["user_id"]
                await conn.execute(
                    "UPDATE pain_logs SET deleted_at = ? WHERE id = ?",
                    (_now(), entry_id),
                )
        except aiosqlite.Error:
            logger.exception("Failed to delete pain entry %s", entry_id)
            return False

        self._notifier.publish(ChangeEvent(ChangeKind.DELETE, user_id, entry_id))
        return True

    def subscribe_to_changes(self, callback: ChangeCallback) -> Unsubscribe:
        return self._notifier.subscribe(callback)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entity(row) -> PainLogEntry:
        medications: list[MedicationMention] = normalize_medications(
            _load_json_list(row["medications"])
        )
        return PainLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            logged_at=from_db_time(row["logged_at"]),
            pain_level=row["pain_level"],
            locations=_load_json_list(row["locations"]),
            triggers=_load_json_list(row["triggers"]),
            medications=medications,
            symptoms=_load_json_list(row["symptoms"]),
            notes=row["notes"] or "",
            functional_impact=row["functional_impact"] or None,
            impact_tags=_load_json_list(row["impact_tags"]),
            side_effects=row["side_effects"] or "",
            pain_strategies=_load_json_list(row["pain_strategies"]),
            journal_entry=row["journal_entry"] or "",
            rx_taken=bool(row["rx_taken"]),
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
