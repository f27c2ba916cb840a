"""
infrastructure.persistence.profile_repo - SQLite profile store.

One row per user. Medications are a JSON list of {name, dosage,
frequency}; appending is a no-op when the name is already listed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from domain.entities import ProfileMedication, UserProfile
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_medications(meds: list[ProfileMedication]) -> str:
    return json.dumps(
        [{"name": m.name, "dosage": m.dosage, "frequency": m.frequency} for m in meds]
    )


def _load_medications(value: Optional[str]) -> list[ProfileMedication]:
    if not value:
        return []
    meds = []
    for item in json.loads(value):
        if isinstance(item, str):
            meds.append(ProfileMedication(name=item))
        elif isinstance(item, dict) and item.get("name"):
            meds.append(ProfileMedication(
                name=item["name"],
                dosage=item.get("dosage") or "",
                frequency=item.get("frequency") or "",
            ))
    return meds


class SQLiteProfileRepository:
    """Async SQLite implementation of the ProfileStore port."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM profiles WHERE user_id = ?", (user_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def save_profile(self, profile: UserProfile) -> None:
        """Insert or replace the user's profile snapshot."""
        now = _now()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO profiles
                   (user_id, diagnosis, pain_is_consistent, default_pain_locations,
                    current_medications, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                    diagnosis = excluded.diagnosis,
                    pain_is_consistent = excluded.pain_is_consistent,
                    default_pain_locations = excluded.default_pain_locations,
                    current_medications = excluded.current_medications,
                    updated_at = excluded.updated_at""",
                (
                    profile.user_id,
                    profile.diagnosis,
                    int(profile.pain_is_consistent),
                    json.dumps(profile.default_pain_locations),
                    _dump_medications(profile.current_medications),
                    profile.created_at or now,
                    now,
                ),
            )
        profile.created_at = profile.created_at or now
        profile.updated_at = now

    async def append_medication(self, user_id: str, medication: ProfileMedication) -> bool:
        """Add *medication* unless already listed. Returns True if added."""
        profile = await self.get_profile(user_id) or UserProfile(user_id=user_id)
        if profile.has_medication(medication.name):
            return False
        profile.current_medications.append(medication)
        await self.save_profile(profile)
        return True

    @staticmethod
    def _row_to_entity(row) -> UserProfile:
        locations = json.loads(row["default_pain_locations"] or "[]")
        return UserProfile(
            user_id=row["user_id"],
            diagnosis=row["diagnosis"] or "",
            pain_is_consistent=bool(row["pain_is_consistent"]),
            default_pain_locations=list(locations),
            current_medications=_load_medications(row["current_medications"]),
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
