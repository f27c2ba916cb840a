"""
application.services.pain_log - Creating, editing and deleting pain entries.

Both the chat and the direct-entry form save through record(), which
also opens a pain session when a positive rating arrives and none is
open. Store failures come back from the log store as False; record()
passes that on so the caller decides what the user sees.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from domain.entities import (
    PainLogEntry,
    PainSession,
    ProfileMedication,
    coerce_functional_impact,
    validate_pain_level,
)
from domain.exceptions import EntryNotFoundError, InvalidEntryError, RepositoryError
from domain.models import DateRange, dedupe, ensure_aware, normalize_medications
from domain.ports import LogStore, PainSessionRepository, ProfileStore
from application.dto import EntryDraft

logger = logging.getLogger(__name__)

_LIST_FIELDS = ("locations", "triggers", "symptoms", "impact_tags", "pain_strategies")
_TEXT_FIELDS = ("notes", "side_effects", "journal_entry")
EDITABLE_FIELDS = frozenset(
    _LIST_FIELDS + _TEXT_FIELDS
    + ("pain_level", "medications", "functional_impact", "rx_taken", "logged_at")
)


def clean_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Validate an edit and convert values to their domain types."""
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise InvalidEntryError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

    cleaned: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "pain_level":
            cleaned[key] = validate_pain_level(value)
        elif key == "medications":
            cleaned[key] = normalize_medications(value)
        elif key == "functional_impact":
            cleaned[key] = coerce_functional_impact(value)
        elif key == "logged_at":
            if not isinstance(value, datetime):
                raise InvalidEntryError("logged_at must be a datetime")
            cleaned[key] = ensure_aware(value)
        elif key in _LIST_FIELDS:
            cleaned[key] = dedupe(str(v) for v in (value or []))
        elif key in _TEXT_FIELDS:
            cleaned[key] = str(value or "")
        else:
            cleaned[key] = bool(value)
    return cleaned


class PainLogService:
    """Pain entry lifecycle plus the pain-session bookkeeping around it."""

    def __init__(
        self,
        log_store: LogStore,
        session_repo: Optional[PainSessionRepository] = None,
        profile_store: Optional[ProfileStore] = None,
    ):
        self._log_store = log_store
        self._session_repo = session_repo
        self._profile_store = profile_store

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record(self, entry: PainLogEntry) -> bool:
        """Save an entry; on success make sure a pain session is open."""
        saved = await self._log_store.save(entry)
        if not saved:
            logger.warning("Pain entry %s for user %s was not saved", entry.id, entry.user_id)
            return False

        logger.info(
            "Saved pain entry %s for user %s (level=%s)",
            entry.id, entry.user_id, entry.pain_level,
        )
        if entry.pain_level:
            await self.open_session_if_needed(entry.user_id, entry.pain_level, entry.logged_at)
        return True

    async def log_entry(
        self,
        user_id: str,
        draft: EntryDraft,
        other_medication: Optional[str] = None,
    ) -> PainLogEntry:
        """Save a direct-entry form submission.

        other_medication is a medication typed in by the user; it is added
        to the profile's current medications if not already listed.

        Raises:
            InvalidPainLevelError, InvalidEntryError: on bad input.
            RepositoryError: if the store did not accept the entry.
        """
        medications = list(draft.medications)
        if other_medication and other_medication.strip():
            medications.append(other_medication.strip())

        entry = PainLogEntry(
            user_id=user_id,
            logged_at=draft.logged_at or datetime.now(timezone.utc),
            pain_level=draft.pain_level,
            locations=list(draft.locations),
            triggers=list(draft.triggers),
            medications=medications,
            symptoms=list(draft.symptoms),
            notes=draft.notes,
            functional_impact=draft.functional_impact,
            impact_tags=list(draft.impact_tags),
            side_effects=draft.side_effects,
            pain_strategies=list(draft.pain_strategies),
            journal_entry=draft.journal_entry,
            rx_taken=draft.rx_taken,
        )
        if not await self.record(entry):
            raise RepositoryError("Pain entry could not be saved")

        if other_medication and other_medication.strip():
            await self.add_profile_medication(user_id, other_medication.strip())
        return entry

    async def update_entry(self, entry_id: str, patch: dict[str, Any]) -> bool:
        cleaned = clean_patch(patch)
        if not cleaned:
            return True
        return await self._log_store.update(entry_id, cleaned)

    async def delete_entry(self, entry_id: str) -> bool:
        return await self._log_store.delete(entry_id)

    async def get_entry(self, user_id: str, entry_id: str) -> PainLogEntry:
        """Return one of *user_id*'s entries.

        Raises:
            EntryNotFoundError: if missing, deleted, or owned by someone else.
        """
        entry = await self._log_store.get(entry_id)
        if entry is None or entry.user_id != user_id:
            raise EntryNotFoundError(f"Pain entry {entry_id} not found")
        return entry

    async def add_profile_medication(self, user_id: str, name: str) -> bool:
        if self._profile_store is None:
            return False
        added = await self._profile_store.append_medication(
            user_id, ProfileMedication(name=name),
        )
        if added:
            logger.info("Added %s to profile medications for user %s", name, user_id)
        return added

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_range(self, user_id: str, date_range: DateRange) -> list[PainLogEntry]:
        return await self._log_store.fetch_range(user_id, date_range.start, date_range.end)

    async def recent_history(
        self, user_id: str, days: int, now: Optional[datetime] = None,
    ) -> list[PainLogEntry]:
        """Entries from the last *days* days up to *now*."""
        end = now or datetime.now(timezone.utc)
        return await self._log_store.fetch_range(
            user_id, end - timedelta(days=days), end + timedelta(microseconds=1),
        )

    # ------------------------------------------------------------------
    # Pain sessions
    # ------------------------------------------------------------------

    async def active_session(self, user_id: str) -> Optional[PainSession]:
        if self._session_repo is None:
            return None
        return await self._session_repo.get_open(user_id)

    async def open_session_if_needed(
        self, user_id: str, level: int, at: datetime,
    ) -> Optional[PainSession]:
        """Open a session unless one is already open. Returns the open one."""
        if self._session_repo is None:
            return None
        try:
            current = await self._session_repo.get_open(user_id)
            if current is not None:
                return current
            session = await self._session_repo.start(
                PainSession(user_id=user_id, start_level=level, started_at=at),
            )
        except RepositoryError:
            logger.exception("Could not open a pain session for user %s", user_id)
            return None
        logger.info("Opened pain session %s for user %s", session.id, user_id)
        return session

    async def resolve_session(
        self,
        user_id: str,
        end_level: Optional[int],
        at: Optional[datetime] = None,
    ) -> Optional[PainSession]:
        """Close the open session, if any."""
        if self._session_repo is None:
            return None
        end_level = validate_pain_level(end_level)
        current = await self._session_repo.get_open(user_id)
        if current is None:
            return None
        resolved = await self._session_repo.resolve(
            current.id, end_level, at or datetime.now(timezone.utc),
        )
        logger.info("Resolved pain session %s for user %s", current.id, user_id)
        return resolved
