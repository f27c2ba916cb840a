"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Decoupled from any persistence strategy: no SQL concerns, no DB imports.
Pain log ids are generated on construction so an entry keeps the same id
from the chat turn that created it through every later edit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Optional
from uuid import uuid4

from domain.exceptions import InvalidEntryError, InvalidPainLevelError
from domain.models import (
    ExtractedPainData,
    FunctionalImpact,
    MedicationMention,
    dedupe,
    ensure_aware,
    normalize_medications,
    to_local,
)


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_pain_level(value: Any) -> Optional[int]:
    """Return *value* as an int in 0..10, None for None, or raise."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPainLevelError(f"Pain level must be an integer, got {value!r}")
    if not 0 <= value <= 10:
        raise InvalidPainLevelError(f"Pain level must be between 0 and 10, got {value}")
    return value


def coerce_functional_impact(value: Any) -> Optional[FunctionalImpact]:
    if value is None or value == "":
        return None
    try:
        return FunctionalImpact(value)
    except ValueError:
        raise InvalidEntryError(f"Unknown functional impact: {value!r}") from None


@dataclass
class PainLogEntry:
    """One reported pain observation."""
    user_id: str = ""
    logged_at: datetime = field(default_factory=_utcnow)
    pain_level: Optional[int] = None
    locations: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    medications: list[MedicationMention] = field(default_factory=list)
    symptoms: list[str] = field(default_factory=list)
    notes: str = ""
    functional_impact: Optional[FunctionalImpact] = None
    impact_tags: list[str] = field(default_factory=list)
    side_effects: str = ""
    pain_strategies: list[str] = field(default_factory=list)
    journal_entry: str = ""
    rx_taken: bool = False
    id: str = field(default_factory=_new_id)
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        self.pain_level = validate_pain_level(self.pain_level)
        self.logged_at = ensure_aware(self.logged_at)
        self.locations = dedupe(self.locations)
        self.triggers = dedupe(self.triggers)
        self.symptoms = dedupe(self.symptoms)
        self.impact_tags = dedupe(self.impact_tags)
        self.medications = normalize_medications(self.medications)
        self.functional_impact = coerce_functional_impact(self.functional_impact)

    @property
    def date(self) -> date:
        """Calendar day of logged_at in the timestamp's own offset."""
        return self.logged_at.date()

    def local_date(self, tz: Optional[tzinfo] = None) -> date:
        return to_local(self.logged_at, tz).date()

    def local_time(self, tz: Optional[tzinfo] = None) -> datetime:
        return to_local(self.logged_at, tz)

    @property
    def medication_names(self) -> list[str]:
        return [m.name for m in self.medications]

    @classmethod
    def from_extracted(
        cls,
        user_id: str,
        data: ExtractedPainData,
        logged_at: Optional[datetime] = None,
    ) -> PainLogEntry:
        """Map a chat extraction onto a new entry."""
        return cls(
            user_id=user_id,
            logged_at=logged_at or _utcnow(),
            pain_level=data.pain_level,
            locations=list(data.locations),
            triggers=list(data.triggers),
            medications=list(data.medications),
            symptoms=list(data.symptoms),
            notes=data.notes,
        )


@dataclass
class PainSession:
    """An episode of sustained pain, open until resolved."""
    user_id: str = ""
    start_level: Optional[int] = None
    started_at: datetime = field(default_factory=_utcnow)
    end_level: Optional[int] = None
    resolved_at: Optional[datetime] = None
    id: str = field(default_factory=_new_id)

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None


@dataclass
class ProfileMedication:
    name: str = ""
    dosage: str = ""
    frequency: str = ""


@dataclass
class UserProfile:
    """Read-only snapshot of the user's profile as the core sees it."""
    user_id: str = ""
    diagnosis: str = ""
    pain_is_consistent: bool = False
    default_pain_locations: list[str] = field(default_factory=list)
    current_medications: list[ProfileMedication] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def has_medication(self, name: str) -> bool:
        wanted = name.strip().lower()
        return any(m.name.strip().lower() == wanted for m in self.current_medications)


@dataclass
class Conversation:
    """Metadata for a conversation session."""
    id: Optional[int] = None
    user_id: str = ""
    conversation_id: str = ""
    title: str = ""
    last_message_at: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str = ""


@dataclass
class ChatMessage:
    """A single message in a conversation."""
    id: Optional[int] = None
    user_id: str = ""
    conversation_id: str = ""
    role: str = ""  # "user" or "assistant"
    content: str = ""
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str = ""
