"""
domain.models - Value objects for the pain companion core.

These are immutable data containers with no dependencies on
infrastructure (no LangChain, no SQLite, no FastAPI). The closed enums
here replace the string literals the UI layer used to pass around for
functional impact, date-range presets and the conversation cursor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from domain.entities import PainLogEntry


def dedupe(items: Iterable[str]) -> list[str]:
    """Drop blanks and repeats, keep first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def ensure_aware(ts: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def to_local(ts: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Project an instant into *tz* (or leave it in its own offset)."""
    ts = ensure_aware(ts)
    return ts.astimezone(tz) if tz is not None else ts


def start_of_day(day: date, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz or timezone.utc)


def round_half_up(value: float, places: int = 0) -> float:
    """Round ties away from zero, e.g. 2.25 -> 2.3 and 12.5 -> 13.

    Used for every number shown in the chart and the doctor summary;
    the built-in round() sends ties to the even digit instead.
    """
    step = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FunctionalImpact(str, Enum):
    """How much the pain got in the way of the day, ordered by severity."""
    NONE = "none"
    LIMITED = "limited"
    STOPPED = "stopped"
    BED = "bed"

    @property
    def rank(self) -> int:
        return _IMPACT_RANK[self]


_IMPACT_RANK = {
    FunctionalImpact.NONE: 0,
    FunctionalImpact.LIMITED: 1,
    FunctionalImpact.STOPPED: 2,
    FunctionalImpact.BED: 3,
}


class PainSeverity(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    WORST = "worst"

    @property
    def label(self) -> str:
        return _SEVERITY_LABELS[self]


_SEVERITY_LABELS = {
    PainSeverity.NONE: "No pain",
    PainSeverity.MILD: "Mild",
    PainSeverity.MODERATE: "Moderate",
    PainSeverity.SEVERE: "Severe",
    PainSeverity.WORST: "Worst",
}


class CursorState(str, Enum):
    """What the conversation is waiting for before it can save."""
    NONE = "none"
    LOCATION = "location"
    PICKER = "picker"


class DateRangePreset(str, Enum):
    TODAY = "today"
    LAST_7 = "last7"
    LAST_30 = "last30"
    LAST_60 = "last60"
    LAST_90 = "last90"
    CUSTOM = "custom"

    @property
    def days(self) -> Optional[int]:
        return _PRESET_DAYS.get(self)


_PRESET_DAYS = {
    DateRangePreset.TODAY: 0,
    DateRangePreset.LAST_7: 7,
    DateRangePreset.LAST_30: 30,
    DateRangePreset.LAST_60: 60,
    DateRangePreset.LAST_90: 90,
}


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChatAction(str, Enum):
    NAVIGATE = "navigate"
    OPEN_LOCATION_PICKER = "open_location_picker"


class ReplyIntent(str, Enum):
    """The kind of reply the conversation policy decided on."""
    GREETING = "greeting"
    NAVIGATE = "navigate"
    PAIN_FREE = "pain_free"
    ASK_PAIN_LEVEL = "ask_pain_level"
    ASK_LOCATION = "ask_location"
    OPEN_PICKER = "open_picker"
    PICKER_PENDING = "picker_pending"
    ENTRY_SAVED = "entry_saved"
    LOCATIONS_SAVED = "locations_saved"
    SAVE_FAILED = "save_failed"
    MEDICATION_FOLLOW_UP = "medication_follow_up"
    MEDICATION_ALTERNATIVE = "medication_alternative"
    OPEN_ENDED = "open_ended"


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MedicationMention:
    """A medication named in a log entry.

    effective is None when the user never said whether it helped.
    """
    name: str
    effective: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.effective is not None:
            data["effective"] = self.effective
        return data


def normalize_medication(raw: Any) -> Optional[MedicationMention]:
    """Coerce one stored/submitted medication value into a MedicationMention.

    Accepts a MedicationMention, a plain string, or a mapping with a
    ``name`` key. Anything without a usable name yields None.
    """
    if isinstance(raw, MedicationMention):
        return raw if raw.name else None
    if isinstance(raw, str):
        name = raw.strip()
        return MedicationMention(name=name) if name else None
    if isinstance(raw, dict):
        name = str(raw.get("name") or "").strip()
        if not name:
            return None
        effective = raw.get("effective")
        return MedicationMention(
            name=name,
            effective=None if effective is None else bool(effective),
        )
    return None


def normalize_medications(raw: Any) -> list[MedicationMention]:
    """Normalize a medication collection; later mentions of a name win."""
    if raw is None:
        return []
    if isinstance(raw, (str, dict, MedicationMention)):
        raw = [raw]
    by_name: dict[str, MedicationMention] = {}
    for item in raw:
        med = normalize_medication(item)
        if med is not None:
            by_name[med.name] = med
    return list(by_name.values())


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractedPainData:
    """Structured partial pain record pulled out of chat text."""
    pain_level: Optional[int] = None
    locations: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    medications: list[MedicationMention] = field(default_factory=list)
    symptoms: list[str] = field(default_factory=list)
    notes: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            self.pain_level is None
            and not self.locations
            and not self.triggers
            and not self.medications
            and not self.symptoms
        )


# ---------------------------------------------------------------------------
# Date ranges
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    """Half-open instant range [start, end)."""
    start: datetime
    end: datetime
    preset: DateRangePreset = DateRangePreset.CUSTOM

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_aware(self.start))
        object.__setattr__(self, "end", ensure_aware(self.end))

    @classmethod
    def custom(cls, start: datetime, end: datetime) -> DateRange:
        """Build a custom range, swapping the bounds if given reversed."""
        start, end = ensure_aware(start), ensure_aware(end)
        if end < start:
            start, end = end, start
        return cls(start=start, end=end, preset=DateRangePreset.CUSTOM)

    @classmethod
    def from_preset(
        cls,
        preset: DateRangePreset,
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> DateRange:
        """Resolve a preset against *now* in the user's zone.

        TODAY covers the current local day. LAST_N starts at local
        midnight N days ago and runs to the end of today.
        """
        if preset is DateRangePreset.CUSTOM:
            raise ValueError("custom ranges need explicit bounds")
        now = to_local(now or datetime.now(timezone.utc), tz)
        zone = tz or now.tzinfo
        today = now.date()
        end = start_of_day(today + timedelta(days=1), zone)
        start = start_of_day(today - timedelta(days=preset.days), zone)
        return cls(start=start, end=end, preset=preset)

    def contains(self, ts: datetime) -> bool:
        return self.start <= ensure_aware(ts) < self.end

    def first_day(self, tz: Optional[tzinfo] = None) -> date:
        return to_local(self.start, tz).date()

    def last_day(self, tz: Optional[tzinfo] = None) -> date:
        """Last calendar day touched by the range (end is exclusive)."""
        last_instant = max(self.start, self.end - timedelta(microseconds=1))
        return to_local(last_instant, tz).date()

    def is_single_day(self, tz: Optional[tzinfo] = None) -> bool:
        return self.first_day(tz) == self.last_day(tz)

    def days(self, tz: Optional[tzinfo] = None) -> list[date]:
        """Every calendar day in the range, inclusive of both ends."""
        first, last = self.first_day(tz), self.last_day(tz)
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MedicationEffectiveness:
    name: str
    effectiveness: float
    mentions: int


@dataclass(frozen=True)
class TimePatterns:
    """Independent flags: each is True when its bucket holds >30% of entries."""
    morning: bool = False
    afternoon: bool = False
    evening: bool = False


@dataclass(frozen=True)
class UserPatterns:
    common_pain_levels: list[int] = field(default_factory=list)
    frequent_locations: list[str] = field(default_factory=list)
    common_triggers: list[str] = field(default_factory=list)
    effective_medications: list[MedicationEffectiveness] = field(default_factory=list)
    typical_symptoms: list[str] = field(default_factory=list)
    time_patterns: TimePatterns = field(default_factory=TimePatterns)


@dataclass(frozen=True)
class ConditionDefaults:
    """Onboarding defaults derived from a diagnosis."""
    condition: Optional[str] = None
    pain_locations: list[str] = field(default_factory=list)
    pain_is_consistent: Optional[bool] = None
    common_triggers: list[str] = field(default_factory=list)
    description: str = ""


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SeriesPoint:
    """One chart point. x is "HH:MM" for single-day ranges, ISO date otherwise."""
    x: str
    y: float
    at: Optional[datetime] = None


@dataclass(frozen=True)
class MedicationEfficacy:
    name: str
    mean_delta: float
    observations: int
    side_effect_rate: float

    @property
    def line(self) -> str:
        sign = "−" if self.mean_delta < 0 else "+"
        return (
            f"{self.name}: {sign}{round_half_up(abs(self.mean_delta), 1):.1f} in 2–4h "
            f"(n={self.observations}); "
            f"side effects {round_half_up(self.side_effect_rate * 100):.0f}%"
        )


@dataclass(frozen=True)
class InsightsSummary:
    """Aggregate numbers for one date range. All zero/empty when no data."""
    range: DateRange
    entry_count: int = 0
    total_days: int = 0
    avg_pain: float = 0.0
    severe_days: int = 0
    top_times: list[str] = field(default_factory=list)
    top_weekdays: list[str] = field(default_factory=list)
    impact_days: int = 0
    impact_percentages: dict[FunctionalImpact, float] = field(
        default_factory=lambda: {level: 0.0 for level in FunctionalImpact}
    )
    top_impact_tags: list[str] = field(default_factory=list)
    medication_efficacy: list[MedicationEfficacy] = field(default_factory=list)
    severity_counts: dict[PainSeverity, int] = field(
        default_factory=lambda: {level: 0 for level in PainSeverity}
    )

    @property
    def has_data(self) -> bool:
        return self.entry_count > 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatReply:
    """Assistant utterance plus quick-reply pills and an optional UI action."""
    content: str
    pills: list[str] = field(default_factory=list)
    intent: ReplyIntent = ReplyIntent.OPEN_ENDED
    action: Optional[ChatAction] = None
    target: Optional[str] = None
    picker_seed: list[str] = field(default_factory=list)
    saved_entry_id: Optional[str] = None


@dataclass(frozen=True)
class ReplyRequest:
    """Everything a ResponseGenerator may use to word a reply."""
    intent: ReplyIntent
    message: str = ""
    data: ExtractedPainData = field(default_factory=ExtractedPainData)
    pain_level: Optional[int] = None
    locations: list[str] = field(default_factory=list)
    dialogue: list[tuple[str, str]] = field(default_factory=list)
    history: list["PainLogEntry"] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    picker_seed: list[str] = field(default_factory=list)
    saved_entry_id: Optional[str] = None


@dataclass(frozen=True)
class ChangeEvent:
    """Emitted by the log store after a committed write."""
    kind: ChangeKind
    user_id: str
    entry_id: str
