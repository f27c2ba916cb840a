"""Pydantic models for REST API request/response validation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from application.analysis.aggregation import DayGroup
from application.dto import EntryDraft, InsightsReport
from domain.entities import PainLogEntry, PainSession, UserProfile
from domain.models import ConditionDefaults, InsightsSummary, UserPatterns, round_half_up


# --- Pain logs ---

class MedicationIn(BaseModel):
    name: str = Field(..., min_length=1)
    effective: Optional[bool] = None


class MedicationOut(BaseModel):
    name: str
    effective: Optional[bool] = None


class PainLogCreate(BaseModel):
    """Direct-entry form. Everything but the user is optional."""
    logged_at: Optional[datetime] = None
    pain_level: Optional[int] = Field(default=None, ge=0, le=10)
    locations: list[str] = []
    triggers: list[str] = []
    medications: list[MedicationIn | str] = []
    symptoms: list[str] = []
    notes: str = ""
    functional_impact: Optional[str] = None
    impact_tags: list[str] = []
    side_effects: str = ""
    pain_strategies: list[str] = []
    journal_entry: str = ""
    rx_taken: bool = False
    other_medication: Optional[str] = None

    def to_draft(self) -> EntryDraft:
        return EntryDraft(
            logged_at=self.logged_at,
            pain_level=self.pain_level,
            locations=self.locations,
            triggers=self.triggers,
            medications=[m if isinstance(m, str) else m.model_dump() for m in self.medications],
            symptoms=self.symptoms,
            notes=self.notes,
            functional_impact=self.functional_impact,
            impact_tags=self.impact_tags,
            side_effects=self.side_effects,
            pain_strategies=self.pain_strategies,
            journal_entry=self.journal_entry,
            rx_taken=self.rx_taken,
        )


class PainLogPatch(BaseModel):
    """Partial update; only fields present in the request are applied."""
    logged_at: Optional[datetime] = None
    pain_level: Optional[int] = Field(default=None, ge=0, le=10)
    locations: Optional[list[str]] = None
    triggers: Optional[list[str]] = None
    medications: Optional[list[MedicationIn | str]] = None
    symptoms: Optional[list[str]] = None
    notes: Optional[str] = None
    functional_impact: Optional[str] = None
    impact_tags: Optional[list[str]] = None
    side_effects: Optional[str] = None
    pain_strategies: Optional[list[str]] = None
    journal_entry: Optional[str] = None
    rx_taken: Optional[bool] = None

    def to_patch(self) -> dict:
        patch = self.model_dump(exclude_unset=True)
        if "medications" in patch and patch["medications"] is not None:
            patch["medications"] = [
                m if isinstance(m, str) else {"name": m["name"], "effective": m.get("effective")}
                for m in patch["medications"]
            ]
        return patch


class PainLogOut(BaseModel):
    id: str
    logged_at: datetime
    pain_level: Optional[int]
    locations: list[str]
    triggers: list[str]
    medications: list[MedicationOut]
    symptoms: list[str]
    notes: str
    functional_impact: Optional[str]
    impact_tags: list[str]
    side_effects: str
    pain_strategies: list[str]
    journal_entry: str
    rx_taken: bool

    @classmethod
    def from_entity(cls, e: PainLogEntry) -> PainLogOut:
        return cls(
            id=e.id,
            logged_at=e.logged_at,
            pain_level=e.pain_level,
            locations=e.locations,
            triggers=e.triggers,
            medications=[MedicationOut(name=m.name, effective=m.effective) for m in e.medications],
            symptoms=e.symptoms,
            notes=e.notes,
            functional_impact=e.functional_impact.value if e.functional_impact else None,
            impact_tags=e.impact_tags,
            side_effects=e.side_effects,
            pain_strategies=e.pain_strategies,
            journal_entry=e.journal_entry,
            rx_taken=e.rx_taken,
        )


class DayGroupOut(BaseModel):
    day: date
    average: Optional[float]
    entries: list[PainLogOut]

    @classmethod
    def from_group(cls, group: DayGroup) -> DayGroupOut:
        return cls(
            day=group.day,
            average=group.average,
            entries=[PainLogOut.from_entity(e) for e in group.entries],
        )


# --- Insights ---

class SeriesPointOut(BaseModel):
    x: str
    y: float


class MedicationEfficacyOut(BaseModel):
    name: str
    mean_delta: float
    observations: int
    side_effect_rate: float
    line: str


class InsightsSummaryOut(BaseModel):
    start: datetime
    end: datetime
    preset: str
    entry_count: int
    total_days: int
    avg_pain: float
    severe_days: int
    top_times: list[str]
    top_weekdays: list[str]
    impact_days: int
    impact_percentages: dict[str, float]
    top_impact_tags: list[str]
    medication_efficacy: list[MedicationEfficacyOut]
    severity_counts: dict[str, int]

    @classmethod
    def from_summary(cls, s: InsightsSummary) -> InsightsSummaryOut:
        return cls(
            start=s.range.start,
            end=s.range.end,
            preset=s.range.preset.value,
            entry_count=s.entry_count,
            total_days=s.total_days,
            avg_pain=round_half_up(s.avg_pain, 1),
            severe_days=s.severe_days,
            top_times=s.top_times,
            top_weekdays=s.top_weekdays,
            impact_days=s.impact_days,
            impact_percentages={k.value: round_half_up(v, 1) for k, v in s.impact_percentages.items()},
            top_impact_tags=s.top_impact_tags,
            medication_efficacy=[
                MedicationEfficacyOut(
                    name=m.name,
                    mean_delta=m.mean_delta,
                    observations=m.observations,
                    side_effect_rate=m.side_effect_rate,
                    line=m.line,
                )
                for m in s.medication_efficacy
            ],
            severity_counts={k.value: v for k, v in s.severity_counts.items()},
        )


class InsightsReportOut(BaseModel):
    summary: InsightsSummaryOut
    series: list[SeriesPointOut]
    entries: list[PainLogOut]

    @classmethod
    def from_report(cls, report: InsightsReport) -> InsightsReportOut:
        return cls(
            summary=InsightsSummaryOut.from_summary(report.summary),
            series=[SeriesPointOut(x=p.x, y=p.y) for p in report.series],
            entries=[PainLogOut.from_entity(e) for e in report.entries],
        )


# --- Patterns ---

class MedicationEffectivenessOut(BaseModel):
    name: str
    effectiveness: float
    mentions: int


class TimePatternsOut(BaseModel):
    morning: bool
    afternoon: bool
    evening: bool


class PatternsOut(BaseModel):
    common_pain_levels: list[int]
    frequent_locations: list[str]
    common_triggers: list[str]
    effective_medications: list[MedicationEffectivenessOut]
    typical_symptoms: list[str]
    time_patterns: TimePatternsOut

    @classmethod
    def from_patterns(cls, p: UserPatterns) -> PatternsOut:
        return cls(
            common_pain_levels=p.common_pain_levels,
            frequent_locations=p.frequent_locations,
            common_triggers=p.common_triggers,
            effective_medications=[
                MedicationEffectivenessOut(
                    name=m.name, effectiveness=m.effectiveness, mentions=m.mentions,
                )
                for m in p.effective_medications
            ],
            typical_symptoms=p.typical_symptoms,
            time_patterns=TimePatternsOut(
                morning=p.time_patterns.morning,
                afternoon=p.time_patterns.afternoon,
                evening=p.time_patterns.evening,
            ),
        )


class SuggestionsBody(BaseModel):
    message: str = ""
    context: list[str] = []


class SuggestionsOut(BaseModel):
    suggestions: list[str]


# --- Profile ---

class ProfileMedicationIn(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str = ""
    frequency: str = ""


class ProfileOut(BaseModel):
    user_id: str
    diagnosis: str
    pain_is_consistent: bool
    default_pain_locations: list[str]
    current_medications: list[ProfileMedicationIn]

    @classmethod
    def from_entity(cls, p: UserProfile) -> ProfileOut:
        return cls(
            user_id=p.user_id,
            diagnosis=p.diagnosis,
            pain_is_consistent=p.pain_is_consistent,
            default_pain_locations=p.default_pain_locations,
            current_medications=[
                ProfileMedicationIn(name=m.name, dosage=m.dosage, frequency=m.frequency)
                for m in p.current_medications
            ],
        )


class OnboardingBody(BaseModel):
    diagnosis: str = ""
    pain_locations: Optional[list[str]] = None
    pain_is_consistent: Optional[bool] = None
    medications: list[ProfileMedicationIn] = []


class ConditionDefaultsOut(BaseModel):
    condition: Optional[str]
    pain_locations: list[str]
    pain_is_consistent: Optional[bool]
    common_triggers: list[str]
    description: str

    @classmethod
    def from_defaults(cls, d: ConditionDefaults) -> ConditionDefaultsOut:
        return cls(
            condition=d.condition,
            pain_locations=d.pain_locations,
            pain_is_consistent=d.pain_is_consistent,
            common_triggers=d.common_triggers,
            description=d.description,
        )


# --- Pain sessions ---

class ResolveSessionBody(BaseModel):
    end_level: Optional[int] = Field(default=None, ge=0, le=10)


class PainSessionOut(BaseModel):
    id: str
    start_level: Optional[int]
    started_at: datetime
    end_level: Optional[int]
    resolved_at: Optional[datetime]
    is_open: bool

    @classmethod
    def from_entity(cls, s: PainSession) -> PainSessionOut:
        return cls(
            id=s.id,
            start_level=s.start_level,
            started_at=s.started_at,
            end_level=s.end_level,
            resolved_at=s.resolved_at,
            is_open=s.is_open,
        )


# --- Conversations ---

class ConversationOut(BaseModel):
    conversation_id: str
    title: str
    last_message_at: str
    created_at: str


class MessageOut(BaseModel):
    id: int | None
    role: str
    content: str
    created_at: str
