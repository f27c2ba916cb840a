"""
application.analysis.aggregation - Date-range statistics over pain logs.

Every function filters to the half-open range [start, end) first and
works only on that subset. Empty input gives an all-zero summary and an
empty series; nothing here divides by zero or raises on missing data.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from statistics import fmean
from typing import Iterable, Optional, Sequence

from domain.entities import PainLogEntry
from domain.models import (
    DateRange,
    FunctionalImpact,
    InsightsSummary,
    MedicationEfficacy,
    PainSeverity,
    SeriesPoint,
    round_half_up,
)

SEVERE_LEVEL = 7
TOP_BUCKETS = 2
TOP_IMPACT_TAGS = 3
EFFICACY_WINDOW = (timedelta(hours=2), timedelta(hours=4))

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def classify_severity(level: Optional[int]) -> Optional[PainSeverity]:
    if level is None:
        return None
    if level <= 0:
        return PainSeverity.NONE
    if level <= 3:
        return PainSeverity.MILD
    if level <= 6:
        return PainSeverity.MODERATE
    if level <= 9:
        return PainSeverity.SEVERE
    return PainSeverity.WORST


def time_of_day_bucket(hour: int) -> str:
    if hour < 6:
        return "Night"
    if hour < 12:
        return "Morning"
    if hour < 18:
        return "Afternoon"
    return "Evening"


def filter_range(entries: Iterable[PainLogEntry], date_range: DateRange) -> list[PainLogEntry]:
    """Entries inside the range, ascending by timestamp."""
    selected = [e for e in entries if date_range.contains(e.logged_at)]
    selected.sort(key=lambda e: e.logged_at)
    return selected


@dataclass
class DayGroup:
    day: date
    entries: list[PainLogEntry] = field(default_factory=list)

    @property
    def average(self) -> Optional[float]:
        levels = [e.pain_level for e in self.entries if e.pain_level is not None]
        return round_half_up(fmean(levels), 1) if levels else None


def group_by_day(
    entries: Iterable[PainLogEntry], tz: Optional[tzinfo] = None,
) -> list[DayGroup]:
    """Group by local calendar day, newest day first, entries ascending."""
    groups: dict[date, DayGroup] = {}
    for entry in sorted(entries, key=lambda e: e.logged_at):
        day = entry.local_date(tz)
        groups.setdefault(day, DayGroup(day=day)).entries.append(entry)
    return sorted(groups.values(), key=lambda g: g.day, reverse=True)


# ---------------------------------------------------------------------------
# Chart series
# ---------------------------------------------------------------------------

def to_series(
    entries: Iterable[PainLogEntry],
    date_range: DateRange,
    tz: Optional[tzinfo] = None,
) -> list[SeriesPoint]:
    """Chart points for the range.

    Single-day ranges give one point per rated entry labelled HH:MM.
    Longer ranges give one point per day holding the mean of that day's
    ratings; days without a rating are left out so they show as gaps.
    """
    selected = [e for e in filter_range(entries, date_range) if e.pain_level is not None]

    if date_range.is_single_day(tz):
        return [
            SeriesPoint(
                x=e.local_time(tz).strftime("%H:%M"),
                y=float(e.pain_level),
                at=e.logged_at,
            )
            for e in selected
        ]

    by_day: dict[date, list[int]] = defaultdict(list)
    for e in selected:
        by_day[e.local_date(tz)].append(e.pain_level)
    return [
        SeriesPoint(x=day.isoformat(), y=round_half_up(fmean(by_day[day]), 1))
        for day in date_range.days(tz)
        if by_day.get(day)
    ]


# ---------------------------------------------------------------------------
# Summary pieces
# ---------------------------------------------------------------------------

def _top_by_mean(groups: dict[str, list[int]], n: int = TOP_BUCKETS) -> list[str]:
    ranked = sorted(groups, key=lambda k: fmean(groups[k]), reverse=True)
    return ranked[:n]


def rank_times_of_day(rated: Sequence[PainLogEntry], tz: Optional[tzinfo] = None) -> list[str]:
    groups: dict[str, list[int]] = {}
    for e in rated:
        groups.setdefault(time_of_day_bucket(e.local_time(tz).hour), []).append(e.pain_level)
    return _top_by_mean(groups)


def rank_weekdays(rated: Sequence[PainLogEntry], tz: Optional[tzinfo] = None) -> list[str]:
    groups: dict[str, list[int]] = {}
    for e in rated:
        groups.setdefault(WEEKDAY_NAMES[e.local_date(tz).weekday()], []).append(e.pain_level)
    return _top_by_mean(groups)


def count_severe_days(rated: Sequence[PainLogEntry], tz: Optional[tzinfo] = None) -> int:
    day_max: dict[date, int] = {}
    for e in rated:
        day = e.local_date(tz)
        day_max[day] = max(day_max.get(day, e.pain_level), e.pain_level)
    return sum(1 for level in day_max.values() if level >= SEVERE_LEVEL)


def impact_percentages(
    entries: Sequence[PainLogEntry], tz: Optional[tzinfo] = None,
) -> tuple[dict[FunctionalImpact, float], int]:
    """Share of impact-recorded days whose worst impact was each level.

    Returns the percentages (0-100) and the number of days with any
    impact recorded, which is the denominator.
    """
    worst: dict[date, FunctionalImpact] = {}
    for e in entries:
        if e.functional_impact is None:
            continue
        day = e.local_date(tz)
        current = worst.get(day)
        if current is None or e.functional_impact.rank > current.rank:
            worst[day] = e.functional_impact

    days = len(worst)
    counts = Counter(worst.values())
    percentages = {
        level: (counts[level] / days * 100 if days else 0.0) for level in FunctionalImpact
    }
    return percentages, days


def medication_efficacy(entries: Sequence[PainLogEntry]) -> list[MedicationEfficacy]:
    """Pain change 2-4 hours after each medicated entry, per medication.

    The later entry is the first one strictly inside the window. Lines are
    sorted with the largest pain reduction first.
    """
    ordered = sorted(entries, key=lambda e: e.logged_at)
    low, high = EFFICACY_WINDOW
    deltas: dict[str, list[int]] = {}
    side_effects: Counter[str] = Counter()

    for i, entry in enumerate(ordered):
        if not entry.medications:
            continue
        follow_up = next(
            (
                later for later in ordered[i + 1:]
                if entry.logged_at + low < later.logged_at < entry.logged_at + high
            ),
            None,
        )
        if follow_up is None or entry.pain_level is None or follow_up.pain_level is None:
            continue
        delta = follow_up.pain_level - entry.pain_level
        for name in entry.medication_names:
            deltas.setdefault(name, []).append(delta)
            if entry.side_effects.strip():
                side_effects[name] += 1

    lines = [
        MedicationEfficacy(
            name=name,
            mean_delta=fmean(values),
            observations=len(values),
            side_effect_rate=side_effects[name] / len(values),
        )
        for name, values in deltas.items()
    ]
    lines.sort(key=lambda m: m.mean_delta)
    return lines


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def summarize(
    entries: Iterable[PainLogEntry],
    date_range: DateRange,
    tz: Optional[tzinfo] = None,
) -> InsightsSummary:
    selected = filter_range(entries, date_range)
    if not selected:
        return InsightsSummary(range=date_range)

    rated = [e for e in selected if e.pain_level is not None]
    percentages, impact_days = impact_percentages(selected, tz)
    severity_counts = Counter(classify_severity(e.pain_level) for e in rated)

    return InsightsSummary(
        range=date_range,
        entry_count=len(selected),
        total_days=len({e.local_date(tz) for e in selected}),
        avg_pain=fmean(e.pain_level for e in rated) if rated else 0.0,
        severe_days=count_severe_days(rated, tz),
        top_times=rank_times_of_day(rated, tz),
        top_weekdays=rank_weekdays(rated, tz),
        impact_days=impact_days,
        impact_percentages=percentages,
        top_impact_tags=[
            tag for tag, _ in
            Counter(t for e in selected for t in e.impact_tags).most_common(TOP_IMPACT_TAGS)
        ],
        medication_efficacy=medication_efficacy(selected),
        severity_counts={level: severity_counts[level] for level in PainSeverity},
    )
