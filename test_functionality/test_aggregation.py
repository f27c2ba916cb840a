"""
Test Aggregation

Date ranges, day grouping, chart series and the insights summary.
"""

from datetime import datetime, timedelta, timezone

import pytest

from application.analysis.aggregation import (
    classify_severity,
    group_by_day,
    medication_efficacy,
    summarize,
    time_of_day_bucket,
    to_series,
)
from conftest import NOW, at, make_entry
from domain.models import (
    DateRange,
    DateRangePreset,
    FunctionalImpact,
    MedicationEfficacy,
    PainSeverity,
    round_half_up,
)

MARCH = DateRange.custom(at(1, 0), at(8, 0))


# ---------------------------------------------------------------------------
# Date ranges
# ---------------------------------------------------------------------------

def test_today_preset_covers_the_local_day():
    today = DateRange.from_preset(DateRangePreset.TODAY, now=NOW)
    assert today.start == at(5, 0)
    assert today.end == at(6, 0)
    assert today.is_single_day()


def test_last_n_preset_is_calendar_aligned():
    week = DateRange.from_preset(DateRangePreset.LAST_7, now=NOW)
    assert week.start == datetime(2025, 2, 26, tzinfo=timezone.utc)
    assert week.end == at(6, 0)
    assert len(week.days()) == 8


def test_preset_in_user_zone():
    plus_two = timezone(timedelta(hours=2))
    late = datetime(2025, 3, 5, 23, 30, tzinfo=timezone.utc)
    today = DateRange.from_preset(DateRangePreset.TODAY, now=late, tz=plus_two)
    assert today.first_day(plus_two).isoformat() == "2025-03-06"


def test_custom_preset_needs_bounds():
    with pytest.raises(ValueError):
        DateRange.from_preset(DateRangePreset.CUSTOM, now=NOW)


def test_custom_range_swaps_reversed_bounds():
    swapped = DateRange.custom(at(8, 0), at(1, 0))
    assert (swapped.start, swapped.end) == (at(1, 0), at(8, 0))


def test_end_is_exclusive():
    assert MARCH.contains(at(7, 23, 59))
    assert not MARCH.contains(at(8, 0))
    assert MARCH.last_day().isoformat() == "2025-03-07"


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("level, severity", [
    (None, None),
    (0, PainSeverity.NONE),
    (3, PainSeverity.MILD),
    (4, PainSeverity.MODERATE),
    (6, PainSeverity.MODERATE),
    (7, PainSeverity.SEVERE),
    (9, PainSeverity.SEVERE),
    (10, PainSeverity.WORST),
])
def test_classify_severity(level, severity):
    assert classify_severity(level) == severity


@pytest.mark.parametrize("hour, bucket", [
    (0, "Night"), (5, "Night"), (6, "Morning"), (11, "Morning"),
    (12, "Afternoon"), (17, "Afternoon"), (18, "Evening"), (23, "Evening"),
])
def test_time_of_day_bucket(hour, bucket):
    assert time_of_day_bucket(hour) == bucket


def test_group_by_day_newest_first():
    entries = [make_entry(3, at(4, 18)), make_entry(5, at(5, 9)), make_entry(7, at(4, 8))]
    groups = group_by_day(entries)
    assert [g.day.isoformat() for g in groups] == ["2025-03-05", "2025-03-04"]
    assert [e.pain_level for e in groups[1].entries] == [7, 3]
    assert groups[1].average == 5.0


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

def test_single_day_series_uses_clock_labels():
    day = DateRange.custom(at(5, 0), at(6, 0))
    entries = [make_entry(4, at(5, 14, 30)), make_entry(6, at(5, 8, 5)), make_entry(None, at(5, 9))]
    points = to_series(entries, day)
    assert [(p.x, p.y) for p in points] == [("08:05", 6.0), ("14:30", 4.0)]


def test_multi_day_series_averages_and_skips_gaps():
    entries = [
        make_entry(4, at(2, 9)),
        make_entry(7, at(2, 20)),
        make_entry(3, at(5, 12)),
        make_entry(9, at(8, 1)),
    ]
    points = to_series(entries, MARCH)
    assert [(p.x, p.y) for p in points] == [("2025-03-02", 5.5), ("2025-03-05", 3.0)]


def test_series_means_round_ties_up():
    entries = [make_entry(level, at(2, hour)) for level, hour in [(2, 8), (2, 9), (2, 10), (3, 11)]]
    entries.append(make_entry(5, at(4, 9)))
    points = to_series(entries, MARCH)
    assert [(p.x, p.y) for p in points] == [("2025-03-02", 2.3), ("2025-03-04", 5.0)]
    assert group_by_day(entries)[1].average == 2.3


def test_empty_series():
    assert to_series([], MARCH) == []


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_empty_summary_is_all_zero():
    summary = summarize([], MARCH)
    assert not summary.has_data
    assert summary.avg_pain == 0.0
    assert summary.top_times == []
    assert all(v == 0.0 for v in summary.impact_percentages.values())
    assert all(v == 0 for v in summary.severity_counts.values())


def test_summary_numbers():
    entries = [
        # Monday
        make_entry(8, at(3, 7), functional_impact="limited", impact_tags=["work"]),
        make_entry(4, at(3, 20), functional_impact="bed", impact_tags=["work", "sleep"]),
        # Tuesday
        make_entry(2, at(4, 14)),
        # Wednesday
        make_entry(7, at(5, 2), functional_impact="limited", impact_tags=["chores"]),
        make_entry(None, at(5, 10), notes="no rating"),
        # outside the range
        make_entry(10, at(9, 10)),
    ]
    summary = summarize(entries, MARCH)

    assert summary.entry_count == 5
    assert summary.total_days == 3
    assert summary.avg_pain == pytest.approx(21 / 4)
    assert summary.severe_days == 2
    assert summary.top_times == ["Morning", "Night"]
    assert summary.top_weekdays == ["Wednesday", "Monday"]
    assert summary.impact_days == 2
    assert summary.impact_percentages[FunctionalImpact.BED] == 50.0
    assert summary.impact_percentages[FunctionalImpact.LIMITED] == 50.0
    assert summary.impact_percentages[FunctionalImpact.STOPPED] == 0.0
    assert summary.top_impact_tags[0] == "work"
    assert summary.severity_counts[PainSeverity.SEVERE] == 2
    assert summary.severity_counts[PainSeverity.MILD] == 1


def test_medication_efficacy_window_is_strict():
    entries = [
        make_entry(8, at(3, 8), medications=["ibuprofen"], side_effects="nausea"),
        make_entry(5, at(3, 11)),
        make_entry(7, at(4, 8), medications=["ibuprofen"]),
        # exactly two hours later does not count
        make_entry(1, at(4, 10)),
        make_entry(6, at(4, 11)),
        make_entry(6, at(5, 8), medications=["naproxen"]),
        make_entry(2, at(5, 13)),
    ]
    lines = medication_efficacy(entries)
    assert [m.name for m in lines] == ["ibuprofen"]
    ibuprofen = lines[0]
    assert ibuprofen.mean_delta == pytest.approx(-2.0)
    assert ibuprofen.observations == 2
    assert ibuprofen.side_effect_rate == 0.5
    assert ibuprofen.line == "ibuprofen: −2.0 in 2–4h (n=2); side effects 50%"


def test_efficacy_sorted_by_largest_reduction():
    entries = [
        make_entry(5, at(3, 8), medications=["aspirin"]),
        make_entry(6, at(3, 11)),
        make_entry(9, at(4, 8), medications=["naproxen"]),
        make_entry(4, at(4, 11)),
    ]
    lines = medication_efficacy(entries)
    assert [m.name for m in lines] == ["naproxen", "aspirin"]
    assert lines[1].line == "aspirin: +1.0 in 2–4h (n=1); side effects 0%"


def test_efficacy_line_rounds_ties_up():
    line = MedicationEfficacy(
        name="ibuprofen", mean_delta=-2.25, observations=4, side_effect_rate=0.125,
    ).line
    assert line == "ibuprofen: −2.3 in 2–4h (n=4); side effects 13%"


@pytest.mark.parametrize("value, places, expected", [
    (2.25, 1, 2.3),
    (2.24, 1, 2.2),
    (12.5, 0, 13.0),
    (0.5, 0, 1.0),
    (5.0, 1, 5.0),
])
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected
