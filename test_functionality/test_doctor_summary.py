"""
Test Doctor Summary

The plain-text clinician report has a fixed layout; these tests pin it
down character for character.
"""

from application.analysis.aggregation import summarize
from application.analysis.doctor_summary import format_day, format_doctor_summary
from conftest import at, make_entry
from domain.models import DateRange

MARCH = DateRange.custom(at(1, 0), at(8, 0))


def test_format_day():
    assert format_day(at(4, 0).date()) == "Mar 4, 2025"


def test_summary_with_data():
    entries = [
        make_entry(
            8, at(3, 7),
            medications=["ibuprofen"],
            functional_impact="stopped",
            impact_tags=["work"],
        ),
        make_entry(5, at(3, 10)),
        make_entry(3, at(4, 19)),
    ]
    text = format_doctor_summary(summarize(entries, MARCH))
    assert text == "\n".join([
        "Lila — Summary (Mar 1, 2025 to Mar 7, 2025)",
        "",
        "• Avg daily pain: 5.3/10",
        "• Severe days (≥7): 1 of 2",
        "• Times of day most affected: Morning, Evening",
        "• Weekdays most affected: Monday, Tuesday",
        "• Functional impact: Limited 0%, Stopped 100%, Bed 0%",
        "  Top factors: work",
        "• Meds: ibuprofen: −3.0 in 2–4h (n=1); side effects 0%",
    ])


def test_summary_without_data():
    text = format_doctor_summary(summarize([], MARCH), app_name="Clinic")
    assert text == "\n".join([
        "Clinic — Summary (Mar 1, 2025 to Mar 7, 2025)",
        "",
        "• Avg daily pain: 0.0/10",
        "• Severe days (≥7): 0 of 0",
        "• Times of day most affected: None",
        "• Weekdays most affected: None",
        "• Functional impact: Limited 0%, Stopped 0%, Bed 0%",
        "  Top factors: None",
        "• Meds: None tracked",
    ])


def test_average_rounds_ties_up():
    entries = [make_entry(level, at(3, hour)) for level, hour in [(2, 8), (2, 9), (2, 10), (3, 11)]]
    lines = format_doctor_summary(summarize(entries, MARCH)).splitlines()
    assert lines[2] == "• Avg daily pain: 2.3/10"


def test_impact_percentages_round_ties_up():
    fortnight = DateRange.custom(at(1, 0), at(15, 0))
    entries = [make_entry(None, at(1, 9), functional_impact="limited")]
    entries += [make_entry(None, at(day, 9), functional_impact="none") for day in range(2, 9)]
    lines = format_doctor_summary(summarize(entries, fortnight)).splitlines()
    assert lines[6] == "• Functional impact: Limited 13%, Stopped 0%, Bed 0%"
