"""
application.analysis.doctor_summary - Plain-text report for clinicians.

The layout, field order and rounding are fixed: the copy/print feature
and anyone pasting the text into a patient portal depend on them.
"""

from __future__ import annotations

from datetime import date, tzinfo
from typing import Optional

from domain.models import FunctionalImpact, InsightsSummary, round_half_up

NONE_TEXT = "None"
NO_MEDS_TEXT = "None tracked"


def format_day(day: date) -> str:
    """e.g. "Mar 4, 2025"."""
    return f"{day:%b} {day.day}, {day.year}"


def format_doctor_summary(
    summary: InsightsSummary,
    tz: Optional[tzinfo] = None,
    app_name: str = "Lila",
) -> str:
    pct = summary.impact_percentages
    meds = "; ".join(m.line for m in summary.medication_efficacy) or NO_MEDS_TEXT

    lines = [
        f"{app_name} — Summary ({format_day(summary.range.first_day(tz))} "
        f"to {format_day(summary.range.last_day(tz))})",
        "",
        f"• Avg daily pain: {round_half_up(summary.avg_pain, 1):.1f}/10",
        f"• Severe days (≥7): {summary.severe_days} of {summary.total_days}",
        f"• Times of day most affected: {', '.join(summary.top_times) or NONE_TEXT}",
        f"• Weekdays most affected: {', '.join(summary.top_weekdays) or NONE_TEXT}",
        "• Functional impact: "
        f"Limited {round_half_up(pct[FunctionalImpact.LIMITED]):.0f}%, "
        f"Stopped {round_half_up(pct[FunctionalImpact.STOPPED]):.0f}%, "
        f"Bed {round_half_up(pct[FunctionalImpact.BED]):.0f}%",
        f"  Top factors: {', '.join(summary.top_impact_tags) or NONE_TEXT}",
        f"• Meds: {meds}",
    ]
    return "\n".join(lines)
