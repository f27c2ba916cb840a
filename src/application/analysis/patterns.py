"""
application.analysis.patterns - Per-user statistics from pain history.

compute_patterns() is recomputed on every call; there is no cached state.
Ranked lists are built with collections.Counter whose most_common() keeps
first-seen order for equal counts, so ties are stable for a given history.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Optional, Sequence

from domain.entities import PainLogEntry
from domain.models import (
    MedicationEffectiveness,
    TimePatterns,
    UserPatterns,
    dedupe,
    to_local,
)

TOP_N = 3
TIME_PATTERN_SHARE = 0.3
MAX_SUGGESTIONS = 4
GENERIC_SUGGESTIONS = ("Quick pain log", "Voice recording")

_HEAD_WORDS = ("head", "temple", "forehead")


def _top(values: Iterable, n: int = TOP_N) -> list:
    return [value for value, _ in Counter(values).most_common(n)]


def _time_bucket(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def compute_time_patterns(
    history: Sequence[PainLogEntry], tz: Optional[tzinfo] = None,
) -> TimePatterns:
    if not history:
        return TimePatterns()
    counts = Counter(_time_bucket(e.local_time(tz).hour) for e in history)
    total = len(history)
    return TimePatterns(
        morning=counts["morning"] / total > TIME_PATTERN_SHARE,
        afternoon=counts["afternoon"] / total > TIME_PATTERN_SHARE,
        evening=counts["evening"] / total > TIME_PATTERN_SHARE,
    )


def compute_medication_effectiveness(
    history: Sequence[PainLogEntry],
) -> list[MedicationEffectiveness]:
    """Share of mentions marked effective, per medication name.

    Mentions with unknown effectiveness count toward the total only.
    """
    totals: Counter[str] = Counter()
    effective: Counter[str] = Counter()
    for entry in history:
        for med in entry.medications:
            totals[med.name] += 1
            if med.effective is True:
                effective[med.name] += 1

    ranked = [
        MedicationEffectiveness(
            name=name, effectiveness=effective[name] / count, mentions=count,
        )
        for name, count in totals.items()
        if count > 0
    ]
    ranked.sort(key=lambda m: m.effectiveness, reverse=True)
    return ranked[:TOP_N]


def compute_patterns(
    history: Sequence[PainLogEntry], tz: Optional[tzinfo] = None,
) -> UserPatterns:
    """Derive the user's common levels, places, triggers and timing."""
    if not history:
        return UserPatterns()

    return UserPatterns(
        common_pain_levels=_top(
            e.pain_level for e in history if e.pain_level is not None and e.pain_level > 0
        ),
        frequent_locations=_top(loc for e in history for loc in e.locations),
        common_triggers=_top(t for e in history for t in e.triggers),
        effective_medications=compute_medication_effectiveness(history),
        typical_symptoms=_top(s for e in history for s in e.symptoms),
        time_patterns=compute_time_patterns(history, tz),
    )


def generate_contextual_suggestions(
    message: str,
    history: Sequence[PainLogEntry],
    conversation_context: Sequence[str] = (),
    *,
    patterns: Optional[UserPatterns] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> list[str]:
    """Up to four quick-reply suggestions, in rule priority order.

    conversation_context is accepted for callers that track dialogue; the
    current rules only look at the latest message.
    """
    text = (message or "").lower()
    patterns = patterns or compute_patterns(history, tz)
    suggestions: list[str] = []

    if any(word in text for word in ("pain", "hurt", "ache")):
        if patterns.common_pain_levels:
            suggestions.append(f"Pain level {patterns.common_pain_levels[0]}")
        if patterns.frequent_locations:
            suggestions.append(f"{patterns.frequent_locations[0]} pain")

    if "head" in text:
        for location in patterns.frequent_locations:
            if any(word in location for word in _HEAD_WORDS):
                suggestions.append(f"{location} hurts")

    if any(word in text for word in ("trigger", "cause", "why")):
        for trigger in patterns.common_triggers[:2]:
            suggestions.append(f"{trigger} trigger")

    if any(word in text for word in ("medication", "medicine", "help")):
        for med in patterns.effective_medications[:2]:
            suggestions.append(f"Took {med.name}")

    hour = to_local(now or datetime.now(timezone.utc), tz).hour
    if patterns.time_patterns.morning and hour < 12:
        suggestions.append("Morning headache")
    elif patterns.time_patterns.evening and hour > 17:
        suggestions.append("Evening pain")

    suggestions.extend(GENERIC_SUGGESTIONS)
    return dedupe(suggestions)[:MAX_SUGGESTIONS]
