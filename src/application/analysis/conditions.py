"""
application.analysis.conditions - Onboarding defaults from a diagnosis.

A small lexicon of chronic pain conditions, each with where it usually
hurts, whether that place is consistent, and what tends to set it off.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from domain.models import ConditionDefaults, UserPatterns, dedupe


@dataclass(frozen=True)
class ConditionMapping:
    pain_locations: tuple[str, ...]
    pain_is_consistent: bool
    common_triggers: tuple[str, ...]
    description: str


CONDITION_MAPPINGS: dict[str, ConditionMapping] = {
    "migraine": ConditionMapping(
        pain_locations=("head", "temples", "behind eyes"),
        pain_is_consistent=True,
        common_triggers=("stress", "poor sleep", "bright lights", "hormones", "weather"),
        description="Recurring headaches, often one-sided, with light or sound sensitivity.",
    ),
    "headache": ConditionMapping(
        pain_locations=("head", "forehead", "temples"),
        pain_is_consistent=True,
        common_triggers=("stress", "poor sleep", "screen time", "dehydration"),
        description="Pain across the head, often linked to tension or strain.",
    ),
    "arthritis": ConditionMapping(
        pain_locations=("knees", "hips", "hands"),
        pain_is_consistent=True,
        common_triggers=("weather", "activity", "cold"),
        description="Joint pain and stiffness that tends to follow the weather.",
    ),
    "fibromyalgia": ConditionMapping(
        pain_locations=("shoulders", "back", "neck", "hips"),
        pain_is_consistent=False,
        common_triggers=("stress", "poor sleep", "weather", "activity"),
        description="Widespread pain that moves around the body.",
    ),
    "back pain": ConditionMapping(
        pain_locations=("lower back", "upper back"),
        pain_is_consistent=True,
        common_triggers=("posture", "activity", "stress"),
        description="Pain along the spine, usually the lower back.",
    ),
    "sciatica": ConditionMapping(
        pain_locations=("lower back", "hips", "legs"),
        pain_is_consistent=True,
        common_triggers=("sitting", "activity", "posture"),
        description="Nerve pain running from the lower back down the leg.",
    ),
    "chronic pain": ConditionMapping(
        pain_locations=(),
        pain_is_consistent=False,
        common_triggers=("stress", "poor sleep", "weather"),
        description="Long-lasting pain that may change location.",
    ),
}

# Related terms, longest first so "tension headache" wins over "headache".
RELATED_TERMS: dict[str, str] = {
    "tension headache": "headache",
    "cluster headache": "headache",
    "rheumatoid": "arthritis",
    "osteoarthritis": "arthritis",
    "joint pain": "arthritis",
    "herniated disc": "back pain",
    "lower back": "back pain",
    "upper back": "back pain",
    "spine": "back pain",
    "disc": "back pain",
    "widespread pain": "fibromyalgia",
    "fibro": "fibromyalgia",
    "nerve pain": "sciatica",
    "neuropathy": "chronic pain",
}


def detect_condition(diagnosis: str) -> Optional[str]:
    """Map free-text diagnosis onto a known condition name, or None."""
    text = (diagnosis or "").lower().strip()
    if not text:
        return None
    for condition in sorted(CONDITION_MAPPINGS, key=len, reverse=True):
        if condition in text:
            return condition
    for term in sorted(RELATED_TERMS, key=len, reverse=True):
        if term in text:
            return RELATED_TERMS[term]
    return None


def onboarding_defaults(
    diagnosis: str, patterns: Optional[UserPatterns] = None,
) -> ConditionDefaults:
    """Defaults for the onboarding form.

    The user's own history ranks ahead of the condition's textbook
    locations and triggers. An unknown diagnosis with no history yields
    empty defaults.
    """
    condition = detect_condition(diagnosis)
    mapping = CONDITION_MAPPINGS.get(condition) if condition else None
    patterns = patterns or UserPatterns()

    if mapping is None and not patterns.frequent_locations and not patterns.common_triggers:
        return ConditionDefaults()

    return ConditionDefaults(
        condition=condition,
        pain_locations=dedupe(
            list(patterns.frequent_locations) + list(mapping.pain_locations if mapping else ())
        ),
        pain_is_consistent=mapping.pain_is_consistent if mapping else None,
        common_triggers=dedupe(
            list(patterns.common_triggers) + list(mapping.common_triggers if mapping else ())
        ),
        description=mapping.description if mapping else "",
    )
