"""
Test Conditions

Diagnosis detection and the onboarding defaults derived from it.
"""

import pytest

from application.analysis.conditions import detect_condition, onboarding_defaults
from domain.models import ConditionDefaults, UserPatterns


@pytest.mark.parametrize("diagnosis, condition", [
    ("Chronic migraine", "migraine"),
    ("tension headache", "headache"),
    ("Osteoarthritis of the knee", "arthritis"),
    ("herniated disc", "back pain"),
    ("fibro", "fibromyalgia"),
    ("tinnitus", None),
    ("", None),
])
def test_detect_condition(diagnosis, condition):
    assert detect_condition(diagnosis) == condition


def test_history_ranks_ahead_of_condition_defaults():
    patterns = UserPatterns(frequent_locations=["neck", "head"], common_triggers=["weather"])
    defaults = onboarding_defaults("migraine", patterns)
    assert defaults.condition == "migraine"
    assert defaults.pain_locations == ["neck", "head", "temples", "behind eyes"]
    assert defaults.pain_is_consistent is True
    assert defaults.common_triggers[:2] == ["weather", "stress"]
    assert defaults.common_triggers.count("weather") == 1


def test_unknown_diagnosis_without_history_is_empty():
    assert onboarding_defaults("something rare") == ConditionDefaults()


def test_unknown_diagnosis_keeps_history():
    defaults = onboarding_defaults("something rare", UserPatterns(frequent_locations=["jaw"]))
    assert defaults.condition is None
    assert defaults.pain_locations == ["jaw"]
    assert defaults.pain_is_consistent is None
