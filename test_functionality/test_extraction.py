"""
Test Extraction

Keyword extraction of pain level, locations, triggers, medications and
symptoms from chat messages.
"""

import pytest

from application.analysis.extraction import (
    extract,
    find_locations,
    find_pain_level,
    find_symptoms,
    has_pain_language,
    states_ineffectiveness,
)
from domain.models import MedicationMention


@pytest.mark.parametrize("message, level", [
    ("My head hurts, about a 7", 7),
    ("it's a 10/10 today", 10),
    ("0", 0),
    ("Terrible pain in my lower back", 8),
    ("moderate ache in the knee", 5),
    ("just a slight headache", 3),
    ("my neck is sore", None),
])
def test_pain_level(message, level):
    assert find_pain_level(message) == level


def test_numeral_wins_over_severity_word():
    assert find_pain_level("severe, maybe a 6") == 6


def test_longest_location_is_matched_first():
    assert find_locations("pain at the back of my head") == ["back of head"]
    assert find_locations("my lower back again") == ["lower back"]
    assert find_locations("headache and a stiff neck") == ["head", "neck"]


def test_locations_need_word_boundaries():
    assert find_locations("I had a backup plan") == []


def test_medication_effectiveness_from_same_message():
    data = extract("took advil but it's not helping")
    assert data.medications == [MedicationMention("ibuprofen", effective=False)]

    data = extract("I took tylenol an hour ago")
    assert data.medications == [MedicationMention("acetaminophen", effective=True)]


def test_follow_up_marks_earlier_medication_ineffective():
    data = extract("still hurts", ["I took ibuprofen"])
    assert data.medications == [MedicationMention("ibuprofen", effective=False)]


def test_symptoms_including_sensitivity():
    assert find_symptoms("nauseous and sensitive to light") == ["nausea", "light sensitivity"]
    assert find_symptoms("noise sensitivity is bad") == ["sound sensitivity"]


def test_level_from_latest_message_only_other_fields_accumulate():
    data = extract("it's a 6 now", ["stressed at work, headache", "also my neck"])
    assert data.pain_level == 6
    assert data.locations == ["head", "neck"]
    assert data.triggers == ["stress"]
    assert data.notes == "it's a 6 now"

    earlier_level = extract("my neck", ["pain is 8"])
    assert earlier_level.pain_level is None


def test_nothing_recognizable():
    data = extract("   ")
    assert data.is_empty
    assert data.notes == ""


def test_pain_language_and_ineffectiveness_markers():
    assert has_pain_language("my knee aches")
    assert not has_pain_language("feeling fine")
    assert states_ineffectiveness("It doesn't help at all")
    assert not states_ineffectiveness("that helped a lot")
