"""
application.analysis.extraction - Keyword extraction of pain data from chat text.

extract() is a pure function. The pain level is read from the latest
message only; locations, triggers, medications and symptoms accumulate
over every user message in the conversation, since people rarely restate
where it hurts once they have said it.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from domain.models import ExtractedPainData, MedicationMention, dedupe


class Lexicon:
    """Canonical labels keyed by regex alternatives.

    All alternatives are compiled into one pattern, longest first, and
    scanned left to right, so "back of head" is consumed before "back" or
    "head" get a chance to match inside it.
    """

    def __init__(self, entries: Sequence[tuple[str, Sequence[str]]]):
        self._label_for: dict[str, str] = {}
        alternatives: list[str] = []
        for label, patterns in entries:
            for pattern in patterns:
                self._label_for[pattern] = label
                alternatives.append(pattern)
        alternatives.sort(key=len, reverse=True)
        self._patterns = [re.compile(rf"^(?:{p})$") for p in alternatives]
        self._regex = re.compile(
            r"\b(?:" + "|".join(f"(?:{p})" for p in alternatives) + r")\b"
        )
        self._alternatives = alternatives
        self.labels = dedupe(label for label, _ in entries)

    def find(self, text: str) -> list[str]:
        """Labels in order of first appearance in *text*."""
        found: list[str] = []
        for match in self._regex.finditer(text):
            label = self._label_of(match.group(0))
            if label and label not in found:
                found.append(label)
        return found

    def _label_of(self, token: str) -> Optional[str]:
        for pattern, compiled in zip(self._alternatives, self._patterns):
            if compiled.match(token):
                return self._label_for[pattern]
        return None


# ---------------------------------------------------------------------------
# Lexicons
# ---------------------------------------------------------------------------

_SEVERITY_WORDS: tuple[tuple[int, re.Pattern[str]], ...] = (
    (8, re.compile(r"\b(?:excruciating|worst|horrible|terrible|severe|unbearable|agonizing)\b")),
    (5, re.compile(r"\b(?:moderate|bothersome)\b")),
    (3, re.compile(r"\b(?:mild|slight|slightly)\b")),
)

_PAIN_NUMBER = re.compile(r"\b(10|[0-9])\b")

LOCATIONS = Lexicon([
    ("whole head", [r"whole head", r"entire head", r"all over my head"]),
    ("forehead", [r"forehead"]),
    ("temples", [r"temples?"]),
    ("behind eyes", [r"behind (?:my |the )?eyes", r"eye pain"]),
    ("back of head", [r"back of (?:my |the )?head", r"base of (?:my |the )?skull"]),
    ("head", [r"head", r"headache"]),
    ("neck", [r"neck"]),
    ("shoulders", [r"shoulders?"]),
    ("lower back", [r"lower back"]),
    ("upper back", [r"upper back"]),
    ("back", [r"back"]),
    ("abdomen", [r"stomach", r"abdomen", r"belly"]),
    ("chest", [r"chest"]),
    ("jaw", [r"jaw"]),
    ("knees", [r"knees?"]),
    ("hips", [r"hips?"]),
])

TRIGGERS = Lexicon([
    ("stress", [r"stress(?:ed|ful)?", r"anxious", r"anxiety"]),
    ("poor sleep", [r"sleep", r"slept", r"tired", r"insomnia", r"exhausted"]),
    ("dehydration", [r"dehydrat(?:ed|ion)", r"thirsty"]),
    ("bright lights", [r"bright lights?", r"glare"]),
    ("screen time", [r"screens?", r"computer", r"laptop", r"monitor"]),
    ("diet", [r"food", r"diet", r"meals?", r"ate", r"caffeine", r"coffee", r"alcohol"]),
    ("weather", [r"weather", r"rain(?:y|ing)?", r"storm(?:y|s)?", r"humid(?:ity)?", r"barometric"]),
    ("hormones", [r"hormon(?:e|es|al)", r"period", r"menstrual"]),
])

MEDICATIONS = Lexicon([
    ("ibuprofen", [r"ibuprofen", r"advil", r"motrin"]),
    ("acetaminophen", [r"tylenol", r"acetaminophen", r"paracetamol"]),
    ("aspirin", [r"aspirin"]),
    ("naproxen", [r"naproxen", r"aleve"]),
])

SYMPTOMS = Lexicon([
    ("nausea", [r"nause(?:a|ous|ated)", r"sick to my stomach"]),
    ("dizziness", [r"dizz(?:y|iness)", r"lightheaded"]),
])

_INEFFECTIVE = re.compile(
    r"\bstill\b|not helping|(?:doesn't|does not|didn't|did not|hasn't|isn't) help(?:ing|ed)?"
    r"|not working|no relief"
)
_PAIN_LANGUAGE = re.compile(r"pain|hurt|ache")
_SENSITIVE = re.compile(r"\bsensitiv(?:e|ity)\b")
_LIGHT = re.compile(r"\blights?\b")
_SOUND = re.compile(r"\b(?:sounds?|noises?)\b")


def normalize_text(text: str) -> str:
    return text.lower().replace("’", "'")


# ---------------------------------------------------------------------------
# Single-field matchers
# ---------------------------------------------------------------------------

def find_pain_level(message: str) -> Optional[int]:
    """First standalone 0-10 numeral wins; otherwise the severity lexicon."""
    text = normalize_text(message)
    match = _PAIN_NUMBER.search(text)
    if match:
        return int(match.group(1))
    for level, pattern in _SEVERITY_WORDS:
        if pattern.search(text):
            return level
    return None


def find_locations(message: str) -> list[str]:
    return LOCATIONS.find(normalize_text(message))


def find_triggers(message: str) -> list[str]:
    return TRIGGERS.find(normalize_text(message))


def find_medications(message: str) -> list[MedicationMention]:
    text = normalize_text(message)
    effective = not states_ineffectiveness(text)
    return [MedicationMention(name=name, effective=effective) for name in MEDICATIONS.find(text)]


def find_symptoms(message: str) -> list[str]:
    text = normalize_text(message)
    found = SYMPTOMS.find(text)
    if _SENSITIVE.search(text):
        if _LIGHT.search(text):
            found.append("light sensitivity")
        if _SOUND.search(text):
            found.append("sound sensitivity")
    return found


def has_pain_language(message: str) -> bool:
    return bool(_PAIN_LANGUAGE.search(normalize_text(message)))


def states_ineffectiveness(message: str) -> bool:
    return bool(_INEFFECTIVE.search(normalize_text(message)))


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def extract(message: str, prior_messages: Iterable[str] = ()) -> ExtractedPainData:
    """Parse a user utterance into a partial pain record.

    Never raises: text with nothing recognizable yields an empty record
    whose notes carry the message.
    """
    messages = [m for m in prior_messages if m] + [message or ""]

    locations: list[str] = []
    triggers: list[str] = []
    symptoms: list[str] = []
    medications: dict[str, MedicationMention] = {}
    for text in messages:
        locations.extend(find_locations(text))
        triggers.extend(find_triggers(text))
        symptoms.extend(find_symptoms(text))
        mentioned = find_medications(text)
        for med in mentioned:
            medications[med.name] = med
        if not mentioned and medications and states_ineffectiveness(text):
            # "still hurts" after naming a drug earlier refers to that drug
            for name in medications:
                medications[name] = MedicationMention(name=name, effective=False)

    return ExtractedPainData(
        pain_level=find_pain_level(message or ""),
        locations=dedupe(locations),
        triggers=dedupe(triggers),
        medications=list(medications.values()),
        symptoms=dedupe(symptoms),
        notes=(message or "").strip(),
    )
