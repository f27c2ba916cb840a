"""
application.services.responses - Rule-based wording of companion replies.

ScriptedResponseGenerator implements the ResponseGenerator port. The
conversation policy decides WHAT to say (a ReplyIntent plus the data it
knows); this module decides HOW it reads and which quick-reply pills go
with it.
"""

from __future__ import annotations

import random
from typing import Optional

from domain.models import ChatAction, ChatReply, ReplyIntent, ReplyRequest

INSIGHTS_DESTINATION = "insights"

GREETING_PILLS = ["I'm in pain", "Feeling good", "Moderate discomfort", "Severe pain"]
RATING_PILLS = ["1-3 (Mild)", "4-6 (Moderate)", "7-8 (Severe)", "9-10 (Extreme)"]
QUICK_LOCATION_PILLS = ["Head", "Neck", "Shoulders", "Back"]
CHOOSE_AREAS_PILL = "Choose specific areas"
TRIGGER_PILLS = ["Stress", "Poor sleep", "Screen time", "Weather", "Not sure"]
AFTER_LOCATIONS_PILLS = ["What triggered this?", "Show my progress", "Track medication"]
PAIN_FREE_PILLS = ["Show my patterns", "Track something else"]
MEDICATION_PILLS = ["Yes, it helped", "Not helping yet", "Too early to tell"]
ALTERNATIVE_PILLS = ["Took something else", "Prescribed medication", "Nothing else"]
DEFAULT_PILLS = ["Add more details", "That's all for now", "Show my progress"]
RETRY_PILLS = ["Try again"]

FALLBACK_PROMPTS = (
    "I want to help track this properly. Can you tell me more about your pain?",
    "Every detail helps me understand your patterns better. What else is important?",
    "Thanks for sharing. How would you describe your current pain level?",
)

# (lowest level, text template, pills), checked in order; first match wins.
SEVERITY_FOLLOW_UPS: tuple[tuple[int, str, list[str]], ...] = (
    (7, "That's severe pain at {level}/10. Have you taken anything for it?",
     ["Took medication", "Nothing yet", "Resting", "Applied heat/ice"]),
    (4, "{level}/10 is definitely affecting your day. When did this start?",
     ["Just now", "This morning", "A few hours ago", "Yesterday"]),
    (1, "Glad it's on the milder side. Is this typical for you?",
     ["Yes, pretty typical", "No, it's unusual"]),
)


def severity_follow_up(level: Optional[int]) -> Optional[tuple[str, list[str]]]:
    if level is None:
        return None
    for lowest, template, pills in SEVERITY_FOLLOW_UPS:
        if level >= lowest:
            return template.format(level=level), list(pills)
    return None


class ScriptedResponseGenerator:
    """Fixed templates; the open-ended fallback is drawn from FALLBACK_PROMPTS."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    async def render(self, request: ReplyRequest) -> ChatReply:
        return self.compose(request)

    def compose(self, request: ReplyRequest) -> ChatReply:
        """Synchronous core of render(), shared with the LLM generator."""
        intent = request.intent
        level = request.pain_level

        if intent is ReplyIntent.GREETING:
            return self._reply(request, "How are you feeling today?", GREETING_PILLS)

        if intent is ReplyIntent.NAVIGATE:
            return self._reply(
                request,
                "I'll show you your insights page with detailed analytics and patterns.",
                [],
                action=ChatAction.NAVIGATE,
                target=INSIGHTS_DESTINATION,
            )

        if intent is ReplyIntent.PAIN_FREE:
            return self._reply(
                request,
                "That's wonderful! I'm glad you're feeling good. "
                "Tracking good days helps too.",
                PAIN_FREE_PILLS,
            )

        if intent is ReplyIntent.ASK_PAIN_LEVEL:
            return self._reply(
                request,
                "I understand you're experiencing pain. How would you rate it?",
                RATING_PILLS,
            )

        if intent is ReplyIntent.ASK_LOCATION:
            return self._reply(
                request,
                f"Pain level {level}/10 noted. Where specifically are you feeling this pain?",
                QUICK_LOCATION_PILLS + [CHOOSE_AREAS_PILL],
            )

        if intent is ReplyIntent.OPEN_PICKER:
            return self._reply(
                request,
                "Select every area where you feel pain, then confirm.",
                [],
                action=ChatAction.OPEN_LOCATION_PICKER,
            )

        if intent is ReplyIntent.PICKER_PENDING:
            return self._reply(
                request,
                "Please confirm the areas in the location picker so I can save this entry.",
                [CHOOSE_AREAS_PILL],
                action=ChatAction.OPEN_LOCATION_PICKER,
            )

        if intent is ReplyIntent.ENTRY_SAVED:
            return self._entry_saved(request)

        if intent is ReplyIntent.LOCATIONS_SAVED:
            return self._reply(
                request,
                f"Perfect! I've recorded your pain level {level}/10 in: "
                f"{', '.join(request.locations)}.",
                AFTER_LOCATIONS_PILLS,
            )

        if intent is ReplyIntent.SAVE_FAILED:
            return self._reply(
                request,
                "I couldn't save that just now, but I still have everything you told me. "
                "Let's try again in a moment.",
                RETRY_PILLS,
            )

        if intent is ReplyIntent.MEDICATION_FOLLOW_UP:
            return self._reply(
                request,
                "Good to track medication. Is it starting to help reduce the pain?",
                MEDICATION_PILLS,
            )

        if intent is ReplyIntent.MEDICATION_ALTERNATIVE:
            return self._reply(
                request,
                "I'm sorry it isn't helping. Have you taken anything else, "
                "or is there a prescribed medication you can try?",
                ALTERNATIVE_PILLS,
            )

        return self._reply(
            request,
            self._rng.choice(FALLBACK_PROMPTS),
            request.suggestions or DEFAULT_PILLS,
        )

    def _entry_saved(self, request: ReplyRequest) -> ChatReply:
        level = request.pain_level
        recorded = f"Got it! I've recorded your pain level {level}/10."
        if level and not request.data.triggers:
            return self._reply(
                request, f"{recorded} What might have triggered this?", TRIGGER_PILLS,
            )
        if request.data.medications:
            if any(m.effective is False for m in request.data.medications):
                return self._reply(
                    request,
                    f"{recorded} I'm sorry the medication isn't helping. "
                    "Is there a prescribed medication you can try?",
                    ALTERNATIVE_PILLS,
                )
            return self._reply(
                request,
                f"{recorded} Is the medication starting to help reduce the pain?",
                MEDICATION_PILLS,
            )
        follow_up = severity_follow_up(level)
        if follow_up is None:
            return self._reply(
                request,
                f"{recorded} Is there anything else about your pain I should know?",
                DEFAULT_PILLS,
            )
        text, pills = follow_up
        return self._reply(request, f"{recorded} {text}", pills)

    @staticmethod
    def _reply(
        request: ReplyRequest,
        content: str,
        pills: list[str],
        action: Optional[ChatAction] = None,
        target: Optional[str] = None,
    ) -> ChatReply:
        return ChatReply(
            content=content,
            pills=list(pills),
            intent=request.intent,
            action=action,
            target=target,
            picker_seed=list(request.picker_seed),
            saved_entry_id=request.saved_entry_id,
        )
