"""
Test Conversation Policy

Turn-by-turn behaviour of the chat companion: when it asks for more,
when it saves, how the location picker is driven, and how a failed save
is retried on the next turn.
"""

import pytest

from application.services.conversation import ConversationPolicy, is_pain_free, merge_pending
from application.services.responses import (
    CHOOSE_AREAS_PILL,
    FALLBACK_PROMPTS,
    GREETING_PILLS,
    MEDICATION_PILLS,
    PAIN_FREE_PILLS,
    QUICK_LOCATION_PILLS,
    RATING_PILLS,
    RETRY_PILLS,
    TRIGGER_PILLS,
)
from conftest import NOW, RecordingNavigator
from domain.entities import UserProfile
from domain.exceptions import ConversationStateError
from domain.models import (
    ChatAction,
    CursorState,
    ExtractedPainData,
    MedicationMention,
    ReplyIntent,
)


@pytest.fixture
def make_policy(ctx, pain_log, responder):
    def _make(profile=None, navigator=None):
        ctx.profile = profile
        return ConversationPolicy(ctx, pain_log, responder, navigator, clock=lambda: NOW)
    return _make


@pytest.fixture
def roaming_profile():
    return UserProfile(user_id="u1", pain_is_consistent=False, default_pain_locations=["neck"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_negated_positive_is_not_pain_free():
    assert is_pain_free("I'm feeling good today")
    assert is_pain_free("no pain at all")
    assert not is_pain_free("not feeling good")
    assert not is_pain_free("good but my knee hurts")


def test_merge_pending_fills_gaps():
    pending = ExtractedPainData(pain_level=6, locations=["neck"], notes="six")
    merged = merge_pending(pending, ExtractedPainData(symptoms=["nausea"], notes="sick"))
    assert merged.pain_level == 6
    assert merged.locations == ["neck"]
    assert merged.symptoms == ["nausea"]
    assert merged.notes == "six sick"


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------

async def test_greeting(make_policy):
    reply = await make_policy().greeting()
    assert reply.content == "How are you feeling today?"
    assert reply.pills == GREETING_PILLS
    assert reply.intent is ReplyIntent.GREETING


async def test_rating_saves_immediately_without_profile(make_policy, log_store, session_repo, ctx):
    reply = await make_policy().handle_message("My head hurts, it's a 7")

    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert reply.content == "Got it! I've recorded your pain level 7/10. What might have triggered this?"
    assert reply.pills == TRIGGER_PILLS

    entry = log_store.entries[reply.saved_entry_id]
    assert entry.pain_level == 7
    assert entry.locations == ["head"]
    assert entry.logged_at == NOW
    assert ctx.history == [entry]
    [session] = session_repo.sessions.values()
    assert session.start_level == 7 and session.is_open


async def test_no_profile_never_asks_for_location(make_policy, log_store):
    reply = await make_policy().handle_message("it's a 6")
    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert log_store.entries[reply.saved_entry_id].locations == []


async def test_consistent_profile_fills_default_locations(make_policy, log_store):
    profile = UserProfile(
        user_id="u1", pain_is_consistent=True, default_pain_locations=["head", "temples"],
    )
    reply = await make_policy(profile).handle_message("it's a 5")
    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert log_store.entries[reply.saved_entry_id].locations == ["head", "temples"]


async def test_ask_location_then_answer(make_policy, roaming_profile, log_store):
    policy = make_policy(roaming_profile)

    reply = await policy.handle_message("pain is 6")
    assert reply.intent is ReplyIntent.ASK_LOCATION
    assert reply.content == "Pain level 6/10 noted. Where specifically are you feeling this pain?"
    assert reply.pills == QUICK_LOCATION_PILLS + [CHOOSE_AREAS_PILL]
    assert policy.state.cursor is CursorState.LOCATION
    assert log_store.entries == {}

    reply = await policy.handle_message("my lower back")
    assert reply.intent is ReplyIntent.ENTRY_SAVED
    entry = log_store.entries[reply.saved_entry_id]
    assert (entry.pain_level, entry.locations) == (6, ["lower back"])
    assert policy.state.cursor is CursorState.NONE
    assert policy.state.pending is None


async def test_location_answer_can_update_rating(make_policy, roaming_profile, log_store):
    policy = make_policy(roaming_profile)
    await policy.handle_message("pain is 6")

    reply = await policy.handle_message("my neck, it's an 8 now")
    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert reply.content.startswith("Got it! I've recorded your pain level 8/10.")
    entry = log_store.entries[reply.saved_entry_id]
    assert (entry.pain_level, entry.locations) == (8, ["neck"])


async def test_location_picker_flow(make_policy, roaming_profile, log_store):
    policy = make_policy(roaming_profile)
    await policy.handle_message("pain is 6")

    reply = await policy.handle_message("Choose specific areas")
    assert reply.intent is ReplyIntent.OPEN_PICKER
    assert reply.action is ChatAction.OPEN_LOCATION_PICKER
    assert reply.picker_seed == ["neck"]

    reply = await policy.handle_message("hello?")
    assert reply.intent is ReplyIntent.PICKER_PENDING
    assert log_store.entries == {}

    reply = await policy.confirm_locations(["neck", " shoulders ", "neck"])
    assert reply.intent is ReplyIntent.LOCATIONS_SAVED
    assert reply.content == "Perfect! I've recorded your pain level 6/10 in: neck, shoulders."
    assert log_store.entries[reply.saved_entry_id].locations == ["neck", "shoulders"]


async def test_empty_picker_selection_asks_again(make_policy, roaming_profile, log_store):
    policy = make_policy(roaming_profile)
    await policy.handle_message("pain is 6")
    await policy.handle_message("specific areas")

    reply = await policy.confirm_locations([])
    assert reply.intent is ReplyIntent.ASK_LOCATION
    assert policy.state.cursor is CursorState.LOCATION
    assert log_store.entries == {}


async def test_confirm_without_open_picker_raises(make_policy):
    with pytest.raises(ConversationStateError):
        await make_policy().confirm_locations(["head"])


async def test_rating_accumulates_location_from_earlier_turn(make_policy, log_store):
    policy = make_policy()

    reply = await policy.handle_message("my back hurts")
    assert reply.intent is ReplyIntent.ASK_PAIN_LEVEL
    assert reply.pills == RATING_PILLS

    reply = await policy.handle_message("7")
    entry = log_store.entries[reply.saved_entry_id]
    assert (entry.pain_level, entry.locations) == (7, ["back"])


async def test_failed_save_is_retried_with_same_entry(make_policy, log_store):
    log_store.failing_saves = 1
    policy = make_policy()

    reply = await policy.handle_message("pain 8 in my neck")
    assert reply.intent is ReplyIntent.SAVE_FAILED
    assert reply.pills == RETRY_PILLS
    assert log_store.entries == {}
    pending_id = policy.state.pending_entry_id
    assert pending_id is not None
    assert policy.state.pending.pain_level == 8

    reply = await policy.handle_message("also nauseous")
    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert reply.saved_entry_id == pending_id
    entry = log_store.entries[pending_id]
    assert entry.pain_level == 8
    assert entry.locations == ["neck"]
    assert entry.symptoms == ["nausea"]
    assert entry.logged_at == NOW
    assert log_store.save_calls == 2
    assert policy.state.pending is None


SEVERE_PILLS = ["Took medication", "Nothing yet", "Resting", "Applied heat/ice"]
ONSET_PILLS = ["Just now", "This morning", "A few hours ago", "Yesterday"]
TYPICAL_PILLS = ["Yes, pretty typical", "No, it's unusual"]


@pytest.mark.parametrize("level, follow_up, pills", [
    (10, "That's severe pain at 10/10. Have you taken anything for it?", SEVERE_PILLS),
    (8, "That's severe pain at 8/10. Have you taken anything for it?", SEVERE_PILLS),
    (7, "That's severe pain at 7/10. Have you taken anything for it?", SEVERE_PILLS),
    (6, "6/10 is definitely affecting your day. When did this start?", ONSET_PILLS),
    (5, "5/10 is definitely affecting your day. When did this start?", ONSET_PILLS),
    (4, "4/10 is definitely affecting your day. When did this start?", ONSET_PILLS),
    (3, "Glad it's on the milder side. Is this typical for you?", TYPICAL_PILLS),
    (2, "Glad it's on the milder side. Is this typical for you?", TYPICAL_PILLS),
    (1, "Glad it's on the milder side. Is this typical for you?", TYPICAL_PILLS),
])
async def test_saved_rating_with_trigger_gets_severity_follow_up(make_policy, level, follow_up, pills):
    reply = await make_policy().handle_message(f"it's a {level}, stress")

    assert reply.intent is ReplyIntent.ENTRY_SAVED
    assert reply.content == f"Got it! I've recorded your pain level {level}/10. {follow_up}"
    assert reply.pills == pills


# ---------------------------------------------------------------------------
# Non-saving turns
# ---------------------------------------------------------------------------

async def test_navigation(make_policy):
    navigator = RecordingNavigator()
    reply = await make_policy(navigator=navigator).handle_message("Show me my progress")
    assert reply.intent is ReplyIntent.NAVIGATE
    assert reply.action is ChatAction.NAVIGATE
    assert reply.target == "insights"
    assert navigator.destinations == ["insights"]


async def test_navigation_keeps_pending_location_question(make_policy, roaming_profile):
    policy = make_policy(roaming_profile)
    await policy.handle_message("pain is 6")
    await policy.handle_message("show my patterns")
    assert policy.state.cursor is CursorState.LOCATION
    assert policy.state.pending.pain_level == 6


async def test_pain_free(make_policy, log_store):
    reply = await make_policy().handle_message("I'm feeling good today")
    assert reply.intent is ReplyIntent.PAIN_FREE
    assert reply.pills == PAIN_FREE_PILLS
    assert log_store.entries == {}


async def test_not_feeling_good_is_open_ended(make_policy):
    reply = await make_policy().handle_message("not feeling good")
    assert reply.intent is ReplyIntent.OPEN_ENDED
    assert reply.content in FALLBACK_PROMPTS
    assert reply.pills == ["Quick pain log", "Voice recording"]


async def test_medication_follow_up_then_alternative(make_policy):
    policy = make_policy()

    reply = await policy.handle_message("I took some advil")
    assert reply.intent is ReplyIntent.MEDICATION_FOLLOW_UP
    assert reply.pills == MEDICATION_PILLS

    reply = await policy.handle_message("it's still not helping")
    assert reply.intent is ReplyIntent.MEDICATION_ALTERNATIVE


async def test_saved_entry_with_ineffective_medication(make_policy, log_store):
    reply = await make_policy().handle_message("stress headache, 6, ibuprofen isn't helping")
    entry = log_store.entries[reply.saved_entry_id]
    assert entry.medications == [MedicationMention("ibuprofen", effective=False)]
    assert "isn't helping" in reply.content


async def test_dialogue_is_recorded(make_policy):
    policy = make_policy()
    await policy.greeting()
    await policy.handle_message("I'm feeling good")
    roles = [role for role, _ in policy.state.dialogue]
    assert roles == ["assistant", "user", "assistant"]
