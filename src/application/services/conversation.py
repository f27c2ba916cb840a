"""
application.services.conversation - The chat companion's state machine.

ConversationPolicy owns one conversation. Each user message is run
through the extraction engine, merged with whatever an earlier turn
left pending, and turned into a ReplyIntent; the injected
ResponseGenerator words the reply.

Cursor states:
    NONE      nothing outstanding
    LOCATION  a pain level is known, waiting for where it hurts
    PICKER    the location picker is open; text turns wait for its confirm

A pending record is only cleared after the log store confirms the save.
If the save fails the record stays pending (same entry id and time), so
the next turn retries it without asking the user anything again.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional, Sequence

from application.analysis.extraction import (
    extract,
    find_locations,
    find_medications,
    find_pain_level,
    has_pain_language,
    states_ineffectiveness,
)
from application.analysis.patterns import generate_contextual_suggestions
from application.context import SessionContext
from application.services.pain_log import PainLogService
from application.services.responses import INSIGHTS_DESTINATION
from domain.entities import PainLogEntry
from domain.exceptions import ConversationStateError
from domain.models import (
    ChatReply,
    CursorState,
    ExtractedPainData,
    ReplyIntent,
    ReplyRequest,
    dedupe,
)
from domain.ports import Navigator, ResponseGenerator

logger = logging.getLogger(__name__)

_NAVIGATION = re.compile(
    r"\bshow (?:me )?(?:my )?(?:progress|patterns?|insights?|charts?|trends?)\b"
)
_PICKER = re.compile(r"\bchoose specific\b|\bspecific areas?\b")
_POSITIVE = re.compile(r"\b(?:good|fine|great|better)\b|\bno pain\b")
_NEGATED_POSITIVE = re.compile(r"\bnot (?:feeling |so |that |very |too )?(?:good|fine|great|better)\b")


def wants_navigation(text: str) -> bool:
    return bool(_NAVIGATION.search(text.lower()))


def wants_picker(text: str) -> bool:
    return bool(_PICKER.search(text.lower()))


def is_pain_free(text: str) -> bool:
    lowered = text.lower()
    if _NEGATED_POSITIVE.search(lowered):
        return False
    if "no pain" in lowered:
        return True
    return bool(_POSITIVE.search(lowered)) and not has_pain_language(lowered)


def merge_pending(pending: Optional[ExtractedPainData], data: ExtractedPainData) -> ExtractedPainData:
    """Fill gaps in *data* from what an earlier turn established."""
    if pending is None:
        return data
    medications = {m.name: m for m in pending.medications}
    medications.update({m.name: m for m in data.medications})
    return ExtractedPainData(
        pain_level=data.pain_level if data.pain_level is not None else pending.pain_level,
        locations=dedupe(list(pending.locations) + list(data.locations)),
        triggers=dedupe(list(pending.triggers) + list(data.triggers)),
        medications=list(medications.values()),
        symptoms=dedupe(list(pending.symptoms) + list(data.symptoms)),
        notes=" ".join(n for n in (pending.notes, data.notes) if n),
    )


@dataclass
class ConversationState:
    """Per-conversation memory of the policy."""
    cursor: CursorState = CursorState.NONE
    pending: Optional[ExtractedPainData] = None
    pending_entry_id: Optional[str] = None
    pending_logged_at: Optional[datetime] = None
    user_messages: list[str] = field(default_factory=list)
    dialogue: list[tuple[str, str]] = field(default_factory=list)
    last_saved_entry_id: Optional[str] = None

    def clear_pending(self) -> None:
        self.pending = None
        self.pending_entry_id = None
        self.pending_logged_at = None
        self.cursor = CursorState.NONE


class ConversationPolicy:
    """Decides the next companion turn and when to persist an entry."""

    def __init__(
        self,
        ctx: SessionContext,
        pain_log: PainLogService,
        responder: ResponseGenerator,
        navigator: Optional[Navigator] = None,
        *,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        dialogue_limit: int = 20,
    ):
        self._ctx = ctx
        self._pain_log = pain_log
        self._responder = responder
        self._navigator = navigator
        self._tz = tz
        self._clock = clock
        self._dialogue_limit = dialogue_limit
        self.state = ConversationState()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def greeting(self) -> ChatReply:
        return await self._respond("", ReplyIntent.GREETING, record_user=False)

    async def handle_message(self, text: str) -> ChatReply:
        """Process one user utterance and return the companion's reply."""
        text = (text or "").strip()
        state = self.state
        self._ctx.new_request()

        if state.cursor is CursorState.PICKER:
            return await self._respond(text, ReplyIntent.PICKER_PENDING, picker_seed=self._picker_seed())

        if wants_navigation(text):
            if self._navigator is not None:
                self._navigator.navigate(INSIGHTS_DESTINATION)
            return await self._respond(text, ReplyIntent.NAVIGATE)

        if state.cursor is CursorState.LOCATION and state.pending is not None:
            if wants_picker(text):
                state.cursor = CursorState.PICKER
                return await self._respond(
                    text, ReplyIntent.OPEN_PICKER,
                    data=state.pending, picker_seed=self._picker_seed(),
                )
            picked = find_locations(text)
            if picked:
                state.user_messages.append(text)
                data = replace(state.pending, locations=dedupe(list(state.pending.locations) + picked))
                level = find_pain_level(text)
                if level is not None:
                    data = replace(data, pain_level=level)
                return await self._save(text, data, ReplyIntent.ENTRY_SAVED)

        data = merge_pending(state.pending, extract(text, state.user_messages))
        state.user_messages.append(text)

        if data.pain_level is None:
            return await self._without_rating(text, data)

        if not data.locations:
            if self._needs_location():
                state.pending = data
                state.cursor = CursorState.LOCATION
                return await self._respond(text, ReplyIntent.ASK_LOCATION, data=data)
            defaults = self._default_locations()
            if defaults:
                data = replace(data, locations=defaults)

        return await self._save(text, data, ReplyIntent.ENTRY_SAVED)

    async def confirm_locations(self, locations: Sequence[str]) -> ChatReply:
        """Resume after the location picker was confirmed.

        An empty selection closes the picker and asks for the location
        again.
        """
        state = self.state
        if state.cursor is not CursorState.PICKER or state.pending is None:
            raise ConversationStateError("No location picker is waiting for confirmation")

        chosen = dedupe(loc.strip() for loc in locations)
        if not chosen:
            state.cursor = CursorState.LOCATION
            return await self._respond("", ReplyIntent.ASK_LOCATION, data=state.pending, record_user=False)

        data = replace(state.pending, locations=chosen)
        return await self._save("", data, ReplyIntent.LOCATIONS_SAVED, record_user=False)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def _without_rating(self, text: str, data: ExtractedPainData) -> ChatReply:
        if is_pain_free(text):
            return await self._respond(text, ReplyIntent.PAIN_FREE, data=data)

        if data.medications and states_ineffectiveness(text):
            return await self._respond(text, ReplyIntent.MEDICATION_ALTERNATIVE, data=data)

        if find_medications(text):
            return await self._respond(text, ReplyIntent.MEDICATION_FOLLOW_UP, data=data)

        if has_pain_language(text):
            return await self._respond(text, ReplyIntent.ASK_PAIN_LEVEL, data=data)

        suggestions = generate_contextual_suggestions(
            text,
            self._ctx.history,
            [content for _, content in self.state.dialogue],
            now=self._clock(),
            tz=self._tz,
        )
        return await self._respond(text, ReplyIntent.OPEN_ENDED, data=data, suggestions=suggestions)

    async def _save(
        self,
        text: str,
        data: ExtractedPainData,
        intent: ReplyIntent,
        record_user: bool = True,
    ) -> ChatReply:
        state = self.state
        entry = PainLogEntry.from_extracted(
            self._ctx.user_id, data, logged_at=state.pending_logged_at or self._clock(),
        )
        if state.pending_entry_id:
            entry.id = state.pending_entry_id

        try:
            saved = await self._pain_log.record(entry)
        except Exception:
            logger.exception("Saving chat entry %s raised", entry.id)
            saved = False

        if not saved:
            state.pending = data
            state.pending_entry_id = entry.id
            state.pending_logged_at = entry.logged_at
            state.cursor = CursorState.NONE
            return await self._respond(text, ReplyIntent.SAVE_FAILED, data=data, record_user=record_user)

        state.clear_pending()
        state.last_saved_entry_id = entry.id
        self._ctx.remember(entry)
        return await self._respond(
            text, intent, data=data, saved_entry_id=entry.id, record_user=record_user,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _needs_location(self) -> bool:
        profile = self._ctx.profile
        return profile is not None and profile.pain_is_consistent is False

    def _default_locations(self) -> list[str]:
        profile = self._ctx.profile
        if profile is None or not profile.pain_is_consistent:
            return []
        return list(profile.default_pain_locations)

    def _picker_seed(self) -> list[str]:
        profile = self._ctx.profile
        return list(profile.default_pain_locations) if profile else []

    async def _respond(
        self,
        text: str,
        intent: ReplyIntent,
        *,
        data: Optional[ExtractedPainData] = None,
        suggestions: Optional[list[str]] = None,
        picker_seed: Optional[list[str]] = None,
        saved_entry_id: Optional[str] = None,
        record_user: bool = True,
    ) -> ChatReply:
        data = data or ExtractedPainData(notes=text)
        if record_user and text:
            self._remember("user", text)
        request = ReplyRequest(
            intent=intent,
            message=text,
            data=data,
            pain_level=data.pain_level,
            locations=list(data.locations),
            dialogue=list(self.state.dialogue),
            history=list(self._ctx.history),
            suggestions=suggestions or [],
            picker_seed=picker_seed or [],
            saved_entry_id=saved_entry_id,
        )
        reply = await self._responder.render(request)
        self._remember("assistant", reply.content)
        logger.debug(
            "Conversation %s turn: intent=%s cursor=%s",
            self._ctx.conversation_id, intent.value, self.state.cursor.value,
        )
        return reply

    def _remember(self, role: str, content: str) -> None:
        dialogue = self.state.dialogue
        dialogue.append((role, content))
        if len(dialogue) > self._dialogue_limit:
            del dialogue[: len(dialogue) - self._dialogue_limit]
