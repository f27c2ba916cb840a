"""
infrastructure.llm.response_generator - LLM-backed companion replies.

Implements the ResponseGenerator port with a LangChain chat chain. Only
the conversational intents are handed to the model; replies that carry
the state machine's contract (rating prompts, location prompts, save
confirmations, picker handoff, navigation) keep the scripted wording.
Pills and UI actions always come from the scripted generator.

Any provider error falls back to the scripted reply so the chat never
stalls on the model.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import tzinfo
from typing import Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from application.services.responses import ScriptedResponseGenerator
from domain.entities import PainLogEntry
from domain.exceptions import ResponseGenerationError
from domain.models import ChatReply, ReplyIntent, ReplyRequest

logger = logging.getLogger(__name__)

LLM_INTENTS = frozenset({
    ReplyIntent.OPEN_ENDED,
    ReplyIntent.PAIN_FREE,
    ReplyIntent.MEDICATION_FOLLOW_UP,
    ReplyIntent.MEDICATION_ALTERNATIVE,
})

_SYSTEM_PROMPT = """You are a compassionate AI pain companion helping someone keep a pain diary.

How to reply:
- Be warm, brief and specific: two or three sentences at most.
- Ask at most one question, aimed at what is still unknown
  (pain level 0-10, where it hurts, what triggered it, what they took and whether it helped).
- Never diagnose and never recommend doses. For sudden, severe or unusual pain,
  suggest contacting a doctor.
- Refer to their recent history only when it is relevant.

Their recent entries (oldest first):
{history}"""


def describe_history(entries: Sequence[PainLogEntry], tz: Optional[tzinfo] = None) -> str:
    """One line per entry for the system prompt."""
    if not entries:
        return "(no entries yet)"
    lines = []
    for e in entries:
        parts = [e.local_time(tz).strftime("%Y-%m-%d %H:%M")]
        parts.append(f"level {e.pain_level}" if e.pain_level is not None else "no rating")
        if e.locations:
            parts.append("at " + ", ".join(e.locations))
        if e.triggers:
            parts.append("triggers " + ", ".join(e.triggers))
        if e.medications:
            parts.append("took " + ", ".join(e.medication_names))
        lines.append("- " + "; ".join(parts))
    return "\n".join(lines)


def to_messages(dialogue: Sequence[tuple[str, str]]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for role, content in dialogue:
        if role == "user":
            messages.append(HumanMessage(content=content))
        else:
            messages.append(AIMessage(content=content))
    return messages


class LLMResponseGenerator:
    """ResponseGenerator that lets a chat model word the open-ended turns."""

    def __init__(
        self,
        llm: BaseChatModel,
        *,
        scripted: Optional[ScriptedResponseGenerator] = None,
        history_messages: int = 5,
        history_entries: int = 10,
        tz: Optional[tzinfo] = None,
    ):
        self._llm = llm
        self._scripted = scripted or ScriptedResponseGenerator()
        self._history_messages = history_messages
        self._history_entries = history_entries
        self._tz = tz
        self._chain = self._build_chain()

    def _build_chain(self):
        prompt = ChatPromptTemplate.from_messages([
            ("system", _SYSTEM_PROMPT),
            MessagesPlaceholder(variable_name="dialogue"),
        ])
        return prompt | self._llm | StrOutputParser()

    async def render(self, request: ReplyRequest) -> ChatReply:
        scripted = self._scripted.compose(request)
        if request.intent not in LLM_INTENTS:
            return scripted
        try:
            content = await self.generate(request)
        except ResponseGenerationError:
            logger.exception("LLM reply failed, using scripted reply")
            return scripted
        return replace(scripted, content=content)

    async def generate(self, request: ReplyRequest) -> str:
        """Ask the model for a reply to the latest user message.

        Raises:
            ResponseGenerationError: on provider failure or an empty reply.
        """
        dialogue = list(request.dialogue[-self._history_messages:])
        if request.message and (not dialogue or dialogue[-1] != ("user", request.message)):
            dialogue.append(("user", request.message))
        inputs = {
            "history": describe_history(request.history[-self._history_entries:], self._tz),
            "dialogue": to_messages(dialogue),
        }
        try:
            loop = asyncio.get_running_loop()
            content: str = await loop.run_in_executor(None, self._chain.invoke, inputs)
        except Exception as e:
            raise ResponseGenerationError(f"Chat model call failed: {e}") from e

        content = (content or "").strip()
        if not content:
            raise ResponseGenerationError("Chat model returned an empty reply")
        return content
