"""WebSocket endpoint for the real-time pain companion chat."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from adapters.rest.dependencies import get_factory
from application.services.chat_history import ASSISTANT, USER
from domain.exceptions import ConversationStateError
from domain.models import ChatReply

router = APIRouter()
logger = logging.getLogger(__name__)


def reply_frame(reply: ChatReply) -> dict[str, Any]:
    return {
        "type": "reply",
        "content": reply.content,
        "pills": reply.pills,
        "intent": reply.intent.value,
        "action": reply.action.value if reply.action else None,
        "target": reply.target,
        "picker_seed": reply.picker_seed,
        "saved_entry_id": reply.saved_entry_id,
    }


def parse_frame(raw: str) -> dict[str, Any]:
    """Client frames are JSON objects; bare text is treated as a message."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        return {"type": "message", "text": raw}
    if not isinstance(frame, dict):
        return {"type": "message", "text": raw}
    return frame


@router.websocket("/ws/chat")
async def websocket_chat(
    ws: WebSocket,
    user_id: str = Query(default=""),
):
    """
    WebSocket chat endpoint.

    The user is identified by query parameter: /ws/chat?user_id=<id>
    (WebSocket handshake does not support custom headers in browsers.)

    Conversation persistence:
      - If the user has a conversation active within the reuse window,
        reuse it so a reconnecting client can show previous messages.
      - Otherwise a fresh conversation is started.

    Protocol:
      - Client sends: {"type": "message", "text": "..."}
                      {"type": "confirm_locations", "locations": [...]}
                      (plain text is accepted as a message)
      - Server sends: {"type": "session", "conversation_id": ...} once,
                      then {"type": "reply", ...} per turn, starting with the greeting;
                      {"type": "error", "detail": ...} for a frame it cannot accept
      - Missing user id: close with code 4001
      - On unhandled error: send an error frame then close 1011
    """
    if not user_id.strip():
        await ws.close(code=4001, reason="Missing user_id")
        return

    factory = get_factory()
    await ws.accept()

    user_id = user_id.strip()
    chat_service = factory.create_chat_history_service()
    conversation_id = await chat_service.open_conversation(user_id)

    ctx = await factory.build_session_ctx(user_id, conversation_id)
    policy = factory.create_conversation_policy(ctx)

    try:
        await ws.send_json({"type": "session", "conversation_id": conversation_id})
        greeting = await policy.greeting()
        await chat_service.record(ctx, ASSISTANT, greeting.content)
        await ws.send_json(reply_frame(greeting))

        while True:
            frame = parse_frame(await ws.receive_text())
            kind = frame.get("type", "message")

            if kind == "confirm_locations":
                locations = [str(loc) for loc in frame.get("locations") or []]
                try:
                    reply = await policy.confirm_locations(locations)
                except ConversationStateError as exc:
                    await ws.send_json({"type": "error", "detail": str(exc)})
                    continue
            elif kind == "message":
                text = str(frame.get("text") or "")
                logger.info("WS user=%s conv=%s | %s", user_id, conversation_id, text[:200])
                await chat_service.record(ctx, USER, text)
                reply = await policy.handle_message(text)
            else:
                await ws.send_json({"type": "error", "detail": f"Unknown frame type: {kind}"})
                continue

            await chat_service.record(ctx, ASSISTANT, reply.content)
            await ws.send_json(reply_frame(reply))
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.exception("Unhandled error in WS handler for user %s", user_id)
        try:
            await ws.send_json({"type": "error", "detail": f"Unexpected error: {exc}"})
        except RuntimeError:
            logger.debug("Socket already closed for user %s", user_id)
        await ws.close(code=1011)
