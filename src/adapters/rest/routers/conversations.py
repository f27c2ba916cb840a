"""Conversation history endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, CurrentUser
from adapters.rest.schemas import ConversationOut, MessageOut

router = APIRouter(tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_chat_history_service()
    conversations = await service.list_conversations(user.user_id)
    return [
        ConversationOut(
            conversation_id=c.conversation_id,
            title=c.title,
            last_message_at=c.last_message_at,
            created_at=c.created_at,
        )
        for c in conversations
    ]


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageOut],
)
async def get_messages(
    conversation_id: str,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_chat_history_service()
    conversation = await service.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found.")
    if conversation.user_id != user.user_id:
        raise HTTPException(status_code=403, detail="Not your conversation.")
    messages = await service.messages(conversation_id)
    return [
        MessageOut(id=m.id, role=m.role, content=m.content, created_at=m.created_at)
        for m in messages
    ]


@router.get("/chat/history")
async def get_chat_history(
    hours: int = Query(default=24, ge=1, le=168),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Recent messages of the user's latest conversation, for a reconnecting client."""
    service = factory.create_chat_history_service()
    conversation_id, recent = await service.recent_transcript(user.user_id, hours)
    return {
        "conversation_id": conversation_id,
        "messages": [
            {"role": m.role, "content": m.content, "created_at": m.created_at}
            for m in recent
        ],
    }
