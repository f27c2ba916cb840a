"""Pain session endpoints — the open episode and resolving it."""

from fastapi import APIRouter, Depends, HTTPException, Query

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, CurrentUser
from adapters.rest.schemas import PainSessionOut, ResolveSessionBody

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=list[PainSessionOut])
async def list_sessions(
    limit: int = Query(default=20, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    repo = factory.create_session_repository()
    return [PainSessionOut.from_entity(s) for s in await repo.list_recent(user.user_id, limit)]


@router.get("/active", response_model=PainSessionOut | None)
async def get_active_session(
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_pain_log_service()
    session = await service.active_session(user.user_id)
    return PainSessionOut.from_entity(session) if session else None


@router.post("/resolve", response_model=PainSessionOut)
async def resolve_session(
    body: ResolveSessionBody,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Close the open pain session with the user's closing rating."""
    service = factory.create_pain_log_service()
    session = await service.resolve_session(user.user_id, body.end_level)
    if session is None:
        raise HTTPException(status_code=404, detail="No open pain session.")
    return PainSessionOut.from_entity(session)
