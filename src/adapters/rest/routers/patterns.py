"""History-wide pattern endpoints used to personalize the companion."""

from fastapi import APIRouter, Depends

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, CurrentUser
from adapters.rest.schemas import PatternsOut, SuggestionsBody, SuggestionsOut

router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.get("", response_model=PatternsOut)
async def get_patterns(
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_insights_service()
    return PatternsOut.from_patterns(await service.patterns(user.user_id))


@router.post("/suggestions", response_model=SuggestionsOut)
async def get_suggestions(
    body: SuggestionsBody,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Quick-reply suggestions for a draft message, at most four."""
    service = factory.create_insights_service()
    suggestions = await service.suggestions(user.user_id, body.message, body.context)
    return SuggestionsOut(suggestions=suggestions)
