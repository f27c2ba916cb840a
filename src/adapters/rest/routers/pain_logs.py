"""Pain log endpoints — direct entry, edits and the day-grouped list."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, get_date_range, CurrentUser
from adapters.rest.schemas import DayGroupOut, PainLogCreate, PainLogOut, PainLogPatch
from domain.models import DateRange

router = APIRouter(prefix="/pain-logs", tags=["pain-logs"])


@router.post("", response_model=PainLogOut, status_code=status.HTTP_201_CREATED)
async def create_pain_log(
    body: PainLogCreate,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Save a direct-entry form submission.

    other_medication, when given, is also added to the profile's
    current medications.
    """
    service = factory.create_pain_log_service()
    entry = await service.log_entry(user.user_id, body.to_draft(), body.other_medication)
    return PainLogOut.from_entity(entry)


@router.get("", response_model=list[PainLogOut])
async def list_pain_logs(
    date_range: DateRange = Depends(get_date_range),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Entries in the range, oldest first."""
    service = factory.create_pain_log_service()
    entries = await service.get_range(user.user_id, date_range)
    return [PainLogOut.from_entity(e) for e in entries]


@router.get("/by-day", response_model=list[DayGroupOut])
async def list_pain_logs_by_day(
    date_range: DateRange = Depends(get_date_range),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Entries grouped by calendar day, newest day first."""
    insights = factory.create_insights_service()
    groups = await insights.day_groups(user.user_id, date_range)
    return [DayGroupOut.from_group(g) for g in groups]


@router.get("/{entry_id}", response_model=PainLogOut)
async def get_pain_log(
    entry_id: str,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_pain_log_service()
    return PainLogOut.from_entity(await service.get_entry(user.user_id, entry_id))


@router.patch("/{entry_id}", response_model=PainLogOut)
async def update_pain_log(
    entry_id: str,
    body: PainLogPatch,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_pain_log_service()
    await service.get_entry(user.user_id, entry_id)
    if not await service.update_entry(entry_id, body.to_patch()):
        raise HTTPException(status_code=503, detail="Entry could not be updated.")
    return PainLogOut.from_entity(await service.get_entry(user.user_id, entry_id))


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pain_log(
    entry_id: str,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_pain_log_service()
    await service.get_entry(user.user_id, entry_id)
    if not await service.delete_entry(entry_id):
        raise HTTPException(status_code=503, detail="Entry could not be deleted.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
